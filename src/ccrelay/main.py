"""Console entry point: `ccrelay` runs the bridge, `ccrelay hook` runs the hook."""

import logging
import os
import sys


def main() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "hook":
        from .hook import hook_main

        hook_main()
        return

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
    # httpx logs full request URLs, which include the bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger = logging.getLogger(__name__)

    from .config import Config
    from .server import run_server

    try:
        config = Config()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    run_server(config)


if __name__ == "__main__":
    main()
