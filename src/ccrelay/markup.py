"""Markdown → Telegram HTML conversion layer.

Handles the small Markdown subset Claude replies use: fenced code blocks,
inline code, bold, italic, underline and strikethrough. Code is pulled out
into NUL-delimited placeholders before anything else runs, so emphasis
rules never touch it and its contents are escaped exactly once.

Key function: markdown_to_html(text) → Telegram HTML string.
"""

import re

TELEGRAM_MAX_MESSAGE_LENGTH = 4000

_FENCE_RE = re.compile(r"```(\w*)\n?([\s\S]*?)```")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")

# & that does not start one of the entities Telegram HTML accepts:
# &lt; &gt; &amp; &quot; and numeric references
_BARE_AMP_RE = re.compile(r"&(?!(?:lt|gt|amp|quot|#[0-9]+|#[xX][0-9a-fA-F]+);)")

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"\*(.+?)\*")
_UNDERLINE_RE = re.compile(r"__(.+?)__")
_STRIKE_RE = re.compile(r"~~(.+?)~~")

_PLACEHOLDER = "\x00{kind}{index}\x00"


def escape_html(text: str) -> str:
    """Escape &, < and > for Telegram HTML without double-escaping entities."""
    text = _BARE_AMP_RE.sub("&amp;", text)
    return text.replace("<", "&lt;").replace(">", "&gt;")


def markdown_to_html(text: str) -> str:
    """Convert Markdown to Telegram HTML."""
    # NUL delimits placeholders, so it must not survive from the input
    text = text.replace("\x00", "")
    protected: list[str] = []

    def _protect(kind: str, html: str) -> str:
        protected.append(html)
        return _PLACEHOLDER.format(kind=kind, index=len(protected) - 1)

    def _fence(m: re.Match[str]) -> str:
        lang, code = m.group(1), escape_html(m.group(2).strip())
        if lang:
            return _protect("B", f'<pre><code class="language-{lang}">{code}</code></pre>')
        return _protect("B", f"<pre><code>{code}</code></pre>")

    text = _FENCE_RE.sub(_fence, text)
    text = _INLINE_CODE_RE.sub(
        lambda m: _protect("I", f"<code>{escape_html(m.group(1))}</code>"), text
    )

    text = escape_html(text)

    text = _BOLD_RE.sub(r"<b>\1</b>", text)
    text = _ITALIC_RE.sub(r"<i>\1</i>", text)
    text = _UNDERLINE_RE.sub(r"<u>\1</u>", text)
    text = _STRIKE_RE.sub(r"<s>\1</s>", text)

    # Restore newest first; protected content never contains a placeholder
    for index in range(len(protected) - 1, -1, -1):
        for kind in ("B", "I"):
            text = text.replace(_PLACEHOLDER.format(kind=kind, index=index), protected[index])
    return text


def truncate(text: str, limit: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> str:
    """Cut text to Telegram's length limit.

    This is a plain character slice and can split an HTML tag; the sender's
    plain-text fallback covers the resulting parse error.
    """
    return text[:limit]
