"""
Text helpers shared by services: HTML encoding, slugs and comment markdown.
"""
import re

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}


def encode_for_html(value: str) -> str:
    """Escape & < > " ' and / for safe embedding in HTML."""
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in str(value))


def slugify(text: str) -> str:
    """
    Lowercase URL slug.

    >>> slugify("  Summer Trip_2024! ")
    'summer-trip-2024'
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    return slug.strip("-")


_CODE_BLOCK = re.compile(r"```([\s\S]*?)```")
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_BOLD_STARS = re.compile(r"\*\*([^*]+)\*\*")
_BOLD_UNDERSCORES = re.compile(r"__([^_]+)__")
_QUOTE_LINE = re.compile(r"^&gt;\s?(.*)$")
_NEWLINE_OUTSIDE_BLOCKS = re.compile(r"\n(?![^<]*</(pre|blockquote)>)")


def parse_comment_markdown(content: str) -> str:
    """
    Render the small markdown dialect allowed in comments to HTML.

    Supports fenced code blocks, inline code, **bold** / __bold__ and
    "> " blockquotes. Input is HTML-escaped first, so raw tags never survive.
    """
    if not content:
        return ""

    result = encode_for_html(content)

    result = _CODE_BLOCK.sub(lambda m: f"<pre><code>{m.group(1).strip()}</code></pre>", result)
    result = _INLINE_CODE.sub(lambda m: f"<code>{m.group(1)}</code>", result)
    result = _BOLD_STARS.sub(lambda m: f"<strong>{m.group(1)}</strong>", result)
    result = _BOLD_UNDERSCORES.sub(lambda m: f"<strong>{m.group(1)}</strong>", result)

    lines = []
    quote = None
    for line in result.split("\n"):
        match = _QUOTE_LINE.match(line)
        if match:
            if quote is None:
                quote = []
            quote.append(match.group(1))
            continue
        if quote is not None:
            lines.append(f"<blockquote>{'<br>'.join(quote)}</blockquote>")
            quote = None
        lines.append(line)
    if quote is not None:
        lines.append(f"<blockquote>{'<br>'.join(quote)}</blockquote>")

    result = "\n".join(lines)
    return _NEWLINE_OUTSIDE_BLOCKS.sub("<br>", result)
