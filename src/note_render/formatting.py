"""Text passes of the rendering pipeline.

Each function is a pure string transform. Placeholder substitution works on
the raw text; everything else works on escaped HTML.
"""

import html as _html
import re

from .models import MediaItem, QuotedReference

MEDIA_TOKEN = "__MEDIA_{index}__"
QUOTE_TOKEN = "__QUOTE_{index}__"

LINKIFY_RE = re.compile(r"(https?://[^\s<]+)", re.IGNORECASE)
BLANK_LINES_RE = re.compile(r"\n{3,}")

# A hashtag starts the text, follows whitespace or a closing tag, and is not
# followed by another tag character. "#frag" inside a URL never qualifies.
HASHTAG_FORMAT_RE = re.compile(r"(?<![^\s>])#([a-zA-Z0-9_]+)(?![a-zA-Z0-9_])")

TAG_RE = re.compile(r"<[^>]*>")
WHITESPACE_RE = re.compile(r"\s+")


def substitute_placeholders(
    text: str,
    media: list[MediaItem],
    quoted_references: list[QuotedReference] | None = None,
) -> str:
    """Swap media URLs and quoted references for positional tokens.

    Replacement is by substring, one occurrence per extracted item, so the
    n-th item claims the first occurrence still present in the text.
    """
    for index, item in enumerate(media):
        text = text.replace(item.url, MEDIA_TOKEN.format(index=index), 1)
    for index, ref in enumerate(quoted_references or []):
        text = text.replace(ref.full_match, QUOTE_TOKEN.format(index=index), 1)
    return text


def collapse_blank_lines(text: str) -> str:
    return BLANK_LINES_RE.sub("\n\n", text).strip()


def escape_html(text: str) -> str:
    return _html.escape(text)


def linkify_urls(html: str) -> str:
    return LINKIFY_RE.sub(r'<a href="\1" target="_blank" rel="noopener">\1</a>', html)


def inside_anchor(html: str, offset: int) -> bool:
    """True when ``offset`` falls between an ``<a`` open tag and its close."""
    opened = html.rfind("<a ", 0, offset)
    return opened != -1 and html.rfind("</a>", 0, offset) < opened


def format_hashtags(html: str, hashtags: list[str]) -> str:
    """Wrap known hashtags in ``<span class="hashtag" data-tag="...">``.

    Text inside an anchor (a link or a mention label) is left alone.
    """
    if not hashtags:
        return html
    known = set(hashtags)

    def _wrap(match: re.Match) -> str:
        tag = match.group(1)
        if tag not in known or inside_anchor(match.string, match.start()):
            return match.group(0)
        return f'<span class="hashtag" data-tag="{tag}">#{tag}</span>'

    return HASHTAG_FORMAT_RE.sub(_wrap, html)


def format_quoted_references(html: str, quoted_references: list[QuotedReference]) -> str:
    """Replace quote tokens with marker spans for the quote box renderer."""
    for index, ref in enumerate(quoted_references):
        marker = f'<span class="quote-marker" data-quote-ref="{_html.escape(ref.full_match)}"></span>'
        html = html.replace(QUOTE_TOKEN.format(index=index), marker, 1)
    return html


def convert_line_breaks(html: str) -> str:
    return html.replace("\n", "<br>")


def truncate_note_content(content: str, max_length: int = 80) -> str:
    """Single-line plain-text preview of a note, for thread context.

    Cuts at the last space when that keeps at least 60% of ``max_length``.
    """
    if not content or not content.strip():
        return "[Empty note]"

    normalized = WHITESPACE_RE.sub(" ", TAG_RE.sub("", content)).strip()
    if not normalized:
        return "[Empty note]"

    if len(normalized) <= max_length:
        return normalized

    truncated = normalized[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.6:
        return truncated[:last_space] + "..."
    return truncated + "..."
