"""Extract media, links, hashtags and quoted references from raw note text.

All extractors run on the original text, before any HTML escaping, and
return results in the order they first appear. None of them raise.
"""

import logging
import re
from urllib.parse import urlsplit

from .models import LinkPreview, MediaItem, QuotedReference

logger = logging.getLogger(__name__)

IMAGE_RE = re.compile(
    r"https?://\S+\.(?:jpg|jpeg|png|gif|webp|svg)(?:\?\S*)?", re.IGNORECASE
)
VIDEO_RE = re.compile(r"https?://\S+\.(?:mp4|webm|mov|avi)(?:\?\S*)?", re.IGNORECASE)
YOUTUBE_RE = re.compile(
    r"(?:https?://)?(?:www\.)?(?:youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]+)",
    re.IGNORECASE,
)
YOUTUBE_THUMBNAIL = "https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"

URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
# Prose punctuation that sticks to the end of a pasted URL
TRAILING_PUNCTUATION_RE = re.compile(r"[>),.!?;:]+$")

HASHTAG_RE = re.compile(r"#[a-zA-Z0-9_]+")

QUOTE_RE = re.compile(
    r"nostr:(event1[a-z0-9]{58}|note1[a-z0-9]{58}|nevent1[a-z0-9]+|naddr[a-z0-9]+)",
    re.IGNORECASE,
)


def extract_media(text: str) -> list[MediaItem]:
    """Find image, video and YouTube URLs.

    A span already claimed by an earlier match (e.g. ``clip.mp4?x.jpg``
    matching both patterns) is reported once.
    """
    found: list[tuple[int, int, MediaItem]] = []

    for match in IMAGE_RE.finditer(text):
        found.append((match.start(), match.end(), MediaItem(type="image", url=match.group(0))))
    for match in VIDEO_RE.finditer(text):
        found.append((match.start(), match.end(), MediaItem(type="video", url=match.group(0))))
    for match in YOUTUBE_RE.finditer(text):
        found.append(
            (
                match.start(),
                match.end(),
                MediaItem(
                    type="video",
                    url=match.group(0),
                    thumbnail=YOUTUBE_THUMBNAIL.format(video_id=match.group(1)),
                ),
            )
        )

    found.sort(key=lambda f: f[0])
    media: list[MediaItem] = []
    claimed_until = -1
    for start, end, item in found:
        if start < claimed_until:
            continue
        media.append(item)
        claimed_until = end
    return media


def extract_links(text: str) -> list[LinkPreview]:
    """Find http(s) URLs, trimming trailing prose punctuation.

    URLs that fail strict parsing are logged and skipped.
    """
    links: list[LinkPreview] = []
    for raw_url in URL_RE.findall(text):
        url = TRAILING_PUNCTUATION_RE.sub("", raw_url)
        domain = _parse_domain(url)
        if domain is None:
            logger.warning("Invalid URL: %s", raw_url)
            continue
        links.append(LinkPreview(url=url, domain=domain))
    return links


def _parse_domain(url: str) -> str | None:
    try:
        parts = urlsplit(url)
        # accessing .port validates it
        parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None
    return parts.hostname


def extract_hashtags(text: str) -> list[str]:
    """Return hashtags without the leading ``#``, in order of appearance."""
    return [tag[1:] for tag in HASHTAG_RE.findall(text)]


def extract_quoted_references(text: str) -> list[QuotedReference]:
    """Find ``nostr:`` references to other events (note, nevent, naddr)."""
    quotes: list[QuotedReference] = []
    for match in QUOTE_RE.finditer(text):
        full_match = match.group(0)
        lowered = full_match.lower()
        # nevent1 contains event1, so both land in "event"
        if "event1" in lowered:
            ref_type = "event"
        elif "note1" in lowered:
            ref_type = "note"
        else:
            ref_type = "addr"
        quotes.append(QuotedReference(type=ref_type, id=full_match, full_match=full_match))
    return quotes
