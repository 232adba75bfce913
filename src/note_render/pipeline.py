"""Turn note text and tags into escaped, enriched HTML.

``ContentProcessor.process_content`` is synchronous end to end. The order of
passes matters:

1. extract media, links, hashtags and quoted references from the raw text;
2. swap media URLs and quoted references for positional tokens, so nothing
   inside them is later read as a hashtag or mention;
3. escape, linkify, resolve mentions, format hashtags, place quote markers,
   convert line breaks.

Mentions whose profile is not cached yet render as pending. When the fetch
completes, ``MentionPatcher`` updates the mounted anchors in place.
"""

import logging
from dataclasses import dataclass

from .blink import BlinkAnimator, NullAnimator, Scheduler
from .config import AppConfig, RenderSettings
from .document import Document
from .extractors import (
    extract_hashtags,
    extract_links,
    extract_media,
    extract_quoted_references,
)
from .formatting import (
    collapse_blank_lines,
    convert_line_breaks,
    escape_html,
    format_hashtags,
    format_quoted_references,
    linkify_urls,
    substitute_placeholders,
)
from .mentions import resolve_mentions
from .models import Profile, ProcessedContent, TagList
from .nip19 import Nip19Error, hex_to_npub
from .profile_cache import ProfileCache, ProfileService
from .recognition import RecognitionController, RecognitionStore

logger = logging.getLogger(__name__)


class ContentProcessor:
    def __init__(self, cache: ProfileCache, settings: RenderSettings | None = None):
        self.cache = cache
        self.settings = settings or RenderSettings()

    def process_content(self, text: str, tags: TagList = ()) -> ProcessedContent:
        """Render note content. Never raises and never waits on the network."""
        text = text or ""
        try:
            return self._process(text, tags or ())
        except Exception:
            logger.exception("Content processing failed; rendering as plain text")
            return ProcessedContent(text=text, html=convert_line_breaks(escape_html(text)))

    def _process(self, text: str, tags: TagList) -> ProcessedContent:
        media = extract_media(text)
        links = extract_links(text)
        hashtags = extract_hashtags(text)
        quoted_references = extract_quoted_references(text)

        self.cache.prefetch(mentioned_pubkeys(tags))

        cleaned = substitute_placeholders(text, media, quoted_references)
        cleaned = collapse_blank_lines(cleaned)

        html = escape_html(cleaned)
        html = linkify_urls(html)
        html = resolve_mentions(html, self.cache.resolve, self.settings)
        html = format_hashtags(html, hashtags)
        html = format_quoted_references(html, quoted_references)
        html = convert_line_breaks(html)

        return ProcessedContent(
            text=text,
            html=html,
            media=media,
            links=links,
            hashtags=hashtags,
            quoted_references=quoted_references,
        )


def mentioned_pubkeys(tags: TagList) -> list[str]:
    """Hex pubkeys from ``p`` tags, in tag order."""
    return [tag[1] for tag in tags if len(tag) >= 2 and tag[0] == "p"]


class MentionPatcher:
    """Cache listener that updates mounted mentions once a profile resolves."""

    def __init__(self, document: Document, controller: RecognitionController):
        self.document = document
        self.controller = controller

    def __call__(self, pubkey: str, profile: Profile) -> None:
        username = profile.username
        if not username:
            return
        try:
            npub = hex_to_npub(pubkey)
        except Nip19Error:
            logger.warning("Cannot encode pubkey %r as npub; recording without patching", pubkey)
            mentions = []
        else:
            mentions = self.document.find_mentions(npub)

        for mention in mentions:
            mention.mark_loaded()
        # recorded even when nothing is mounted, so a later change can blink
        self.controller.apply(mentions, pubkey, username, profile.picture)


@dataclass
class Renderer:
    """Everything needed to render notes and patch them as profiles arrive."""

    cache: ProfileCache
    store: RecognitionStore
    controller: RecognitionController
    document: Document
    processor: ContentProcessor
    patcher: MentionPatcher

    def render(self, text: str, tags: TagList = (), key: str | None = None) -> ProcessedContent:
        """Process a note and mount its HTML so later resolutions can patch it."""
        processed = self.processor.process_content(text, tags)
        self.document.mount(processed.html, key=key)
        return processed


def build_renderer(
    service: ProfileService,
    config: AppConfig | None = None,
    scheduler: Scheduler | None = None,
    animate: bool = True,
    store: RecognitionStore | None = None,
) -> Renderer:
    """Wire cache, recognition, document and processor together."""
    config = config or AppConfig()
    cache = ProfileCache(service)
    store = store or RecognitionStore(window_days=config.window_days)
    animator_cls = BlinkAnimator if animate else NullAnimator
    animator = animator_cls(config.blink, scheduler=scheduler)
    controller = RecognitionController(store, animator, config.render)
    document = Document(config.render)
    patcher = MentionPatcher(document, controller)
    cache.add_listener(patcher)
    return Renderer(
        cache=cache,
        store=store,
        controller=controller,
        document=document,
        processor=ContentProcessor(cache, config.render),
        patcher=patcher,
    )
