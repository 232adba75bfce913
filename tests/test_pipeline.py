"""End-to-end tests for content processing and late mention patching."""

import asyncio
import logging

import pytest

from note_render import pipeline
from note_render.config import AppConfig
from note_render.models import MediaItem, Profile
from note_render.pipeline import ContentProcessor, build_renderer, mentioned_pubkeys
from note_render.profile_cache import ProfileCache, StaticProfileService
from note_render.recognition import RecognitionStore


@pytest.fixture
def processor():
    return ContentProcessor(ProfileCache(StaticProfileService()))


@pytest.fixture
def config(blink_settings):
    return AppConfig(blink=blink_settings)


class TestProcessContent:
    def test_hashtag_and_image(self, processor):
        processed = processor.process_content("Hello #nostr https://example.com/cat.jpg")
        assert processed.media == [MediaItem(type="image", url="https://example.com/cat.jpg")]
        assert processed.hashtags == ["nostr"]
        assert '<span class="hashtag" data-tag="nostr">' in processed.html
        assert "__MEDIA_0__" in processed.html
        assert "cat.jpg" not in processed.html

    def test_html_escaped(self, processor):
        processed = processor.process_content("<script>alert('x')</script>")
        assert "<script>" not in processed.html
        assert processed.html.startswith("&lt;script&gt;")

    def test_link(self, processor):
        processed = processor.process_content("read https://example.com/post, ok")
        assert processed.links[0].url == "https://example.com/post"
        assert processed.links[0].domain == "example.com"
        assert 'target="_blank" rel="noopener">https://example.com/post' in processed.html

    def test_url_fragment_is_not_a_hashtag(self, processor):
        processed = processor.process_content("https://example.com/page#nostr and #nostr")
        assert processed.html.count('class="hashtag"') == 1
        assert 'href="https://example.com/page#nostr"' in processed.html

    def test_blank_lines_and_breaks(self, processor):
        processed = processor.process_content("one\n\n\n\ntwo\nthree\n")
        assert processed.html == "one<br><br>two<br>three"

    def test_quoted_reference_marker(self, processor):
        ref = "nostr:note1" + "q" * 58
        processed = processor.process_content(f"look {ref} #wow")
        assert len(processed.quoted_references) == 1
        assert f'data-quote-ref="{ref}"' in processed.html
        assert 'data-tag="wow"' in processed.html

    def test_hashtag_inside_quote_ignored(self, processor):
        processed = processor.process_content("nostr:naddr1abc#tag")
        assert "hashtag" not in processed.html

    def test_nprofile_boundary(self, processor, alice_nprofile, alice_npub):
        processed = processor.process_content(f"hey {alice_nprofile}, welcome")
        assert processed.html.count("data-mention") == 1
        assert f'href="/profile/{alice_npub}"' in processed.html
        assert processed.html.endswith("</a>, welcome")

    def test_nprofile_then_npub_single_anchor(self, processor, alice_nprofile, alice_npub):
        processed = processor.process_content(f"nostr:{alice_nprofile} nostr:{alice_npub}")
        assert processed.html.count("<a ") == 1

    def test_idempotent(self, processor, alice_npub):
        text = f"gm nostr:{alice_npub} #nostr https://example.com/a.png"
        assert processor.process_content(text).html == processor.process_content(text).html

    def test_empty(self, processor):
        processed = processor.process_content("")
        assert processed.html == ""
        assert processed.media == []

    def test_failure_falls_back_to_escaped_text(self, processor, monkeypatch, caplog):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline, "resolve_mentions", broken)
        with caplog.at_level(logging.ERROR, logger="note_render"):
            processed = processor.process_content("a <b>\nc")
        assert processed.html == "a &lt;b&gt;<br>c"
        assert "Content processing failed" in caplog.text

    def test_mentioned_pubkeys(self, alice, bob):
        tags = [["p", alice, "wss://relay"], ["t", "nostr"], ["p"], ["p", bob]]
        assert mentioned_pubkeys(tags) == [alice, bob]


class TestProgressiveResolution:
    def test_pending_mention_resolves_directly(self, alice_profile, alice_npub, config, scheduler):
        service = StaticProfileService({alice_profile.pubkey: alice_profile})
        renderer = build_renderer(service, config, scheduler=scheduler)

        async def scenario():
            processed = renderer.render(f"gm nostr:{alice_npub}", key="n1")
            await renderer.cache.drain()
            return processed

        processed = asyncio.run(scenario())
        assert "data-loading" in processed.html
        assert "…</a>" in processed.html

        (mention,) = renderer.document.find_mentions(alice_npub)
        assert mention.label == "alice"
        assert not mention.loading
        assert mention.avatar_src == alice_profile.picture
        assert scheduler.pending == 0
        assert renderer.store.get_encounter(alice_profile.pubkey).first_name == "alice"

    def test_p_tags_prefetched_in_one_batch(self, alice_profile, alice_npub, config):
        service = StaticProfileService({alice_profile.pubkey: alice_profile})
        renderer = build_renderer(service, config, animate=False)

        async def scenario():
            renderer.render(f"gm {alice_npub}", [["p", alice_profile.pubkey]], key="n1")
            await renderer.cache.drain()

        asyncio.run(scenario())
        assert service.requested == [alice_profile.pubkey]
        assert "alice</a>" in renderer.document.to_html("n1")

    def test_cached_profile_renders_resolved(self, alice_profile, alice_npub, config):
        renderer = build_renderer(StaticProfileService(), config, animate=False)
        renderer.cache.receive(alice_profile)
        processed = renderer.render(f"gm {alice_npub}")
        assert "data-loading" not in processed.html
        assert "alice</a>" in processed.html

    def test_changed_name_blinks(self, alice_profile, alice_npub, config, scheduler, clock):
        store = RecognitionStore(window_days=config.window_days, clock=clock)
        renderer = build_renderer(StaticProfileService(), config, scheduler=scheduler, store=store)
        renderer.render(f"gm nostr:{alice_npub}", key="n1")

        renderer.cache.receive(alice_profile)
        (mention,) = renderer.document.find_mentions(alice_npub)
        assert mention.label == "alice"
        assert scheduler.pending == 0

        clock.advance_days(1)
        renderer.cache.receive(Profile(pubkey=alice_profile.pubkey, name="alicia", picture=alice_profile.picture))
        assert mention.label == "alicia"
        assert scheduler.pending > 0

        scheduler.advance(2.5)
        assert mention.label == "alice"
        scheduler.advance(2.3)
        assert mention.label == "alicia"

        scheduler.advance(60)
        assert mention.label == "alicia"
        assert scheduler.pending == 0

    def test_headless_renderer_swaps_immediately(self, alice_profile, alice_npub, config, scheduler):
        renderer = build_renderer(StaticProfileService(), config, scheduler=scheduler, animate=False)
        renderer.render(alice_npub, key="n1")
        renderer.cache.receive(alice_profile)
        renderer.cache.receive(Profile(pubkey=alice_profile.pubkey, name="alicia"))
        (mention,) = renderer.document.find_mentions(alice_npub)
        assert mention.label == "alicia"
        assert scheduler.pending == 0

    def test_unmounted_note_still_records_encounter(self, alice_profile, alice_npub, config):
        renderer = build_renderer(StaticProfileService(), config, animate=False)
        renderer.render(alice_npub, key="n1")
        renderer.document.unmount("n1")
        renderer.cache.receive(alice_profile)
        assert renderer.document.find_mentions(alice_npub) == []
        encounter = renderer.store.get_encounter(alice_profile.pubkey)
        assert encounter.first_name == "alice"

    def test_resolved_before_mount_then_changed_blinks(
        self, alice_profile, alice_npub, config, scheduler, clock
    ):
        store = RecognitionStore(window_days=config.window_days, clock=clock)
        renderer = build_renderer(StaticProfileService(), config, scheduler=scheduler, store=store)
        renderer.cache.receive(alice_profile)

        processed = renderer.render(f"gm nostr:{alice_npub}", key="n1")
        assert "alice</a>" in processed.html
        (mention,) = renderer.document.find_mentions(alice_npub)

        clock.advance_days(1)
        renderer.cache.receive(Profile(pubkey=alice_profile.pubkey, name="alicia", picture=alice_profile.picture))
        assert scheduler.pending > 0
        assert store.get_encounter(alice_profile.pubkey).first_name == "alice"

        scheduler.advance(2.5)
        assert mention.label == "alice"
        scheduler.advance(60)
        assert mention.label == "alicia"
        assert scheduler.pending == 0

    def test_hashtag_shaped_username_stays_plain(self, alice, alice_npub, config):
        renderer = build_renderer(StaticProfileService(), config, animate=False)
        renderer.cache.receive(Profile(pubkey=alice, name="#nostr"))

        processed = renderer.render(f"#nostr nostr:{alice_npub}", key="n1")
        assert processed.html.count('class="hashtag"') == 1
        (mention,) = renderer.document.find_mentions(alice_npub)
        assert mention.label == "#nostr"

        renderer.cache.receive(Profile(pubkey=alice, name="alicia"))
        assert mention.label == "alicia"
        assert "alicia#nostr" not in renderer.document.to_html("n1")

    def test_profile_without_name_keeps_pending(self, alice, alice_npub, config):
        renderer = build_renderer(StaticProfileService(), config, animate=False)
        renderer.render(alice_npub, key="n1")
        renderer.cache.receive(Profile(pubkey=alice, about="no name"))
        (mention,) = renderer.document.find_mentions(alice_npub)
        assert mention.loading
        assert mention.label == "…"
