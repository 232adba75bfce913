"""Tests for blink transitions on mention anchors."""

import pytest

from note_render.blink import BlinkAnimator, Blinker, NullAnimator
from note_render.document import BLINK_ID_ATTR, Document
from note_render.mentions import build_mention_html

OLD_PIC = "https://img.example/old.png"
NEW_PIC = "https://img.example/new.png"


@pytest.fixture
def mention(alice_npub):
    document = Document()
    document.mount(build_mention_html(alice_npub, "alice", OLD_PIC), key="n1")
    (found,) = document.find_mentions(alice_npub)
    return found


@pytest.fixture
def animator(blink_settings, scheduler):
    return BlinkAnimator(blink_settings, scheduler=scheduler)


class TestBlinkAnimator:
    def test_starts_on_new_value(self, animator, mention, scheduler):
        assert animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        assert mention.label == "alicia"
        assert mention.avatar_src == NEW_PIC
        assert mention.get_attr(BLINK_ID_ATTR)
        assert scheduler.pending == 2

    def test_fade_then_swap(self, animator, mention, scheduler):
        animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)

        scheduler.advance(2.1)
        assert mention.get_attr("style").startswith("opacity: 0;")
        assert mention.label == "alicia"

        scheduler.advance(0.3)
        assert mention.label == "alice"
        assert mention.avatar_src == OLD_PIC
        assert mention.get_attr("style").startswith("opacity: 1;")

        scheduler.advance(2.3)
        assert mention.label == "alicia"

    def test_settles_on_new_value(self, animator, mention, scheduler):
        animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        scheduler.advance(60)
        assert mention.label == "alicia"
        assert mention.avatar_src == NEW_PIC
        assert scheduler.pending == 0
        assert not animator.existing_binding(mention).is_blinking

    def test_restart_reuses_binding(self, animator, mention, scheduler):
        animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        scheduler.advance(2.5)
        animator.blink(mention, "ally", "alicia", NEW_PIC, OLD_PIC)
        assert len(animator) == 1
        assert scheduler.pending == 2
        assert mention.label == "ally"

    def test_same_values_do_not_blink(self, animator, mention, scheduler):
        animator.blink(mention, "alice", "alice", OLD_PIC, OLD_PIC)
        assert scheduler.pending == 0

    def test_show_with_matching_target_keeps_blink(self, animator, mention, scheduler):
        animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        scheduler.advance(2.5)
        animator.show(mention, "alicia", NEW_PIC)
        assert animator.existing_binding(mention).is_blinking
        assert mention.label == "alice"

    def test_show_with_new_target_stops_blink(self, animator, mention, scheduler):
        animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        scheduler.advance(2.5)
        animator.show(mention, "ally", NEW_PIC)
        assert not animator.existing_binding(mention).is_blinking
        assert mention.label == "ally"
        assert scheduler.pending == 0

    def test_no_scheduler_falls_back(self, blink_settings, mention):
        animator = BlinkAnimator(blink_settings)
        assert not animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        assert mention.label == "alicia"
        assert len(animator) == 0


class TestNullAnimator:
    def test_direct_update(self, blink_settings, mention, scheduler):
        animator = NullAnimator(blink_settings, scheduler=scheduler)
        assert not animator.blink(mention, "alicia", "alice", NEW_PIC, OLD_PIC)
        assert mention.label == "alicia"
        assert mention.avatar_src == NEW_PIC
        assert scheduler.pending == 0


class TestBlinker:
    def test_base_class_is_abstract(self, blink_settings, mention, scheduler):
        with pytest.raises(TypeError):
            Blinker(mention, scheduler, blink_settings)
