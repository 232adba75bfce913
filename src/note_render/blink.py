"""Blink transitions for mentions whose identity changed recently.

A blinker alternates one part of a mention (avatar or name) between the
previous and the new value: fade out, swap after ``transition`` seconds,
fade in, every ``interval`` seconds, for ``cycles`` old/new cycles, then
settles on the new value.

Timers come from a scheduler with asyncio's ``call_later`` signature. The
default is the running event loop.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

from .config import BlinkSettings
from .document import BLINK_ID_ATTR, MentionElement

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class Blinker(ABC):
    """Alternates one part of a mention. Subclasses write the value in ``_show``."""

    part = ""

    def __init__(self, mention: MentionElement, scheduler: Scheduler, settings: BlinkSettings):
        self.mention = mention
        self._scheduler = scheduler
        self._settings = settings
        self._handle: TimerHandle | None = None
        self._new = ""
        self._old = ""
        self._showing_new = True
        self._swaps_left = 0

    @abstractmethod
    def _show(self, value: str) -> None:
        """Write ``value`` into the mention."""

    @property
    def is_blinking(self) -> bool:
        return self._handle is not None

    @property
    def showing_new(self) -> bool:
        return self._showing_new

    @property
    def target(self) -> str:
        """Value shown once the blink settles."""
        return self._new

    def start(self, new_value: str, old_value: str) -> None:
        """Begin alternating; a running blink is restarted with the new pair."""
        self._cancel()
        self._new, self._old = new_value, old_value
        self._showing_new = True
        self._show(new_value)
        self.mention.set_opacity(self.part, 1)
        if new_value == old_value:
            return

        self._swaps_left = self._settings.cycles * 2
        self._handle = self._scheduler.call_later(self._settings.interval, self._fade_out)

    def stop(self, value: str | None = None) -> None:
        """Stop alternating and optionally show ``value``."""
        self._cancel()
        if value is not None:
            self._new = value
            self._showing_new = True
            self._show(value)
            self.mention.set_opacity(self.part, 1)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fade_out(self) -> None:
        self.mention.set_opacity(self.part, 0)
        self._handle = self._scheduler.call_later(self._settings.transition, self._swap)

    def _swap(self) -> None:
        self._showing_new = not self._showing_new
        self._show(self._new if self._showing_new else self._old)
        self.mention.set_opacity(self.part, 1)

        self._swaps_left -= 1
        if self._swaps_left <= 0:
            # even number of swaps, so the new value is showing
            self._handle = None
            return
        self._handle = self._scheduler.call_later(self._settings.interval, self._fade_out)


class TextBlinker(Blinker):
    part = "name"

    def _show(self, value: str) -> None:
        self.mention.label = value


class AvatarBlinker(Blinker):
    part = "avatar"

    def _show(self, value: str) -> None:
        self.mention.avatar_src = value


class BlinkBinding:
    """The avatar and name blinkers of one mention anchor."""

    def __init__(self, mention: MentionElement, scheduler: Scheduler, settings: BlinkSettings):
        self.avatar = AvatarBlinker(mention, scheduler, settings)
        self.name = TextBlinker(mention, scheduler, settings)

    @property
    def is_blinking(self) -> bool:
        return self.avatar.is_blinking or self.name.is_blinking

    def start(self, new_name: str, old_name: str, new_picture: str, old_picture: str) -> None:
        self.avatar.start(new_picture, old_picture)
        self.name.start(new_name, old_name)

    def stop(self, name: str | None = None, picture: str | None = None) -> None:
        self.avatar.stop(picture)
        self.name.stop(name)


class BlinkAnimator:
    """Runs blinks on mention anchors, one binding per anchor.

    Bindings are keyed by a ``data-blink-id`` stored on the anchor, so a
    second change event for the same element restarts its timers instead of
    stacking a new pair. Bindings are never evicted; they go away with the
    animator.
    """

    def __init__(self, settings: BlinkSettings | None = None, scheduler: Scheduler | None = None):
        self.settings = settings or BlinkSettings()
        self._scheduler = scheduler
        self._bindings: dict[str, BlinkBinding] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    def _get_scheduler(self) -> Scheduler | None:
        if self._scheduler is not None:
            return self._scheduler
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def binding_for(self, mention: MentionElement) -> BlinkBinding | None:
        blink_id = mention.get_attr(BLINK_ID_ATTR)
        if blink_id and blink_id in self._bindings:
            return self._bindings[blink_id]

        scheduler = self._get_scheduler()
        if scheduler is None:
            return None
        if not blink_id:
            blink_id = uuid.uuid4().hex
            mention.set_attr(BLINK_ID_ATTR, blink_id)
        binding = BlinkBinding(mention, scheduler, self.settings)
        self._bindings[blink_id] = binding
        return binding

    def existing_binding(self, mention: MentionElement) -> BlinkBinding | None:
        blink_id = mention.get_attr(BLINK_ID_ATTR)
        return self._bindings.get(blink_id) if blink_id else None

    def blink(
        self,
        mention: MentionElement,
        new_name: str,
        old_name: str,
        new_picture: str,
        old_picture: str,
    ) -> bool:
        """Start (or restart) a blink. Returns False if it fell back to a direct update."""
        binding = self.binding_for(mention)
        if binding is None:
            logger.debug("No event loop for blink timers; updating %s directly", mention.npub[:12])
            self.show(mention, new_name, new_picture)
            return False
        binding.start(new_name, old_name, new_picture, old_picture)
        return True

    def show(self, mention: MentionElement, name: str, picture: str) -> None:
        """Direct update. A running blink already heading to these values is left alone."""
        binding = self.existing_binding(mention)
        if binding is not None and binding.is_blinking:
            if binding.name.target != name or binding.avatar.target != picture:
                binding.stop(name, picture)
            return
        mention.avatar_src = picture
        mention.label = name


class NullAnimator(BlinkAnimator):
    """Headless animator: every transition is an immediate swap."""

    def binding_for(self, mention: MentionElement) -> BlinkBinding | None:
        return None

    def blink(self, mention, new_name, old_name, new_picture, old_picture) -> bool:
        self.show(mention, new_name, new_picture)
        return False
