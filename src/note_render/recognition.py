"""Profile recognition: remember how a pubkey looked and react to changes.

The store keeps one Encounter per pubkey for the life of the process. The
controller compares each freshly resolved (name, picture) with the last
known pair and decides how mounted mentions change:

- first sighting: record the encounter, update directly;
- unchanged: update directly;
- changed, and the previous change is inside the recognition window:
  blink between the old and the new identity;
- changed outside the window: update directly.

In the last two cases ``last_changed_at`` moves to now. It never moves when
the pair is unchanged, so repeated identical resolutions do not keep a
profile inside the window.
"""

import logging
import time
from collections.abc import Callable

from .blink import BlinkAnimator
from .config import DEFAULT_WINDOW_DAYS, RenderSettings
from .document import MentionElement
from .models import Encounter

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

WINDOW_DISABLED = 0
WINDOW_ALWAYS = -1


class RecognitionStore:
    def __init__(
        self,
        window_days: int = DEFAULT_WINDOW_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.window_days = window_days
        self._clock = clock
        self._encounters: dict[str, Encounter] = {}

    def __len__(self) -> int:
        return len(self._encounters)

    def get_encounter(self, pubkey: str) -> Encounter | None:
        return self._encounters.get(pubkey)

    def record_encounter(self, pubkey: str, name: str, picture_url: str) -> Encounter:
        """Record the first encounter. An existing one is never overwritten."""
        existing = self._encounters.get(pubkey)
        if existing is not None:
            return existing

        now = self._clock()
        encounter = Encounter(
            pubkey=pubkey,
            first_name=name,
            first_picture_url=picture_url,
            first_seen_at=now,
            last_known_name=name,
            last_known_picture_url=picture_url,
            last_changed_at=now,
        )
        self._encounters[pubkey] = encounter
        return encounter

    def update_last_known(self, pubkey: str, name: str, picture_url: str) -> bool:
        """Store a new last-known pair. Returns True if anything changed."""
        encounter = self._encounters.get(pubkey)
        if encounter is None:
            return False
        if encounter.last_known_name == name and encounter.last_known_picture_url == picture_url:
            return False

        encounter.last_known_name = name
        encounter.last_known_picture_url = picture_url
        encounter.last_changed_at = self._clock()
        return True

    def delete_encounter(self, pubkey: str) -> None:
        self._encounters.pop(pubkey, None)

    def _within_window(self, since: float) -> bool:
        if self.window_days == WINDOW_DISABLED:
            return False
        if self.window_days == WINDOW_ALWAYS:
            return True
        return self._clock() - since < self.window_days * SECONDS_PER_DAY

    def changed_recently(self, pubkey: str) -> bool:
        """True if the last recorded change (or first sighting) is inside the window."""
        encounter = self._encounters.get(pubkey)
        if encounter is None:
            return False
        return self._within_window(encounter.last_changed_at)

    def has_changed_within_window(self, pubkey: str) -> bool:
        """True if the identity differs from the first encounter and changed recently."""
        encounter = self._encounters.get(pubkey)
        if encounter is None:
            return False
        if (
            encounter.first_name == encounter.last_known_name
            and encounter.first_picture_url == encounter.last_known_picture_url
        ):
            return False
        return self._within_window(encounter.last_changed_at)


class RecognitionController:
    def __init__(
        self,
        store: RecognitionStore,
        animator: BlinkAnimator,
        settings: RenderSettings | None = None,
    ):
        self.store = store
        self.animator = animator
        self.settings = settings or RenderSettings()

    def apply(self, mentions: list[MentionElement], pubkey: str, name: str, picture: str) -> str:
        """Update every mounted mention of ``pubkey``. Returns "direct" or "blink".

        The decision is made once per resolution, then applied to all
        mentions, so several anchors for one pubkey blink together. The
        encounter is recorded or updated even when ``mentions`` is empty.
        """
        avatar = picture or self.settings.default_avatar

        encounter = self.store.get_encounter(pubkey)
        if encounter is None:
            self.store.record_encounter(pubkey, name, picture)
            self._show_all(mentions, name, avatar)
            return "direct"

        old_name = encounter.last_known_name
        old_picture = encounter.last_known_picture_url
        if (name, picture) == (old_name, old_picture):
            self._show_all(mentions, name, avatar)
            return "direct"

        recent = self.store.changed_recently(pubkey)
        self.store.update_last_known(pubkey, name, picture)
        if not recent:
            self._show_all(mentions, name, avatar)
            return "direct"

        logger.debug("Identity of %s changed recently; blinking %d mention(s)", pubkey[:8], len(mentions))
        old_avatar = old_picture or self.settings.default_avatar
        for mention in mentions:
            self.animator.blink(mention, name, old_name, avatar, old_avatar)
        return "blink"

    def _show_all(self, mentions: list[MentionElement], name: str, avatar: str) -> None:
        for mention in mentions:
            self.animator.show(mention, name, avatar)
