"""Shared test fixtures."""

import pytest

from note_render.config import BlinkSettings
from note_render.models import Profile
from note_render.nip19 import encode_nprofile, hex_to_npub

ALICE = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
BOB = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"

# NIP-19 test vector
BOB_NPUB = "npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg"


class FakeHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock with asyncio's call_later signature."""

    def __init__(self):
        self.now = 0.0
        self._timers: list[FakeHandle] = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(self.now + delay, callback, args)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += days * 24 * 60 * 60


@pytest.fixture
def alice() -> str:
    return ALICE


@pytest.fixture
def bob() -> str:
    return BOB


@pytest.fixture
def bob_npub() -> str:
    return BOB_NPUB


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blink_settings() -> BlinkSettings:
    return BlinkSettings(interval=2.0, transition=0.3, cycles=2)


@pytest.fixture
def alice_npub() -> str:
    return hex_to_npub(ALICE)


@pytest.fixture
def alice_nprofile() -> str:
    return encode_nprofile(ALICE, ["wss://relay.damus.io", "wss://nos.lol"])


@pytest.fixture
def alice_profile() -> Profile:
    return Profile(
        pubkey=ALICE,
        name="alice",
        display_name="Alice",
        picture="https://img.example/alice.png",
    )


@pytest.fixture
def bob_profile() -> Profile:
    return Profile(pubkey=BOB, name="bob", picture="https://img.example/bob.png")
