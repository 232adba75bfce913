"""Process-scoped profile cache with synchronous reads.

``resolve()`` never waits: it returns the cached profile, or a pending
fallback while a background fetch runs on the event loop. Each pubkey gets
at most one fetch attempt per cache lifetime; a failed fetch leaves the
fallback in place and is not retried.

Listeners registered with ``add_listener`` are called with
``(pubkey, profile)`` every time a fetch resolves a profile. That is the hook
the DOM patcher uses to update mentions that were rendered as pending.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from dataclasses import replace
from typing import Any, Protocol

from .models import Profile
from .nip19 import is_hex_pubkey

logger = logging.getLogger(__name__)

ProfileListener = Callable[[str, Profile], None]


class ProfileService(Protocol):
    """External source of profile metadata (relays, an HTTP index, ...)."""

    async def get_user_profile(self, pubkey: str) -> Profile | None: ...

    async def get_user_profiles(self, pubkeys: list[str]) -> dict[str, Profile]: ...


class StaticProfileService:
    """Serves profiles from a fixed mapping. Useful offline and in tests."""

    def __init__(self, profiles: dict[str, Profile] | None = None):
        self.profiles: dict[str, Profile] = dict(profiles or {})
        self.requested: list[str] = []

    async def get_user_profile(self, pubkey: str) -> Profile | None:
        self.requested.append(pubkey)
        return self.profiles.get(pubkey)

    async def get_user_profiles(self, pubkeys: list[str]) -> dict[str, Profile]:
        self.requested.extend(pubkeys)
        return {pk: self.profiles[pk] for pk in pubkeys if pk in self.profiles}


class ProfileCache:
    def __init__(
        self,
        service: ProfileService,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self._service = service
        self._loop = loop
        self._profiles: dict[str, Profile] = {}
        self._attempted: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[ProfileListener] = []

    # ── reads ──

    def resolve(self, pubkey: str) -> Profile:
        """Return the best known profile now; fetch in the background if pending."""
        profile = self._profiles.get(pubkey)
        if profile is None:
            profile = Profile.fallback(pubkey)
            self._profiles[pubkey] = profile

        if profile.pending and pubkey not in self._attempted:
            self._schedule([pubkey], lambda: self._fetch_one(pubkey))
        return profile

    def peek(self, pubkey: str) -> Profile | None:
        """Read without creating a fallback or triggering a fetch."""
        return self._profiles.get(pubkey)

    def __contains__(self, pubkey: str) -> bool:
        return pubkey in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    @property
    def pending_fetches(self) -> int:
        return len(self._tasks)

    # ── writes ──

    def prefetch(self, pubkeys: Iterable[str]) -> None:
        """Batch-fetch profiles (e.g. from ``p`` tags) not yet resolved or attempted."""
        wanted: list[str] = []
        for pubkey in dict.fromkeys(pubkeys):
            if not is_hex_pubkey(pubkey):
                logger.debug("Ignoring malformed pubkey in tags: %r", pubkey)
                continue
            existing = self._profiles.get(pubkey)
            if existing is not None and existing.is_resolved:
                continue
            if pubkey in self._attempted:
                continue
            if existing is None:
                self._profiles[pubkey] = Profile.fallback(pubkey)
            wanted.append(pubkey)

        if wanted:
            self._schedule(wanted, lambda: self._fetch_many(wanted))

    def refresh(self, pubkey: str) -> None:
        """Fetch a profile again even if it is already resolved or was attempted."""
        self._schedule([pubkey], lambda: self._fetch_one(pubkey))

    def receive(self, profile: Profile) -> Profile:
        """Accept a profile from outside (e.g. a relay subscription).

        A resolved profile replaces the entry and notifies listeners. A pending
        one is only kept when nothing better is cached.
        """
        current = self._profiles.get(profile.pubkey)
        if profile.pending:
            if current is None:
                self._profiles[profile.pubkey] = profile
                return profile
            return current
        self._resolved(profile.pubkey, profile)
        return self._profiles[profile.pubkey]

    def add_listener(self, listener: ProfileListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProfileListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def drain(self) -> None:
        """Wait until every scheduled fetch (including ones they trigger) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── background work ──

    def _running_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _schedule(
        self,
        pubkeys: list[str],
        make_coro: Callable[[], Coroutine[Any, Any, None]],
    ) -> None:
        loop = self._running_loop()
        if loop is None:
            # No loop yet: leave the fallback unattempted so a later call can fetch
            logger.debug("No running event loop; deferring fetch for %d profile(s)", len(pubkeys))
            return
        self._attempted.update(pubkeys)
        task = loop.create_task(make_coro())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_one(self, pubkey: str) -> None:
        try:
            profile = await self._service.get_user_profile(pubkey)
        except Exception as e:
            logger.warning("Profile load failed for %s: %s", pubkey[:8], e)
            return
        if profile is None:
            logger.debug("No profile found for %s", pubkey[:8])
            return
        self._resolved(pubkey, profile)

    async def _fetch_many(self, pubkeys: list[str]) -> None:
        try:
            profiles = await self._service.get_user_profiles(pubkeys)
        except Exception as e:
            logger.warning("Failed to load %d mention profiles: %s", len(pubkeys), e)
            return

        for pubkey in pubkeys:
            profile = profiles.get(pubkey)
            if profile is None:
                # not in the batch answer; let a direct resolve() try once
                self._attempted.discard(pubkey)
                continue
            self._resolved(pubkey, profile)

    def _resolved(self, pubkey: str, profile: Profile) -> None:
        if profile.pubkey != pubkey or profile.pending:
            profile = replace(profile, pubkey=pubkey, pending=False)
        self._profiles[pubkey] = profile

        for listener in list(self._listeners):
            try:
                listener(pubkey, profile)
            except Exception:
                logger.exception("Profile listener failed for %s", pubkey[:8])
