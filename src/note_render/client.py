"""HTTP profile service for resolving mentions.

Talks to a profile index that serves kind-0 metadata as JSON:

    GET  {base_url}/profiles/{pubkey}        -> {"name": ..., "picture": ...}
    POST {base_url}/profiles {"pubkeys": []} -> {"<pubkey>": {...}, ...}

The base URL can also come from the environment:
    NOTE_RENDER_PROFILE_SERVICE
"""

import logging
import os
import time

import httpx

from .models import Profile

logger = logging.getLogger(__name__)

PROFILE_SERVICE_URL = os.environ.get("NOTE_RENDER_PROFILE_SERVICE")


class ProfileServiceError(RuntimeError):
    """The profile service answered with an error."""


class HttpProfileService:
    """Async client for a profile index, usable as a ``ProfileService``."""

    def __init__(self, base_url: str | None = None, timeout: float = 10.0):
        base_url = base_url or PROFILE_SERVICE_URL
        if not base_url:
            raise ValueError("No profile service URL configured")
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={
                "accept": "application/json",
                "User-Agent": "note-render/0.1",
            },
            timeout=timeout,
            follow_redirects=True,
        )

    async def get_user_profile(self, pubkey: str) -> Profile | None:
        """Fetch one profile. Returns None if the service does not know it."""
        response = await self._client.get(f"{self._base_url}/profiles/{pubkey}")
        if response.status_code == 404:
            return None
        self._check(response)

        data = response.json()
        if not isinstance(data, dict):
            raise ProfileServiceError(f"Unexpected profile payload for {pubkey[:8]}")
        return Profile.from_metadata(pubkey, data)

    async def get_user_profiles(self, pubkeys: list[str]) -> dict[str, Profile]:
        """Fetch several profiles in one request. Unknown pubkeys are omitted."""
        if not pubkeys:
            return {}
        response = await self._client.post(
            f"{self._base_url}/profiles", json={"pubkeys": list(pubkeys)}
        )
        self._check(response)

        data = response.json()
        if not isinstance(data, dict):
            raise ProfileServiceError("Unexpected batch profile payload")

        profiles: dict[str, Profile] = {}
        for pubkey in pubkeys:
            metadata = data.get(pubkey)
            if isinstance(metadata, dict):
                profiles[pubkey] = Profile.from_metadata(pubkey, metadata)
        logger.debug("Resolved %d of %d profiles", len(profiles), len(pubkeys))
        return profiles

    @staticmethod
    def _check(response: httpx.Response) -> None:
        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            wait_msg = ""
            if retry_after and retry_after.isdigit():
                wait_msg = f" Retry in {retry_after}s."
            else:
                reset_time = response.headers.get("x-rate-limit-reset")
                if reset_time and reset_time.isdigit():
                    wait_seconds = int(reset_time) - int(time.time())
                    if wait_seconds > 0:
                        wait_msg = f" Retry in {wait_seconds}s."
            raise ProfileServiceError(f"Rate limited by profile service.{wait_msg}")

        if response.status_code in (401, 403):
            raise ProfileServiceError(
                "Profile service refused the request. Check the service URL "
                "and any API key it embeds."
            )

        if response.is_error:
            raise ProfileServiceError(
                f"Profile service error {response.status_code} for {response.request.url}"
            )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
