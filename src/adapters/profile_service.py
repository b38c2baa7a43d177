"""Instagram profile adapter.

Fetches profiles over HTTP and turns observed changes into
ProfileUpdatedEvent messages on the profile channel. New posts are found by
adapters.media_poller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from core.channels import EventChannel
from core.errors import UpstreamFetchFailure
from core.models import CHANGED_AVATAR, CHANGED_DISPLAY_NAME, ProfileInfo, ProfileUpdatedEvent

LOGGER = logging.getLogger(__name__)


def changed_fields(previous: Optional[ProfileInfo], current: ProfileInfo) -> list[str]:
    """Return the profile fields that differ, in publish order.

    An unknown previous profile counts as every populated field changing, so
    a fresh virtual user gets both its name and its avatar.
    """

    changes: list[str] = []
    if current.display_name and (previous is None or previous.display_name != current.display_name):
        changes.append(CHANGED_DISPLAY_NAME)
    if current.avatar_url and (previous is None or previous.avatar_url != current.avatar_url):
        changes.append(CHANGED_AVATAR)
    return changes


def parse_profile(handle: str, payload: dict) -> ProfileInfo:
    """Map the API's user object onto ProfileInfo."""

    data = payload.get("data", payload)
    username = data.get("username") or handle
    return ProfileInfo(
        display_name=data.get("full_name") or username,
        avatar_url=data.get("profile_picture") or "",
        username=username,
    )


class HttpProfileService:
    """ContentSourcePort over a JSON profile endpoint."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        store,
        profile_url: str,
        channel: EventChannel[ProfileUpdatedEvent],
        cache_seconds: float = 300.0,
    ) -> None:
        self._http = http
        self._store = store
        self._profile_url = profile_url
        self._channel = channel
        self._cache_seconds = cache_seconds
        self._profiles: dict[str, ProfileInfo] = {}
        self._checked_at: dict[str, float] = {}
        self._inflight: dict[str, asyncio.Task[None]] = {}

    def has_authorization(self, handle: str) -> bool:
        return self._store.has_authorization(handle)

    async def get_profile(self, handle: str) -> ProfileInfo:
        url = self._profile_url.format(handle=handle)
        token = self._store.get_auth_token(handle)
        params = {"access_token": token} if token else None
        try:
            async with self._http.get(url, params=params) as response:
                response.raise_for_status()
                payload = await response.json()
        except (aiohttp.ClientError, ValueError) as exc:
            raise UpstreamFetchFailure(f"Profile fetch failed for {handle}: {exc}") from exc
        try:
            return parse_profile(handle, payload)
        except (AttributeError, TypeError) as exc:
            raise UpstreamFetchFailure(f"Unexpected profile payload for {handle}") from exc

    def request_profile_refresh(self, handle: str) -> None:
        """Schedule a background profile check; duplicate requests collapse."""

        if handle in self._inflight:
            return
        checked_at = self._checked_at.get(handle)
        if checked_at is not None and time.monotonic() - checked_at < self._cache_seconds:
            return
        task = asyncio.create_task(self._refresh(handle))
        self._inflight[handle] = task
        task.add_done_callback(lambda _: self._inflight.pop(handle, None))

    async def _refresh(self, handle: str) -> None:
        try:
            profile = await self.get_profile(handle)
        except UpstreamFetchFailure as exc:
            LOGGER.warning("Profile check for %s failed: %s", handle, exc)
            return
        except Exception:
            LOGGER.exception("Profile check for %s failed", handle)
            return

        self._checked_at[handle] = time.monotonic()
        previous = self._profiles.get(handle)
        self._profiles[handle] = profile
        for field_name in changed_fields(previous, profile):
            LOGGER.info("Profile %s changed for %s", field_name, handle)
            self._channel.publish(
                ProfileUpdatedEvent(account_handle=handle, profile=profile, changed_field=field_name)
            )
