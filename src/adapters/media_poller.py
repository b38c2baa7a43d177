"""Instagram media poller.

Periodically reads the recent posts of every authorized account and publishes
the ones that were never delivered on the new-media channel.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import aiohttp

from core.channels import EventChannel
from core.errors import UpstreamFetchFailure
from core.models import MEDIA_IMAGE, MEDIA_VIDEO, MediaContent, MediaItem, NewMediaEvent

LOGGER = logging.getLogger(__name__)


def _media_item(entry: dict[str, Any]) -> MediaItem:
    if entry.get("type") == MEDIA_VIDEO:
        resolution = entry["videos"]["standard_resolution"]
        kind = MEDIA_VIDEO
    else:
        resolution = entry["images"]["standard_resolution"]
        kind = MEDIA_IMAGE
    return MediaItem(
        type=kind,
        content=MediaContent(
            url=resolution["url"],
            width=int(resolution.get("width", 0)),
            height=int(resolution.get("height", 0)),
        ),
    )


def parse_media_post(handle: str, post: dict[str, Any]) -> NewMediaEvent:
    """Map one recent-media entry onto a NewMediaEvent.

    Carousel posts carry their items in ``carousel_media``; other posts are a
    single image or video. Raises KeyError or ValueError on malformed entries.
    """

    entries = post.get("carousel_media") or [post]
    caption = post.get("caption")
    return NewMediaEvent(
        account_handle=handle,
        media=tuple(_media_item(entry) for entry in entries),
        caption=caption.get("text") if isinstance(caption, dict) else caption,
        source_post_id=str(post["id"]),
        source_permalink=post.get("link", ""),
        account_internal_id=int(post["user"]["id"]),
    )


class HttpMediaPoller:
    """Publishes undelivered posts found on a JSON recent-media endpoint."""

    def __init__(
        self,
        http: aiohttp.ClientSession,
        store,
        media_url: str,
        channel: EventChannel[NewMediaEvent],
        interval_seconds: float = 300.0,
        grace_hours: float = 24.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._http = http
        self._store = store
        self._media_url = media_url
        self._channel = channel
        self._interval_seconds = interval_seconds
        self._grace = timedelta(hours=grace_hours)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Posts handed to the channel whose deliveries may not be recorded yet.
        self._published: set[str] = set()

    async def _fetch_recent(self, handle: str) -> list[dict[str, Any]]:
        url = self._media_url.format(handle=handle)
        token = self._store.get_auth_token(handle)
        params = {"access_token": token} if token else None
        try:
            async with self._http.get(url, params=params) as response:
                response.raise_for_status()
                payload = await response.json()
        except (aiohttp.ClientError, ValueError) as exc:
            raise UpstreamFetchFailure(f"Media fetch failed for {handle}: {exc}") from exc
        posts = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(posts, list):
            raise UpstreamFetchFailure(f"Unexpected media payload for {handle}")
        return posts

    def _is_fresh(self, post: dict[str, Any]) -> bool:
        created = post.get("created_time")
        if created is None:
            return True
        created_at = datetime.fromtimestamp(int(created), tz=timezone.utc)
        return created_at >= self._clock() - self._grace

    async def poll_account(self, handle: str) -> int:
        """Publish the undelivered posts of one account; return how many."""

        published = 0
        # The endpoint lists newest first; relay oldest first.
        for post in reversed(await self._fetch_recent(handle)):
            try:
                if not self._is_fresh(post):
                    continue
                event = parse_media_post(handle, post)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed post for %s: %s", handle, exc)
                continue
            if event.source_post_id in self._published:
                continue
            if self._store.list_deliveries(event.source_post_id):
                continue
            self._published.add(event.source_post_id)
            LOGGER.info("New post %s for %s", event.source_post_id, handle)
            self._channel.publish(event)
            published += 1
        return published

    async def poll_once(self) -> int:
        handles = self._store.list_authorized_accounts()
        results = await asyncio.gather(
            *(self.poll_account(handle) for handle in handles), return_exceptions=True
        )
        published = 0
        for handle, result in zip(handles, results):
            if isinstance(result, BaseException):
                LOGGER.warning("Media check for %s failed: %s", handle, result)
            else:
                published += result
        return published

    async def run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                LOGGER.exception("Media poll failed")
            await asyncio.sleep(self._interval_seconds)
