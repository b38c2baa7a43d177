"""Relay pipeline for newly discovered Instagram media.

The pipeline enforces a strict order per event:
1) Resolve the virtual user (and nudge a profile refresh)
2) Fast-exit when the virtual user has joined no rooms
3) Upload every media item once, through the bot
4) Per room: send media messages, then the caption
5) Per room: record delivered messages and push the expiration marker

Uploads are shared by all rooms. Rooms are independent of each other: one
failing room is logged and the others carry on.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from core.config import BridgeConfig
from core.errors import UploadFailure
from core.identity import IdentityResolver
from core.models import MediaItem, NewMediaEvent, UploadedMedia
from core.ports import ChatTransportPort, DirectoryStorePort, IntentPort

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def media_filename(item: MediaItem, post_id: str) -> str:
    extension = "mp4" if item.is_video else "jpg"
    return f"media-{post_id}.{extension}"


def build_media_message(upload: UploadedMedia, post_id: str, permalink: str) -> dict[str, Any]:
    """Return the m.image / m.video body for one uploaded item."""

    item = upload.item
    return {
        "msgtype": "m.video" if item.is_video else "m.image",
        "url": upload.content_ref,
        "body": f"media-{post_id}",
        "info": {
            "w": item.content.width,
            "h": item.content.height,
            "mimetype": "video/mp4" if item.is_video else "image/jpeg",
        },
        "external_url": permalink,
    }


def build_caption_message(caption: str, permalink: str) -> dict[str, Any]:
    return {"msgtype": "m.text", "body": caption, "external_url": permalink}


class MediaRelayPipeline:
    """Fan a post out to every room the account's virtual user has joined."""

    def __init__(
        self,
        config: BridgeConfig,
        identities: IdentityResolver,
        transport: ChatTransportPort,
        store: DirectoryStorePort,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._identities = identities
        self._transport = transport
        self._store = store
        self._clock = clock or _utcnow

    async def on_new_media(self, event: NewMediaEvent) -> None:
        """Process one new-media event through the relay pipeline."""

        intent = self._identities.intent_for(event.account_handle)
        user_id = self._identities.virtual_user_id(event.account_handle)

        rooms = await self._transport.list_joined_rooms(user_id)
        if not rooms:
            # Never upload speculatively for accounts nobody follows.
            LOGGER.debug("No rooms for %s, skipping post %s", event.account_handle, event.source_post_id)
            return

        uploads = await self._upload_all(event)

        results = await asyncio.gather(
            *(self._post_to_room(room_id, uploads, event, intent) for room_id in rooms),
            return_exceptions=True,
        )
        for room_id, result in zip(rooms, results):
            if isinstance(result, BaseException):
                LOGGER.warning(
                    "Failed to relay post %s to %s: %s", event.source_post_id, room_id, result
                )
        LOGGER.info(
            "Relayed post %s of %s to %s room(s)",
            event.source_post_id,
            event.account_handle,
            sum(1 for result in results if not isinstance(result, BaseException)),
        )

    async def _upload_all(self, event: NewMediaEvent) -> list[UploadedMedia]:
        bot = self._identities.bot_intent()
        results = await asyncio.gather(
            *(bot.upload_media(item.content.url, media_filename(item, event.source_post_id)) for item in event.media),
            return_exceptions=True,
        )
        # Wait for every upload to settle, then abandon the batch on any failure.
        for result in results:
            if isinstance(result, BaseException):
                raise UploadFailure(
                    f"Upload failed for post {event.source_post_id}: {result}"
                ) from result
        return [
            UploadedMedia(item=item, content_ref=content_ref)
            for item, content_ref in zip(event.media, results)
        ]

    async def _post_to_room(
        self,
        room_id: str,
        uploads: list[UploadedMedia],
        event: NewMediaEvent,
        intent: IntentPort,
    ) -> None:
        event_ids = list(
            await asyncio.gather(
                *(
                    intent.send_message(
                        room_id,
                        build_media_message(upload, event.source_post_id, event.source_permalink),
                    )
                    for upload in uploads
                )
            )
        )

        # The caption always follows the acknowledged media messages.
        if event.caption:
            caption_id = await intent.send_message(
                room_id, build_caption_message(event.caption, event.source_permalink)
            )
            event_ids.append(caption_id)

        for event_id in event_ids:
            self._store.record_delivery(
                event.account_internal_id, event.source_post_id, event_id, room_id
            )
        expires_at = self._clock() + timedelta(hours=self._config.media_grace_hours)
        self._store.advance_expiration_marker(
            event.account_internal_id, int(expires_at.timestamp() * 1000)
        )
