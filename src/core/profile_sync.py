"""Propagate Instagram profile changes to the virtual user and its rooms."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable

from core.config import BridgeConfig
from core.identity import IdentityResolver
from core.models import CHANGED_AVATAR, CHANGED_DISPLAY_NAME, ProfileUpdatedEvent
from core.ports import DirectoryStorePort, IntentPort

LOGGER = logging.getLogger(__name__)

AVATAR_FILENAME = "profile.png"


class ProfileSyncHandler:
    def __init__(
        self,
        config: BridgeConfig,
        identities: IdentityResolver,
        store: DirectoryStorePort,
    ) -> None:
        self._config = config
        self._identities = identities
        self._store = store

    def user_display_name(self, display_name: str) -> str:
        return f"{display_name} ({self._config.source_label})"

    def room_name(self, display_name: str) -> str:
        return f"[{self._config.source_label}] {display_name}"

    async def on_profile_updated(self, event: ProfileUpdatedEvent) -> None:
        """Apply one changed profile field to the virtual user and linked rooms."""

        if event.changed_field not in (CHANGED_DISPLAY_NAME, CHANGED_AVATAR):
            LOGGER.warning("Unrecognized profile update: %s", event.changed_field)
            return

        intent = self._identities.intent_for(event.account_handle)
        bot = self._identities.bot_intent()
        room_ids = self._store.get_rooms_for_account(event.account_handle)

        targets: list[str] = ["user", *room_ids]
        updates: list[Awaitable[None]] = [self._update_user(intent, event)]
        updates.extend(self._update_room(room_id, intent, bot, event) for room_id in room_ids)

        results = await asyncio.gather(*updates, return_exceptions=True)
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                LOGGER.warning(
                    "Profile %s update for %s failed on %s: %s",
                    event.changed_field,
                    event.account_handle,
                    target,
                    result,
                )

    async def _update_user(self, intent: IntentPort, event: ProfileUpdatedEvent) -> None:
        if event.changed_field == CHANGED_DISPLAY_NAME:
            await intent.set_display_name(self.user_display_name(event.profile.display_name))
        else:
            content_ref = await intent.upload_media(event.profile.avatar_url, AVATAR_FILENAME)
            await intent.set_avatar_url(content_ref)

    async def _update_room(
        self,
        room_id: str,
        intent: IntentPort,
        bot: IntentPort,
        event: ProfileUpdatedEvent,
    ) -> None:
        if event.changed_field == CHANGED_AVATAR:
            # Each room gets its own upload, independent of the user avatar.
            content_ref = await intent.upload_media(event.profile.avatar_url, AVATAR_FILENAME)
            await bot.set_room_avatar(room_id, content_ref)
        else:
            await bot.set_room_name(room_id, self.room_name(event.profile.display_name))
