"""Room provisioning for alias queries.

When someone joins ``#<prefix><handle>:<domain>`` the homeserver asks the
bridge whether the alias exists. Provisioning walks a fixed sequence:
1) Parse the prefix and extract the handle
2) Check the account authorized the bridge
3) Fetch the current profile
4) Upload the profile avatar through the bot
5) Build the room creation parameters

Any failure rejects the whole request; no partial parameters are returned.
"""

from __future__ import annotations

import logging
from typing import Any

from core.config import BridgeConfig
from core.errors import AuthorizationMissing, BridgeError, UploadFailure, UpstreamFetchFailure
from core.identity import IdentityResolver
from core.models import ProfileInfo, RoomCreationParameters
from core.ports import ContentSourcePort, DirectoryStorePort

LOGGER = logging.getLogger(__name__)

BOT_POWER = 100
VIRTUAL_USER_POWER = 50
MODERATOR_POWER = 50
ROOM_AVATAR_FILENAME = "icon.png"


def build_power_levels(
    bot_user_id: str, virtual_user_id: str, account_info_event_type: str
) -> dict[str, Any]:
    """Power levels for a relay room: only the bot may change its appearance."""

    return {
        "events_default": 0,
        "invite": 0,
        "kick": MODERATOR_POWER,
        "ban": MODERATOR_POWER,
        "redact": MODERATOR_POWER,
        "state_default": MODERATOR_POWER,
        "events": {
            "m.room.name": BOT_POWER,
            "m.room.avatar": BOT_POWER,
            "m.room.topic": BOT_POWER,
            "m.room.power_levels": BOT_POWER,
            account_info_event_type: BOT_POWER,
        },
        "users_default": 0,
        "users": {
            bot_user_id: BOT_POWER,
            virtual_user_id: VIRTUAL_USER_POWER,
        },
    }


def _state_event(event_type: str, content: dict[str, Any]) -> dict[str, Any]:
    return {"type": event_type, "content": content, "state_key": ""}


class RoomProvisioner:
    """Turn an alias localpart into relay room creation parameters."""

    def __init__(
        self,
        config: BridgeConfig,
        identities: IdentityResolver,
        content_source: ContentSourcePort,
        store: DirectoryStorePort,
    ) -> None:
        self._config = config
        self._identities = identities
        self._content_source = content_source
        self._store = store

    async def provision_room(self, alias_localpart: str) -> RoomCreationParameters:
        LOGGER.info("Got request for alias #%s", alias_localpart)

        handle = self._identities.handle_from_localpart(alias_localpart)

        if not self._store.has_authorization(handle):
            raise AuthorizationMissing(handle)

        try:
            profile = await self._content_source.get_profile(handle)
        except BridgeError:
            raise
        except Exception as exc:
            raise UpstreamFetchFailure(f"Profile fetch failed for {handle}: {exc}") from exc

        try:
            avatar_ref = await self._identities.bot_intent().upload_media(
                profile.avatar_url, ROOM_AVATAR_FILENAME
            )
        except UploadFailure:
            raise
        except Exception as exc:
            raise UploadFailure(f"Avatar upload failed for {handle}: {exc}") from exc

        return self._build_parameters(alias_localpart, handle, profile, avatar_ref)

    def record_link(self, room_id: str, alias_localpart: str) -> str:
        """Persist the link between a freshly created room and its account."""

        handle = self._identities.handle_from_localpart(alias_localpart)
        self._store.link_room(room_id, handle)
        LOGGER.info("Linked room %s to %s", room_id, handle)
        return handle

    def _build_parameters(
        self,
        alias_localpart: str,
        handle: str,
        profile: ProfileInfo,
        avatar_ref: str,
    ) -> RoomCreationParameters:
        label = self._config.source_label
        virtual_user_id = self._identities.virtual_user_id(handle)
        account_info_type = self._config.account_info_event_type

        initial_state = [
            _state_event("m.room.join_rules", {"join_rule": "public"}),
            _state_event("m.room.avatar", {"url": avatar_ref}),
            _state_event(
                "m.room.power_levels",
                build_power_levels(self._identities.bot_user_id, virtual_user_id, account_info_type),
            ),
            # Lets interested clients discover which account the room mirrors.
            _state_event(account_info_type, {"handle": handle}),
        ]

        return RoomCreationParameters(
            alias_localpart=alias_localpart,
            handle=handle,
            name=f"[{label}] {profile.display_name}",
            topic=f"{profile.username or handle}'s {label} feed",
            visibility="public",
            invite=(virtual_user_id,),
            initial_state=initial_state,
        )
