"""Top-level dispatcher for inbound chat events and homeserver queries."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.classifier import RoomClassifier
from core.control_rooms import ControlRoomRegistry
from core.identity import IdentityResolver
from core.models import ChatEvent, InviteEvent, RoomClassification, RoomCreationParameters, VirtualIdentity
from core.ports import ChatTransportPort
from core.provisioner import RoomProvisioner

LOGGER = logging.getLogger(__name__)


def alias_localpart(alias: str) -> str:
    """Return the localpart of ``#local:server`` (or the input if bare)."""

    return alias.lstrip("#").split(":", 1)[0]


class EventRouter:
    """Routes chat events to control rooms, invites to the classifier."""

    def __init__(
        self,
        identities: IdentityResolver,
        transport: ChatTransportPort,
        registry: ControlRoomRegistry,
        classifier: RoomClassifier,
        provisioner: RoomProvisioner,
    ) -> None:
        self._identities = identities
        self._transport = transport
        self._registry = registry
        self._classifier = classifier
        self._provisioner = provisioner

    @property
    def registry(self) -> ControlRoomRegistry:
        return self._registry

    async def on_event(self, event: ChatEvent) -> None:
        # Live control rooms see their events before anything else runs.
        await self._registry.dispatch(event.room_id, event)

        if isinstance(event, InviteEvent) and self._identities.is_bridge_user(event.invitee):
            LOGGER.info("%s received invite to room %s", event.invitee, event.room_id)
            await self._transport.get_intent(event.invitee).join(event.room_id)
            await self._classifier.classify(event.room_id)

    async def startup_scan(self) -> list[RoomClassification]:
        """Classify every room the bot has already joined."""

        rooms = await self._transport.list_joined_rooms(self._identities.bot_user_id)
        LOGGER.info("Scanning %s joined room(s)", len(rooms))
        results = await asyncio.gather(
            *(self._classifier.classify(room_id) for room_id in rooms),
            return_exceptions=True,
        )
        classified: list[RoomClassification] = []
        for room_id, result in zip(rooms, results):
            if isinstance(result, BaseException):
                LOGGER.warning("Failed to classify room %s: %s", room_id, result)
                continue
            classified.append(result)
        return classified

    async def on_alias_query(self, alias: str, localpart: str) -> RoomCreationParameters:
        try:
            return await self._provisioner.provision_room(localpart)
        except Exception:
            LOGGER.error("Failed to create room for alias %s", alias)
            raise

    async def on_alias_created(self, alias: str, room_id: str) -> RoomClassification:
        self._provisioner.record_link(room_id, alias_localpart(alias))
        return await self._classifier.classify(room_id)

    def on_identity_query(self, localpart: str) -> Optional[VirtualIdentity]:
        return self._identities.on_identity_query(localpart)
