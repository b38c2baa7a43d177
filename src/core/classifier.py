"""Room classification.

A room is either a relay room (it has at least one account link), a control
room (no links, exactly the bot and one other member) or ignored. Relay rooms
need no runtime registration; control rooms are registered with the
ControlRoomRegistry.
"""

from __future__ import annotations

import logging
from typing import Callable

from core.control_rooms import ControlRoom, ControlRoomRegistry
from core.identity import IdentityResolver
from core.models import RoomCategory, RoomClassification
from core.ports import ChatTransportPort, DirectoryStorePort

LOGGER = logging.getLogger(__name__)

ControlRoomFactory = Callable[[str, str], ControlRoom]


class RoomClassifier:
    """Decide what a room is for and register it accordingly."""

    def __init__(
        self,
        identities: IdentityResolver,
        transport: ChatTransportPort,
        store: DirectoryStorePort,
        registry: ControlRoomRegistry,
        control_room_factory: ControlRoomFactory,
    ) -> None:
        self._identities = identities
        self._transport = transport
        self._store = store
        self._registry = registry
        self._control_room_factory = control_room_factory

    async def classify(self, room_id: str) -> RoomClassification:
        LOGGER.info("Classifying room %s", room_id)

        handles = self._store.get_linked_accounts(room_id)
        if handles:
            LOGGER.debug("Room %s is relayed for %s account(s)", room_id, len(handles))
            return RoomClassification(room_id, RoomCategory.RELAYED, linked_accounts=len(handles))

        members = await self._transport.get_joined_members(room_id)
        bot_user_id = self._identities.bot_user_id
        if len(members) == 2 and bot_user_id in members:
            counterpart = next(user_id for user_id in members if user_id != bot_user_id)
            if room_id not in self._registry:
                self._registry.register(room_id, self._control_room_factory(room_id, counterpart))
                LOGGER.info("Added control room %s for %s", room_id, counterpart)
            return RoomClassification(room_id, RoomCategory.CONTROL)

        LOGGER.debug("Ignoring room %s with %s member(s)", room_id, len(members))
        return RoomClassification(room_id, RoomCategory.IGNORED)
