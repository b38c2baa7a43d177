"""Control rooms: private two-party rooms between the bot and one user.

The registry is an explicit object owned by the router; nothing here is
module-level state. A room removed with ``unregister`` becomes a control room
again on the next full scan if it still has exactly two members.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.models import ChatEvent, RoomMessageEvent
from core.ports import DirectoryStorePort, IntentPort

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "!"

HELP_TEXT = "\n".join(
    [
        "Available commands:",
        "!help - show this message",
        "!status <handle> - show whether an account authorized the bridge",
        "!forget - stop treating this room as a control room",
    ]
)


class ControlRoomRegistry:
    """Room id -> ControlRoom bookkeeping."""

    def __init__(self) -> None:
        self._rooms: dict[str, ControlRoom] = {}

    def register(self, room_id: str, room: ControlRoom) -> None:
        self._rooms[room_id] = room
        LOGGER.debug("Registered control room %s", room_id)

    def unregister(self, room_id: str) -> None:
        # Local bookkeeping only; the bot stays in the room.
        if self._rooms.pop(room_id, None) is not None:
            LOGGER.info("Unregistered control room %s", room_id)

    def get(self, room_id: str) -> Optional[ControlRoom]:
        return self._rooms.get(room_id)

    async def dispatch(self, room_id: str, event: ChatEvent) -> bool:
        """Forward an event to the control room handler, if the room has one."""

        room = self._rooms.get(room_id)
        if room is None:
            return False
        await room.handle_event(event)
        return True

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)


class ControlRoom:
    """Command handler for one control room."""

    def __init__(
        self,
        room_id: str,
        counterpart: str,
        bot_intent: IntentPort,
        registry: ControlRoomRegistry,
        store: DirectoryStorePort,
    ) -> None:
        self.room_id = room_id
        self.counterpart = counterpart
        self._bot = bot_intent
        self._registry = registry
        self._store = store

    async def handle_event(self, event: ChatEvent) -> None:
        if not isinstance(event, RoomMessageEvent):
            return
        if event.sender != self.counterpart or event.msgtype != "m.text":
            return
        text = event.body.strip()
        if not text.startswith(COMMAND_PREFIX):
            return

        parts = text[len(COMMAND_PREFIX):].split()
        if not parts:
            return
        command, args = parts[0].lower(), parts[1:]
        LOGGER.info("Control command %s from %s in %s", command, event.sender, self.room_id)

        if command == "help":
            await self._reply(HELP_TEXT)
        elif command == "status":
            await self._status(args)
        elif command == "forget":
            self._registry.unregister(self.room_id)
            await self._reply(
                "This room is no longer a control room. It becomes one again when the bridge restarts."
            )
        else:
            await self._reply(f"Unknown command: {command}. Try !help")

    async def _status(self, args: list[str]) -> None:
        if len(args) != 1:
            await self._reply("usage: !status <handle>")
            return
        handle = args[0].lstrip("@")
        if not self._store.has_authorization(handle):
            await self._reply(f"{handle} has not authorized the bridge.")
            return
        rooms = self._store.get_rooms_for_account(handle)
        await self._reply(f"{handle} is authorized and relayed into {len(rooms)} room(s).")

    async def _reply(self, text: str) -> None:
        await self._bot.send_message(self.room_id, {"msgtype": "m.notice", "body": text})
