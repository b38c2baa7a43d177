"""Matrix-to-core event mapping adapter.

This keeps mautrix-specific details out of the core router.
"""

from __future__ import annotations

from typing import Any

from core.models import ChatEvent, InviteEvent, OtherEvent, RoomMessageEvent

ROOM_MEMBER = "m.room.member"
ROOM_MESSAGE = "m.room.message"


def _plain(value: Any) -> str:
    """Unwrap mautrix enums (EventType, Membership, MessageType) to strings."""

    if value is None:
        return ""
    # EventType keeps its string form in .t, the serializable enums in .value.
    for attr in ("t", "value"):
        inner = getattr(value, attr, None)
        if isinstance(inner, str):
            return inner
    return str(value)


def build_chat_event(evt: Any) -> ChatEvent:
    """Build a core ChatEvent from a mautrix Event."""

    room_id = str(getattr(evt, "room_id", "") or "")
    sender = str(getattr(evt, "sender", "") or "")
    event_type = _plain(getattr(evt, "type", None))
    content = getattr(evt, "content", None)

    if event_type == ROOM_MEMBER:
        membership = _plain(getattr(content, "membership", None))
        state_key = getattr(evt, "state_key", None)
        if membership == "invite" and state_key:
            return InviteEvent(room_id=room_id, sender=sender, invitee=str(state_key))

    if event_type == ROOM_MESSAGE:
        return RoomMessageEvent(
            room_id=room_id,
            sender=sender,
            msgtype=_plain(getattr(content, "msgtype", None)),
            body=str(getattr(content, "body", "") or ""),
        )

    return OtherEvent(room_id=room_id, sender=sender, type=event_type)
