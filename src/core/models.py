"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to mautrix or HTTP client types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"

CHANGED_DISPLAY_NAME = "displayName"
CHANGED_AVATAR = "avatar"


@dataclass(frozen=True)
class MediaContent:
    url: str
    width: int
    height: int


@dataclass(frozen=True)
class MediaItem:
    """One image or video of a post."""

    type: str
    content: MediaContent

    @property
    def is_video(self) -> bool:
        return self.type == MEDIA_VIDEO


@dataclass(frozen=True)
class NewMediaEvent:
    """A newly discovered post for one account."""

    account_handle: str
    media: tuple[MediaItem, ...]
    caption: Optional[str]
    source_post_id: str
    source_permalink: str
    account_internal_id: int


@dataclass(frozen=True)
class ProfileInfo:
    display_name: str
    avatar_url: str
    username: str = ""


@dataclass(frozen=True)
class ProfileUpdatedEvent:
    """A single changed field of an account's profile."""

    account_handle: str
    profile: ProfileInfo
    changed_field: str


@dataclass(frozen=True)
class UploadedMedia:
    """A media item paired with the content reference it was uploaded to."""

    item: MediaItem
    content_ref: str


@dataclass(frozen=True)
class RoomLink:
    room_id: str
    handle: str


@dataclass(frozen=True)
class DeliveredMedia:
    """Persisted record of one message sent for a post into a room."""

    account_id: int
    post_id: str
    event_id: str
    room_id: str


@dataclass
class BotProfile:
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class VirtualIdentity:
    user_id: str
    handle: str


@dataclass(frozen=True)
class RoomCreationParameters:
    """Everything needed to create a relay room for one account."""

    alias_localpart: str
    handle: str
    name: str
    topic: str
    visibility: str
    invite: tuple[str, ...]
    initial_state: list[dict[str, Any]] = field(default_factory=list)


class UserKind(Enum):
    REGULAR = "regular"
    VIRTUAL = "virtual"
    BOT = "bot"


class RoomCategory(Enum):
    RELAYED = "relayed"
    CONTROL = "control"
    IGNORED = "ignored"


@dataclass(frozen=True)
class RoomClassification:
    room_id: str
    category: RoomCategory
    linked_accounts: int = 0


# Inbound chat events. Only the kinds the router acts on get their own type;
# everything else arrives as OtherEvent.


@dataclass(frozen=True)
class InviteEvent:
    room_id: str
    sender: str
    invitee: str


@dataclass(frozen=True)
class RoomMessageEvent:
    room_id: str
    sender: str
    msgtype: str
    body: str


@dataclass(frozen=True)
class OtherEvent:
    room_id: str
    sender: str
    type: str


ChatEvent = Union[InviteEvent, RoomMessageEvent, OtherEvent]
