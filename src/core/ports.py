"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the chat transport, the content source
and the directory store so that the core can be reused with different
backends and exercised with fakes.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from core.models import BotProfile, ProfileInfo


class IntentPort(Protocol):
    """Outbound actions performed as one chat identity."""

    async def get_display_name(self) -> Optional[str]:
        ...

    async def send_message(self, room_id: str, content: dict[str, Any]) -> str:
        ...

    async def set_display_name(self, name: str) -> None:
        ...

    async def set_avatar_url(self, content_ref: str) -> None:
        ...

    async def join(self, room_id: str) -> None:
        ...

    async def upload_media(self, url: str, filename: str) -> str:
        ...

    async def set_room_name(self, room_id: str, name: str) -> None:
        ...

    async def set_room_avatar(self, room_id: str, content_ref: str) -> None:
        ...


class ChatTransportPort(Protocol):
    """Chat network operations that are not bound to one identity."""

    def get_intent(self, user_id: str) -> IntentPort:
        ...

    async def list_joined_rooms(self, user_id: str) -> list[str]:
        ...

    async def get_joined_members(self, room_id: str) -> dict[str, Any]:
        ...


class ContentSourcePort(Protocol):
    """Synchronous lookups offered by the content source service."""

    async def get_profile(self, handle: str) -> ProfileInfo:
        ...

    def has_authorization(self, handle: str) -> bool:
        ...

    def request_profile_refresh(self, handle: str) -> None:
        ...


class DirectoryStorePort(Protocol):
    """Durable state required by the core."""

    def has_authorization(self, handle: str) -> bool:
        ...

    def get_bot_profile(self) -> BotProfile:
        ...

    def set_bot_profile(self, profile: BotProfile) -> None:
        ...

    def link_room(self, room_id: str, handle: str) -> None:
        ...

    def get_linked_accounts(self, room_id: str) -> list[str]:
        ...

    def get_rooms_for_account(self, handle: str) -> list[str]:
        ...

    def record_delivery(self, account_id: int, post_id: str, event_id: str, room_id: str) -> None:
        ...

    def advance_expiration_marker(self, account_id: int, expires_at_ms: int) -> None:
        ...

    def get_expiration_marker(self, account_id: int) -> Optional[int]:
        ...
