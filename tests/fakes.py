from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from core.bridge import BridgeComponents, build_components
from core.config import BridgeConfig
from core.errors import UploadFailure, UpstreamFetchFailure
from core.models import BotProfile, DeliveredMedia, ProfileInfo

DOMAIN = "domain"
BOT_ID = "@instabot:domain"
FIXED_NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_config() -> BridgeConfig:
    return BridgeConfig(
        domain=DOMAIN,
        bot_localpart="instabot",
        user_prefix="_ig_",
        source_label="source",
        media_grace_hours=6,
        account_info_event_type="org.example.account_info",
    )


@dataclass
class CallLog:
    """Everything the fake intents were asked to do, in call order."""

    messages: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    uploads: list[tuple[str, str, str]] = field(default_factory=list)
    display_names: list[tuple[str, str]] = field(default_factory=list)
    avatars: list[tuple[str, str]] = field(default_factory=list)
    joins: list[tuple[str, str]] = field(default_factory=list)
    room_names: list[tuple[str, str, str]] = field(default_factory=list)
    room_avatars: list[tuple[str, str, str]] = field(default_factory=list)
    failing_urls: set[str] = field(default_factory=set)
    failing_rooms: set[str] = field(default_factory=set)

    def messages_in(self, room_id: str) -> list[dict[str, Any]]:
        return [content for _, room, content in self.messages if room == room_id]


class FakeIntent:
    def __init__(self, user_id: str, log: CallLog) -> None:
        self.user_id = user_id
        self._log = log

    async def send_message(self, room_id: str, content: dict[str, Any]) -> str:
        if room_id in self._log.failing_rooms:
            raise RuntimeError(f"cannot send to {room_id}")
        self._log.messages.append((self.user_id, room_id, content))
        return f"$ev{len(self._log.messages)}"

    async def get_display_name(self) -> Optional[str]:
        names = [name for user_id, name in self._log.display_names if user_id == self.user_id]
        return names[-1] if names else None

    async def set_display_name(self, name: str) -> None:
        self._log.display_names.append((self.user_id, name))

    async def set_avatar_url(self, content_ref: str) -> None:
        self._log.avatars.append((self.user_id, content_ref))

    async def join(self, room_id: str) -> None:
        self._log.joins.append((self.user_id, room_id))

    async def upload_media(self, url: str, filename: str) -> str:
        if url in self._log.failing_urls:
            raise UploadFailure(f"cannot fetch {url}")
        self._log.uploads.append((self.user_id, url, filename))
        return f"mxc://{DOMAIN}/upload{len(self._log.uploads)}"

    async def set_room_name(self, room_id: str, name: str) -> None:
        if room_id in self._log.failing_rooms:
            raise RuntimeError(f"cannot rename {room_id}")
        self._log.room_names.append((self.user_id, room_id, name))

    async def set_room_avatar(self, room_id: str, content_ref: str) -> None:
        self._log.room_avatars.append((self.user_id, room_id, content_ref))


class FakeTransport:
    def __init__(self) -> None:
        self.log = CallLog()
        self.joined_rooms: dict[str, list[str]] = {}
        self.members: dict[str, list[str]] = {}
        self.member_lookups: list[str] = []

    def get_intent(self, user_id: str) -> FakeIntent:
        return FakeIntent(user_id, self.log)

    async def list_joined_rooms(self, user_id: str) -> list[str]:
        return list(self.joined_rooms.get(user_id, []))

    async def get_joined_members(self, room_id: str) -> dict[str, Any]:
        self.member_lookups.append(room_id)
        return {user_id: {"display_name": None} for user_id in self.members.get(room_id, [])}


class FakeContentSource:
    def __init__(self) -> None:
        self.profiles: dict[str, ProfileInfo] = {}
        self.fetches: list[str] = []
        self.refreshes: list[str] = []

    async def get_profile(self, handle: str) -> ProfileInfo:
        self.fetches.append(handle)
        if handle not in self.profiles:
            raise UpstreamFetchFailure(f"no profile for {handle}")
        return self.profiles[handle]

    def has_authorization(self, handle: str) -> bool:
        return handle in self.profiles

    def request_profile_refresh(self, handle: str) -> None:
        self.refreshes.append(handle)


class FakeStore:
    def __init__(self) -> None:
        self.tokens: dict[str, str] = {}
        self.authorized: set[str] = set()
        self.links: list[tuple[str, str]] = []
        self.deliveries: list[tuple[int, str, str, str]] = []
        self.markers: dict[int, int] = {}
        self.bot_profile = BotProfile()

    def has_authorization(self, handle: str) -> bool:
        return handle in self.authorized

    def get_auth_token(self, handle: str) -> Optional[str]:
        return self.tokens.get(handle)

    def list_authorized_accounts(self) -> list[str]:
        return sorted(self.authorized)

    def get_bot_profile(self) -> BotProfile:
        return BotProfile(avatar_url=self.bot_profile.avatar_url)

    def set_bot_profile(self, profile: BotProfile) -> None:
        self.bot_profile = BotProfile(avatar_url=profile.avatar_url)

    def link_room(self, room_id: str, handle: str) -> None:
        if (room_id, handle) not in self.links:
            self.links.append((room_id, handle))

    def get_linked_accounts(self, room_id: str) -> list[str]:
        return [handle for room, handle in self.links if room == room_id]

    def get_rooms_for_account(self, handle: str) -> list[str]:
        return [room for room, linked in self.links if linked == handle]

    def record_delivery(self, account_id: int, post_id: str, event_id: str, room_id: str) -> None:
        self.deliveries.append((account_id, post_id, event_id, room_id))

    def advance_expiration_marker(self, account_id: int, expires_at_ms: int) -> None:
        self.markers[account_id] = expires_at_ms

    def get_expiration_marker(self, account_id: int) -> Optional[int]:
        return self.markers.get(account_id)

    def list_deliveries(self, post_id: str) -> list[DeliveredMedia]:
        return [
            DeliveredMedia(account_id=account, post_id=post, event_id=event, room_id=room)
            for account, post, event, room in self.deliveries
            if post == post_id
        ]


class DummyResponse:
    def __init__(self, payload: Any, fail: bool = False) -> None:
        self._payload = payload
        self._fail = fail

    async def __aenter__(self) -> "DummyResponse":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    def raise_for_status(self) -> None:
        if self._fail:
            raise aiohttp.ClientError("500")

    async def json(self) -> Any:
        return self._payload


class DummySession:
    """Stands in for aiohttp.ClientSession; replays JSON payloads in order."""

    def __init__(self, payloads: list[Any], fail: bool = False) -> None:
        self._payloads = payloads
        self._fail = fail
        self.requests: list[tuple[str, Optional[dict]]] = []

    def get(self, url: str, params: Optional[dict] = None) -> DummyResponse:
        self.requests.append((url, params))
        return DummyResponse(self._payloads.pop(0) if self._payloads else {}, fail=self._fail)


@dataclass
class Harness:
    transport: FakeTransport
    source: FakeContentSource
    store: FakeStore
    components: BridgeComponents

    @property
    def log(self) -> CallLog:
        return self.transport.log


def make_harness() -> Harness:
    transport = FakeTransport()
    source = FakeContentSource()
    store = FakeStore()
    components = build_components(make_config(), transport, source, store, clock=lambda: FIXED_NOW)
    return Harness(transport=transport, source=source, store=store, components=components)
