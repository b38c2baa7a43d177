"""Matrix transport adapter built on a mautrix application service.

MatrixIntent and MatrixTransport satisfy the core IntentPort and
ChatTransportPort; MatrixBridge connects the appservice callbacks to the
core router.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp
from mautrix.appservice import AppService, IntentAPI
from mautrix.errors import MatrixError, MNotFound
from mautrix.types import ContentURI, EventType, RoomAlias, RoomDirectoryVisibility, RoomID, UserID

from adapters.matrix_mapper import build_chat_event
from core.errors import BridgeError, UploadFailure
from core.models import RoomCreationParameters
from core.router import EventRouter, alias_localpart

LOGGER = logging.getLogger(__name__)


class MatrixIntent:
    """IntentPort over a mautrix IntentAPI."""

    def __init__(self, intent: IntentAPI, http: aiohttp.ClientSession) -> None:
        self._intent = intent
        self._http = http

    @property
    def user_id(self) -> str:
        return str(self._intent.mxid)

    async def send_message(self, room_id: str, content: dict[str, Any]) -> str:
        event_id = await self._intent.send_message_event(
            RoomID(room_id), EventType.ROOM_MESSAGE, content
        )
        return str(event_id)

    async def get_display_name(self) -> Optional[str]:
        try:
            return await self._intent.get_displayname(self._intent.mxid)
        except MNotFound:
            return None

    async def set_display_name(self, name: str) -> None:
        await self._intent.set_displayname(name)

    async def set_avatar_url(self, content_ref: str) -> None:
        await self._intent.set_avatar_url(ContentURI(content_ref))

    async def join(self, room_id: str) -> None:
        await self._intent.ensure_registered()
        await self._intent.join_room_by_id(RoomID(room_id))

    async def upload_media(self, url: str, filename: str) -> str:
        """Download ``url`` and upload the bytes to the homeserver."""

        try:
            async with self._http.get(url) as response:
                response.raise_for_status()
                data = await response.read()
                mime_type = response.content_type
            content_ref = await self._intent.upload_media(
                data, mime_type=mime_type, filename=filename
            )
        except (aiohttp.ClientError, MatrixError) as exc:
            raise UploadFailure(f"Failed to upload {url}: {exc}") from exc
        LOGGER.debug("Uploaded %s as %s", url, content_ref)
        return str(content_ref)

    async def set_room_name(self, room_id: str, name: str) -> None:
        await self._intent.set_room_name(RoomID(room_id), name)

    async def set_room_avatar(self, room_id: str, content_ref: str) -> None:
        await self._intent.set_room_avatar(RoomID(room_id), ContentURI(content_ref))


class MatrixTransport:
    """ChatTransportPort over the appservice's bot and ghost intents."""

    def __init__(self, appservice: AppService, http: aiohttp.ClientSession) -> None:
        self._appservice = appservice
        self._http = http

    def _raw_intent(self, user_id: str) -> IntentAPI:
        bot = self._appservice.intent
        if user_id == bot.mxid:
            return bot
        return bot.user(UserID(user_id))

    def get_intent(self, user_id: str) -> MatrixIntent:
        return MatrixIntent(self._raw_intent(user_id), self._http)

    async def ensure_registered(self, user_id: str) -> None:
        await self._raw_intent(user_id).ensure_registered()

    async def list_joined_rooms(self, user_id: str) -> list[str]:
        await self.ensure_registered(user_id)
        rooms = await self._raw_intent(user_id).get_joined_rooms()
        return [str(room_id) for room_id in rooms or []]

    async def get_joined_members(self, room_id: str) -> dict[str, Any]:
        members = await self._appservice.intent.get_joined_members(RoomID(room_id))
        return {str(user_id): member for user_id, member in members.items()}

    async def create_room(self, params: RoomCreationParameters) -> str:
        """Create a relay room as the bot from provisioned parameters."""

        for user_id in params.invite:
            # Ghosts must exist before they can be invited.
            await self.ensure_registered(user_id)

        visibility = (
            RoomDirectoryVisibility.PUBLIC
            if params.visibility == "public"
            else RoomDirectoryVisibility.PRIVATE
        )
        room_id = await self._appservice.intent.create_room(
            alias_localpart=params.alias_localpart,
            visibility=visibility,
            name=params.name,
            topic=params.topic,
            invitees=[UserID(user_id) for user_id in params.invite],
            initial_state=params.initial_state,
        )
        LOGGER.info("Created room %s for #%s", room_id, params.alias_localpart)
        return str(room_id)


class MatrixBridge:
    """Appservice callbacks delegating to the core router.

    The callbacks are handed to the AppService before the router exists, so
    the router is attached afterwards.
    """

    def __init__(self) -> None:
        self._transport: Optional[MatrixTransport] = None
        self._router: Optional[EventRouter] = None

    def attach(self, appservice: AppService, transport: MatrixTransport, router: EventRouter) -> None:
        self._transport = transport
        self._router = router
        appservice.matrix_event_handler(self.on_matrix_event)

    def _require(self) -> tuple[MatrixTransport, EventRouter]:
        if self._transport is None or self._router is None:
            raise RuntimeError("MatrixBridge used before attach()")
        return self._transport, self._router

    async def on_matrix_event(self, evt: Any) -> None:
        _, router = self._require()
        try:
            await router.on_event(build_chat_event(evt))
        except Exception:
            LOGGER.exception("Error while processing Matrix event in %s", getattr(evt, "room_id", "?"))

    async def query_user(self, user_id: UserID) -> Optional[dict[str, Any]]:
        transport, router = self._require()
        localpart = str(user_id).lstrip("@").split(":", 1)[0]
        identity = router.on_identity_query(localpart)
        if identity is None:
            return None
        await transport.ensure_registered(identity.user_id)
        return {"user_id": identity.user_id}

    async def query_alias(self, alias: RoomAlias) -> Optional[dict[str, Any]]:
        """Create the relay room behind an alias, or return None to reject it."""

        transport, router = self._require()
        localpart = alias_localpart(str(alias))
        try:
            params = await router.on_alias_query(str(alias), localpart)
        except BridgeError as exc:
            LOGGER.warning("Rejected alias %s: %s", alias, exc)
            return None

        room_id = await transport.create_room(params)
        await router.on_alias_created(str(alias), room_id)
        return {"room_id": room_id}
