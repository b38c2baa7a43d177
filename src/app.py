"""Application entry point for the instabridge appservice."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

import aiohttp
from art import tprint
from dotenv import load_dotenv

import settings
from adapters.matrix_transport import MatrixBridge, MatrixTransport
from adapters.media_poller import HttpMediaPoller
from adapters.profile_service import HttpProfileService
from adapters.sqlite_storage import SQLiteStorage
from client import build_appservice
from core.appearance import update_bot_profile
from core.bridge import build_components
from core.channels import EventChannel
from core.config import AppearanceConfig, BridgeConfig
from core.models import NewMediaEvent, ProfileUpdatedEvent
from log_config import configure_logging

NAME = "INSTABRIDGE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def _bridge_config() -> BridgeConfig:
    return BridgeConfig(
        domain=settings.HOMESERVER_DOMAIN,
        bot_localpart=settings.BOT_LOCALPART,
        user_prefix=settings.USER_PREFIX,
        source_label=settings.SOURCE_LABEL,
        media_grace_hours=settings.MEDIA_GRACE_HOURS,
        account_info_event_type=settings.ACCOUNT_INFO_EVENT_TYPE,
    )


async def _serve() -> None:
    logger = logging.getLogger(__name__)

    storage = _open_storage()
    config = _bridge_config()
    appearance = AppearanceConfig(
        display_name=settings.BOT_DISPLAY_NAME,
        avatar_url=settings.BOT_AVATAR_URL,
    )

    # The media poller publishes on new_media; profile checks publish on
    # profile_updated. Each channel has its own consumer task.
    profile_channel: EventChannel[ProfileUpdatedEvent] = EventChannel("profile_updated")
    media_channel: EventChannel[NewMediaEvent] = EventChannel("new_media")

    matrix_bridge = MatrixBridge()
    appservice = build_appservice(
        appservice_id=settings.APPSERVICE_ID,
        homeserver_url=settings.HOMESERVER_URL,
        domain=settings.HOMESERVER_DOMAIN,
        bot_localpart=settings.BOT_LOCALPART,
        query_user=matrix_bridge.query_user,
        query_alias=matrix_bridge.query_alias,
    )

    async with aiohttp.ClientSession() as http:
        transport = MatrixTransport(appservice, http)
        content_source = HttpProfileService(
            http,
            storage,
            settings.PROFILE_URL,
            profile_channel,
            cache_seconds=settings.PROFILE_CACHE_SECONDS,
        )
        media_poller = HttpMediaPoller(
            http,
            storage,
            settings.MEDIA_URL,
            media_channel,
            interval_seconds=settings.MEDIA_POLL_SECONDS,
            grace_hours=settings.MEDIA_GRACE_HOURS,
        )
        components = build_components(config, transport, content_source, storage)
        matrix_bridge.attach(appservice, transport, components.router)

        await appservice.start(settings.APPSERVICE_HOST, settings.APPSERVICE_PORT)
        logger.info("Listening on %s:%s", settings.APPSERVICE_HOST, settings.APPSERVICE_PORT)

        consumers = [
            asyncio.create_task(profile_channel.consume(components.profile_sync.on_profile_updated)),
            asyncio.create_task(media_channel.consume(components.media_relay.on_new_media)),
        ]
        try:
            try:
                await update_bot_profile(appearance, components.identities, storage)
            except Exception:
                logger.exception("Failed to update bridge bot appearance")

            classified = await components.router.startup_scan()
            logger.info(
                "Startup scan complete: rooms=%s, control_rooms=%s",
                len(classified),
                len(components.registry),
            )
            consumers.append(asyncio.create_task(media_poller.run()))
            await asyncio.Event().wait()
        finally:
            for task in consumers:
                task.cancel()
            await asyncio.gather(*consumers, return_exceptions=True)
            await appservice.stop()


def _run() -> None:
    _print_banner()
    load_dotenv()
    configure_logging(settings.LOGGING or {}, settings.PROJECT_ROOT)
    logging.getLogger(__name__).info("Starting instabridge")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutting down")


def _authorize(handle: str, token: str) -> None:
    # Stand-in for the OAuth callback: store a token obtained elsewhere.
    storage = _open_storage()
    storage.store_auth_token(handle.lstrip("@"), token)
    print(f"Stored access token for {handle.lstrip('@')}")


def _list_rooms() -> None:
    storage = _open_storage()
    links = storage.list_links()
    if not links:
        print("No relay rooms yet.")
        return
    for handle, room_id in links:
        print(f"{handle} | {room_id}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="instabridge")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bridge")
    authorize = subparsers.add_parser("authorize", help="Store an access token for an account")
    authorize.add_argument("handle")
    authorize.add_argument("token")
    subparsers.add_parser("rooms", help="List relay rooms per account")

    args = parser.parse_args(argv)
    if args.command == "authorize":
        _authorize(args.handle, args.token)
        return
    if args.command == "rooms":
        _list_rooms()
        return
    _run()


if __name__ == "__main__":
    main()
