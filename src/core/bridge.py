"""Wiring of the core components around one transport, source and store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.classifier import RoomClassifier
from core.config import BridgeConfig
from core.control_rooms import ControlRoom, ControlRoomRegistry
from core.identity import IdentityResolver
from core.media_relay import Clock, MediaRelayPipeline
from core.ports import ChatTransportPort, ContentSourcePort, DirectoryStorePort
from core.profile_sync import ProfileSyncHandler
from core.provisioner import RoomProvisioner
from core.router import EventRouter


@dataclass(frozen=True)
class BridgeComponents:
    identities: IdentityResolver
    registry: ControlRoomRegistry
    classifier: RoomClassifier
    media_relay: MediaRelayPipeline
    profile_sync: ProfileSyncHandler
    provisioner: RoomProvisioner
    router: EventRouter


def build_components(
    config: BridgeConfig,
    transport: ChatTransportPort,
    content_source: ContentSourcePort,
    store: DirectoryStorePort,
    clock: Optional[Clock] = None,
) -> BridgeComponents:
    identities = IdentityResolver(config, transport, content_source)
    registry = ControlRoomRegistry()

    def control_room_factory(room_id: str, counterpart: str) -> ControlRoom:
        return ControlRoom(room_id, counterpart, identities.bot_intent(), registry, store)

    classifier = RoomClassifier(identities, transport, store, registry, control_room_factory)
    provisioner = RoomProvisioner(config, identities, content_source, store)
    router = EventRouter(identities, transport, registry, classifier, provisioner)
    return BridgeComponents(
        identities=identities,
        registry=registry,
        classifier=classifier,
        media_relay=MediaRelayPipeline(config, identities, transport, store, clock=clock),
        profile_sync=ProfileSyncHandler(config, identities, store),
        provisioner=provisioner,
        router=router,
    )
