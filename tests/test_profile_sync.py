from __future__ import annotations

import asyncio

from core.models import ProfileInfo, ProfileUpdatedEvent
from fakes import BOT_ID, make_harness

VIRTUAL_ID = "@_ig_alice:domain"
PROFILE = ProfileInfo(display_name="Alice", avatar_url="http://x/a.png", username="alice")


def _linked_harness():
    harness = make_harness()
    harness.store.link_room("!a:domain", "alice")
    harness.store.link_room("!b:domain", "alice")
    harness.store.link_room("!other:domain", "bob")
    return harness


def test_display_name_change_updates_user_and_rooms() -> None:
    harness = _linked_harness()
    event = ProfileUpdatedEvent("alice", PROFILE, "displayName")

    asyncio.run(harness.components.profile_sync.on_profile_updated(event))

    assert harness.log.display_names == [(VIRTUAL_ID, "Alice (source)")]
    assert sorted(harness.log.room_names) == [
        (BOT_ID, "!a:domain", "[source] Alice"),
        (BOT_ID, "!b:domain", "[source] Alice"),
    ]
    assert harness.log.uploads == []
    assert harness.log.avatars == []
    assert harness.log.room_avatars == []


def test_avatar_change_uploads_per_target() -> None:
    harness = _linked_harness()
    event = ProfileUpdatedEvent("alice", PROFILE, "avatar")

    asyncio.run(harness.components.profile_sync.on_profile_updated(event))

    # One upload for the user plus one per linked room.
    assert len(harness.log.uploads) == 3
    assert {user for user, _, _ in harness.log.uploads} == {VIRTUAL_ID}
    assert len(harness.log.avatars) == 1
    assert harness.log.avatars[0][0] == VIRTUAL_ID
    assert sorted(room for _, room, _ in harness.log.room_avatars) == ["!a:domain", "!b:domain"]
    assert {user for user, _, _ in harness.log.room_avatars} == {BOT_ID}
    assert harness.log.display_names == []


def test_room_failure_does_not_block_others() -> None:
    harness = _linked_harness()
    harness.log.failing_rooms.add("!a:domain")
    event = ProfileUpdatedEvent("alice", PROFILE, "displayName")

    asyncio.run(harness.components.profile_sync.on_profile_updated(event))

    assert harness.log.display_names == [(VIRTUAL_ID, "Alice (source)")]
    assert harness.log.room_names == [(BOT_ID, "!b:domain", "[source] Alice")]


def test_unknown_field_is_ignored() -> None:
    harness = _linked_harness()
    event = ProfileUpdatedEvent("alice", PROFILE, "bio")

    asyncio.run(harness.components.profile_sync.on_profile_updated(event))

    assert harness.log.display_names == []
    assert harness.log.room_names == []
    assert harness.log.uploads == []
