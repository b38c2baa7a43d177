from __future__ import annotations

import asyncio

from core.models import RoomCategory
from fakes import BOT_ID, make_harness


def test_linked_room_is_relayed_without_member_lookup() -> None:
    harness = make_harness()
    harness.store.link_room("!relay:domain", "alice")

    result = asyncio.run(harness.components.classifier.classify("!relay:domain"))

    assert result.category is RoomCategory.RELAYED
    assert result.linked_accounts == 1
    assert harness.transport.member_lookups == []
    assert len(harness.components.registry) == 0


def test_two_member_room_with_bot_becomes_control_room() -> None:
    harness = make_harness()
    harness.transport.members["!dm:domain"] = [BOT_ID, "@bob:domain"]

    result = asyncio.run(harness.components.classifier.classify("!dm:domain"))

    assert result.category is RoomCategory.CONTROL
    room = harness.components.registry.get("!dm:domain")
    assert room is not None
    assert room.counterpart == "@bob:domain"


def test_classification_is_idempotent() -> None:
    harness = make_harness()
    harness.transport.members["!dm:domain"] = [BOT_ID, "@bob:domain"]
    classifier = harness.components.classifier

    first = asyncio.run(classifier.classify("!dm:domain"))
    room = harness.components.registry.get("!dm:domain")
    second = asyncio.run(classifier.classify("!dm:domain"))

    assert first == second
    assert len(harness.components.registry) == 1
    assert harness.components.registry.get("!dm:domain") is room


def test_other_rooms_are_ignored() -> None:
    harness = make_harness()
    harness.transport.members["!crowd:domain"] = [BOT_ID, "@bob:domain", "@carol:domain"]
    harness.transport.members["!alone:domain"] = [BOT_ID]
    harness.transport.members["!pair:domain"] = ["@bob:domain", "@carol:domain"]
    classifier = harness.components.classifier

    for room_id in ("!crowd:domain", "!alone:domain", "!pair:domain"):
        result = asyncio.run(classifier.classify(room_id))
        assert result.category is RoomCategory.IGNORED

    assert len(harness.components.registry) == 0
