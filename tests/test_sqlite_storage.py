from __future__ import annotations

from adapters.sqlite_storage import SQLiteStorage
from core.models import BotProfile, DeliveredMedia


def _storage(tmp_path) -> SQLiteStorage:
    storage = SQLiteStorage(str(tmp_path / "bridge.db"))
    storage.init_db()
    return storage


def test_auth_tokens(tmp_path) -> None:
    storage = _storage(tmp_path)
    assert not storage.has_authorization("alice")

    storage.store_auth_token("alice", "token-1")
    storage.store_auth_token("alice", "token-2")

    assert storage.has_authorization("alice")
    assert storage.get_auth_token("alice") == "token-2"

    storage.store_auth_token("bob", "token-3")
    assert storage.list_authorized_accounts() == ["alice", "bob"]


def test_bot_profile_roundtrip(tmp_path) -> None:
    storage = _storage(tmp_path)
    assert storage.get_bot_profile() == BotProfile(avatar_url=None)

    storage.set_bot_profile(BotProfile(avatar_url="http://x/bot.png"))
    assert storage.get_bot_profile().avatar_url == "http://x/bot.png"


def test_room_links(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.link_room("!a:domain", "alice")
    storage.link_room("!b:domain", "alice")
    storage.link_room("!a:domain", "alice")
    storage.link_room("!c:domain", "bob")

    assert storage.get_linked_accounts("!a:domain") == ["alice"]
    assert storage.get_linked_accounts("!z:domain") == []
    assert storage.get_rooms_for_account("alice") == ["!a:domain", "!b:domain"]
    assert storage.list_links() == [
        ("alice", "!a:domain"),
        ("alice", "!b:domain"),
        ("bob", "!c:domain"),
    ]


def test_deliveries_and_expiration_marker(tmp_path) -> None:
    storage = _storage(tmp_path)
    storage.record_delivery(42, "abc", "$ev1", "!a:domain")
    storage.record_delivery(42, "abc", "$ev2", "!a:domain")
    storage.record_delivery(42, "other", "$ev3", "!a:domain")

    assert storage.list_deliveries("abc") == [
        DeliveredMedia(account_id=42, post_id="abc", event_id="$ev1", room_id="!a:domain"),
        DeliveredMedia(account_id=42, post_id="abc", event_id="$ev2", room_id="!a:domain"),
    ]

    assert storage.get_expiration_marker(42) is None
    storage.advance_expiration_marker(42, 1000)
    storage.advance_expiration_marker(42, 2000)
    assert storage.get_expiration_marker(42) == 2000
