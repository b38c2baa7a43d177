"""SQLite storage adapter.

Implements the core DirectoryStorePort using a simple SQLite database. Every
method opens its own connection and transaction; callers never rely on
atomicity across calls.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from core.models import BotProfile, DeliveredMedia


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the DirectoryStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - auth_tokens: access tokens of accounts that authorized the bridge
        - bot_account: single-row profile of the bridge bot
        - room_links: relay room -> account handle
        - delivered_media: append-only log of messages sent per post and room
        - media_expiration: per-account watermark for the media poller
        """

        with self._connect() as conn:
            # Fields:
            # - handle: Instagram username (PRIMARY KEY)
            # - access_token: token granted through OAuth
            # - created_at: when the token was stored
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS auth_tokens (
                    handle TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            # Fields:
            # - id: always 1
            # - avatar_url: source URL the current bot avatar was uploaded from
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bot_account (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    avatar_url TEXT
                )
                """
            )
            # Links are written once at room creation and only read afterwards.
            # Fields:
            # - room_id: Matrix room id
            # - handle: Instagram username mirrored into the room
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS room_links (
                    room_id TEXT NOT NULL,
                    handle TEXT NOT NULL,
                    PRIMARY KEY (room_id, handle)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS room_links_handle ON room_links (handle)"
            )
            # Fields:
            # - id: auto-increment primary key
            # - account_id: internal Instagram account id
            # - post_id: Instagram post id
            # - event_id: Matrix event id of the delivered message
            # - room_id: Matrix room the message went to
            # - delivered_at: timestamp of the write
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS delivered_media (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    account_id INTEGER NOT NULL,
                    post_id TEXT NOT NULL,
                    event_id TEXT NOT NULL,
                    room_id TEXT NOT NULL,
                    delivered_at TIMESTAMP NOT NULL
                )
                """
            )
            # Fields:
            # - account_id: internal Instagram account id (PRIMARY KEY)
            # - expires_at: epoch milliseconds until which posts stay eligible
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS media_expiration (
                    account_id INTEGER PRIMARY KEY,
                    expires_at INTEGER NOT NULL
                )
                """
            )

    def store_auth_token(self, handle: str, access_token: str) -> None:
        """Upsert the access token for a handle."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO auth_tokens (handle, access_token, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(handle) DO UPDATE SET
                    access_token = excluded.access_token,
                    created_at = excluded.created_at
                """,
                (handle, access_token, now.isoformat()),
            )

    def get_auth_token(self, handle: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT access_token FROM auth_tokens WHERE handle = ?",
                (handle,),
            ).fetchone()
        return str(row["access_token"]) if row else None

    def has_authorization(self, handle: str) -> bool:
        return self.get_auth_token(handle) is not None

    def list_authorized_accounts(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT handle FROM auth_tokens ORDER BY handle").fetchall()
        return [row["handle"] for row in rows]

    def get_bot_profile(self) -> BotProfile:
        with self._connect() as conn:
            row = conn.execute("SELECT avatar_url FROM bot_account WHERE id = 1").fetchone()
        return BotProfile(avatar_url=row["avatar_url"] if row else None)

    def set_bot_profile(self, profile: BotProfile) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO bot_account (id, avatar_url) VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET avatar_url = excluded.avatar_url
                """,
                (profile.avatar_url,),
            )

    def link_room(self, room_id: str, handle: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO room_links (room_id, handle) VALUES (?, ?)",
                (room_id, handle),
            )

    def get_linked_accounts(self, room_id: str) -> list[str]:
        """Return the handles linked to a room."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT handle FROM room_links WHERE room_id = ? ORDER BY handle",
                (room_id,),
            ).fetchall()
        return [row["handle"] for row in rows]

    def get_rooms_for_account(self, handle: str) -> list[str]:
        """Return every relay room linked to a handle."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT room_id FROM room_links WHERE handle = ? ORDER BY room_id",
                (handle,),
            ).fetchall()
        return [row["room_id"] for row in rows]

    def list_links(self) -> list[tuple[str, str]]:
        """Return all (handle, room_id) pairs."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT handle, room_id FROM room_links ORDER BY handle, room_id"
            ).fetchall()
        return [(row["handle"], row["room_id"]) for row in rows]

    def record_delivery(self, account_id: int, post_id: str, event_id: str, room_id: str) -> None:
        """Append one delivered message to the log."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO delivered_media (account_id, post_id, event_id, room_id, delivered_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (account_id, post_id, event_id, room_id, now.isoformat()),
            )

    def list_deliveries(self, post_id: str) -> list[DeliveredMedia]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT account_id, post_id, event_id, room_id
                FROM delivered_media WHERE post_id = ? ORDER BY id
                """,
                (post_id,),
            ).fetchall()
        return [
            DeliveredMedia(
                account_id=int(row["account_id"]),
                post_id=row["post_id"],
                event_id=row["event_id"],
                room_id=row["room_id"],
            )
            for row in rows
        ]

    def advance_expiration_marker(self, account_id: int, expires_at_ms: int) -> None:
        """Upsert the media expiration watermark for an account."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO media_expiration (account_id, expires_at)
                VALUES (?, ?)
                ON CONFLICT(account_id) DO UPDATE SET expires_at = excluded.expires_at
                """,
                (account_id, expires_at_ms),
            )

    def get_expiration_marker(self, account_id: int) -> Optional[int]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT expires_at FROM media_expiration WHERE account_id = ?",
                (account_id,),
            ).fetchone()
        return int(row["expires_at"]) if row else None
