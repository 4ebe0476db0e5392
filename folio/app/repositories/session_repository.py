from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

from folio.app.repositories.common import utc_now_iso
from folio.app.repositories.database import Database


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    user_id: str
    created_at: str
    revoked_at: str | None
    last_seen_at: str | None


class SessionRepository:
    """Session tokens registered by the auth provider, stored as hashes only."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def issue(self, user_id: str) -> tuple[SessionRecord, str]:
        normalized_user_id = user_id.strip()
        if not normalized_user_id:
            raise ValueError("user_id must not be empty")

        session_id = f"sess_{secrets.token_urlsafe(9)}"
        token = secrets.token_urlsafe(32)
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (
                    session_id, user_id, token_hash, created_at, revoked_at, last_seen_at
                )
                VALUES (?, ?, ?, ?, NULL, NULL)
                """,
                (session_id, normalized_user_id, _hash_token(token), now_iso),
            )
        return (
            SessionRecord(
                session_id=session_id,
                user_id=normalized_user_id,
                created_at=now_iso,
                revoked_at=None,
                last_seen_at=None,
            ),
            token,
        )

    def resolve_user_id(self, token: str) -> str | None:
        normalized = token.strip()
        if not normalized:
            return None
        token_hash = _hash_token(normalized)
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT session_id, user_id, token_hash
                FROM sessions
                WHERE token_hash = ? AND revoked_at IS NULL
                """,
                (token_hash,),
            ).fetchone()
            if row is None or not secrets.compare_digest(str(row["token_hash"]), token_hash):
                return None
            conn.execute(
                "UPDATE sessions SET last_seen_at = ? WHERE session_id = ?",
                (utc_now_iso(), str(row["session_id"])),
            )
        return str(row["user_id"])

    def revoke(self, token: str) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE sessions
                SET revoked_at = ?
                WHERE token_hash = ? AND revoked_at IS NULL
                """,
                (utc_now_iso(), _hash_token(token.strip())),
            )
        return cursor.rowcount > 0

    def list_for_user(self, user_id: str, *, include_revoked: bool) -> list[SessionRecord]:
        query = """
            SELECT session_id, user_id, created_at, revoked_at, last_seen_at
            FROM sessions
            WHERE user_id = ?
        """
        if not include_revoked:
            query += " AND revoked_at IS NULL"
        query += " ORDER BY created_at DESC"

        with self._db.connection() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()

        return [
            SessionRecord(
                session_id=str(row["session_id"]),
                user_id=str(row["user_id"]),
                created_at=str(row["created_at"]),
                revoked_at=(str(row["revoked_at"]) if row["revoked_at"] is not None else None),
                last_seen_at=(
                    str(row["last_seen_at"]) if row["last_seen_at"] is not None else None
                ),
            )
            for row in rows
        ]


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
