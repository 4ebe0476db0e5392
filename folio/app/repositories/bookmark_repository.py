from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from folio.app.repositories.common import StoreError, utc_now_iso
from folio.app.repositories.database import Database


class BookmarkExistsError(Exception):
    """The (user, article) pair is already stored."""


@dataclass(frozen=True)
class BookmarkRecord:
    user_id: str
    article_id: str
    created_at: str


class BookmarkRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def exists(self, user_id: str, article_id: str) -> bool:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT 1
                FROM bookmarks
                WHERE user_id = ? AND article_id = ?
                LIMIT 1
                """,
                (user_id, article_id),
            ).fetchone()
        return row is not None

    def insert(self, user_id: str, article_id: str) -> None:
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO bookmarks (user_id, article_id, created_at)
                    VALUES (?, ?, ?)
                    """,
                    (user_id, article_id, utc_now_iso()),
                )
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise BookmarkExistsError(f"{user_id}:{article_id}") from exc
            raise StoreError(str(exc)) from exc

    def delete(self, user_id: str, article_id: str) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM bookmarks WHERE user_id = ? AND article_id = ?",
                (user_id, article_id),
            )
        return cursor.rowcount > 0

    def list_for_user(self, user_id: str) -> list[BookmarkRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT user_id, article_id, created_at
                FROM bookmarks
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
        return [
            BookmarkRecord(
                user_id=str(row["user_id"]),
                article_id=str(row["article_id"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc).upper()
    return "UNIQUE" in message or "PRIMARY KEY" in message
