from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from folio.app.repositories.common import parse_utc_timestamp, utc_now, utc_now_iso
from folio.app.repositories.database import Database

LOGGER = logging.getLogger("folio.entitlements")

ENTITLEMENT_KIND_PREMIUM = "premium"

# Stored end timestamps that cannot be read count as long expired.
UNREADABLE_END = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class EntitlementRecord:
    kind: str
    ends_at: datetime | None


@dataclass(frozen=True)
class StoredEntitlement:
    entitlement_id: str
    user_id: str
    kind: str
    ends_at: datetime | None
    created_at: str

    @property
    def record(self) -> EntitlementRecord:
        return EntitlementRecord(kind=self.kind, ends_at=self.ends_at)


class EntitlementRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_premium_records(self, user_id: str) -> list[EntitlementRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT kind, ends_at
                FROM entitlements
                WHERE user_id = ? AND kind = ?
                """,
                (user_id, ENTITLEMENT_KIND_PREMIUM),
            ).fetchall()
        return [
            EntitlementRecord(
                kind=str(row["kind"]),
                ends_at=parse_ends_at(row["ends_at"]),
            )
            for row in rows
        ]

    def list_for_user(self, user_id: str) -> list[StoredEntitlement]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, kind, ends_at, created_at
                FROM entitlements
                WHERE user_id = ?
                ORDER BY created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [
            StoredEntitlement(
                entitlement_id=str(row["id"]),
                user_id=str(row["user_id"]),
                kind=str(row["kind"]),
                ends_at=parse_ends_at(row["ends_at"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    def grant(
        self,
        user_id: str,
        *,
        kind: str = ENTITLEMENT_KIND_PREMIUM,
        ends_at: datetime | None = None,
    ) -> StoredEntitlement:
        normalized_user_id = user_id.strip()
        if not normalized_user_id:
            raise ValueError("user_id must not be empty")

        entitlement_id = f"ent_{uuid4().hex}"
        created_at = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO entitlements (id, user_id, kind, ends_at, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entitlement_id,
                    normalized_user_id,
                    kind,
                    ends_at.isoformat() if ends_at is not None else None,
                    created_at,
                ),
            )
        return StoredEntitlement(
            entitlement_id=entitlement_id,
            user_id=normalized_user_id,
            kind=kind,
            ends_at=ends_at,
            created_at=created_at,
        )

    def expire_active(self, user_id: str, *, kind: str = ENTITLEMENT_KIND_PREMIUM) -> int:
        now = utc_now()
        expired = 0
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT id, ends_at FROM entitlements WHERE user_id = ? AND kind = ?",
                (user_id.strip(), kind),
            ).fetchall()
            for row in rows:
                ends_at = parse_ends_at(row["ends_at"])
                if ends_at is not None and ends_at <= now:
                    continue
                conn.execute(
                    "UPDATE entitlements SET ends_at = ? WHERE id = ?",
                    (now.isoformat(), str(row["id"])),
                )
                expired += 1
        return expired


def parse_ends_at(value: object) -> datetime | None:
    """Map a stored ``ends_at`` to a datetime; only SQL NULL means open-ended."""
    if value is None:
        return None
    parsed = parse_utc_timestamp(value)
    if parsed is None:
        LOGGER.warning("unreadable entitlement end timestamp value=%r", value)
        return UNREADABLE_END
    return parsed
