from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from folio.app.repositories.entitlement_repository import (
    ENTITLEMENT_KIND_PREMIUM,
    EntitlementRecord,
    EntitlementRepository,
)
from folio.app.services.session import Session

Plan = Literal["free", "premium"]

PLAN_FREE: Plan = "free"
PLAN_PREMIUM: Plan = "premium"


def is_record_active(record: EntitlementRecord, *, now: datetime) -> bool:
    if record.ends_at is None:
        return True
    ends_at = record.ends_at if record.ends_at.tzinfo else record.ends_at.replace(tzinfo=UTC)
    return ends_at > now


def is_active_premium(
    records: Iterable[EntitlementRecord],
    *,
    now: datetime | None = None,
) -> bool:
    reference = now if now is not None else datetime.now(UTC)
    return any(
        record.kind == ENTITLEMENT_KIND_PREMIUM and is_record_active(record, now=reference)
        for record in records
    )


class EntitlementResolver:
    def __init__(self, entitlement_repository: EntitlementRepository) -> None:
        self._entitlement_repository = entitlement_repository

    def plan_for(self, session: Session, *, now: datetime | None = None) -> Plan:
        # Anonymous traffic never reaches the entitlement table.
        if session.user_id is None:
            return PLAN_FREE
        records = self._entitlement_repository.list_premium_records(session.user_id)
        return PLAN_PREMIUM if is_active_premium(records, now=now) else PLAN_FREE
