"""Manual billing commands: premium entitlements are granted out of band."""

from datetime import UTC, datetime, timedelta

import click
from rich.console import Console

from folio.app.repositories.common import parse_utc_timestamp
from folio.app.repositories.entitlement_repository import EntitlementRepository
from folio.app.services.entitlements import is_record_active

from ..runtime import Runtime

console = Console()


@click.group()
def entitlements():
    """Grant, expire and list premium entitlements."""
    pass


@entitlements.command()
@click.option("--user-id", required=True, help="Auth provider user id.")
@click.option("--days", type=click.IntRange(min=1), default=None, help="Length of the grant in days.")
@click.option("--until", "until", default=None, help="ISO timestamp the grant ends at (UTC if naive).")
def grant(user_id: str, days: int | None, until: str | None):
    """Grant premium access; open-ended unless --days or --until is given."""
    if days is not None and until is not None:
        raise click.UsageError("Use either --days or --until, not both.")

    ends_at = None
    if days is not None:
        ends_at = datetime.now(UTC) + timedelta(days=days)
    elif until is not None:
        ends_at = parse_utc_timestamp(until)
        if ends_at is None:
            raise click.BadParameter(f"not an ISO timestamp: {until}", param_hint="--until")

    repository = EntitlementRepository(Runtime.load().database)
    record = repository.grant(user_id, ends_at=ends_at)
    ends_label = record.ends_at.isoformat() if record.ends_at else "open-ended"
    console.print(f"[green]Granted premium:[/green] {record.entitlement_id} ({ends_label})")


@entitlements.command()
@click.option("--user-id", required=True, help="Auth provider user id.")
def expire(user_id: str):
    """End every active premium entitlement of a user now."""
    repository = EntitlementRepository(Runtime.load().database)
    expired = repository.expire_active(user_id)
    if expired:
        console.print(f"[green]Expired {expired} entitlement(s) for[/green] {user_id}")
    else:
        console.print(f"[yellow]No active entitlements for[/yellow] {user_id}")


@entitlements.command(name="list")
@click.option("--user-id", required=True, help="Auth provider user id.")
def list_entitlements(user_id: str):
    """Show every entitlement record of a user."""
    repository = EntitlementRepository(Runtime.load().database)
    records = repository.list_for_user(user_id)
    if not records:
        console.print("[yellow]No entitlements found[/yellow]")
        return

    now = datetime.now(UTC)
    console.print(f"\n[bold]Entitlements of {user_id}[/bold]")
    for stored in records:
        ends_label = stored.ends_at.isoformat() if stored.ends_at else "open-ended"
        active = "yes" if is_record_active(stored.record, now=now) else "no"
        console.print(
            f"  - {stored.entitlement_id} {stored.kind} ends={ends_label} active={active}",
            soft_wrap=True,
        )
