"""Session token commands."""

import click
from rich.console import Console

from folio.app.repositories.session_repository import SessionRepository

from ..runtime import Runtime

console = Console()


@click.group()
def sessions():
    """Issue and revoke reader session tokens."""
    pass


@sessions.command()
@click.option("--user-id", required=True, help="Auth provider user id.")
def issue(user_id: str):
    """Register a new session token for a user."""
    runtime = Runtime.load()
    record, token = SessionRepository(runtime.database).issue(user_id)
    console.print(f"[green]Issued session:[/green] {record.session_id}")
    click.echo(f"Token (save now, only shown once): {token}")
    click.echo(f"Cookie: {runtime.settings.session_cookie_name}={token}")


@sessions.command()
@click.option("--token", required=True, help="Session token to revoke.")
def revoke(token: str):
    """Revoke a session token."""
    revoked = SessionRepository(Runtime.load().database).revoke(token)
    if revoked:
        console.print("[green]Session revoked[/green]")
    else:
        console.print("[yellow]No active session for that token[/yellow]")


@sessions.command(name="list")
@click.option("--user-id", required=True, help="Auth provider user id.")
@click.option("--all", "include_revoked", is_flag=True, help="Include revoked sessions.")
def list_sessions(user_id: str, include_revoked: bool):
    """List the sessions registered for a user."""
    records = SessionRepository(Runtime.load().database).list_for_user(
        user_id,
        include_revoked=include_revoked,
    )
    if not records:
        console.print("[yellow]No sessions found[/yellow]")
        return

    for record in records:
        console.print(
            f"  - {record.session_id} created={record.created_at} "
            f"last_seen={record.last_seen_at or '-'} revoked={record.revoked_at or '-'}",
            soft_wrap=True,
        )
