"""Content import commands."""

from pathlib import Path

import click
from rich.console import Console

from folio.app.repositories.article_repository import ArticleRepository
from folio.app.services.content_loader import ContentError, import_content

from ..runtime import Runtime

console = Console()


@click.command()
@click.option(
    "--content-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding <lang>/articles/<slug>.md files (defaults to FOLIO_CONTENT_DIR).",
)
def import_content_command(content_dir: Path | None):
    """Publish authored article files into the store."""
    runtime = Runtime.load()
    source = content_dir if content_dir is not None else runtime.settings.content_dir

    if not source.is_dir():
        raise click.ClickException(f"Content directory not found: {source}")

    repository = ArticleRepository(runtime.database, runtime.settings.repository_settings())
    try:
        summary = import_content(
            source,
            locales=runtime.settings.locales,
            article_repository=repository,
        )
    except ContentError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(
        f"[green]Imported articles:[/green] {summary.created} created, {summary.updated} updated"
    )
