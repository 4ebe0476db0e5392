"""OpenAPI schema export."""

import json
from pathlib import Path

import click
from rich.console import Console

console = Console()


@click.command()
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("openapi") / "openapi.json",
    show_default=True,
    help="Where to write the schema.",
)
def export_openapi(output: Path):
    """Write the HTTP API schema as JSON."""
    from folio.app.main import create_app

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(create_app().openapi(), indent=2), encoding="utf-8")
    console.print(f"[green]Wrote OpenAPI schema to[/green] {output}")
