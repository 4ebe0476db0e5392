"""Operator CLI for the Folio publishing backend."""

import click

from .commands import content, entitlements, openapi, sessions


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Folio admin tooling for the publishing backend."""
    pass


# Content commands
main.add_command(content.import_content_command, name="import-content")

# Billing commands
main.add_command(entitlements.entitlements)

# Session commands
main.add_command(sessions.sessions)

# Schema commands
main.add_command(openapi.export_openapi, name="export-openapi")


if __name__ == "__main__":
    main()
