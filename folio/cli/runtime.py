"""Shared store access for operator commands."""

from dataclasses import dataclass

from folio.app.config import AppSettings, load_settings
from folio.app.repositories.database import Database


@dataclass(frozen=True)
class Runtime:
    settings: AppSettings
    database: Database

    @classmethod
    def load(cls) -> "Runtime":
        """Read FOLIO_* settings and make sure the store schema exists."""
        settings = load_settings()
        database = Database(settings.db_path)
        database.initialize()
        return cls(settings=settings, database=database)
