from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from folio.app.repositories.article_repository import ArticleRepositorySettings

DEFAULT_DATA_DIR = ".folio"
DEFAULT_LOCALES: tuple[str, ...] = ("ru", "en")
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    "content_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{FOLIO_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from `FOLIO_*` environment variables (or `.env`).
    `FOLIO_LOCALES` is a comma-separated list such as `ru,en`.
    """

    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the store and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )
    content_dir: Path = Field(
        default=Path("content"),
        description="Directory holding `<lang>/articles/<slug>.md` files for import.",
    )

    # Site.
    site_url: str = Field(
        default="https://deksden.com",
        description="Absolute base URL used for canonical and card URLs.",
    )
    media_base_url: str | None = Field(
        default=None,
        description="Public base URL for stored assets. Defaults to `${FOLIO_SITE_URL}/media`.",
    )
    storage_bucket: str = Field(
        default="articles",
        description="Storage bucket holding article cover assets.",
    )
    locales: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_LOCALES,
        description="Fixed set of site locales.",
    )
    canonical_locale: str = Field(
        default="ru",
        description="Locale whose article variant is the bookmark identity of record.",
    )
    session_cookie_name: str = Field(
        default="folio_session",
        description="Cookie carrying the opaque session token.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for backend log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("FOLIO_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("FOLIO_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("site_url", mode="before")
    @classmethod
    def _normalize_site_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("FOLIO_SITE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("FOLIO_SITE_URL must not be empty.")
        return normalized

    @field_validator("media_base_url", mode="before")
    @classmethod
    def _normalize_media_base_url(cls, value: Any) -> str | None:
        normalized = _normalize_optional_text(value)
        if normalized is None:
            return None
        return normalized.rstrip("/")

    @field_validator("storage_bucket", "session_cookie_name", mode="before")
    @classmethod
    def _normalize_required_text(cls, value: Any, info: ValidationInfo) -> str:
        normalized = _normalize_optional_text(value)
        if normalized is None:
            raise ValueError(f"FOLIO_{str(info.field_name).upper()} must not be empty.")
        return normalized

    @field_validator("locales", mode="before")
    @classmethod
    def _normalize_locales(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            raw_items: list[Any] = value.split(",")
        elif isinstance(value, list | tuple):
            raw_items = list(value)
        else:
            raise ValueError("FOLIO_LOCALES must be a list of locale codes.")

        locales: list[str] = []
        for item in raw_items:
            if not isinstance(item, str):
                continue
            normalized = item.strip().lower()
            if normalized and normalized not in locales:
                locales.append(normalized)
        if not locales:
            raise ValueError("FOLIO_LOCALES must name at least one locale.")
        return tuple(locales)

    @field_validator("canonical_locale", mode="before")
    @classmethod
    def _normalize_canonical_locale(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("FOLIO_CANONICAL_LOCALE must be a non-empty string.")
        return value.strip().lower()

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @model_validator(mode="after")
    def _validate_canonical_locale(self) -> AppSettings:
        if self.canonical_locale not in self.locales:
            raise ValueError(
                "FOLIO_CANONICAL_LOCALE must be one of FOLIO_LOCALES "
                f"({', '.join(self.locales)})."
            )
        return self

    @property
    def default_locale(self) -> str:
        return self.canonical_locale

    def repository_settings(self) -> ArticleRepositorySettings:
        return ArticleRepositorySettings(
            site_url=self.site_url,
            storage_bucket=self.storage_bucket,
            media_base_url=self.media_base_url,
        )


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
