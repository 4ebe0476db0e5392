from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from folio.app.config import load_settings
from folio.app.telemetry import TelemetryClient, build_telemetry_client


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.chdir(tmp_path)
    for name in (
        "FOLIO_DATA_DIR",
        "FOLIO_DB_PATH",
        "FOLIO_LOG_DIR",
        "FOLIO_LOCALES",
        "FOLIO_CANONICAL_LOCALE",
        "FOLIO_SITE_URL",
        "FOLIO_MEDIA_BASE_URL",
        "FOLIO_TELEMETRY_ENABLED",
        "FOLIO_TELEMETRY_SINK",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_are_rooted_in_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FOLIO_DATA_DIR", str(tmp_path / "runtime"))

    settings = load_settings()

    assert settings.db_path == (tmp_path / "runtime" / "state.db").resolve()
    assert settings.log_dir == (tmp_path / "runtime" / "logs").resolve()
    assert settings.locales == ("ru", "en")
    assert settings.canonical_locale == "ru"
    assert settings.site_url == "https://deksden.com"


def test_explicit_db_path_is_kept(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FOLIO_DATA_DIR", str(tmp_path / "runtime"))
    monkeypatch.setenv("FOLIO_DB_PATH", str(tmp_path / "elsewhere.db"))

    assert load_settings().db_path == (tmp_path / "elsewhere.db").resolve()


def test_locales_and_urls_are_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FOLIO_LOCALES", " EN, ru ,en")
    monkeypatch.setenv("FOLIO_CANONICAL_LOCALE", "RU")
    monkeypatch.setenv("FOLIO_SITE_URL", "https://example.test/")
    monkeypatch.setenv("FOLIO_MEDIA_BASE_URL", "https://cdn.example.test/")

    settings = load_settings()

    assert settings.locales == ("en", "ru")
    assert settings.canonical_locale == "ru"
    assert settings.repository_settings().media_root == "https://cdn.example.test/articles"
    assert settings.site_url == "https://example.test"


def test_canonical_locale_must_be_a_site_locale(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FOLIO_LOCALES", "en")

    with pytest.raises(ValidationError):
        load_settings()


@pytest.mark.parametrize(("raw", "expected"), [("off", False), ("1", True), ("maybe", True)])
def test_telemetry_enabled_boolean_coercion(
    monkeypatch: pytest.MonkeyPatch,
    raw: str,
    expected: bool,
) -> None:
    monkeypatch.setenv("FOLIO_TELEMETRY_ENABLED", raw)
    assert load_settings().telemetry_enabled is expected


def test_invalid_telemetry_sink_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FOLIO_TELEMETRY_SINK", "kafka")

    with pytest.raises(ValidationError):
        load_settings()


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(sink)

    client.emit(
        "article.view",
        lang="en",
        session_token="abc",
        body_md="the whole article",
        decision="full_body",
        note="x" * 500,
        authenticated=False,
    )

    event_name, attributes = sink.events[0]
    assert event_name == "article.view"
    assert attributes["lang"] == "en"
    assert attributes["decision"] == "full_body"
    assert attributes["session_token"] == "[redacted]"
    assert attributes["body_md"] == "[redacted]"
    assert attributes["note"].endswith("...")
    assert attributes["authenticated"] is False


def test_disabled_telemetry_client_does_not_emit() -> None:
    client = TelemetryClient()
    assert client.enabled is False
    client.emit("bookmark.toggle", bookmarked=True)


def test_build_telemetry_client() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False
    assert build_telemetry_client(enabled=True, sink="log").enabled is True
