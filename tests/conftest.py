from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from folio.app.dependencies import reset_cached_dependencies
from folio.app.main import create_app
from folio.app.repositories.article_repository import (
    Article,
    ArticleRepository,
    ArticleRepositorySettings,
    ArticleWrite,
)
from folio.app.repositories.database import Database
from folio.app.repositories.entitlement_repository import EntitlementRepository
from folio.app.repositories.session_repository import SessionRepository

TEST_SITE_URL = "https://folio.test"


@dataclass(frozen=True)
class SeededSite:
    database: Database
    articles: ArticleRepository
    intro_ru: Article
    intro_en: Article
    guide_ru: Article
    guide_en: Article
    orphan_en: Article
    draft_ru: Article
    free_token: str
    premium_token: str


def build_article(
    *,
    lang: str,
    slug: str,
    date: str = "2025-01-10",
    tags: tuple[str, ...] = (),
    tier: str = "free",
    translation_key: str | None = None,
    draft: bool = False,
    body_md: str = "Full body text.",
    cover: str | None = None,
) -> ArticleWrite:
    return ArticleWrite(
        lang=lang,
        slug=slug,
        title=f"Title {lang}/{slug}",
        description=f"About {slug}",
        date=date,
        tags=tags,
        preview_md=f"Preview of {slug}.",
        body_md=body_md,
        reading_time_minutes=3,
        tier=tier,  # type: ignore[arg-type]
        draft=draft,
        translation_key=translation_key,
        cover=cover,
    )


def seed_site(db_path: Path) -> SeededSite:
    database = Database(db_path)
    database.initialize()
    articles = ArticleRepository(
        database,
        ArticleRepositorySettings(site_url=TEST_SITE_URL, storage_bucket="articles"),
    )

    intro_ru, _ = articles.save_article(
        build_article(
            lang="ru",
            slug="vvedenie",
            tags=("python", "web"),
            translation_key="intro",
            cover="covers/intro.png",
        )
    )
    intro_en, _ = articles.save_article(
        build_article(lang="en", slug="introduction", tags=("python",), translation_key="intro")
    )
    guide_ru, _ = articles.save_article(
        build_article(
            lang="ru",
            slug="premium-guide",
            date="2025-02-01",
            tags=("advanced", "python"),
            tier="premium",
            translation_key="guide",
        )
    )
    guide_en, _ = articles.save_article(
        build_article(
            lang="en",
            slug="premium-guide",
            date="2025-02-01",
            tags=("advanced",),
            tier="premium",
            translation_key="guide",
        )
    )
    orphan_en, _ = articles.save_article(
        build_article(lang="en", slug="orphan", date="2024-12-01", translation_key="lonely")
    )
    draft_ru, _ = articles.save_article(
        build_article(lang="ru", slug="draft-note", date="2025-03-01", tags=("web",), draft=True)
    )

    sessions = SessionRepository(database)
    _, free_token = sessions.issue("user-free")
    _, premium_token = sessions.issue("user-premium")
    EntitlementRepository(database).grant(
        "user-premium",
        ends_at=datetime.now(UTC) + timedelta(days=30),
    )

    return SeededSite(
        database=database,
        articles=articles,
        intro_ru=intro_ru,
        intro_en=intro_en,
        guide_ru=guide_ru,
        guide_en=guide_en,
        orphan_en=orphan_en,
        draft_ru=draft_ru,
        free_token=free_token,
        premium_token=premium_token,
    )


@pytest.fixture(autouse=True)
def _release_folio_loggers() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    yield
    for name in ("folio", "folio.telemetry"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    runtime_dir = tmp_path / "runtime-data"
    runtime_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("FOLIO_DATA_DIR", str(runtime_dir))
    monkeypatch.setenv("FOLIO_SITE_URL", TEST_SITE_URL)
    monkeypatch.setenv("FOLIO_TELEMETRY_SINK", "none")
    reset_cached_dependencies()
    return runtime_dir


@pytest.fixture
def site(data_dir: Path) -> SeededSite:
    return seed_site(data_dir / "state.db")


@pytest.fixture
def client(site: SeededSite) -> Iterator[TestClient]:
    _ = site
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
