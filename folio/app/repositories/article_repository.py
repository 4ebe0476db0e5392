from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from sqlite3 import Connection, Row
from typing import Literal, cast
from urllib.parse import quote
from uuid import uuid4

from folio.app.repositories.common import utc_now_iso
from folio.app.repositories.database import Database

ArticleTier = Literal["free", "premium"]

ARTICLE_TIER_FREE: ArticleTier = "free"
ARTICLE_TIER_PREMIUM: ArticleTier = "premium"

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class ArticleRepositorySettings:
    site_url: str
    storage_bucket: str
    media_base_url: str | None = None

    @property
    def media_root(self) -> str:
        base = self.media_base_url or f"{self.site_url.rstrip('/')}/media"
        return f"{base.rstrip('/')}/{self.storage_bucket.strip('/')}"


@dataclass(frozen=True)
class Article:
    article_id: str
    lang: str
    slug: str
    title: str
    description: str
    date: str
    updated_at: str | None
    tags: tuple[str, ...]
    tier: ArticleTier
    translation_key: str | None
    draft: bool
    cover: str | None
    preview_md: str
    reading_time_minutes: int


@dataclass(frozen=True)
class ArticleCard:
    article_id: str
    lang: str
    slug: str
    title: str
    description: str
    date: str
    updated_at: str | None
    tags: tuple[str, ...]
    tier: ArticleTier
    translation_key: str | None
    reading_time_minutes: int
    url: str


@dataclass(frozen=True)
class ArticleWrite:
    lang: str
    slug: str
    title: str
    description: str
    date: str
    tags: tuple[str, ...]
    preview_md: str
    body_md: str
    reading_time_minutes: int
    tier: ArticleTier = ARTICLE_TIER_FREE
    draft: bool = False
    updated_at: str | None = None
    translation_key: str | None = None
    cover: str | None = None


class ArticleRepository:
    """Read-side adapter over the article tables.

    Listing and exact-key lookup are separate capabilities: drafts never
    appear in ``list_published`` but stay reachable through
    ``get_by_exact_key`` so unlisted preview links keep working.
    """

    def __init__(self, db: Database, settings: ArticleRepositorySettings) -> None:
        self._db = db
        self._settings = settings

    def get_by_exact_key(self, lang: str, slug: str) -> Article | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE lang = ? AND slug = ?
                LIMIT 1
                """,
                (lang, slug),
            ).fetchone()
        if row is None:
            return None
        return _row_to_article(row)

    def get_by_id(self, article_id: str) -> Article | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM articles WHERE id = ? LIMIT 1",
                (article_id,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_article(row)

    def get_body(self, article_id: str) -> str | None:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT body_md FROM article_bodies WHERE article_id = ?",
                (article_id,),
            ).fetchone()
        if row is None:
            return None
        body = str(row["body_md"])
        return body if body.strip() else None

    def list_published(self, lang: str) -> list[ArticleCard]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE lang = ? AND draft = 0
                ORDER BY rowid ASC
                """,
                (lang,),
            ).fetchall()
        cards = [self.to_card(_row_to_article(row)) for row in rows]
        return sort_newest_first(cards)

    def find_published_variant(self, lang: str, translation_key: str) -> Article | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE lang = ? AND translation_key = ? AND draft = 0
                ORDER BY rowid ASC
                LIMIT 1
                """,
                (lang, translation_key),
            ).fetchone()
        if row is None:
            return None
        return _row_to_article(row)

    def list_published_variants(self, translation_key: str) -> list[Article]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE translation_key = ? AND draft = 0
                ORDER BY lang ASC
                """,
                (translation_key,),
            ).fetchall()
        return [_row_to_article(row) for row in rows]

    def save_article(self, article: ArticleWrite) -> tuple[Article, bool]:
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            existing = conn.execute(
                "SELECT id FROM articles WHERE lang = ? AND slug = ?",
                (article.lang, article.slug),
            ).fetchone()
            created = existing is None
            article_id = str(uuid4()) if existing is None else str(existing["id"])
            if created:
                conn.execute(
                    """
                    INSERT INTO articles (
                        id, lang, slug, title, description, date, updated_at, tags_json,
                        tier, translation_key, draft, cover, preview_md,
                        reading_time_minutes, created_at, modified_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        article_id,
                        article.lang,
                        article.slug,
                        *_article_columns(article),
                        now_iso,
                        now_iso,
                    ),
                )
            else:
                conn.execute(
                    """
                    UPDATE articles
                    SET title = ?, description = ?, date = ?, updated_at = ?, tags_json = ?,
                        tier = ?, translation_key = ?, draft = ?, cover = ?, preview_md = ?,
                        reading_time_minutes = ?, modified_at = ?
                    WHERE id = ?
                    """,
                    (*_article_columns(article), now_iso, article_id),
                )
            conn.execute(
                """
                INSERT INTO article_bodies (article_id, body_md, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(article_id) DO UPDATE SET
                    body_md = excluded.body_md,
                    updated_at = excluded.updated_at
                """,
                (article_id, article.body_md, now_iso),
            )
            saved = _get_article_with_conn(conn, article_id)
        if saved is None:
            raise RuntimeError("Article was not found after save")
        return saved, created

    def delete_body(self, article_id: str) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM article_bodies WHERE article_id = ?",
                (article_id,),
            )
        return cursor.rowcount > 0

    def article_url(self, lang: str, slug: str) -> str:
        return f"{self._settings.site_url.rstrip('/')}/{lang}/articles/{quote(slug)}"

    def cover_url(self, cover: str | None) -> str | None:
        if cover is None:
            return None
        if cover.startswith(("http://", "https://")):
            return cover
        return f"{self._settings.media_root}/{quote(cover.lstrip('/'))}"

    def to_card(self, article: Article) -> ArticleCard:
        return ArticleCard(
            article_id=article.article_id,
            lang=article.lang,
            slug=article.slug,
            title=article.title,
            description=article.description,
            date=article.date,
            updated_at=article.updated_at,
            tags=article.tags,
            tier=article.tier,
            translation_key=article.translation_key,
            reading_time_minutes=article.reading_time_minutes,
            url=self.article_url(article.lang, article.slug),
        )


def sort_newest_first(cards: Sequence[ArticleCard]) -> list[ArticleCard]:
    # sorted() stays stable with reverse=True, so equal dates keep input order.
    return sorted(cards, key=lambda card: _date_sort_key(card.date), reverse=True)


def _date_sort_key(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _article_columns(article: ArticleWrite) -> tuple[object, ...]:
    return (
        article.title,
        article.description,
        article.date,
        article.updated_at,
        json.dumps(list(article.tags), ensure_ascii=False),
        article.tier,
        article.translation_key,
        1 if article.draft else 0,
        article.cover,
        article.preview_md,
        max(1, article.reading_time_minutes),
    )


def _get_article_with_conn(conn: Connection, article_id: str) -> Article | None:
    row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
    if row is None:
        return None
    return _row_to_article(row)


def _row_to_article(row: Row) -> Article:
    return Article(
        article_id=str(row["id"]),
        lang=str(row["lang"]),
        slug=str(row["slug"]),
        title=str(row["title"]),
        description=str(row["description"]),
        date=str(row["date"]),
        updated_at=_as_text_or_none(row["updated_at"]),
        tags=_load_tags(row["tags_json"]),
        tier=_normalize_tier(row["tier"]),
        translation_key=_as_text_or_none(row["translation_key"]),
        draft=bool(row["draft"]),
        cover=_as_text_or_none(row["cover"]),
        preview_md=str(row["preview_md"] or ""),
        reading_time_minutes=max(1, int(row["reading_time_minutes"] or 1)),
    )


def _normalize_tier(value: object) -> ArticleTier:
    if isinstance(value, str) and value.strip().lower() == ARTICLE_TIER_PREMIUM:
        return ARTICLE_TIER_PREMIUM
    return ARTICLE_TIER_FREE


def _as_text_or_none(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return str(value)


def _load_tags(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, str):
        return ()
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return ()
    if not isinstance(parsed, list):
        return ()
    values: list[str] = []
    for item in cast(list[object], parsed):
        if isinstance(item, str) and item.strip():
            values.append(item.strip())
    return tuple(values)
