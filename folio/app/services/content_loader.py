from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, cast

import yaml

from folio.app.repositories.article_repository import (
    ARTICLE_TIER_FREE,
    ARTICLE_TIER_PREMIUM,
    ArticleRepository,
    ArticleTier,
    ArticleWrite,
)
from folio.app.services.tag_index import TAG_PATTERN

LOGGER = logging.getLogger("folio.content")

CONTENT_SUFFIXES: tuple[str, ...] = (".md", ".mdx")
PREVIEW_MARKER = "<!-- more -->"
WORDS_PER_MINUTE = 200
_WORD_PATTERN = re.compile(r"\w+", re.UNICODE)


class ContentError(ValueError):
    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(f"{message} in {path}")
        self.path = path


@dataclass(frozen=True)
class ImportSummary:
    created: int
    updated: int


def load_article_file(path: Path, *, locale: str, locales: Sequence[str]) -> ArticleWrite:
    raw = path.read_text(encoding="utf-8")
    frontmatter, body = split_frontmatter(raw, path=path)

    title = _text(frontmatter.get("title"))
    description = _text(frontmatter.get("description"))
    published = _date_text(frontmatter.get("date"))
    slug = _text(frontmatter.get("slug"))
    lang = _text(frontmatter.get("lang"))

    if not title or not description or not published or not slug:
        raise ContentError("Missing required frontmatter", path=path)
    if lang not in locales or lang != locale:
        raise ContentError("Invalid lang frontmatter", path=path)
    file_slug = path.stem
    if TAG_PATTERN.fullmatch(slug) is None or TAG_PATTERN.fullmatch(file_slug) is None:
        raise ContentError("Invalid slug format", path=path)
    if slug != file_slug:
        raise ContentError("Frontmatter slug must match filename", path=path)

    preview_md, body_md = split_preview(body)
    return ArticleWrite(
        lang=lang,
        slug=slug,
        title=title,
        description=description,
        date=published,
        tags=_tags(frontmatter.get("tags")),
        preview_md=preview_md,
        body_md=body_md,
        reading_time_minutes=estimate_reading_minutes(body_md),
        tier=_tier(frontmatter.get("tier")),
        draft=bool(frontmatter.get("draft")),
        updated_at=_date_text(frontmatter.get("updatedAt")) or None,
        translation_key=_text(frontmatter.get("translationKey")) or None,
        cover=_text(frontmatter.get("cover")) or None,
    )


def split_frontmatter(raw: str, *, path: Path) -> tuple[dict[str, Any], str]:
    normalized = raw.replace("\r\n", "\n")
    if not normalized.startswith("---\n"):
        raise ContentError("Missing frontmatter block", path=path)
    parts = normalized[len("---\n") :].split("\n---\n", maxsplit=1)
    if len(parts) != 2:
        raise ContentError("Unterminated frontmatter block", path=path)

    block, body = parts
    try:
        parsed = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise ContentError(f"Invalid YAML frontmatter ({exc})", path=path) from exc
    if parsed is None:
        return {}, body
    if not isinstance(parsed, dict):
        raise ContentError("Frontmatter must be a mapping", path=path)
    return {str(key): value for key, value in cast(dict[object, Any], parsed).items()}, body


def split_preview(body: str) -> tuple[str, str]:
    full = body.strip()
    if PREVIEW_MARKER in full:
        head, _, tail = full.partition(PREVIEW_MARKER)
        return head.strip(), f"{head.strip()}\n\n{tail.strip()}".strip()
    first_paragraph = full.split("\n\n", maxsplit=1)[0]
    return first_paragraph.strip(), full


def estimate_reading_minutes(text: str) -> int:
    words = len(_WORD_PATTERN.findall(text))
    return max(1, round(words / WORDS_PER_MINUTE))


def iter_article_files(content_dir: Path, locale: str) -> list[Path]:
    articles_dir = content_dir / locale / "articles"
    if not articles_dir.is_dir():
        return []
    return sorted(
        path
        for path in articles_dir.iterdir()
        if path.is_file() and path.suffix in CONTENT_SUFFIXES and not path.name.startswith("_")
    )


def import_content(
    content_dir: Path,
    *,
    locales: Sequence[str],
    article_repository: ArticleRepository,
) -> ImportSummary:
    """Load every locale's article files, then upsert them on (lang, slug).

    All files are parsed before anything is written, so one invalid file
    aborts the import without a partial publish.
    """
    loaded: list[ArticleWrite] = []
    for locale in locales:
        for path in iter_article_files(content_dir, locale):
            loaded.append(load_article_file(path, locale=locale, locales=locales))

    created = 0
    updated = 0
    for article in loaded:
        saved, was_created = article_repository.save_article(article)
        if was_created:
            created += 1
        else:
            updated += 1
        LOGGER.debug(
            "article imported lang=%s slug=%s article_id=%s created=%s",
            saved.lang,
            saved.slug,
            saved.article_id,
            was_created,
        )

    LOGGER.info("content import finished created=%s updated=%s", created, updated)
    return ImportSummary(created=created, updated=updated)


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _date_text(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _text(value)


def _tags(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    tags: list[str] = []
    for item in cast(list[object], value):
        tag = _text(item)
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _tier(value: object) -> ArticleTier:
    if _text(value).lower() == ARTICLE_TIER_PREMIUM:
        return ARTICLE_TIER_PREMIUM
    return ARTICLE_TIER_FREE
