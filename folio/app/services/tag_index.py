from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar
from urllib.parse import unquote

from folio.app.repositories.article_repository import ArticleCard, ArticleRepository

TAG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class _Tagged(Protocol):
    @property
    def tags(self) -> tuple[str, ...]: ...


TaggedT = TypeVar("TaggedT", bound=_Tagged)


@dataclass(frozen=True)
class TagCount:
    tag: str
    count: int


@dataclass(frozen=True)
class TagFacet:
    tag: str
    count: int
    selected: bool


def normalize_tag(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if TAG_PATTERN.fullmatch(candidate) is None:
        return None
    return candidate


def parse_tag_query(raw: str | None) -> list[str]:
    """Parse a comma-joined tag query into sorted, unique, well-formed tokens.

    Tokens that do not match the tag pattern are dropped; the match is
    case-sensitive, so ``Foo`` is discarded rather than lowercased.
    """
    if raw is None:
        return []
    stripped = raw.strip()
    if not stripped:
        return []

    decoded = _safe_unquote(stripped)
    selected: set[str] = set()
    for part in decoded.split(","):
        tag = normalize_tag(part)
        if tag is not None:
            selected.add(tag)
    return sorted(selected)


def filter_by_tags(articles: Sequence[TaggedT], selected_tags: Iterable[str]) -> list[TaggedT]:
    selection = {tag for tag in (normalize_tag(value) for value in selected_tags) if tag}
    if not selection:
        return list(articles)
    return [article for article in articles if selection.issubset(article.tags)]


def count_tags(articles: Iterable[_Tagged]) -> list[TagCount]:
    counts: dict[str, int] = {}
    for article in articles:
        for tag in dict.fromkeys(article.tags):
            counts[tag] = counts.get(tag, 0) + 1
    return [TagCount(tag=tag, count=counts[tag]) for tag in sorted(counts)]


def build_facets(
    all_articles: Sequence[_Tagged],
    visible_articles: Sequence[_Tagged],
    selected_tags: Sequence[str],
) -> list[TagFacet]:
    visible_counts = {entry.tag: entry.count for entry in count_tags(visible_articles)}
    selected = set(selected_tags)
    facets: list[TagFacet] = []
    for entry in count_tags(all_articles):
        count = visible_counts.get(entry.tag, 0)
        is_selected = entry.tag in selected
        if is_selected or count > 0:
            facets.append(TagFacet(tag=entry.tag, count=count, selected=is_selected))
    return facets


class TagIndex:
    def __init__(self, article_repository: ArticleRepository) -> None:
        self._article_repository = article_repository

    def tag_counts(self, lang: str) -> list[TagCount]:
        return count_tags(self._article_repository.list_published(lang))

    def articles_with_tags(self, lang: str, selected_tags: Sequence[str]) -> list[ArticleCard]:
        return filter_by_tags(self._article_repository.list_published(lang), selected_tags)


def _safe_unquote(value: str) -> str:
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value
