from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import SeededSite, build_article, seed_site
from folio.app.repositories.article_repository import Article
from folio.app.repositories.bookmark_repository import (
    BookmarkExistsError,
    BookmarkRepository,
)
from folio.app.repositories.common import StoreError
from folio.app.services.bookmarks import (
    ArticleReference,
    BookmarkToggleService,
    InvalidReferenceError,
    UnauthorizedError,
)
from folio.app.services.canonical import CanonicalIdentityResolver
from folio.app.services.session import Session

READER = Session.for_user("reader-1")


@pytest.fixture
def seeded(tmp_path: Path) -> SeededSite:
    return seed_site(tmp_path / "state.db")


def _service(
    seeded: SeededSite,
    *,
    bookmark_repository: BookmarkRepository | None = None,
) -> BookmarkToggleService:
    return BookmarkToggleService(
        bookmark_repository=bookmark_repository or BookmarkRepository(seeded.database),
        article_repository=seeded.articles,
        canonical_resolver=CanonicalIdentityResolver(seeded.articles, canonical_locale="ru"),
    )


def test_canonical_id_prefers_canonical_locale_variant(seeded: SeededSite) -> None:
    resolver = CanonicalIdentityResolver(seeded.articles, canonical_locale="ru")

    assert resolver.canonical_id(seeded.intro_en) == seeded.intro_ru.article_id
    assert resolver.canonical_id(seeded.intro_ru) == seeded.intro_ru.article_id


def test_canonical_id_falls_back_to_self_and_warns(
    seeded: SeededSite,
    caplog: pytest.LogCaptureFixture,
) -> None:
    resolver = CanonicalIdentityResolver(seeded.articles, canonical_locale="ru")

    with caplog.at_level(logging.WARNING, logger="folio.canonical"):
        assert resolver.canonical_id(seeded.orphan_en) == seeded.orphan_en.article_id

    assert any("falling back to self" in record.getMessage() for record in caplog.records)


def test_canonical_id_is_idempotent(seeded: SeededSite) -> None:
    resolver = CanonicalIdentityResolver(seeded.articles, canonical_locale="ru")

    for article in (seeded.intro_en, seeded.guide_en, seeded.orphan_en):
        first = resolver.canonical_id(article)
        canonical = seeded.articles.get_by_id(first)
        assert canonical is not None
        assert resolver.canonical_id(canonical) == first


def test_canonical_id_without_translation_key_is_own_id(seeded: SeededSite) -> None:
    resolver = CanonicalIdentityResolver(seeded.articles, canonical_locale="ru")
    assert resolver.canonical_id(seeded.draft_ru) == seeded.draft_ru.article_id


def test_canonical_id_ignores_unpublished_canonical_variant(seeded: SeededSite) -> None:
    hidden_ru, _ = seeded.articles.save_article(
        build_article(lang="ru", slug="skrytaya", translation_key="hidden", draft=True)
    )
    visible_en, _ = seeded.articles.save_article(
        build_article(lang="en", slug="hidden", translation_key="hidden")
    )
    resolver = CanonicalIdentityResolver(seeded.articles, canonical_locale="ru")

    assert resolver.canonical_id(visible_en) == visible_en.article_id
    assert resolver.canonical_id(visible_en) != hidden_ru.article_id


def test_canonical_lookup_failure_falls_back_to_self(seeded: SeededSite) -> None:
    class _BrokenArticles:
        def find_published_variant(self, lang: str, translation_key: str) -> Article | None:
            raise StoreError("store offline")

    resolver = CanonicalIdentityResolver(
        _BrokenArticles(),  # type: ignore[arg-type]
        canonical_locale="ru",
    )
    assert resolver.canonical_id(seeded.intro_en) == seeded.intro_en.article_id


def test_toggle_twice_restores_original_state(seeded: SeededSite) -> None:
    service = _service(seeded)
    reference = ArticleReference(article_id=seeded.intro_ru.article_id)

    first = service.toggle(READER, reference)
    second = service.toggle(READER, reference)

    assert first.bookmarked is True
    assert second.bookmarked is False
    assert BookmarkRepository(seeded.database).list_for_user("reader-1") == []


def test_bookmark_from_english_variant_lands_on_russian_identity(seeded: SeededSite) -> None:
    service = _service(seeded)

    state = service.toggle(
        READER,
        ArticleReference(article_id=seeded.intro_en.article_id, translation_key="intro"),
    )

    assert state.article_id == seeded.intro_ru.article_id
    assert service.is_bookmarked(READER, seeded.intro_ru.article_id)

    # Toggling from the Russian page removes the same bookmark.
    removed = service.toggle(READER, ArticleReference(article_id=seeded.intro_ru.article_id))
    assert removed.bookmarked is False
    assert not service.is_bookmarked(READER, seeded.intro_ru.article_id)


def test_translation_key_alone_resolves_reference(seeded: SeededSite) -> None:
    state = _service(seeded).toggle(READER, ArticleReference(translation_key="guide"))
    assert state.article_id == seeded.guide_ru.article_id


def test_anonymous_toggle_is_unauthorized(seeded: SeededSite) -> None:
    with pytest.raises(UnauthorizedError):
        _service(seeded).toggle(
            Session.anonymous(),
            ArticleReference(article_id=seeded.intro_ru.article_id),
        )


@pytest.mark.parametrize(
    "reference",
    [
        ArticleReference(),
        ArticleReference(article_id="not-a-uuid"),
        ArticleReference(article_id="00000000-0000-4000-8000-000000000000"),
        ArticleReference(article_id="also-bad", translation_key="no-such-key"),
    ],
)
def test_unresolvable_reference_is_rejected(
    seeded: SeededSite,
    reference: ArticleReference,
) -> None:
    service = _service(seeded)

    with pytest.raises(InvalidReferenceError):
        service.toggle(READER, reference)
    assert BookmarkRepository(seeded.database).list_for_user("reader-1") == []


def test_insert_race_is_absorbed_as_bookmarked(seeded: SeededSite) -> None:
    class _RacingBookmarks(BookmarkRepository):
        def exists(self, user_id: str, article_id: str) -> bool:
            return False

        def insert(self, user_id: str, article_id: str) -> None:
            raise BookmarkExistsError(f"{user_id}:{article_id}")

    service = _service(seeded, bookmark_repository=_RacingBookmarks(seeded.database))
    state = service.toggle(READER, ArticleReference(article_id=seeded.intro_ru.article_id))

    assert state.bookmarked is True
    assert state.article_id == seeded.intro_ru.article_id


def test_duplicate_insert_raises_bookmark_exists(seeded: SeededSite) -> None:
    repository = BookmarkRepository(seeded.database)
    repository.insert("reader-1", seeded.intro_ru.article_id)

    with pytest.raises(BookmarkExistsError):
        repository.insert("reader-1", seeded.intro_ru.article_id)


def test_existence_check_failure_aborts_toggle(seeded: SeededSite) -> None:
    class _FailingBookmarks(BookmarkRepository):
        def exists(self, user_id: str, article_id: str) -> bool:
            raise StoreError("store offline")

    service = _service(seeded, bookmark_repository=_FailingBookmarks(seeded.database))
    with pytest.raises(StoreError):
        service.toggle(READER, ArticleReference(article_id=seeded.intro_ru.article_id))


def test_bookmarked_cards_follow_requested_locale(seeded: SeededSite) -> None:
    service = _service(seeded)
    service.toggle(READER, ArticleReference(article_id=seeded.intro_ru.article_id))
    service.toggle(READER, ArticleReference(article_id=seeded.orphan_en.article_id))

    english = service.bookmarked_cards(READER, "en")
    russian = service.bookmarked_cards(READER, "ru")

    assert [card.slug for card in english] == ["orphan", "introduction"]
    assert [card.slug for card in russian] == ["orphan", "vvedenie"]
    stored = BookmarkRepository(seeded.database).list_for_user("reader-1")
    assert [record.article_id for record in stored] == [
        seeded.orphan_en.article_id,
        seeded.intro_ru.article_id,
    ]


def test_bookmarked_cards_require_session(seeded: SeededSite) -> None:
    with pytest.raises(UnauthorizedError):
        _service(seeded).bookmarked_cards(Session.anonymous(), "ru")
