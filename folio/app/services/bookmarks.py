from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from folio.app.repositories.article_repository import ArticleCard, ArticleRepository
from folio.app.repositories.bookmark_repository import BookmarkExistsError, BookmarkRepository
from folio.app.services.canonical import CanonicalIdentityResolver
from folio.app.services.session import Session
from folio.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("folio.bookmarks")

ARTICLE_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class UnauthorizedError(Exception):
    """The action needs an authenticated session."""


class InvalidReferenceError(ValueError):
    """The article reference does not resolve to a known article identity."""


@dataclass(frozen=True)
class ArticleReference:
    article_id: str | None = None
    translation_key: str | None = None

    @classmethod
    def from_form(cls, article_id: object, translation_key: object) -> ArticleReference:
        return cls(
            article_id=_normalize_optional_text(article_id),
            translation_key=_normalize_optional_text(translation_key),
        )


@dataclass(frozen=True)
class BookmarkState:
    article_id: str
    bookmarked: bool


class BookmarkToggleService:
    def __init__(
        self,
        *,
        bookmark_repository: BookmarkRepository,
        article_repository: ArticleRepository,
        canonical_resolver: CanonicalIdentityResolver,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._bookmark_repository = bookmark_repository
        self._article_repository = article_repository
        self._canonical_resolver = canonical_resolver
        self._telemetry = telemetry if telemetry is not None else TelemetryClient()

    def toggle(self, session: Session, reference: ArticleReference) -> BookmarkState:
        if session.user_id is None:
            raise UnauthorizedError("sign in to manage bookmarks")
        user_id = session.user_id

        canonical_id = self.resolve_reference(reference)

        # A failed existence check aborts the toggle; only the insert race is absorbed.
        if self._bookmark_repository.exists(user_id, canonical_id):
            self._bookmark_repository.delete(user_id, canonical_id)
            state = BookmarkState(article_id=canonical_id, bookmarked=False)
        else:
            try:
                self._bookmark_repository.insert(user_id, canonical_id)
            except BookmarkExistsError:
                LOGGER.info(
                    "concurrent bookmark insert absorbed article_id=%s",
                    canonical_id,
                )
            state = BookmarkState(article_id=canonical_id, bookmarked=True)

        LOGGER.info(
            "bookmark toggled article_id=%s bookmarked=%s",
            canonical_id,
            state.bookmarked,
        )
        self._telemetry.emit(
            "bookmark.toggle",
            article_id=canonical_id,
            bookmarked=state.bookmarked,
            via_translation_key=reference.translation_key is not None,
        )
        return state

    def resolve_reference(self, reference: ArticleReference) -> str:
        if reference.translation_key:
            canonical = self._canonical_resolver.canonical_variant(reference.translation_key)
            if canonical is not None:
                return canonical.article_id

        article_id = reference.article_id
        if article_id is None or ARTICLE_ID_PATTERN.fullmatch(article_id) is None:
            raise InvalidReferenceError("article reference is not a valid identity")

        article = self._article_repository.get_by_id(article_id.lower())
        if article is None:
            raise InvalidReferenceError("article reference does not name a known article")
        return self._canonical_resolver.canonical_id(article)

    def is_bookmarked(self, session: Session, canonical_id: str) -> bool:
        if session.user_id is None:
            return False
        return self._bookmark_repository.exists(session.user_id, canonical_id)

    def bookmarked_cards(self, session: Session, lang: str) -> list[ArticleCard]:
        """Bookmarks of the caller shown in ``lang`` where a translation exists."""
        if session.user_id is None:
            raise UnauthorizedError("sign in to see bookmarks")

        cards: list[ArticleCard] = []
        for bookmark in self._bookmark_repository.list_for_user(session.user_id):
            article = self._article_repository.get_by_id(bookmark.article_id)
            if article is None:
                continue
            if article.lang != lang and article.translation_key:
                localized = self._article_repository.find_published_variant(
                    lang,
                    article.translation_key,
                )
                if localized is not None:
                    article = localized
            cards.append(self._article_repository.to_card(article))
        return cards


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None
