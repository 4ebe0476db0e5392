from __future__ import annotations

import logging

from folio.app.repositories.article_repository import Article, ArticleRepository
from folio.app.repositories.common import StoreError

LOGGER = logging.getLogger("folio.canonical")


class CanonicalIdentityResolver:
    """Maps any language variant to the id bookmarks attach to.

    The variant published in ``canonical_locale`` under the same translation
    key is the identity of record. A missing translation key, a lookup
    failure, or a missing/unpublished canonical variant all resolve to the
    article's own id; bookmarks on that translation simply stay separate
    until the link is repaired.
    """

    def __init__(self, article_repository: ArticleRepository, *, canonical_locale: str) -> None:
        self._article_repository = article_repository
        self._canonical_locale = canonical_locale

    def canonical_id(self, article: Article) -> str:
        translation_key = (article.translation_key or "").strip()
        if not translation_key:
            return article.article_id

        canonical = self.canonical_variant(translation_key)
        if canonical is None:
            LOGGER.warning(
                "canonical variant unavailable; falling back to self "
                "article_id=%s translation_key=%s canonical_locale=%s",
                article.article_id,
                translation_key,
                self._canonical_locale,
            )
            return article.article_id
        return canonical.article_id

    def canonical_variant(self, translation_key: str) -> Article | None:
        normalized = translation_key.strip()
        if not normalized:
            return None
        try:
            return self._article_repository.find_published_variant(
                self._canonical_locale,
                normalized,
            )
        except StoreError:
            LOGGER.warning(
                "canonical lookup failed translation_key=%s",
                normalized,
                exc_info=True,
            )
            return None
