from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from folio.app.repositories.article_repository import Article, ArticleCard, ArticleRepository
from folio.app.services.access import AccessDecisionEngine, VisibleContent
from folio.app.services.bookmarks import BookmarkToggleService, UnauthorizedError
from folio.app.services.canonical import CanonicalIdentityResolver
from folio.app.services.entitlements import EntitlementResolver, Plan
from folio.app.services.session import Session
from folio.app.services.tag_index import (
    TAG_PATTERN,
    TagCount,
    TagFacet,
    TagIndex,
    build_facets,
    filter_by_tags,
    normalize_tag,
    parse_tag_query,
)
from folio.app.telemetry import TelemetryClient

SLUG_PATTERN = TAG_PATTERN


class ArticleNotFoundError(LookupError):
    """No such locale, article or tag; rendered as a 404."""


@dataclass(frozen=True)
class ArticleListing:
    lang: str
    articles: list[ArticleCard]
    facets: list[TagFacet]
    selected_tags: list[str]


@dataclass(frozen=True)
class ArticlePage:
    article: Article
    canonical_id: str
    canonical_url: str
    cover_url: str | None
    alternates: dict[str, str]
    content: VisibleContent
    bookmarked: bool
    authenticated: bool


@dataclass(frozen=True)
class AccountView:
    user_id: str
    plan: Plan
    bookmarks: list[ArticleCard]


class ReaderService:
    """Page-level composition of the article, tag, access and bookmark rules."""

    def __init__(
        self,
        *,
        locales: Sequence[str],
        article_repository: ArticleRepository,
        tag_index: TagIndex,
        canonical_resolver: CanonicalIdentityResolver,
        access_engine: AccessDecisionEngine,
        entitlement_resolver: EntitlementResolver,
        bookmark_service: BookmarkToggleService,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._locales = tuple(locales)
        self._article_repository = article_repository
        self._tag_index = tag_index
        self._canonical_resolver = canonical_resolver
        self._access_engine = access_engine
        self._entitlement_resolver = entitlement_resolver
        self._bookmark_service = bookmark_service
        self._telemetry = telemetry if telemetry is not None else TelemetryClient()

    def is_locale(self, value: str | None) -> bool:
        return value is not None and value in self._locales

    def list_articles(self, lang: str, tags_query: str | None = None) -> ArticleListing:
        self._require_locale(lang)
        selected = parse_tag_query(tags_query)
        articles = self._article_repository.list_published(lang)
        visible = filter_by_tags(articles, selected)
        return ArticleListing(
            lang=lang,
            articles=visible,
            facets=build_facets(articles, visible, selected),
            selected_tags=selected,
        )

    def tag_counts(self, lang: str) -> list[TagCount]:
        self._require_locale(lang)
        return self._tag_index.tag_counts(lang)

    def articles_for_tag(self, lang: str, raw_tag: str) -> list[ArticleCard]:
        self._require_locale(lang)
        tag = normalize_tag(raw_tag)
        if tag is None:
            raise ArticleNotFoundError(f"unknown tag: {raw_tag!r}")
        articles = self._tag_index.articles_with_tags(lang, [tag])
        if not articles:
            raise ArticleNotFoundError(f"unknown tag: {tag}")
        return articles

    def article_page(self, session: Session, lang: str, slug: str) -> ArticlePage:
        self._require_locale(lang)
        if SLUG_PATTERN.fullmatch(slug) is None:
            raise ArticleNotFoundError(f"malformed slug: {slug!r}")

        article = self._article_repository.get_by_exact_key(lang, slug)
        if article is None:
            raise ArticleNotFoundError(f"no article {lang}/{slug}")

        canonical_id = self._canonical_resolver.canonical_id(article)
        content = self._access_engine.visible_content(session, article)
        bookmarked = self._bookmark_service.is_bookmarked(session, canonical_id)

        self._telemetry.emit(
            "article.view",
            lang=lang,
            slug=slug,
            decision=content.decision.kind,
            reason=content.decision.reason,
            authenticated=session.is_authenticated,
        )
        return ArticlePage(
            article=article,
            canonical_id=canonical_id,
            canonical_url=self._article_repository.article_url(lang, slug),
            cover_url=self._article_repository.cover_url(article.cover),
            alternates=self._alternates(article),
            content=content,
            bookmarked=bookmarked,
            authenticated=session.is_authenticated,
        )

    def account(self, session: Session, lang: str) -> AccountView:
        self._require_locale(lang)
        if session.user_id is None:
            raise UnauthorizedError("sign in to see the account page")
        return AccountView(
            user_id=session.user_id,
            plan=self._entitlement_resolver.plan_for(session),
            bookmarks=self._bookmark_service.bookmarked_cards(session, lang),
        )

    def _alternates(self, article: Article) -> dict[str, str]:
        alternates = {article.lang: self._article_repository.article_url(article.lang, article.slug)}
        if not article.translation_key:
            return alternates
        for variant in self._article_repository.list_published_variants(article.translation_key):
            if variant.lang in self._locales and variant.lang not in alternates:
                alternates[variant.lang] = self._article_repository.article_url(
                    variant.lang,
                    variant.slug,
                )
        return dict(sorted(alternates.items()))

    def _require_locale(self, lang: str) -> None:
        if not self.is_locale(lang):
            raise ArticleNotFoundError(f"unknown locale: {lang!r}")
