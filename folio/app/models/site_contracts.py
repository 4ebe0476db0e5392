from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from folio.app.repositories.article_repository import ArticleCard, ArticleTier
from folio.app.services.access import PreviewReason
from folio.app.services.entitlements import Plan
from folio.app.services.reader import AccountView, ArticleListing, ArticlePage
from folio.app.services.tag_index import TagCount, TagFacet

AccessDecisionKind = Literal["full_body", "preview_only"]


class _Contract(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class HealthResponse(_Contract):
    status: Literal["ok"] = "ok"


class ErrorResponse(_Contract):
    error: str


class ArticleCardModel(_Contract):
    article_id: str
    lang: str
    slug: str
    title: str
    description: str
    date: str
    updated_at: str | None = None
    tags: list[str]
    tier: ArticleTier
    translation_key: str | None = None
    reading_time_minutes: int
    url: str

    @classmethod
    def from_card(cls, card: ArticleCard) -> ArticleCardModel:
        return cls(
            article_id=card.article_id,
            lang=card.lang,
            slug=card.slug,
            title=card.title,
            description=card.description,
            date=card.date,
            updated_at=card.updated_at,
            tags=list(card.tags),
            tier=card.tier,
            translation_key=card.translation_key,
            reading_time_minutes=card.reading_time_minutes,
            url=card.url,
        )


class TagFacetModel(_Contract):
    tag: str
    count: int
    selected: bool

    @classmethod
    def from_facet(cls, facet: TagFacet) -> TagFacetModel:
        return cls(tag=facet.tag, count=facet.count, selected=facet.selected)


class TagCountModel(_Contract):
    tag: str
    count: int

    @classmethod
    def from_count(cls, count: TagCount) -> TagCountModel:
        return cls(tag=count.tag, count=count.count)


class ArticleListResponse(_Contract):
    lang: str
    selected_tags: list[str]
    articles: list[ArticleCardModel]
    facets: list[TagFacetModel]

    @classmethod
    def from_listing(cls, listing: ArticleListing) -> ArticleListResponse:
        return cls(
            lang=listing.lang,
            selected_tags=list(listing.selected_tags),
            articles=[ArticleCardModel.from_card(card) for card in listing.articles],
            facets=[TagFacetModel.from_facet(facet) for facet in listing.facets],
        )


class TagListResponse(_Contract):
    lang: str
    tags: list[TagCountModel]


class TagArticlesResponse(_Contract):
    lang: str
    tag: str
    articles: list[ArticleCardModel]


class AccessBlock(_Contract):
    decision: AccessDecisionKind
    reason: PreviewReason | None = None
    plan: Plan


class BookmarkBlock(_Contract):
    canonical_article_id: str
    translation_key: str | None = None
    bookmarked: bool
    authenticated: bool


class ArticlePageResponse(_Contract):
    article_id: str
    lang: str
    slug: str
    title: str
    description: str
    date: str
    updated_at: str | None = None
    tags: list[str]
    tier: ArticleTier
    reading_time_minutes: int
    canonical_url: str
    cover_url: str | None = None
    alternates: dict[str, str]
    body_md: str
    access: AccessBlock
    bookmark: BookmarkBlock

    @classmethod
    def from_page(cls, page: ArticlePage) -> ArticlePageResponse:
        article = page.article
        return cls(
            article_id=article.article_id,
            lang=article.lang,
            slug=article.slug,
            title=article.title,
            description=article.description,
            date=article.date,
            updated_at=article.updated_at,
            tags=list(article.tags),
            tier=article.tier,
            reading_time_minutes=article.reading_time_minutes,
            canonical_url=page.canonical_url,
            cover_url=page.cover_url,
            alternates=dict(page.alternates),
            body_md=page.content.body_md,
            access=AccessBlock(
                decision=page.content.decision.kind,
                reason=page.content.decision.reason,
                plan=page.content.plan,
            ),
            bookmark=BookmarkBlock(
                canonical_article_id=page.canonical_id,
                translation_key=article.translation_key,
                bookmarked=page.bookmarked,
                authenticated=page.authenticated,
            ),
        )


class AccountResponse(_Contract):
    user_id: str
    plan: Plan
    bookmarks: list[ArticleCardModel]

    @classmethod
    def from_view(cls, view: AccountView) -> AccountResponse:
        return cls(
            user_id=view.user_id,
            plan=view.plan,
            bookmarks=[ArticleCardModel.from_card(card) for card in view.bookmarks],
        )


class BookmarkToggleResponse(_Contract):
    article_id: str = Field(
        description="Canonical article id the bookmark is stored under; shared by all translations.",
    )
    bookmarked: bool = Field(description="Bookmark state after the toggle.")
