from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from folio.app.config import AppSettings, load_settings
from folio.app.repositories.article_repository import ArticleRepository
from folio.app.repositories.bookmark_repository import BookmarkRepository
from folio.app.repositories.database import Database
from folio.app.repositories.entitlement_repository import EntitlementRepository
from folio.app.repositories.session_repository import SessionRepository
from folio.app.services.access import AccessDecisionEngine
from folio.app.services.bookmarks import BookmarkToggleService
from folio.app.services.canonical import CanonicalIdentityResolver
from folio.app.services.entitlements import EntitlementResolver
from folio.app.services.reader import ReaderService
from folio.app.services.session import Session
from folio.app.services.tag_index import TagIndex
from folio.app.telemetry import TelemetryClient, build_telemetry_client

LOGGER = logging.getLogger("folio.auth")

_BEARER_PREFIX = "bearer "


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_article_repository() -> ArticleRepository:
    return ArticleRepository(get_database(), get_settings().repository_settings())


@lru_cache(maxsize=1)
def get_entitlement_repository() -> EntitlementRepository:
    return EntitlementRepository(get_database())


@lru_cache(maxsize=1)
def get_session_repository() -> SessionRepository:
    return SessionRepository(get_database())


@lru_cache(maxsize=1)
def get_bookmark_service() -> BookmarkToggleService:
    article_repository = get_article_repository()
    return BookmarkToggleService(
        bookmark_repository=BookmarkRepository(get_database()),
        article_repository=article_repository,
        canonical_resolver=_canonical_resolver(article_repository),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_reader_service() -> ReaderService:
    settings = get_settings()
    article_repository = get_article_repository()
    entitlement_resolver = EntitlementResolver(get_entitlement_repository())
    return ReaderService(
        locales=settings.locales,
        article_repository=article_repository,
        tag_index=TagIndex(article_repository),
        canonical_resolver=_canonical_resolver(article_repository),
        access_engine=AccessDecisionEngine(
            article_repository=article_repository,
            entitlement_resolver=entitlement_resolver,
        ),
        entitlement_resolver=entitlement_resolver,
        bookmark_service=get_bookmark_service(),
        telemetry=get_telemetry(),
    )


def get_session_token(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    cookie_token = request.cookies.get(settings.session_cookie_name, "").strip()
    return cookie_token or None


def get_session(
    token: Annotated[str | None, Depends(get_session_token)],
    session_repository: Annotated[SessionRepository, Depends(get_session_repository)],
) -> Session:
    """Resolve the caller; unknown or revoked tokens are anonymous, store errors propagate."""
    if token is None:
        return Session.anonymous()
    user_id = session_repository.resolve_user_id(token)
    if user_id is None:
        LOGGER.debug("session token not recognized token_suffix=%s", token[-4:])
        return Session.anonymous()
    return Session.for_user(user_id, token=token)


def reset_cached_dependencies() -> None:
    get_reader_service.cache_clear()
    get_bookmark_service.cache_clear()
    get_session_repository.cache_clear()
    get_entitlement_repository.cache_clear()
    get_article_repository.cache_clear()
    get_telemetry.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()


def _canonical_resolver(article_repository: ArticleRepository) -> CanonicalIdentityResolver:
    return CanonicalIdentityResolver(
        article_repository,
        canonical_locale=get_settings().canonical_locale,
    )
