from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from folio.app.config import AppSettings
from folio.app.dependencies import (
    get_bookmark_service,
    get_reader_service,
    get_session,
    get_session_repository,
    get_settings,
)
from folio.app.models.site_contracts import (
    AccountResponse,
    ArticleCardModel,
    ArticleListResponse,
    ArticlePageResponse,
    BookmarkToggleResponse,
    ErrorResponse,
    TagArticlesResponse,
    TagCountModel,
    TagListResponse,
)
from folio.app.repositories.session_repository import SessionRepository
from folio.app.services.bookmarks import (
    ArticleReference,
    BookmarkToggleService,
    InvalidReferenceError,
    UnauthorizedError,
)
from folio.app.services.reader import ReaderService
from folio.app.services.session import Session

LOGGER = logging.getLogger("folio.api")

router = APIRouter()

SEE_OTHER = 303


def safe_lang(raw: object, settings: AppSettings) -> str:
    if isinstance(raw, str) and raw.strip() in settings.locales:
        return raw.strip()
    return settings.default_locale


def safe_next(raw: object, *, fallback: str) -> str:
    """Accept only same-site absolute paths as redirect targets."""
    if not isinstance(raw, str):
        return fallback
    candidate = raw.strip()
    if not candidate.startswith("/") or candidate.startswith("//"):
        return fallback
    return candidate


def wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("Accept", "").lower()


def login_redirect(lang: str, next_path: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"/{lang}/login?next={quote(next_path, safe='/')}",
        status_code=SEE_OTHER,
    )


@router.get(
    "/{lang}/articles",
    response_model=ArticleListResponse,
    tags=["articles"],
    operation_id="list_articles",
)
def list_articles(
    lang: str,
    reader: Annotated[ReaderService, Depends(get_reader_service)],
    tags: Annotated[str | None, Query()] = None,
    tag: Annotated[str | None, Query()] = None,
) -> ArticleListResponse:
    listing = reader.list_articles(lang, tags if tags is not None else tag)
    return ArticleListResponse.from_listing(listing)


@router.get(
    "/{lang}/articles/{slug}",
    response_model=ArticlePageResponse,
    tags=["articles"],
    operation_id="get_article",
)
def get_article(
    lang: str,
    slug: str,
    reader: Annotated[ReaderService, Depends(get_reader_service)],
    session: Annotated[Session, Depends(get_session)],
) -> ArticlePageResponse:
    return ArticlePageResponse.from_page(reader.article_page(session, lang, slug))


@router.get(
    "/{lang}/tags",
    response_model=TagListResponse,
    tags=["tags"],
    operation_id="list_tags",
)
def list_tags(
    lang: str,
    reader: Annotated[ReaderService, Depends(get_reader_service)],
) -> TagListResponse:
    counts = reader.tag_counts(lang)
    return TagListResponse(lang=lang, tags=[TagCountModel.from_count(count) for count in counts])


@router.get(
    "/{lang}/tags/{tag}",
    response_model=TagArticlesResponse,
    tags=["tags"],
    operation_id="list_tag_articles",
)
def list_tag_articles(
    lang: str,
    tag: str,
    reader: Annotated[ReaderService, Depends(get_reader_service)],
) -> TagArticlesResponse:
    cards = reader.articles_for_tag(lang, tag)
    return TagArticlesResponse(
        lang=lang,
        tag=tag.strip(),
        articles=[ArticleCardModel.from_card(card) for card in cards],
    )


@router.get(
    "/{lang}/account",
    response_model=AccountResponse,
    responses={401: {"model": ErrorResponse}},
    tags=["account"],
    operation_id="get_account",
)
def get_account(
    lang: str,
    request: Request,
    reader: Annotated[ReaderService, Depends(get_reader_service)],
    session: Annotated[Session, Depends(get_session)],
) -> Response | AccountResponse:
    try:
        view = reader.account(session, lang)
    except UnauthorizedError:
        if wants_json(request):
            return JSONResponse(status_code=401, content={"error": "unauthorized"})
        return login_redirect(lang, f"/{lang}/account")
    return AccountResponse.from_view(view)


@router.post(
    "/api/bookmarks/toggle",
    response_model=BookmarkToggleResponse,
    responses={
        303: {"description": "Redirect back to `next` (or to login when anonymous)."},
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    tags=["bookmarks"],
    operation_id="toggle_bookmark",
    description=(
        "Flip the caller's bookmark on an article. With `Accept: application/json` the result "
        "is `{bookmarked}` plus the canonical `articleId`; otherwise the caller is redirected."
    ),
)
def toggle_bookmark(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_settings)],
    bookmarks: Annotated[BookmarkToggleService, Depends(get_bookmark_service)],
    session: Annotated[Session, Depends(get_session)],
    lang: Annotated[str | None, Form()] = None,
    article_id: Annotated[str | None, Form()] = None,
    translation_key: Annotated[str | None, Form()] = None,
    next_path_raw: Annotated[str | None, Form(alias="next")] = None,
) -> Response | BookmarkToggleResponse:
    resolved_lang = safe_lang(lang, settings)
    next_path = safe_next(next_path_raw, fallback=f"/{resolved_lang}/account")
    json_response = wants_json(request)

    try:
        state = bookmarks.toggle(
            session,
            ArticleReference.from_form(article_id, translation_key),
        )
    except UnauthorizedError:
        if json_response:
            return JSONResponse(status_code=401, content={"error": "unauthorized"})
        return login_redirect(resolved_lang, next_path)
    except InvalidReferenceError as exc:
        LOGGER.info("bookmark toggle rejected reason=%s", exc)
        if json_response:
            return JSONResponse(status_code=400, content={"error": "invalid_article_reference"})
        return RedirectResponse(url=next_path, status_code=SEE_OTHER)

    if json_response:
        return BookmarkToggleResponse(article_id=state.article_id, bookmarked=state.bookmarked)
    return RedirectResponse(url=next_path, status_code=SEE_OTHER)


@router.post(
    "/auth/logout",
    status_code=SEE_OTHER,
    response_class=RedirectResponse,
    tags=["auth"],
    operation_id="logout",
)
def logout(
    settings: Annotated[AppSettings, Depends(get_settings)],
    session: Annotated[Session, Depends(get_session)],
    session_repository: Annotated[SessionRepository, Depends(get_session_repository)],
    next_path_raw: Annotated[str | None, Query(alias="next")] = None,
) -> RedirectResponse:
    if session.token is not None:
        session_repository.revoke(session.token)
        LOGGER.info("session revoked on logout")
    response = RedirectResponse(
        url=safe_next(next_path_raw, fallback=f"/{settings.default_locale}/articles"),
        status_code=SEE_OTHER,
    )
    response.delete_cookie(settings.session_cookie_name)
    return response
