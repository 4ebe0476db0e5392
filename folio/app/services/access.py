from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from folio.app.repositories.article_repository import (
    ARTICLE_TIER_PREMIUM,
    Article,
    ArticleRepository,
    ArticleTier,
)
from folio.app.services.entitlements import PLAN_PREMIUM, EntitlementResolver, Plan
from folio.app.services.session import Session, SessionState

LOGGER = logging.getLogger("folio.access")

PreviewReason = Literal["sign_in_required", "subscription_required"]

REASON_SIGN_IN_REQUIRED: PreviewReason = "sign_in_required"
REASON_SUBSCRIPTION_REQUIRED: PreviewReason = "subscription_required"


@dataclass(frozen=True)
class AccessDecision:
    full_body: bool
    reason: PreviewReason | None = None

    @classmethod
    def grant(cls) -> AccessDecision:
        return cls(full_body=True)

    @classmethod
    def preview(cls, reason: PreviewReason | None) -> AccessDecision:
        return cls(full_body=False, reason=reason)

    @property
    def kind(self) -> Literal["full_body", "preview_only"]:
        return "full_body" if self.full_body else "preview_only"


@dataclass(frozen=True)
class VisibleContent:
    decision: AccessDecision
    body_md: str
    plan: Plan


def decide_access(
    session_state: SessionState,
    article_tier: ArticleTier,
    caller_plan: Plan,
) -> AccessDecision:
    if session_state == "anonymous":
        return AccessDecision.preview(REASON_SIGN_IN_REQUIRED)
    if article_tier != ARTICLE_TIER_PREMIUM:
        return AccessDecision.grant()
    if caller_plan == PLAN_PREMIUM:
        return AccessDecision.grant()
    return AccessDecision.preview(REASON_SUBSCRIPTION_REQUIRED)


class AccessDecisionEngine:
    def __init__(
        self,
        *,
        article_repository: ArticleRepository,
        entitlement_resolver: EntitlementResolver,
    ) -> None:
        self._article_repository = article_repository
        self._entitlement_resolver = entitlement_resolver

    def visible_content(self, session: Session, article: Article) -> VisibleContent:
        plan = self._entitlement_resolver.plan_for(session)
        decision = decide_access(session.state, article.tier, plan)
        if not decision.full_body:
            return VisibleContent(decision=decision, body_md=article.preview_md, plan=plan)

        body = self._article_repository.get_body(article.article_id)
        if body is None:
            LOGGER.info(
                "full body missing; serving preview article_id=%s",
                article.article_id,
            )
            return VisibleContent(
                decision=AccessDecision.preview(None),
                body_md=article.preview_md,
                plan=plan,
            )
        return VisibleContent(decision=decision, body_md=body, plan=plan)
