"""
Pricing-page and dashboard feedback.

Feedback is written to the key-value store first, then offered once to the
user_feedback table. A failed database write is logged and not retried.
"""

import re
import secrets
import string
import time
from collections import Counter

from pydantic import ValidationError

from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.analytics_domain import FeedbackResponses, UserFeedback, UserInfo
from hireflow.models.domain.base import utc_now
from hireflow.repositories.analytics_repository import AnalyticsRepository
from hireflow.services.kv_store import KeyValueStore, KeyValueStoreError

logger = get_logger(__name__)

FEEDBACK_KEY = "hireflow_user_feedback"
FEEDBACK_MAX_ITEMS = 500
_BASE36 = string.digits + string.ascii_lowercase
_FEATURE_SPLIT = re.compile(r"[,\s]+")


def feedback_key(user_id: str | None = None) -> str:
    return f"{FEEDBACK_KEY}_{user_id}" if user_id else FEEDBACK_KEY


def _feedback_id() -> str:
    return f"feedback_{int(time.time() * 1000)}_{''.join(secrets.choice(_BASE36) for _ in range(9))}"


class FeedbackService:
    def __init__(self, kv: KeyValueStore, repository: AnalyticsRepository | None = None):
        self.kv = kv
        self.repository = repository

    async def submit(
        self,
        responses: FeedbackResponses,
        user_info: UserInfo | None = None,
        source: str = "pricing_page",
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserFeedback:
        feedback = UserFeedback(
            id=_feedback_id(),
            user_id=user_info.id if user_info else None,
            user_email=user_info.email if user_info else None,
            user_name=user_info.name if user_info else None,
            timestamp=utc_now(),
            responses=responses,
            source=source,
        )

        try:
            await self.kv.push_json(
                feedback_key(feedback.user_id), feedback.to_json_dict(), max_items=FEEDBACK_MAX_ITEMS
            )
        except KeyValueStoreError as e:
            logger.error("Feedback local write failed", feedback_id=feedback.id, error=str(e))

        if self.repository is not None:
            try:
                await self.repository.insert_feedback(
                    responses.model_dump(by_alias=True, exclude_none=True),
                    feedback.timestamp,
                    user_name=feedback.user_name,
                    user_email=feedback.user_email,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            except Exception as e:
                logger.warning("Feedback database write failed", feedback_id=feedback.id, error=str(e))

        logger.info("Feedback submitted", feedback_id=feedback.id, source=source)
        return feedback

    async def all_feedback(self, user_id: str | None = None) -> list[UserFeedback]:
        items = []
        for raw in await self.kv.list_json(feedback_key(user_id)):
            try:
                items.append(UserFeedback.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed feedback record")
        return items

    async def stats(self, user_id: str | None = None) -> dict:
        feedback = await self.all_feedback(user_id)

        sources = Counter(f.source for f in feedback)
        willing_to_pay = Counter(f.responses.willing_to_pay for f in feedback if f.responses.willing_to_pay)
        features: Counter[str] = Counter()
        for f in feedback:
            if f.responses.most_important_features:
                words = _FEATURE_SPLIT.split(f.responses.most_important_features.lower())
                features.update(word for word in words if len(word) > 3)

        return {
            "totalSubmissions": len(feedback),
            "sources": dict(sources),
            "willingToPayBreakdown": dict(willing_to_pay),
            "topFeatures": dict(features),
        }
