"""
Analytics tracking: best-effort, at-most-once, no retry.

An event goes to the analytics table once. If that write fails, or no
database is configured, the event is appended to a backup list in the
key-value store instead. Nothing here raises to the caller.
"""

from collections import Counter
from typing import Any

from pydantic import ValidationError

from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.analytics_domain import (
    BUY_NOW_CLICKED,
    FEEDBACK_SUBMITTED,
    PRICING_VIEWED,
    UPGRADE_CLICKED,
    AnalyticsEvent,
    UserInfo,
)
from hireflow.models.domain.base import utc_now
from hireflow.repositories.analytics_repository import AnalyticsRepository
from hireflow.services.kv_store import KeyValueStore, KeyValueStoreError

logger = get_logger(__name__)

ANALYTICS_BACKUP_KEY = "hireflow_analytics_backup"
BACKUP_MAX_EVENTS = 1000


def backup_key(user_id: str | None = None) -> str:
    return f"{ANALYTICS_BACKUP_KEY}_{user_id}" if user_id else ANALYTICS_BACKUP_KEY


class AnalyticsTracker:
    def __init__(self, kv: KeyValueStore, repository: AnalyticsRepository | None = None):
        self.kv = kv
        self.repository = repository

    async def track(
        self,
        event_type: str,
        event_data: dict[str, Any] | None = None,
        user_info: UserInfo | None = None,
        *,
        currency: str | None = None,
        session_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        """Record an event. Returns True when it reached the database."""
        event = AnalyticsEvent(
            event_type=event_type,
            event_data=event_data or {},
            user_info=user_info,
            timestamp=utc_now(),
            currency=currency,
            session_id=session_id,
        )
        return await self.record(event, ip_address=ip_address, user_agent=user_agent)

    async def record(
        self,
        event: AnalyticsEvent,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        if self.repository is not None:
            try:
                await self.repository.insert_event(event, ip_address, user_agent)
                return True
            except Exception as e:
                logger.warning(
                    "Analytics write failed, keeping local backup",
                    event_type=event.event_type,
                    error=str(e),
                )
        else:
            logger.info("Analytics event logged (dev mode)", event_type=event.event_type)

        await self._backup(event)
        return False

    async def _backup(self, event: AnalyticsEvent) -> None:
        user_id = event.user_info.id if event.user_info else None
        try:
            await self.kv.push_json(backup_key(user_id), event.to_json_dict(), max_items=BACKUP_MAX_EVENTS)
        except KeyValueStoreError as e:
            logger.error("Analytics backup failed, event dropped", event_type=event.event_type, error=str(e))

    async def local_events(self, user_id: str | None = None) -> list[AnalyticsEvent]:
        events = []
        for raw in await self.kv.list_json(backup_key(user_id)):
            try:
                events.append(AnalyticsEvent.model_validate(raw))
            except ValidationError:
                logger.warning("Skipping malformed backup event")
        return events

    async def local_conversion_funnel(self, user_id: str | None = None) -> dict[str, int]:
        counts = Counter(e.event_type for e in await self.local_events(user_id))
        return {
            "upgradeClicks": counts[UPGRADE_CLICKED],
            "pricingViews": counts[PRICING_VIEWED],
            "buyNowClicks": counts[BUY_NOW_CLICKED],
            "feedbackSubmissions": counts[FEEDBACK_SUBMITTED],
        }

    async def clear_local(self, user_id: str | None = None) -> None:
        await self.kv.delete(backup_key(user_id))
        logger.info("Local analytics backup cleared", user_id=user_id)
