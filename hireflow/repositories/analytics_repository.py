"""
Analytics and feedback persistence (analytics_events, user_feedback).

Query filters are composed with psycopg.sql and always bound as
parameters; nothing from the query string is spliced into SQL text.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from psycopg import sql
from psycopg.types.json import Jsonb

from hireflow.db.helpers import execute_query, fetch_all, fetch_one, fetch_val
from hireflow.db.pool import DatabasePoolManager
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.analytics_domain import PRICING_VIEWED, AnalyticsEvent

logger = get_logger(__name__)

RECENT_EVENTS_LIMIT = 50
DEFAULT_TOP_CURRENCY = "USD"
CONNECTION_TEST_EVENT = "test_connection"


@dataclass(frozen=True, slots=True)
class AnalyticsFilters:
    start_date: str | None = None
    end_date: str | None = None
    event_type: str | None = None
    user_id: str | None = None
    currency: str | None = None

    def where(self) -> tuple[sql.Composable, tuple]:
        """WHERE body and its parameters; TRUE when no filter is set."""
        clauses: list[sql.Composable] = [sql.SQL("TRUE")]
        params: list[Any] = []
        for column, value, operator in (
            ("timestamp", self.start_date, ">="),
            ("timestamp", self.end_date, "<="),
            ("event_type", self.event_type, "="),
            ("user_id", self.user_id, "="),
            ("currency", self.currency, "="),
        ):
            if value:
                clauses.append(sql.SQL("{} {} %s").format(sql.Identifier(column), sql.SQL(operator)))
                params.append(value)
        return sql.SQL(" AND ").join(clauses), tuple(params)

    def to_query_dict(self) -> dict[str, str]:
        names = {
            "start_date": "startDate",
            "end_date": "endDate",
            "event_type": "eventType",
            "user_id": "userId",
            "currency": "currency",
        }
        return {names[k]: v for k, v in asdict(self).items() if v}


# Returned by get-analytics when no database is configured
MOCK_ANALYTICS: dict[str, Any] = {
    "conversionFunnel": [
        {"event_type": "dashboard_viewed", "count": 25, "unique_users": 15, "unique_sessions": 18},
        {"event_type": "upgrade_button_clicked", "count": 18, "unique_users": 12, "unique_sessions": 14},
        {"event_type": "pricing_page_viewed", "count": 15, "unique_users": 10, "unique_sessions": 12},
        {"event_type": "buy_now_clicked", "count": 8, "unique_users": 6, "unique_sessions": 7},
        {"event_type": "feedback_submitted", "count": 3, "unique_users": 3, "unique_sessions": 3},
    ],
    "currencyStats": [
        {"currency": "USD", "count": 8},
        {"currency": "INR", "count": 4},
        {"currency": "EUR", "count": 2},
        {"currency": "GBP", "count": 1},
    ],
    "recentEvents": [
        {
            "id": 1,
            "event_type": "pricing_page_viewed",
            "event_data": {"source": "dashboard", "currency": "USD"},
            "user_email": None,
            "currency": "USD",
        },
    ],
    "summary": {
        "totalEvents": 69,
        "uniqueUsers": 15,
        "topEvent": "dashboard_viewed",
        "topCurrency": "USD",
    },
}


def summarize(funnel: list[dict[str, Any]], currency_stats: list[dict[str, Any]]) -> dict[str, Any]:
    """Headline numbers derived from the funnel and currency breakdown."""
    return {
        "totalEvents": sum(int(row["count"]) for row in funnel),
        "uniqueUsers": max((int(row["unique_users"] or 0) for row in funnel), default=0),
        "topEvent": funnel[0]["event_type"] if funnel else "none",
        "topCurrency": currency_stats[0]["currency"] if currency_stats else DEFAULT_TOP_CURRENCY,
    }


class AnalyticsRepository:
    def __init__(self, db: DatabasePoolManager):
        self.db = db

    async def probe(self) -> None:
        """SELECT 1; raises DatabaseError when the database is unreachable."""
        await fetch_val(self.db, "SELECT 1 AS test")

    async def insert_event(
        self,
        event: AnalyticsEvent,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Insert one event and return its id and stored timestamp."""
        row = await fetch_one(
            self.db,
            """
            INSERT INTO analytics_events (
                event_type, event_data, user_id, user_email, timestamp,
                ip_address, user_agent, currency, session_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id, timestamp
            """,
            (
                event.event_type,
                Jsonb(event.event_data),
                event.user_info.id if event.user_info else None,
                event.user_info.email if event.user_info else None,
                event.timestamp,
                ip_address,
                user_agent,
                event.currency,
                event.session_id,
            ),
        )
        logger.info("Analytics event stored", event_type=event.event_type, event_id=row["id"] if row else None)
        return row or {}

    async def insert_feedback(
        self,
        responses: dict[str, Any],
        timestamp: datetime,
        user_name: str | None = None,
        user_email: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        row = await fetch_one(
            self.db,
            """
            INSERT INTO user_feedback (user_name, user_email, responses, timestamp, ip_address, user_agent)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id, timestamp
            """,
            (user_name, user_email, Jsonb(responses), timestamp, ip_address, user_agent),
        )
        logger.info("Feedback stored", feedback_id=row["id"] if row else None)
        return row or {}

    async def conversion_funnel(self, filters: AnalyticsFilters) -> list[dict[str, Any]]:
        where, params = filters.where()
        query = sql.SQL(
            """
            SELECT
                event_type,
                COUNT(*) AS count,
                COUNT(DISTINCT user_id) AS unique_users,
                COUNT(DISTINCT session_id) AS unique_sessions
            FROM analytics_events
            WHERE {}
            GROUP BY event_type
            ORDER BY count DESC
            """
        ).format(where)
        return await fetch_all(self.db, query, params)

    async def currency_stats(self, filters: AnalyticsFilters) -> list[dict[str, Any]]:
        where, params = filters.where()
        query = sql.SQL(
            """
            SELECT currency, COUNT(*) AS count
            FROM analytics_events
            WHERE event_type = %s AND currency IS NOT NULL AND {}
            GROUP BY currency
            ORDER BY count DESC
            """
        ).format(where)
        return await fetch_all(self.db, query, (PRICING_VIEWED, *params))

    async def recent_events(self, filters: AnalyticsFilters, limit: int = RECENT_EVENTS_LIMIT) -> list[dict[str, Any]]:
        where, params = filters.where()
        query = sql.SQL(
            """
            SELECT id, event_type, event_data, user_email, timestamp, currency
            FROM analytics_events
            WHERE {}
            ORDER BY timestamp DESC
            LIMIT %s
            """
        ).format(where)
        return await fetch_all(self.db, query, (*params, limit))

    async def dashboard(self, filters: AnalyticsFilters) -> dict[str, Any]:
        """Funnel, currency breakdown, recent events and summary in the handler's shape."""
        funnel = await self.conversion_funnel(filters)
        currencies = await self.currency_stats(filters)
        recent = await self.recent_events(filters)
        return {
            "conversionFunnel": funnel,
            "currencyStats": currencies,
            "recentEvents": recent,
            "summary": summarize(funnel, currencies),
        }

    async def table_columns(self, table_name: str) -> list[dict[str, Any]]:
        return await fetch_all(
            self.db,
            """
            SELECT column_name, data_type, is_nullable
            FROM information_schema.columns
            WHERE table_name = %s
            ORDER BY ordinal_position
            """,
            (table_name,),
        )

    async def existing_tables(self) -> list[str]:
        rows = await fetch_all(
            self.db,
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name IN ('analytics_events', 'user_feedback')
            """,
        )
        return [row["table_name"] for row in rows]

    async def connection_test(self) -> dict[str, Any] | None:
        return await fetch_one(self.db, "SELECT 1 AS test, NOW() AS current_time")

    async def test_insert(self) -> dict[str, Any] | None:
        """Insert a marker event and delete it again."""
        row = await fetch_one(
            self.db,
            """
            INSERT INTO analytics_events (event_type, event_data, timestamp)
            VALUES (%s, %s, NOW())
            RETURNING id, event_type, timestamp
            """,
            (CONNECTION_TEST_EVENT, Jsonb({"test": True})),
        )
        await execute_query(self.db, "DELETE FROM analytics_events WHERE event_type = %s", (CONNECTION_TEST_EVENT,))
        return row
