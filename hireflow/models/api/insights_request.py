# hireflow/models/api/insights_request.py
from typing import Any, Literal

from pydantic import Field

from hireflow.models.domain.analytics_domain import FeedbackResponses
from hireflow.models.domain.base import CamelModel


class TrackEventRequest(CamelModel):
    event_type: str = Field(..., min_length=1)
    event_data: dict[str, Any] = Field(default_factory=dict)
    currency: str | None = None
    session_id: str | None = None


class DashboardFeedbackRequest(CamelModel):
    responses: FeedbackResponses
    source: Literal["pricing_page", "dashboard", "other"] = "dashboard"
