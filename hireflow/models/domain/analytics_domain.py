from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field

from hireflow.models.domain.base import CamelModel

# Event names used by the dashboard
UPGRADE_CLICKED = "upgrade_button_clicked"
PRICING_VIEWED = "pricing_page_viewed"
BUY_NOW_CLICKED = "buy_now_clicked"
FEEDBACK_SUBMITTED = "feedback_submitted"
DASHBOARD_VIEWED = "dashboard_viewed"
CURRENCY_CHANGED = "currency_changed"
PRICING_CALCULATED = "pricing_calculated"


class UserInfo(CamelModel):
    id: str
    email: str
    name: str | None = None


class AnalyticsEvent(CamelModel):
    """Wire shape accepted by the save-analytics handler."""

    event_type: str = Field(..., min_length=1)
    event_data: dict[str, Any] = Field(default_factory=dict)
    user_info: UserInfo | None = None
    timestamp: datetime
    currency: str | None = None
    session_id: str | None = None


class FeedbackResponses(CamelModel):
    model_config = ConfigDict(extra="allow")

    most_important_features: str | None = None
    biggest_challenge: str | None = None
    willing_to_pay: str | None = None
    additional_features: str | None = None
    contact_for_updates: bool | None = None


class UserFeedback(CamelModel):
    id: str
    user_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None
    timestamp: datetime
    responses: FeedbackResponses
    source: Literal["pricing_page", "dashboard", "other"] = "pricing_page"
