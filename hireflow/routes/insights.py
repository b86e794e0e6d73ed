"""
insights.py
-----------
Purpose:
    Signed-in counterparts of the analytics and feedback handlers. Events go
    through the best-effort tracker and never fail the request.

Usage:
    POST   /insights/events           - Track one dashboard event
    GET    /insights/funnel           - Conversion funnel from the caller's local backup
    DELETE /insights/funnel           - Clear the caller's local backup
    POST   /insights/feedback         - Submit feedback
    GET    /insights/feedback/stats   - Breakdown of the caller's feedback
"""

from fastapi import APIRouter, Depends, Request, status

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.models.api.insights_request import DashboardFeedbackRequest, TrackEventRequest
from hireflow.models.domain.analytics_domain import UserFeedback, UserInfo
from hireflow.routes.dependencies import get_analytics_tracker, get_feedback_service
from hireflow.services.analytics_service import AnalyticsTracker
from hireflow.services.feedback_service import FeedbackService

router = APIRouter(prefix="/insights", tags=["insights"])


def _user_info(user: AuthenticatedUser) -> UserInfo:
    return UserInfo(id=user.id, email=user.email, name=user.name)


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def track_event(
    body: TrackEventRequest,
    request: Request,
    user: AuthenticatedUser = Depends(auth_dependency),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    stored = await tracker.track(
        body.event_type,
        body.event_data,
        _user_info(user),
        currency=body.currency,
        session_id=body.session_id,
        ip_address=getattr(request.state, "ip_address", None),
        user_agent=request.headers.get("user-agent"),
    )
    return {"stored": stored}


@router.get("/funnel")
async def local_funnel(
    user: AuthenticatedUser = Depends(auth_dependency),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    return await tracker.local_conversion_funnel(user.id)


@router.delete("/funnel", status_code=status.HTTP_204_NO_CONTENT)
async def clear_funnel(
    user: AuthenticatedUser = Depends(auth_dependency),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    await tracker.clear_local(user.id)


@router.post("/feedback", response_model=UserFeedback, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    body: DashboardFeedbackRequest,
    request: Request,
    user: AuthenticatedUser = Depends(auth_dependency),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    return await feedback.submit(
        body.responses,
        _user_info(user),
        source=body.source,
        ip_address=getattr(request.state, "ip_address", None),
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/feedback/stats")
async def feedback_stats(
    user: AuthenticatedUser = Depends(auth_dependency),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    return await feedback.stats(user.id)
