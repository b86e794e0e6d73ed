"""
FastAPI dependencies for the route layer.

Everything stateful (pool, key-value client, stores, services) is built
once in the lifespan and kept on app.state; these functions hand it to
the routes. Domain errors are turned into HTTPException here as well.
"""

from fastapi import Depends, HTTPException, Request, status
from pydantic import ValidationError

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.errors import (
    CampaignNotFoundError,
    CandidateImportError,
    CandidateNotFoundError,
    CorruptRecordError,
    HireFlowError,
    PersistenceError,
    UnknownStageError,
    ValidationFailure,
)
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.user_domain import AccountSettings
from hireflow.pipeline.controller import PipelineController
from hireflow.pipeline.stages import StagePolicy
from hireflow.repositories.analytics_repository import AnalyticsRepository
from hireflow.repositories.campaign_store import CampaignStore
from hireflow.repositories.user_repository import UserRepository
from hireflow.services.analytics_service import AnalyticsTracker
from hireflow.services.communication_service import AIEnhancer, DraftStore
from hireflow.services.feedback_service import FeedbackService

logger = get_logger(__name__)


def get_campaign_store(
    request: Request,
    user: AuthenticatedUser = Depends(auth_dependency),
) -> CampaignStore:
    return request.app.state.campaign_store.for_user(user.id)


def get_stage_policy(request: Request) -> StagePolicy:
    return request.app.state.stage_policy


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository


def get_analytics_repository(request: Request) -> AnalyticsRepository | None:
    return request.app.state.analytics_repository


def get_analytics_tracker(request: Request) -> AnalyticsTracker:
    return request.app.state.analytics_tracker


def get_feedback_service(request: Request) -> FeedbackService:
    return request.app.state.feedback_service


def get_draft_store(request: Request) -> DraftStore:
    return request.app.state.draft_store


def get_ai_enhancer(request: Request) -> AIEnhancer:
    return request.app.state.ai_enhancer


async def get_account_settings(
    user: AuthenticatedUser = Depends(auth_dependency),
    users: UserRepository = Depends(get_user_repository),
) -> AccountSettings:
    """Stored account settings, or defaults seeded from the identity token."""
    account = await users.get_account_settings(user.id)
    return account or AccountSettings(full_name=user.name, email=user.email)


async def load_controller(
    campaign_id: str,
    store: CampaignStore,
    policy: StagePolicy,
) -> PipelineController:
    try:
        campaign = await store.get_campaign_by_id(campaign_id)
    except HireFlowError as e:
        raise http_error(e) from e
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return PipelineController(campaign, store, policy)


def http_error(error: Exception) -> HTTPException:
    """Translate a domain or validation error into an HTTPException."""
    if isinstance(error, CandidateImportError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, ValidationFailure | UnknownStageError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error.errors(include_url=False, include_context=False),
        )
    if isinstance(error, CampaignNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    if isinstance(error, CandidateNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found")
    if isinstance(error, PersistenceError):
        logger.error("Persistence failure", operation=error.operation, error=str(error))
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to save changes. Please try again.")
    if isinstance(error, CorruptRecordError):
        logger.error("Corrupt stored record", record_id=error.record_id, detail=error.detail)
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Stored campaign data is invalid")

    logger.error("Unhandled domain error", error_type=type(error).__name__, error=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
