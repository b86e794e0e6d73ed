"""
pipeline.py
-----------
Purpose:
    Kanban actions on a campaign's candidates: stage changes, bulk actions,
    messages and notes.

Each request loads the campaign, replays the two-step dashboard flow on a
PipelineController (request, then confirm with a reason), and persists the
campaign once.

Usage:
    POST /campaigns/{id}/candidates/{cid}/stage     - Move one candidate (reason required)
    POST /campaigns/{id}/bulk/stage                 - Move selected candidates
    POST /campaigns/{id}/bulk/delete                - Delete selected ("confirm" required)
    POST /campaigns/{id}/bulk/email                 - Email selected / filtered / custom set
    POST /campaigns/{id}/candidates/{cid}/messages  - Append an outgoing message
    PUT  /campaigns/{id}/candidates/{cid}/notes     - Replace candidate notes
"""

from fastapi import APIRouter, Depends

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.errors import HireFlowError
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.api.campaign_request import (
    BulkDeleteRequest,
    BulkEmailRequest,
    BulkStageChangeRequest,
    SendMessageRequest,
    StageChangeRequest,
    UpdateNotesRequest,
)
from hireflow.models.api.campaign_response import (
    BulkDeleteResponse,
    BulkStageChangeResponse,
    MessagesSentResponse,
    StageChangeResponse,
)
from hireflow.models.domain.campaign_domain import Candidate
from hireflow.models.domain.user_domain import AccountSettings
from hireflow.pipeline.stages import StagePolicy
from hireflow.repositories.campaign_store import CampaignStore
from hireflow.routes.dependencies import (
    get_account_settings,
    get_campaign_store,
    get_draft_store,
    get_stage_policy,
    http_error,
    load_controller,
)
from hireflow.services.communication_service import DraftStore, RecipientSelection, TemplateContext
from hireflow.services.kv_store import KeyValueStoreError

router = APIRouter(prefix="/campaigns", tags=["pipeline"])
logger = get_logger(__name__)


@router.post("/{campaign_id}/candidates/{candidate_id}/stage", response_model=StageChangeResponse)
async def change_stage(
    campaign_id: str,
    candidate_id: str,
    request: StageChangeRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    controller = await load_controller(campaign_id, store, policy)

    try:
        pending = controller.request_stage_change(candidate_id, request.target_stage)
        if pending is None:
            candidate = controller.campaign.candidate_by_id(candidate_id)
            return StageChangeResponse(changed=False, candidate=candidate, message="Candidate already in this stage")

        candidate = await controller.confirm_stage_change(request.reason)
    except HireFlowError as e:
        raise http_error(e) from e

    stage_name = controller.campaign.stage_name(candidate.current_stage)
    return StageChangeResponse(
        changed=True,
        candidate=candidate,
        message=f"Successfully moved {candidate.name} to {stage_name}",
    )


@router.post("/{campaign_id}/bulk/stage", response_model=BulkStageChangeResponse)
async def bulk_change_stage(
    campaign_id: str,
    request: BulkStageChangeRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    controller = await load_controller(campaign_id, store, policy)

    try:
        controller.enter_bulk_mode()
        controller.select_candidates(request.candidate_ids)
        target = controller.request_bulk_stage_change(request.target_stage)
        moved = await controller.confirm_bulk_stage_change(request.reason)
    except HireFlowError as e:
        raise http_error(e) from e

    return BulkStageChangeResponse(
        candidates=moved,
        message=f"Successfully moved {len(moved)} candidates to {target.name}",
    )


@router.post("/{campaign_id}/bulk/delete", response_model=BulkDeleteResponse)
async def bulk_delete(
    campaign_id: str,
    request: BulkDeleteRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    controller = await load_controller(campaign_id, store, policy)

    try:
        controller.enter_bulk_mode()
        controller.select_candidates(request.candidate_ids)
        removed = await controller.bulk_delete(request.confirmation)
    except HireFlowError as e:
        raise http_error(e) from e

    return BulkDeleteResponse(removed=removed, message=f"Successfully deleted {removed} candidates")


@router.post("/{campaign_id}/bulk/email", response_model=MessagesSentResponse)
async def bulk_email(
    campaign_id: str,
    request: BulkEmailRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
    account: AccountSettings = Depends(get_account_settings),
):
    controller = await load_controller(campaign_id, store, policy)
    recipients = RecipientSelection(
        mode=request.mode,
        stage_filter=request.stage_filter,
        candidate_ids=frozenset(request.candidate_ids),
    )

    try:
        if request.mode == "existing":
            controller.enter_bulk_mode()
            controller.select_candidates(request.candidate_ids)
        sent = await controller.bulk_email(
            request.subject,
            request.body,
            recipients,
            TemplateContext.build(controller.campaign, account=account),
            template_id=request.template_id,
        )
    except HireFlowError as e:
        raise http_error(e) from e

    plural = "s" if len(sent) > 1 else ""
    return MessagesSentResponse(messages=sent, message=f"Successfully sent emails to {len(sent)} candidate{plural}")


@router.post("/{campaign_id}/candidates/{candidate_id}/messages", response_model=MessagesSentResponse)
async def send_message(
    campaign_id: str,
    candidate_id: str,
    request: SendMessageRequest,
    user: AuthenticatedUser = Depends(auth_dependency),
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
    drafts: DraftStore = Depends(get_draft_store),
):
    controller = await load_controller(campaign_id, store, policy)

    try:
        message = await controller.send_message(
            candidate_id,
            request.subject,
            request.body,
            is_ai_generated=request.is_ai_generated,
            template_id=request.template_id,
        )
    except HireFlowError as e:
        raise http_error(e) from e

    try:
        await drafts.clear_draft(user.id, campaign_id, candidate_id)
    except KeyValueStoreError as e:
        logger.warning("Could not clear sent draft", candidate_id=candidate_id, error=str(e))

    return MessagesSentResponse(messages=[message], message="Message sent")


@router.put("/{campaign_id}/candidates/{candidate_id}/notes", response_model=Candidate)
async def update_notes(
    campaign_id: str,
    candidate_id: str,
    request: UpdateNotesRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    controller = await load_controller(campaign_id, store, policy)

    try:
        return await controller.update_notes(candidate_id, request.notes)
    except HireFlowError as e:
        raise http_error(e) from e
