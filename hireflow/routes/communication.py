"""
communication.py
----------------
Purpose:
    Message composition helpers for the candidate email composer.

Usage:
    GET  /communication/templates                - Built-in templates (optionally per stage)
    POST /communication/compose                  - Substitute tokens for one candidate
    POST /communication/enhance                  - Simulated AI enhancement
    PUT  /communication/drafts/{candidate_id}    - Auto-save a draft
    GET  /communication/drafts/{candidate_id}    - Restore a draft (?campaignId=)
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.errors import HireFlowError
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.api.communication_request import (
    ComposeRequest,
    DraftRequest,
    EnhanceRequest,
    EnhanceResponse,
)
from hireflow.models.domain.user_domain import AccountSettings
from hireflow.pipeline.stages import StagePolicy
from hireflow.repositories.campaign_store import CampaignStore
from hireflow.routes.dependencies import (
    get_account_settings,
    get_ai_enhancer,
    get_campaign_store,
    get_draft_store,
    get_stage_policy,
    http_error,
    load_controller,
)
from hireflow.services.communication_service import (
    AIEnhancer,
    DraftStore,
    MessageDraft,
    TemplateContext,
    compose_message,
)
from hireflow.services.email_templates import (
    BULK_EMAIL_TEMPLATES,
    DEFAULT_TEMPLATES,
    find_template,
    templates_for_stage,
)

router = APIRouter(prefix="/communication", tags=["communication"])
logger = get_logger(__name__)


@router.get("/templates")
async def list_templates(
    stage: str | None = Query(default=None),
    _user: AuthenticatedUser = Depends(auth_dependency),
):
    single = templates_for_stage(stage) if stage else list(DEFAULT_TEMPLATES)
    return {
        "templates": [asdict(t) for t in single],
        "bulkTemplates": [asdict(t) for t in BULK_EMAIL_TEMPLATES],
    }


@router.post("/compose")
async def compose(
    request: ComposeRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
    account: AccountSettings = Depends(get_account_settings),
):
    controller = await load_controller(request.campaign_id, store, policy)
    candidate = controller.campaign.candidate_by_id(request.candidate_id)
    if candidate is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidate not found")

    template = None
    if request.template_id:
        template = find_template(request.template_id)
        if template is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

    try:
        message = compose_message(
            TemplateContext.build(controller.campaign, candidate, account),
            subject=request.subject,
            body=request.body,
            template=template,
        )
    except HireFlowError as e:
        raise http_error(e) from e

    return {"subject": message.subject, "body": message.body, "templateId": message.template_id}


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance(
    request: EnhanceRequest,
    _user: AuthenticatedUser = Depends(auth_dependency),
    enhancer: AIEnhancer = Depends(get_ai_enhancer),
):
    try:
        text = await enhancer.enhance(request.text)
    except HireFlowError as e:
        raise http_error(e) from e
    return EnhanceResponse(text=text)


@router.put("/drafts/{candidate_id}", response_model=MessageDraft)
async def save_draft(
    candidate_id: str,
    request: DraftRequest,
    user: AuthenticatedUser = Depends(auth_dependency),
    drafts: DraftStore = Depends(get_draft_store),
):
    draft = await drafts.save_draft(
        user.id,
        request.campaign_id,
        candidate_id,
        request.subject,
        request.body,
        request.template_id,
    )
    logger.debug("Draft auto-saved", user_id=user.id, candidate_id=candidate_id)
    return draft


@router.get("/drafts/{candidate_id}", response_model=MessageDraft)
async def get_draft(
    candidate_id: str,
    campaign_id: str = Query(..., alias="campaignId"),
    user: AuthenticatedUser = Depends(auth_dependency),
    drafts: DraftStore = Depends(get_draft_store),
):
    draft = await drafts.get_draft(user.id, campaign_id, candidate_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No draft saved")
    return draft
