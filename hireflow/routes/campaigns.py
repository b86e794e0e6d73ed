"""
campaigns.py
------------
Purpose:
    Campaign CRUD, candidate add/import and campaign settings.

Architecture:
    - API layer: HTTP concerns, request validation, auth
    - Store / controller: return domain models or raise HireFlowError
    - Errors are translated with http_error()

Usage:
    GET    /campaigns                               - List campaigns (?search= on title, department, location)
    POST   /campaigns                               - Create campaign (default stages)
    DELETE /campaigns                               - Reset (remove every campaign)
    GET    /campaigns/import-template               - Sample CSV
    GET    /campaigns/{id}                          - Campaign with candidates
    PATCH  /campaigns/{id}                          - Merge campaign fields
    DELETE /campaigns/{id}                          - Delete campaign
    POST   /campaigns/{id}/candidates               - Add one candidate
    POST   /campaigns/{id}/candidates/import/preview - Parse CSV and suggest mappings
    POST   /campaigns/{id}/candidates/import        - Import CSV rows
    PUT    /campaigns/{id}/settings                 - Replace campaign settings
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from hireflow.auth.verify import AuthenticatedUser, auth_dependency
from hireflow.errors import HireFlowError
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.api.campaign_request import (
    CreateCampaignRequest,
    ImportCandidatesRequest,
    ImportPreviewRequest,
    UpdateCampaignRequest,
)
from hireflow.models.api.campaign_response import (
    CampaignListResponse,
    CandidatesAddedResponse,
    ImportPreviewResponse,
)
from hireflow.models.domain.analytics_domain import DASHBOARD_VIEWED, UserInfo
from hireflow.models.domain.campaign_domain import Campaign, CampaignDraft, CampaignSettings
from hireflow.models.domain.user_domain import User
from hireflow.pipeline.importer import (
    TEMPLATE_FILENAME,
    CandidateUpload,
    convert_rows,
    parse_delimited,
    suggest_mappings,
    template_csv,
)
from hireflow.pipeline.stages import StagePolicy, default_stages
from hireflow.repositories.campaign_store import CampaignStore
from hireflow.repositories.user_repository import UserRepository
from hireflow.routes.dependencies import (
    get_analytics_tracker,
    get_campaign_store,
    get_stage_policy,
    get_user_repository,
    http_error,
    load_controller,
)
from hireflow.services.analytics_service import AnalyticsTracker

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
logger = get_logger(__name__)


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    background_tasks: BackgroundTasks,
    search: str | None = Query(default=None),
    user: AuthenticatedUser = Depends(auth_dependency),
    store: CampaignStore = Depends(get_campaign_store),
    tracker: AnalyticsTracker = Depends(get_analytics_tracker),
):
    try:
        campaigns = await store.get_campaigns()
    except HireFlowError as e:
        raise http_error(e) from e

    background_tasks.add_task(
        tracker.track,
        DASHBOARD_VIEWED,
        {"campaignCount": len(campaigns)},
        UserInfo(id=user.id, email=user.email, name=user.name),
    )
    # totals cover every campaign; search only narrows the returned list
    total = len(campaigns)
    total_openings = sum(c.openings or 1 for c in campaigns)
    term = (search or "").strip().lower()
    if term:
        campaigns = [
            c for c in campaigns if any(term in field.lower() for field in (c.title, c.department, c.location))
        ]
    return CampaignListResponse(campaigns=campaigns, total=total, total_openings=total_openings)


@router.post("", response_model=Campaign, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CreateCampaignRequest,
    user: AuthenticatedUser = Depends(auth_dependency),
    store: CampaignStore = Depends(get_campaign_store),
    users: UserRepository = Depends(get_user_repository),
):
    """Create a campaign; stages default to Sourced, Screening, Interview, Hired, Rejected."""
    if users.database_available:
        # campaigns.user_id references users.id
        await users.save_user(User(id=user.id, email=user.email, name=user.name, picture=user.picture))

    try:
        draft = CampaignDraft(
            **request.model_dump(exclude={"stages", "settings"}),
            stages=request.stages or default_stages(),
            settings=request.settings or CampaignSettings(),
            candidates=[],
            user_id=user.id,
        )
        campaign = await store.save_campaign(draft)
    except ValidationError as e:
        raise http_error(e) from e
    except HireFlowError as e:
        raise http_error(e) from e

    logger.info("Campaign created", campaign_id=campaign.id, user_id=user.id)
    return campaign


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def reset_campaigns(store: CampaignStore = Depends(get_campaign_store)):
    try:
        await store.reset()
    except HireFlowError as e:
        raise http_error(e) from e


@router.get("/import-template", response_class=PlainTextResponse)
async def import_template():
    return PlainTextResponse(
        template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@router.get("/{campaign_id}", response_model=Campaign)
async def get_campaign(campaign_id: str, store: CampaignStore = Depends(get_campaign_store)):
    try:
        campaign = await store.get_campaign_by_id(campaign_id)
    except HireFlowError as e:
        raise http_error(e) from e

    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return campaign


@router.patch("/{campaign_id}", response_model=Campaign)
async def update_campaign(
    campaign_id: str,
    request: UpdateCampaignRequest,
    store: CampaignStore = Depends(get_campaign_store),
):
    updates = request.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    try:
        return await store.update_campaign(campaign_id, updates)
    except (HireFlowError, ValidationError) as e:
        raise http_error(e) from e


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(campaign_id: str, store: CampaignStore = Depends(get_campaign_store)):
    try:
        await store.delete_campaign(campaign_id)
    except HireFlowError as e:
        raise http_error(e) from e


@router.put("/{campaign_id}/settings", response_model=Campaign)
async def update_settings(
    campaign_id: str,
    request: CampaignSettings,
    store: CampaignStore = Depends(get_campaign_store),
):
    try:
        return await store.update_campaign(campaign_id, {"settings": request.to_json_dict()})
    except (HireFlowError, ValidationError) as e:
        raise http_error(e) from e


# =================================================================
# CANDIDATES
# =================================================================


@router.post(
    "/{campaign_id}/candidates",
    response_model=CandidatesAddedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_candidate(
    campaign_id: str,
    request: CandidateUpload,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    if "@" not in request.email or "." not in request.email:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid email format")

    controller = await load_controller(campaign_id, store, policy)
    try:
        added = await controller.add_candidates([request], source="manual")
    except HireFlowError as e:
        raise http_error(e) from e

    return CandidatesAddedResponse(added=added, message=f"Successfully added candidate {request.name}!")


@router.post("/{campaign_id}/candidates/import/preview", response_model=ImportPreviewResponse)
async def preview_import(
    campaign_id: str,
    request: ImportPreviewRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    await load_controller(campaign_id, store, policy)
    try:
        parsed = parse_delimited(request.csv_text)
    except HireFlowError as e:
        raise http_error(e) from e

    return ImportPreviewResponse(
        headers=parsed.headers,
        preview_rows=parsed.preview_rows,
        total_rows=len(parsed.rows),
        mappings=suggest_mappings(parsed.headers),
    )


@router.post(
    "/{campaign_id}/candidates/import",
    response_model=CandidatesAddedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_candidates(
    campaign_id: str,
    request: ImportCandidatesRequest,
    store: CampaignStore = Depends(get_campaign_store),
    policy: StagePolicy = Depends(get_stage_policy),
):
    """
    Import CSV rows in one batch.

    Skipped rows are reported in `warnings` after the valid rows are saved.
    """
    controller = await load_controller(campaign_id, store, policy)

    try:
        parsed = parse_delimited(request.csv_text)
        mappings = request.mappings or suggest_mappings(parsed.headers)
        result = convert_rows(parsed, mappings, controller.campaign.stages, policy)
    except HireFlowError as e:
        raise http_error(e) from e

    if not result.candidates:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "No valid candidates found in file", "warnings": result.warnings},
        )

    try:
        added = await controller.add_candidates(result.candidates, source="import")
    except HireFlowError as e:
        raise http_error(e) from e

    if result.warnings:
        logger.warning("Skipped rows during import", campaign_id=campaign_id, skipped=len(result.warnings))

    return CandidatesAddedResponse(
        added=added,
        warnings=result.warnings,
        message=f"Successfully uploaded {len(added)} candidates",
    )
