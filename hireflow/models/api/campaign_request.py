# hireflow/models/api/campaign_request.py
from typing import Literal

from pydantic import Field

from hireflow.models.domain.base import CamelModel
from hireflow.models.domain.campaign_domain import CampaignSettings, Stage
from hireflow.pipeline.importer import ColumnMapping


class CreateCampaignRequest(CamelModel):
    """Body for POST /campaigns. Stages default to the standard pipeline."""

    title: str = Field(..., min_length=1, max_length=200)
    department: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    openings: int = Field(default=1, ge=1)
    skills: list[str] = Field(default_factory=list)
    employment_type: str | None = None
    experience_level: str | None = None
    salary_range: str | None = None
    requirements: str | None = None
    stages: list[Stage] | None = None
    settings: CampaignSettings | None = None
    jd_file_url: str | None = None


class UpdateCampaignRequest(CamelModel):
    """Body for PATCH /campaigns/{id}; only fields that are sent are merged."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = None
    location: str | None = None
    description: str | None = None
    openings: int | None = Field(default=None, ge=1)
    skills: list[str] | None = None
    employment_type: str | None = None
    experience_level: str | None = None
    salary_range: str | None = None
    requirements: str | None = None
    jd_file_url: str | None = None


class ImportPreviewRequest(CamelModel):
    csv_text: str = Field(..., min_length=1)


class ImportCandidatesRequest(CamelModel):
    """CSV text plus an optional column mapping; suggested mappings are used when omitted."""

    csv_text: str = Field(..., min_length=1)
    mappings: list[ColumnMapping] | None = None


class StageChangeRequest(CamelModel):
    target_stage: str = Field(..., min_length=1)
    reason: str = ""


class BulkStageChangeRequest(CamelModel):
    candidate_ids: list[str] = Field(..., min_length=1)
    target_stage: str = Field(..., min_length=1)
    reason: str = ""


class BulkDeleteRequest(CamelModel):
    candidate_ids: list[str] = Field(..., min_length=1)
    confirmation: str = ""


class BulkEmailRequest(CamelModel):
    mode: Literal["existing", "filtered", "custom"] = "existing"
    candidate_ids: list[str] = Field(default_factory=list)
    stage_filter: str | None = None
    subject: str = ""
    body: str = ""
    template_id: str | None = None


class SendMessageRequest(CamelModel):
    subject: str = ""
    body: str = ""
    template_id: str | None = None
    is_ai_generated: bool = False


class UpdateNotesRequest(CamelModel):
    notes: str | None = None
