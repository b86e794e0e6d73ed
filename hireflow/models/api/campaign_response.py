# hireflow/models/api/campaign_response.py
from pydantic import Field

from hireflow.models.domain.base import CamelModel
from hireflow.models.domain.campaign_domain import Campaign, Candidate, EmailMessage
from hireflow.pipeline.importer import ColumnMapping


class CampaignListResponse(CamelModel):
    """Totals count every campaign; campaigns holds only the search matches."""

    campaigns: list[Campaign]
    total: int
    total_openings: int


class CandidatesAddedResponse(CamelModel):
    """Result of a manual add or an import; warnings list skipped rows."""

    added: list[Candidate]
    warnings: list[str] = Field(default_factory=list)
    message: str


class ImportPreviewResponse(CamelModel):
    headers: list[str]
    preview_rows: list[list[str]]
    total_rows: int
    mappings: list[ColumnMapping]


class StageChangeResponse(CamelModel):
    changed: bool
    candidate: Candidate
    message: str


class BulkStageChangeResponse(CamelModel):
    candidates: list[Candidate]
    message: str


class BulkDeleteResponse(CamelModel):
    removed: int
    message: str


class MessagesSentResponse(CamelModel):
    messages: list[EmailMessage]
    message: str
