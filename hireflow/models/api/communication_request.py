# hireflow/models/api/communication_request.py
from pydantic import Field

from hireflow.models.domain.base import CamelModel


class EnhanceRequest(CamelModel):
    text: str = Field(..., min_length=1)


class EnhanceResponse(CamelModel):
    text: str
    is_ai_generated: bool = True


class ComposeRequest(CamelModel):
    """Preview a message for one candidate from a template or a free-form draft."""

    campaign_id: str
    candidate_id: str
    template_id: str | None = None
    subject: str | None = None
    body: str | None = None


class DraftRequest(CamelModel):
    campaign_id: str
    subject: str = ""
    body: str = ""
    template_id: str | None = None
