"""
Campaign, stage, candidate and message models.

These are the parse boundary for anything read back from storage: a record
that does not validate here never reaches pipeline logic.
"""

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field, field_validator, model_validator

from hireflow.models.domain.base import CamelModel, utc_now


class Stage(CamelModel):
    """One kanban column."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    order: int
    color: str = "gray"
    instructions: str = ""


class EmailMessage(CamelModel):
    """Entry in a candidate's communication log. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    id: str
    direction: Literal["incoming", "outgoing"]
    subject: str
    body: str
    timestamp: datetime
    is_ai_generated: bool | None = None
    template_id: str | None = None


class Candidate(CamelModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str | None = None
    resume_url: str | None = None
    current_stage: str
    thread_id: str | None = None
    communication_log: list[EmailMessage] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)
    notes: str | None = None

    @field_validator("communication_log")
    @classmethod
    def _order_log(cls, log: list[EmailMessage]) -> list[EmailMessage]:
        return sorted(log, key=lambda message: message.timestamp)


class CampaignSettings(CamelModel):
    """Per-campaign automation and pipeline preferences."""

    ai_auto_response: bool = True
    ai_response_style: Literal["professional", "friendly", "casual"] = "professional"
    ai_escalation_threshold: Literal["low", "medium", "high"] = "medium"
    ai_handle_queries: list[str] = Field(
        default_factory=lambda: ["application_status", "job_details"]
    )
    reminder_frequency: Literal["daily", "weekly", "biweekly"] = "weekly"
    bulk_operations_enabled: bool = True
    advanced_filtering: bool = True


class CampaignDraft(CamelModel):
    """Campaign fields supplied by the creator; ids and timestamps come from the store."""

    title: str = Field(..., min_length=1)
    description: str = ""
    department: str = ""
    location: str = ""
    skills: list[str] = Field(default_factory=list)
    openings: int = Field(default=1, ge=1)
    employment_type: str | None = None
    experience_level: str | None = None
    salary_range: str | None = None
    requirements: str | None = None
    stages: list[Stage] = Field(..., min_length=1)
    candidates: list[Candidate] = Field(default_factory=list)
    settings: CampaignSettings | None = None
    user_id: str | None = None
    jd_file_url: str | None = None

    @field_validator("stages")
    @classmethod
    def _check_stages(cls, stages: list[Stage]) -> list[Stage]:
        ids = [stage.id for stage in stages]
        if len(ids) != len(set(ids)):
            raise ValueError("stage ids must be unique within a campaign")
        orders = [stage.order for stage in stages]
        if any(later <= earlier for earlier, later in zip(orders, orders[1:])):
            raise ValueError("stage order must be strictly increasing")
        return stages

    @model_validator(mode="after")
    def _check_candidate_ids(self):
        ids = [candidate.id for candidate in self.candidates]
        if len(ids) != len(set(ids)):
            raise ValueError("candidate ids must be unique within a campaign")
        return self

    @property
    def first_stage(self) -> Stage:
        return self.stages[0]

    def stage_by_id(self, stage_id: str) -> Stage | None:
        return next((stage for stage in self.stages if stage.id == stage_id), None)

    def stage_name(self, stage_id: str) -> str:
        stage = self.stage_by_id(stage_id)
        return stage.name if stage else stage_id

    def candidate_by_id(self, candidate_id: str) -> Candidate | None:
        return next((c for c in self.candidates if c.id == candidate_id), None)


class Campaign(CampaignDraft):
    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None
