# hireflow/models/api/account_request.py
from pydantic import Field

from hireflow.models.domain.base import CamelModel


class ProfileRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    job_title: str | None = None
    company: str | None = None
    company_size: str | None = None
    industry: str | None = None
    phone: str | None = None


class OnboardingRequest(ProfileRequest):
    """Onboarding form: profile fields plus the completion flag."""

    completed: bool = True
