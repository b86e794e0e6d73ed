from datetime import datetime

from pydantic import BaseModel, ConfigDict

from hireflow.models.domain.base import CamelModel


class User(BaseModel):
    """Row of the users table, keyed by the Google subject id."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    name: str
    picture: str | None = None
    verified_email: bool = False
    onboarding_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserProfile(BaseModel):
    """Onboarding profile (user_profiles table)."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    full_name: str | None = None
    job_title: str | None = None
    company: str | None = None
    company_size: str | None = None
    industry: str | None = None
    phone: str | None = None
    profile_completed: bool = False


class AccountSettings(CamelModel):
    """Account settings form values, stored per user in the key-value store."""

    full_name: str = ""
    email: str = ""
    job_title: str = ""
    company: str = ""
