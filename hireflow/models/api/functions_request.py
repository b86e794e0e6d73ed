# hireflow/models/api/functions_request.py
from datetime import datetime
from typing import Any

from hireflow.models.domain.base import CamelModel


class FeedbackSubmission(CamelModel):
    """Body accepted by the save-feedback handler."""

    user_name: str | None = None
    user_email: str | None = None
    responses: dict[str, Any]
    timestamp: datetime
