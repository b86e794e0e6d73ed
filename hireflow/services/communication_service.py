"""
Communication service: token substitution, message composition, recipient
resolution for bulk email, simulated AI enhancement and draft storage.

Nothing here delivers email. Composed messages are appended to candidate
communication logs by the pipeline controller.
"""

import asyncio
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from hireflow.errors import EmptySelectionError, MessageValidationError
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.base import CamelModel, utc_now
from hireflow.models.domain.campaign_domain import Campaign, Candidate
from hireflow.models.domain.user_domain import AccountSettings
from hireflow.services.email_templates import EmailTemplate
from hireflow.services.kv_store import KeyValueStore

logger = get_logger(__name__)

AI_ENHANCEMENT_MARKER = "\n\n[AI Enhanced: Content has been optimized for clarity and professionalism]"

DEFAULT_COMPANY_NAME = "Your Company"
DEFAULT_USER_NAME = "Hiring Manager"
DEFAULT_USER_TITLE = "Recruiter"

_TOKEN_PATTERN = re.compile(r"\{\{\s*(candidate\.name|candidate\.email|campaign\.title|company\.name|user\.name|user\.title)\s*\}\}")


@dataclass(frozen=True, slots=True)
class TemplateContext:
    """Values available to template tokens for one candidate."""

    candidate_name: str = ""
    candidate_email: str = ""
    campaign_title: str = ""
    company_name: str = DEFAULT_COMPANY_NAME
    user_name: str = DEFAULT_USER_NAME
    user_title: str = DEFAULT_USER_TITLE

    @classmethod
    def build(
        cls,
        campaign: Campaign,
        candidate: Candidate | None = None,
        account: AccountSettings | None = None,
    ) -> "TemplateContext":
        account = account or AccountSettings()
        return cls(
            candidate_name=candidate.name if candidate else "",
            candidate_email=candidate.email if candidate else "",
            campaign_title=campaign.title,
            company_name=account.company or DEFAULT_COMPANY_NAME,
            user_name=account.full_name or DEFAULT_USER_NAME,
            user_title=account.job_title or DEFAULT_USER_TITLE,
        )

    def for_candidate(self, candidate: Candidate) -> "TemplateContext":
        return TemplateContext(
            candidate_name=candidate.name,
            candidate_email=candidate.email,
            campaign_title=self.campaign_title,
            company_name=self.company_name,
            user_name=self.user_name,
            user_title=self.user_title,
        )

    def value_for(self, token: str) -> str:
        return {
            "candidate.name": self.candidate_name,
            "candidate.email": self.candidate_email,
            "campaign.title": self.campaign_title,
            "company.name": self.company_name,
            "user.name": self.user_name,
            "user.title": self.user_title,
        }[token]


def substitute_tokens(text: str, context: TemplateContext) -> str:
    """Replace every known {{token}} occurrence. Unknown tokens are left as written."""
    return _TOKEN_PATTERN.sub(lambda match: context.value_for(match.group(1)), text)


@dataclass(frozen=True, slots=True)
class ComposedMessage:
    subject: str
    body: str
    template_id: str | None = None


def compose_message(
    context: TemplateContext,
    *,
    subject: str | None = None,
    body: str | None = None,
    template: EmailTemplate | None = None,
) -> ComposedMessage:
    """
    Produce a message from a free-form draft or a template.

    A template supplies subject and body unless the caller overrides them,
    which is how an edited template is sent.

    Raises:
        MessageValidationError: subject or body is blank after composition
    """
    raw_subject = subject if subject is not None else (template.subject if template else "")
    raw_body = body if body is not None else (template.body if template else "")

    if not raw_subject.strip() or not raw_body.strip():
        raise MessageValidationError("Please fill in both subject and message")

    return ComposedMessage(
        subject=substitute_tokens(raw_subject, context),
        body=substitute_tokens(raw_body, context),
        template_id=template.id if template else None,
    )


# =================================================================
# RECIPIENTS
# =================================================================


@dataclass(frozen=True, slots=True)
class RecipientSelection:
    """
    Who receives a bulk email.

    existing: the controller's current selection
    filtered: every candidate, optionally narrowed to one stage
    custom:   an explicit set of candidate ids
    """

    mode: Literal["existing", "filtered", "custom"] = "existing"
    stage_filter: str | None = None
    candidate_ids: frozenset[str] = field(default_factory=frozenset)


def resolve_recipients(
    candidates: Sequence[Candidate],
    selection: RecipientSelection,
    current_selection: Iterable[str] = (),
) -> list[Candidate]:
    """Candidates a bulk email goes to, in campaign order."""
    if selection.mode == "existing":
        wanted = set(current_selection)
        recipients = [c for c in candidates if c.id in wanted]
    elif selection.mode == "filtered":
        if selection.stage_filter and selection.stage_filter != "all":
            recipients = [c for c in candidates if c.current_stage == selection.stage_filter]
        else:
            recipients = list(candidates)
    else:
        recipients = [c for c in candidates if c.id in selection.candidate_ids]

    if not recipients:
        raise EmptySelectionError("Please select at least one recipient")
    return recipients


# =================================================================
# AI ENHANCE (simulated)
# =================================================================


class AIEnhancer:
    """Stand-in for a text-polishing model call: waits, then appends a marker."""

    def __init__(self, delay_s: float = 2.0):
        self.delay_s = delay_s

    async def enhance(self, text: str) -> str:
        if not text.strip():
            raise MessageValidationError("Nothing to enhance")
        await asyncio.sleep(self.delay_s)
        logger.info("Message enhanced", length=len(text))
        return text + AI_ENHANCEMENT_MARKER


# =================================================================
# DRAFTS
# =================================================================


class MessageDraft(CamelModel):
    subject: str = ""
    body: str = ""
    template_id: str | None = None
    saved_at: datetime


class DraftStore:
    """Per-candidate compose drafts kept in the key-value store."""

    KEY_PREFIX = "hireflow_draft"

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def _key(self, user_id: str, campaign_id: str, candidate_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}:{campaign_id}:{candidate_id}"

    async def save_draft(
        self,
        user_id: str,
        campaign_id: str,
        candidate_id: str,
        subject: str,
        body: str,
        template_id: str | None = None,
    ) -> MessageDraft:
        draft = MessageDraft(subject=subject, body=body, template_id=template_id, saved_at=utc_now())
        await self.kv.set_json(self._key(user_id, campaign_id, candidate_id), draft.to_json_dict())
        logger.debug("Draft saved", campaign_id=campaign_id, candidate_id=candidate_id)
        return draft

    async def get_draft(self, user_id: str, campaign_id: str, candidate_id: str) -> MessageDraft | None:
        raw = await self.kv.get_json(self._key(user_id, campaign_id, candidate_id))
        if not raw:
            return None
        try:
            return MessageDraft.model_validate(raw)
        except ValueError as e:
            logger.warning("Discarding malformed draft", candidate_id=candidate_id, error=str(e))
            return None

    async def clear_draft(self, user_id: str, campaign_id: str, candidate_id: str) -> None:
        await self.kv.delete(self._key(user_id, campaign_id, candidate_id))
