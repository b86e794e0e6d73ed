"""
Pipeline controller: stage transitions, selection state and bulk actions
for one campaign.

Every mutation follows the same path: validate, snapshot the campaign,
apply the change in memory, persist the whole campaign once. If the write
fails the snapshot is restored and PersistenceError is raised, so the
in-memory campaign never diverges from what the store holds.
"""

import secrets
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TypeVar

from hireflow.errors import (
    CandidateNotFoundError,
    ConfirmationMismatchError,
    EmptySelectionError,
    InvalidReasonError,
    MessageValidationError,
    NoPendingChangeError,
    PersistenceError,
)
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.base import utc_now
from hireflow.models.domain.campaign_domain import Campaign, Candidate, EmailMessage, Stage
from hireflow.pipeline.importer import CandidateUpload
from hireflow.pipeline.stages import StagePolicy, resolve_stage, resolve_stage_by_name
from hireflow.repositories.campaign_store import CampaignStore
from hireflow.services.communication_service import (
    RecipientSelection,
    TemplateContext,
    compose_message,
    resolve_recipients,
)

logger = get_logger(__name__)

T = TypeVar("T")

MIN_REASON_LENGTH = 10
DELETE_CONFIRMATION_TEXT = "confirm"


class MutationStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED_ROLLED_BACK = "failed_rolled_back"


@dataclass(slots=True)
class MutationRecord:
    kind: str
    candidate_ids: tuple[str, ...] = ()
    status: MutationStatus = MutationStatus.PENDING
    started_at: datetime = field(default_factory=utc_now)
    error: str | None = None


@dataclass(frozen=True, slots=True)
class PendingStageChange:
    candidate_id: str
    from_stage: str
    to_stage: str


def validate_reason(reason: str | None) -> str:
    """Trimmed reason, or InvalidReasonError when shorter than the minimum."""
    trimmed = (reason or "").strip()
    if len(trimmed) < MIN_REASON_LENGTH:
        raise InvalidReasonError(MIN_REASON_LENGTH)
    return trimmed


def _now_ms() -> int:
    return int(time.time() * 1000)


class PipelineController:
    """Kanban state for one campaign, bound to the store it persists to."""

    def __init__(
        self,
        campaign: Campaign,
        store: CampaignStore,
        policy: StagePolicy = StagePolicy.FALLBACK,
    ):
        self.campaign = campaign
        self.store = store
        self.policy = policy

        self.selected: set[str] = set()
        self.bulk_mode = False
        self.pending_change: PendingStageChange | None = None
        self.pending_bulk_target: str | None = None
        self.history: list[MutationRecord] = []

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    def _candidate(self, candidate_id: str) -> Candidate:
        candidate = self.campaign.candidate_by_id(candidate_id)
        if candidate is None:
            raise CandidateNotFoundError(candidate_id)
        return candidate

    def _target_stage(self, stage_id: str) -> Stage:
        return resolve_stage(self.campaign.stages, stage_id).unwrap(self.campaign.stages, self.policy)

    def display_stage_id(self, candidate: Candidate) -> str | None:
        """Column a candidate is shown in; None if its stage is unknown under REJECT."""
        resolution = resolve_stage(self.campaign.stages, candidate.current_stage)
        if resolution.ok:
            return resolution.stage.id
        if self.policy is StagePolicy.FALLBACK and self.campaign.stages:
            return self.campaign.first_stage.id
        return None

    def filter_candidates(self, query: str | None = None) -> list[Candidate]:
        """Candidates whose name, email, phone, notes or stage name contain the query."""
        needle = (query or "").strip().lower()
        if not needle:
            return list(self.campaign.candidates)

        def matches(candidate: Candidate) -> bool:
            stage_name = self.campaign.stage_name(candidate.current_stage) if candidate.current_stage else ""
            haystack = (candidate.name, candidate.email, candidate.phone or "", candidate.notes or "", stage_name)
            return any(needle in value.lower() for value in haystack)

        return [c for c in self.campaign.candidates if matches(c)]

    def candidates_in_stage(self, stage_id: str, query: str | None = None) -> list[Candidate]:
        return [c for c in self.filter_candidates(query) if self.display_stage_id(c) == stage_id]

    # -----------------------------------------------------------------
    # Selection
    # -----------------------------------------------------------------

    def enter_bulk_mode(self) -> None:
        self.bulk_mode = True

    def exit_bulk_mode(self) -> None:
        self.bulk_mode = False
        self.selected.clear()

    def toggle_candidate(self, candidate_id: str, selected: bool) -> None:
        self._candidate(candidate_id)
        if selected:
            self.selected.add(candidate_id)
        else:
            self.selected.discard(candidate_id)

    def select_candidates(self, candidate_ids: Iterable[str]) -> None:
        for candidate_id in candidate_ids:
            self.toggle_candidate(candidate_id, True)

    def select_all_in_stage(self, stage_id: str, selected: bool, search_query: str | None = None) -> None:
        """Toggle exactly the candidates visible in one column; other columns are untouched."""
        visible = {c.id for c in self.candidates_in_stage(stage_id, search_query)}
        if selected:
            self.selected |= visible
        else:
            self.selected -= visible

    def clear_selection(self) -> None:
        self.selected.clear()

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    async def _commit(self, kind: str, apply: Callable[[], T], candidate_ids: Sequence[str] = ()) -> T:
        record = MutationRecord(kind=kind, candidate_ids=tuple(candidate_ids))
        self.history.append(record)

        snapshot = self.campaign.model_copy(deep=True)
        result = apply()

        try:
            self.campaign = await self.store.update_campaign(self.campaign.id, self.campaign)
        except Exception as e:
            self.campaign = snapshot
            record.status = MutationStatus.FAILED_ROLLED_BACK
            record.error = str(e)
            logger.error(
                "Campaign write failed, changes rolled back",
                campaign_id=self.campaign.id,
                mutation=kind,
                candidates=len(record.candidate_ids),
                error=str(e),
            )
            raise PersistenceError(f"Failed to save {kind.replace('_', ' ')}", operation=kind) from e

        record.status = MutationStatus.COMMITTED
        logger.info(
            "Campaign mutation committed",
            campaign_id=self.campaign.id,
            mutation=kind,
            candidates=len(record.candidate_ids),
        )
        return result

    # -----------------------------------------------------------------
    # Single-candidate stage change
    # -----------------------------------------------------------------

    def request_stage_change(self, candidate_id: str, target_stage_id: str) -> PendingStageChange | None:
        """
        Stage a move and wait for a reason.

        Returns None when the candidate is already in the target stage; in that
        case nothing is staged and no confirmation is needed.
        """
        candidate = self._candidate(candidate_id)
        target = self._target_stage(target_stage_id)

        if candidate.current_stage == target.id:
            self.pending_change = None
            return None

        self.pending_change = PendingStageChange(
            candidate_id=candidate_id,
            from_stage=candidate.current_stage,
            to_stage=target.id,
        )
        return self.pending_change

    def cancel_stage_change(self) -> None:
        self.pending_change = None

    async def confirm_stage_change(self, reason: str) -> Candidate:
        pending = self.pending_change
        if pending is None:
            raise NoPendingChangeError()
        trimmed = validate_reason(reason)
        self._candidate(pending.candidate_id)

        from_name = self.campaign.stage_name(pending.from_stage)
        to_name = self.campaign.stage_name(pending.to_stage)

        def apply() -> str:
            now = utc_now()
            candidate = self._candidate(pending.candidate_id)
            candidate.current_stage = pending.to_stage
            candidate.last_updated = now
            candidate.communication_log.append(
                EmailMessage(
                    id=f"stage-change-{_now_ms()}-{candidate.id}",
                    direction="outgoing",
                    subject="Stage Change Notification",
                    body=f"Stage changed from {from_name} to {to_name}. Reason: {trimmed}",
                    timestamp=now,
                    is_ai_generated=False,
                )
            )
            return candidate.id

        candidate_id = await self._commit("stage_change", apply, [pending.candidate_id])
        self.pending_change = None
        return self._candidate(candidate_id)

    # -----------------------------------------------------------------
    # Bulk actions
    # -----------------------------------------------------------------

    def _require_selection(self) -> list[str]:
        ids = [c.id for c in self.campaign.candidates if c.id in self.selected]
        if not ids:
            raise EmptySelectionError()
        return ids

    def request_bulk_stage_change(self, target_stage_id: str) -> Stage:
        self._require_selection()
        target = self._target_stage(target_stage_id)
        self.pending_bulk_target = target.id
        return target

    async def confirm_bulk_stage_change(self, reason: str) -> list[Candidate]:
        if self.pending_bulk_target is None:
            raise NoPendingChangeError()
        ids = self._require_selection()
        trimmed = validate_reason(reason)
        target_id = self.pending_bulk_target
        target_name = self.campaign.stage_name(target_id)

        def apply() -> None:
            now = utc_now()
            for candidate_id in ids:
                candidate = self._candidate(candidate_id)
                candidate.current_stage = target_id
                candidate.last_updated = now
                candidate.communication_log.append(
                    EmailMessage(
                        id=f"bulk-move-{_now_ms()}-{candidate_id}",
                        direction="outgoing",
                        subject="Bulk Stage Change",
                        body=f"Moved to {target_name} via bulk action. Reason: {trimmed}",
                        timestamp=now,
                        is_ai_generated=False,
                    )
                )

        await self._commit("bulk_stage_change", apply, ids)
        self.pending_bulk_target = None
        self.exit_bulk_mode()
        return [self._candidate(candidate_id) for candidate_id in ids]

    def cancel_bulk_stage_change(self) -> None:
        self.pending_bulk_target = None

    async def bulk_delete(self, confirmation_text: str) -> int:
        """Remove every selected candidate. There is no undo."""
        ids = self._require_selection()
        if (confirmation_text or "").lower() != DELETE_CONFIRMATION_TEXT:
            raise ConfirmationMismatchError(DELETE_CONFIRMATION_TEXT)

        doomed = set(ids)

        def apply() -> int:
            before = len(self.campaign.candidates)
            self.campaign.candidates = [c for c in self.campaign.candidates if c.id not in doomed]
            return before - len(self.campaign.candidates)

        removed = await self._commit("bulk_delete", apply, ids)
        self.exit_bulk_mode()
        return removed

    async def bulk_email(
        self,
        subject: str,
        body: str,
        recipients: RecipientSelection,
        context: TemplateContext,
        template_id: str | None = None,
    ) -> list[EmailMessage]:
        """
        Append a personalised copy of one message to each recipient's log.

        All copies share one timestamp and are persisted in a single write.
        """
        targets = resolve_recipients(self.campaign.candidates, recipients, self.selected)
        composed = {
            candidate.id: compose_message(context.for_candidate(candidate), subject=subject, body=body)
            for candidate in targets
        }

        def apply() -> list[EmailMessage]:
            now = utc_now()
            sent = []
            for candidate_id, message in composed.items():
                candidate = self._candidate(candidate_id)
                entry = EmailMessage(
                    id=f"bulk-{_now_ms()}-{candidate_id}",
                    direction="outgoing",
                    subject=message.subject,
                    body=message.body,
                    timestamp=now,
                    is_ai_generated=False,
                    template_id=template_id,
                )
                candidate.communication_log.append(entry)
                candidate.last_updated = now
                sent.append(entry)
            return sent

        sent = await self._commit("bulk_email", apply, list(composed))
        self.exit_bulk_mode()
        return sent

    # -----------------------------------------------------------------
    # Single-candidate edits
    # -----------------------------------------------------------------

    def _stage_id_for_upload(self, stage_ref: str | None) -> str:
        stages = self.campaign.stages
        if not stage_ref or not stage_ref.strip():
            return self.campaign.first_stage.id
        by_name = resolve_stage_by_name(stages, stage_ref)
        if by_name.ok:
            return by_name.stage.id
        by_id = resolve_stage(stages, stage_ref.strip())
        if by_id.ok:
            return by_id.stage.id
        return by_name.unwrap(stages, self.policy).id

    async def add_candidates(self, uploads: Sequence[CandidateUpload], source: str = "import") -> list[Candidate]:
        """Append new candidates; stage names resolve case-insensitively."""
        if not uploads:
            raise EmptySelectionError("No candidates to add")

        stamp = _now_ms()
        suffix = secrets.token_hex(3)
        existing = {c.id for c in self.campaign.candidates}
        stage_ids = [self._stage_id_for_upload(upload.stage) for upload in uploads]

        new_candidates = []
        for index, (upload, stage_id) in enumerate(zip(uploads, stage_ids)):
            candidate_id = f"{source}-{stamp}-{suffix}-{index}"
            if candidate_id in existing:
                candidate_id = f"{candidate_id}-{secrets.token_hex(2)}"
            new_candidates.append(
                Candidate(
                    id=candidate_id,
                    name=upload.name.strip(),
                    email=upload.email.strip(),
                    phone=upload.phone,
                    resume_url=upload.resume_url,
                    current_stage=stage_id,
                    thread_id=f"thread-{source}-{stamp}-{index}",
                    last_updated=utc_now(),
                )
            )

        def apply() -> list[Candidate]:
            self.campaign.candidates.extend(new_candidates)
            return new_candidates

        return await self._commit("add_candidates", apply, [c.id for c in new_candidates])

    async def send_message(
        self,
        candidate_id: str,
        subject: str,
        body: str,
        *,
        is_ai_generated: bool = False,
        template_id: str | None = None,
    ) -> EmailMessage:
        self._candidate(candidate_id)
        if not subject.strip() or not body.strip():
            raise MessageValidationError("Please fill in both subject and message")

        def apply() -> EmailMessage:
            now = utc_now()
            candidate = self._candidate(candidate_id)
            entry = EmailMessage(
                id=f"msg-{_now_ms()}",
                direction="outgoing",
                subject=subject,
                body=body,
                timestamp=now,
                is_ai_generated=is_ai_generated,
                template_id=template_id,
            )
            candidate.communication_log.append(entry)
            candidate.last_updated = now
            return entry

        return await self._commit("send_message", apply, [candidate_id])

    async def update_notes(self, candidate_id: str, notes: str | None) -> Candidate:
        self._candidate(candidate_id)

        def apply() -> None:
            candidate = self._candidate(candidate_id)
            candidate.notes = notes or None
            candidate.last_updated = utc_now()

        await self._commit("update_notes", apply, [candidate_id])
        return self._candidate(candidate_id)
