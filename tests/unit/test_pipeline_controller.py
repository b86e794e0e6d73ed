"""
Tests for the pipeline controller: stage changes, selection, bulk actions
and rollback of failed writes.
"""

import pytest

from hireflow.errors import (
    CandidateNotFoundError,
    ConfirmationMismatchError,
    EmptySelectionError,
    InvalidReasonError,
    MessageValidationError,
    NoPendingChangeError,
    PersistenceError,
    UnknownStageError,
)
from hireflow.pipeline.controller import MutationStatus, PipelineController, validate_reason
from hireflow.pipeline.importer import CandidateUpload
from hireflow.pipeline.stages import StagePolicy
from hireflow.services.communication_service import RecipientSelection, TemplateContext
from tests.factories import build_campaign, build_candidate, seed_campaigns


@pytest.fixture
def controller(fake_kv, kv_store, campaign):
    seed_campaigns(fake_kv, [campaign])
    return PipelineController(campaign, kv_store)


# =================================================================
# SINGLE STAGE CHANGE
# =================================================================


def test_same_stage_request_needs_no_confirmation(controller):
    pending = controller.request_stage_change("c1", "sourced")

    assert pending is None
    assert controller.pending_change is None
    assert controller.history == []


async def test_stage_change_end_to_end(fake_kv, kv_store):
    """Add Grace, drag her to Screening with a reason, and check the log entry."""
    campaign = build_campaign()
    seed_campaigns(fake_kv, [campaign])
    controller = PipelineController(campaign, kv_store)

    [grace] = await controller.add_candidates([CandidateUpload(name="Grace Hopper", email="grace@example.com")])
    assert grace.current_stage == "sourced"

    pending = controller.request_stage_change(grace.id, "screening")
    assert pending.from_stage == "sourced"
    assert pending.to_stage == "screening"

    moved = await controller.confirm_stage_change("Strong resume match, proceeding.")

    assert moved.current_stage == "screening"
    assert len(moved.communication_log) == 1
    entry = moved.communication_log[0]
    assert entry.direction == "outgoing"
    assert entry.subject == "Stage Change Notification"
    assert "Sourced" in entry.body
    assert "Screening" in entry.body
    assert "Strong resume match, proceeding." in entry.body
    assert controller.pending_change is None

    persisted = await kv_store.get_campaign_by_id(campaign.id)
    assert persisted.candidate_by_id(grace.id).current_stage == "screening"


@pytest.mark.parametrize("reason", ["", "too short", "   short   "])
async def test_stage_change_rejects_short_reason(controller, reason):
    controller.request_stage_change("c1", "interview")

    with pytest.raises(InvalidReasonError):
        await controller.confirm_stage_change(reason)

    assert controller.campaign.candidate_by_id("c1").current_stage == "sourced"
    assert controller.pending_change is not None


def test_validate_reason_trims():
    assert validate_reason("  ten chars!  ") == "ten chars!"


async def test_confirm_without_pending_change(controller):
    with pytest.raises(NoPendingChangeError):
        await controller.confirm_stage_change("A perfectly fine reason")


async def test_moves_in_the_same_millisecond_get_distinct_message_ids(controller, monkeypatch):
    monkeypatch.setattr("hireflow.pipeline.controller._now_ms", lambda: 1700000000000)

    controller.request_stage_change("c1", "screening")
    first = await controller.confirm_stage_change("Portfolio looks strong")
    controller.request_stage_change("c2", "screening")
    second = await controller.confirm_stage_change("Portfolio looks strong")

    assert first.communication_log[-1].id != second.communication_log[-1].id


def test_cancel_stage_change_clears_pending(controller):
    controller.request_stage_change("c1", "hired")
    controller.cancel_stage_change()

    assert controller.pending_change is None


def test_request_for_unknown_candidate(controller):
    with pytest.raises(CandidateNotFoundError):
        controller.request_stage_change("nobody", "hired")


def test_unknown_target_falls_back_to_first_stage(controller):
    pending = controller.request_stage_change("c3", "offer")

    assert pending.to_stage == "sourced"


def test_unknown_target_rejected_under_reject_policy(kv_store, campaign):
    controller = PipelineController(campaign, kv_store, StagePolicy.REJECT)

    with pytest.raises(UnknownStageError):
        controller.request_stage_change("c3", "offer")


async def test_failed_write_rolls_back(controller, fake_kv):
    controller.request_stage_change("c1", "interview")
    fake_kv.fail_writes = True

    with pytest.raises(PersistenceError):
        await controller.confirm_stage_change("Great technical screen")

    candidate = controller.campaign.candidate_by_id("c1")
    assert candidate.current_stage == "sourced"
    assert candidate.communication_log == []
    assert controller.history[-1].status is MutationStatus.FAILED_ROLLED_BACK
    assert controller.history[-1].error


async def test_successful_write_is_recorded_as_committed(controller):
    controller.request_stage_change("c1", "interview")
    await controller.confirm_stage_change("Great technical screen")

    assert controller.history[-1].kind == "stage_change"
    assert controller.history[-1].status is MutationStatus.COMMITTED
    assert controller.history[-1].candidate_ids == ("c1",)


# =================================================================
# SELECTION
# =================================================================


def test_select_all_in_stage_only_touches_that_column(controller):
    controller.toggle_candidate("c3", True)
    controller.select_all_in_stage("sourced", True)

    assert controller.selected == {"c1", "c2", "c3"}

    controller.select_all_in_stage("sourced", False)
    assert controller.selected == {"c3"}


def test_select_all_in_stage_respects_search(controller):
    controller.select_all_in_stage("sourced", True, search_query="ada")

    assert controller.selected == {"c2"}


def test_filter_candidates_matches_notes_phone_and_stage_name(controller):
    assert [c.id for c in controller.filter_candidates("theory")] == ["c3"]
    assert [c.id for c in controller.filter_candidates("7946")] == ["c2"]
    assert [c.id for c in controller.filter_candidates("screening")] == ["c3"]
    assert len(controller.filter_candidates("")) == 3


def test_unknown_stage_candidate_shown_in_first_column(fake_kv, kv_store):
    campaign = build_campaign([build_candidate("x1", "Lost Soul", "lost@example.com", "archived")])

    fallback = PipelineController(campaign, kv_store)
    assert fallback.display_stage_id(campaign.candidates[0]) == "sourced"

    strict = PipelineController(campaign, kv_store, StagePolicy.REJECT)
    assert strict.display_stage_id(campaign.candidates[0]) is None


def test_exit_bulk_mode_clears_selection(controller):
    controller.enter_bulk_mode()
    controller.select_candidates(["c1", "c2"])
    controller.exit_bulk_mode()

    assert not controller.bulk_mode
    assert controller.selected == set()


def test_clear_selection_keeps_bulk_mode(controller):
    controller.enter_bulk_mode()
    controller.toggle_candidate("c1", True)
    controller.clear_selection()

    assert controller.bulk_mode
    assert controller.selected == set()


# =================================================================
# BULK ACTIONS
# =================================================================


async def test_bulk_move_shares_one_timestamp(controller, kv_store):
    controller.enter_bulk_mode()
    controller.select_candidates(["c1", "c2", "c3"])

    target = controller.request_bulk_stage_change("hired")
    moved = await controller.confirm_bulk_stage_change("Final selections approved")

    assert target.name == "Hired"
    assert {c.current_stage for c in moved} == {"hired"}
    assert len({c.last_updated for c in moved}) == 1
    for candidate in moved:
        assert candidate.communication_log[-1].subject == "Bulk Stage Change"
        assert "Moved to Hired via bulk action" in candidate.communication_log[-1].body
    assert controller.selected == set()
    assert not controller.bulk_mode

    persisted = await kv_store.get_campaign_by_id("campaign-1")
    assert len({c.last_updated for c in persisted.candidates}) == 1


def test_bulk_move_requires_selection(controller):
    with pytest.raises(EmptySelectionError):
        controller.request_bulk_stage_change("hired")


async def test_bulk_move_requires_reason(controller):
    controller.select_candidates(["c1"])
    controller.request_bulk_stage_change("hired")

    with pytest.raises(InvalidReasonError):
        await controller.confirm_bulk_stage_change("ok")


async def test_cancelled_bulk_move_cannot_be_confirmed(controller):
    controller.select_candidates(["c1"])
    controller.request_bulk_stage_change("hired")
    controller.cancel_bulk_stage_change()

    with pytest.raises(NoPendingChangeError):
        await controller.confirm_bulk_stage_change("Final selections approved")
    assert controller.selected == {"c1"}


@pytest.mark.parametrize("text", ["", "yes", "confirmed", "delete"])
async def test_bulk_delete_requires_confirm_text(controller, text):
    controller.select_candidates(["c1", "c2"])

    with pytest.raises(ConfirmationMismatchError):
        await controller.bulk_delete(text)

    assert len(controller.campaign.candidates) == 3


async def test_bulk_delete_confirm_is_case_insensitive(controller, kv_store):
    controller.enter_bulk_mode()
    controller.select_candidates(["c1", "c2"])

    removed = await controller.bulk_delete("CONFIRM")

    assert removed == 2
    assert [c.id for c in controller.campaign.candidates] == ["c3"]
    assert controller.selected == set()

    persisted = await kv_store.get_campaign_by_id("campaign-1")
    assert [c.id for c in persisted.candidates] == ["c3"]


async def test_bulk_delete_rollback_restores_candidates(controller, fake_kv):
    controller.select_candidates(["c1"])
    fake_kv.fail_writes = True

    with pytest.raises(PersistenceError):
        await controller.bulk_delete("confirm")

    assert len(controller.campaign.candidates) == 3


async def test_bulk_email_personalises_each_copy(controller, campaign):
    controller.enter_bulk_mode()
    controller.select_candidates(["c1", "c2"])

    sent = await controller.bulk_email(
        "Update on {{campaign.title}}",
        "Hi {{candidate.name}}, thanks for applying.",
        RecipientSelection(mode="existing"),
        TemplateContext.build(campaign),
        template_id="status-update",
    )

    assert [m.body for m in sent] == [
        "Hi Grace Hopper, thanks for applying.",
        "Hi Ada Lovelace, thanks for applying.",
    ]
    assert all(m.subject == "Update on Senior Backend Engineer" for m in sent)
    assert len({m.timestamp for m in sent}) == 1
    assert all(m.template_id == "status-update" for m in sent)
    assert controller.campaign.candidate_by_id("c3").communication_log == []


async def test_bulk_email_filtered_by_stage(controller, campaign):
    sent = await controller.bulk_email(
        "Hello",
        "Body",
        RecipientSelection(mode="filtered", stage_filter="screening"),
        TemplateContext.build(campaign),
    )

    assert len(sent) == 1
    assert controller.campaign.candidate_by_id("c3").communication_log[-1].subject == "Hello"


async def test_bulk_email_without_recipients(controller, campaign):
    with pytest.raises(EmptySelectionError):
        await controller.bulk_email("Hello", "Body", RecipientSelection(mode="existing"), TemplateContext.build(campaign))


# =================================================================
# SINGLE-CANDIDATE EDITS
# =================================================================


async def test_add_candidates_resolves_stage_names(controller):
    added = await controller.add_candidates(
        [
            CandidateUpload(name="Barbara Liskov", email="barbara@example.com", stage="interview"),
            CandidateUpload(name="Edsger Dijkstra", email="edsger@example.com", stage="Hired"),
            CandidateUpload(name="Ken Thompson", email="ken@example.com", stage="Offer"),
        ],
        source="import",
    )

    assert [c.current_stage for c in added] == ["interview", "hired", "sourced"]
    assert all(c.id.startswith("import-") for c in added)
    assert len({c.id for c in added}) == 3
    assert len(controller.campaign.candidates) == 6


async def test_send_message_appends_outgoing_entry(controller):
    message = await controller.send_message("c2", "Next steps", "Let's talk", is_ai_generated=True)

    log = controller.campaign.candidate_by_id("c2").communication_log
    assert log[-1] == message
    assert message.direction == "outgoing"
    assert message.is_ai_generated is True


async def test_send_message_requires_subject_and_body(controller):
    with pytest.raises(MessageValidationError):
        await controller.send_message("c2", "  ", "Body")


async def test_update_notes(controller):
    candidate = await controller.update_notes("c1", "Prefers remote")
    assert candidate.notes == "Prefers remote"

    cleared = await controller.update_notes("c1", "")
    assert cleared.notes is None
