"""
Tests for both campaign stores. The relational store runs against mocked
database helpers.
"""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from hireflow.db.helpers import DatabaseError
from hireflow.errors import CampaignNotFoundError, CorruptRecordError, PersistenceError
from hireflow.models.domain.campaign_domain import CampaignDraft
from hireflow.pipeline.stages import default_stages
from hireflow.repositories.campaign_store import (
    CAMPAIGNS_KEY,
    DatabaseCampaignStore,
    KeyValueCampaignStore,
    build_campaign_store,
    generate_campaign_id,
)
from tests.factories import seed_campaigns


def _draft(**overrides) -> CampaignDraft:
    fields = {
        "title": "Data Engineer",
        "department": "Data",
        "location": "Bangalore",
        "description": "Pipelines and warehouses",
        "stages": default_stages(),
    }
    fields.update(overrides)
    return CampaignDraft(**fields)


def test_generate_campaign_id_format():
    prefix, millis, suffix = generate_campaign_id().split("-")

    assert prefix == "campaign"
    assert millis.isdigit()
    assert len(suffix) == 9


def test_generate_campaign_id_avoids_existing_ids(monkeypatch):
    monkeypatch.setattr("hireflow.repositories.campaign_store.time.time", lambda: 1700000000.0)
    monkeypatch.setattr("hireflow.repositories.campaign_store.secrets.choice", lambda alphabet: "a")
    base = "campaign-1700000000000-aaaaaaaaa"

    assert generate_campaign_id() == base
    assert generate_campaign_id({base, f"{base}-1"}) == f"{base}-2"


# =================================================================
# KEY-VALUE STORE
# =================================================================


async def test_save_and_list_campaigns(kv_store):
    saved = await kv_store.save_campaign(_draft())

    assert saved.id.startswith("campaign-")
    assert saved.created_at is not None
    assert [c.id for c in await kv_store.get_campaigns()] == [saved.id]


async def test_user_scoped_key(fake_kv):
    store = KeyValueCampaignStore(fake_kv).for_user("user-9")
    await store.save_campaign(_draft())

    assert f"{CAMPAIGNS_KEY}_user-9" in fake_kv.store
    assert CAMPAIGNS_KEY not in fake_kv.store


async def test_update_merges_fields_and_sets_updated_at(kv_store, fake_kv, campaign):
    seed_campaigns(fake_kv, [campaign])

    updated = await kv_store.update_campaign(campaign.id, {"title": "Staff Backend Engineer"})

    assert updated.title == "Staff Backend Engineer"
    assert updated.updated_at is not None
    assert len(updated.candidates) == 3


async def test_update_missing_campaign(kv_store):
    with pytest.raises(CampaignNotFoundError):
        await kv_store.update_campaign("nope", {"title": "x"})


async def test_delete_and_reset(kv_store, fake_kv, campaign):
    seed_campaigns(fake_kv, [campaign])

    await kv_store.delete_campaign(campaign.id)
    assert await kv_store.get_campaigns() == []

    await kv_store.save_campaign(_draft())
    await kv_store.reset()
    assert await kv_store.get_campaigns() == []


async def test_malformed_record_skipped_on_list_and_raises_by_id(kv_store, fake_kv, campaign):
    broken = {"id": "campaign-broken", "title": "No stages"}
    fake_kv.store[CAMPAIGNS_KEY] = json.dumps([campaign.to_json_dict(), broken])

    assert [c.id for c in await kv_store.get_campaigns()] == [campaign.id]
    with pytest.raises(CorruptRecordError) as exc_info:
        await kv_store.get_campaign_by_id("campaign-broken")
    assert exc_info.value.record_id == "campaign-broken"


async def test_non_list_blob_treated_as_empty(kv_store, fake_kv):
    fake_kv.store[CAMPAIGNS_KEY] = json.dumps({"not": "a list"})

    assert await kv_store.get_campaigns() == []


async def test_write_failure_becomes_persistence_error(kv_store, fake_kv):
    fake_kv.fail_writes = True

    with pytest.raises(PersistenceError) as exc_info:
        await kv_store.save_campaign(_draft())
    assert exc_info.value.operation == "save_campaign"


# =================================================================
# RELATIONAL STORE
# =================================================================

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _campaign_row(**overrides):
    row = {
        "id": "campaign-db-1",
        "user_id": "user-123",
        "title": "Data Engineer",
        "department": "Data",
        "location": "Bangalore",
        "job_description": "Pipelines and warehouses",
        "requirements": None,
        "employment_type": "full-time",
        "experience_level": None,
        "salary_range": None,
        "openings": 2,
        "skills": ["sql", "python"],
        "stages": [s.to_json_dict() for s in default_stages()],
        "settings": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def _candidate_row(**overrides):
    row = {
        "id": "cand-1",
        "campaign_id": "campaign-db-1",
        "name": "Grace Hopper",
        "email": "grace@example.com",
        "phone": None,
        "resume_url": None,
        "stage": "interview",
        "notes": None,
        "thread_id": None,
        "communication_log": [],
        "last_updated": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def db_helpers(monkeypatch):
    mocks = {
        "fetch_all": AsyncMock(),
        "execute_query": AsyncMock(return_value=1),
        "execute_transaction": AsyncMock(return_value=True),
    }
    for name, mock in mocks.items():
        monkeypatch.setattr(f"hireflow.repositories.campaign_store.{name}", mock)
    return mocks


async def test_db_store_maps_rows_to_campaign(db_helpers):
    db_helpers["fetch_all"].side_effect = [[_campaign_row()], [_candidate_row()]]
    store = DatabaseCampaignStore(MagicMock()).for_user("user-123")

    campaign = await store.get_campaign_by_id("campaign-db-1")

    assert campaign.description == "Pipelines and warehouses"
    assert campaign.skills == ["sql", "python"]
    assert campaign.candidates[0].current_stage == "interview"

    campaign_query_params = db_helpers["fetch_all"].await_args_list[0].args[2]
    assert campaign_query_params == ("campaign-db-1", "user-123")


async def test_db_store_missing_campaign(db_helpers):
    db_helpers["fetch_all"].return_value = []

    assert await DatabaseCampaignStore(MagicMock()).get_campaign_by_id("nope") is None
    with pytest.raises(CampaignNotFoundError):
        await DatabaseCampaignStore(MagicMock()).update_campaign("nope", {"title": "x"})


async def test_db_store_update_upserts_and_prunes_candidates(db_helpers):
    db_helpers["fetch_all"].side_effect = [[_campaign_row()], [_candidate_row()]]
    store = DatabaseCampaignStore(MagicMock())

    current = await store.get_campaign_by_id("campaign-db-1")
    current.candidates[0].current_stage = "hired"
    db_helpers["fetch_all"].side_effect = [[_campaign_row()], [_candidate_row()]]

    updated = await store.update_campaign("campaign-db-1", current)

    assert updated.updated_at is not None
    db_helpers["execute_query"].assert_awaited_once()
    statements = db_helpers["execute_transaction"].await_args.args[1]
    assert len(statements) == 2
    upsert_params = statements[0][1]
    assert upsert_params[0] == "cand-1"
    assert upsert_params[7] == "hired"
    assert statements[1][1] == ("campaign-db-1", ["cand-1"])


async def test_db_store_write_failure_becomes_persistence_error(db_helpers):
    db_helpers["execute_query"].side_effect = DatabaseError("Query failed", operation="execute")

    with pytest.raises(PersistenceError):
        await DatabaseCampaignStore(MagicMock(), user_id="user-123").save_campaign(_draft())


async def test_db_store_delete_is_scoped_to_user(db_helpers):
    await DatabaseCampaignStore(MagicMock()).for_user("user-456").delete_campaign("campaign-db-1")

    query, params = db_helpers["execute_query"].await_args.args[1:]
    assert "user_id = %s" in query
    assert params == ("campaign-db-1", "user-456")


async def test_db_store_delete_without_user(db_helpers):
    await DatabaseCampaignStore(MagicMock()).delete_campaign("campaign-db-1")

    assert db_helpers["execute_query"].await_args.args[2] == ("campaign-db-1",)


async def test_db_store_read_failure_becomes_persistence_error(db_helpers):
    db_helpers["fetch_all"].side_effect = DatabaseError("Query failed", operation="fetch_all")

    with pytest.raises(PersistenceError):
        await DatabaseCampaignStore(MagicMock()).get_campaigns()


async def test_db_store_skips_corrupt_rows(db_helpers):
    db_helpers["fetch_all"].side_effect = [
        [_campaign_row(), _campaign_row(id="campaign-db-2", stages=[])],
        [],
    ]

    campaigns = await DatabaseCampaignStore(MagicMock()).get_campaigns()

    assert [c.id for c in campaigns] == ["campaign-db-1"]


def test_build_campaign_store_selects_backend(fake_kv):
    assert isinstance(build_campaign_store("kv", fake_kv, None), KeyValueCampaignStore)

    with pytest.raises(RuntimeError):
        build_campaign_store("database", fake_kv, None)

    db = MagicMock(is_initialized=True)
    assert isinstance(build_campaign_store("database", fake_kv, db), DatabaseCampaignStore)
