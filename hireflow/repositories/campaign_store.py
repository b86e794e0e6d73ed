"""
Campaign persistence.

One async interface with two implementations selected by STORAGE_BACKEND:

- KeyValueCampaignStore keeps the whole campaign list as one JSON blob.
- DatabaseCampaignStore keeps campaigns and candidates in Postgres rows.

Both parse what they read through the domain models. A malformed record is
logged and skipped when listing, and raises CorruptRecordError when it is
asked for by id.
"""

import secrets
import string
import time
from typing import Any, Protocol

from psycopg import sql
from psycopg.types.json import Jsonb
from pydantic import ValidationError

from hireflow.db.helpers import DatabaseError, execute_query, execute_transaction, fetch_all, with_db_retry
from hireflow.db.pool import DatabasePoolManager
from hireflow.errors import CampaignNotFoundError, CorruptRecordError, PersistenceError
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.base import utc_now
from hireflow.models.domain.campaign_domain import Campaign, CampaignDraft
from hireflow.services.kv_store import KeyValueStore, KeyValueStoreError

logger = get_logger(__name__)

CAMPAIGNS_KEY = "hireflow_campaigns"
_BASE36 = string.digits + string.ascii_lowercase

CampaignUpdate = Campaign | dict[str, Any]


def generate_campaign_id(existing: set[str] | frozenset[str] = frozenset()) -> str:
    """campaign-<epoch ms>-<9 base36 chars>, suffixed -1, -2... until unused."""
    base = f"campaign-{int(time.time() * 1000)}-{''.join(secrets.choice(_BASE36) for _ in range(9))}"
    candidate_id = base
    counter = 1
    while candidate_id in existing:
        candidate_id = f"{base}-{counter}"
        counter += 1
    return candidate_id


def _parse_campaign(record: Any) -> Campaign:
    try:
        return Campaign.model_validate(record)
    except ValidationError as e:
        record_id = record.get("id") if isinstance(record, dict) else None
        raise CorruptRecordError(record_id, f"{e.error_count()} validation error(s)") from e


class CampaignStore(Protocol):
    async def get_campaigns(self) -> list[Campaign]: ...

    async def get_campaign_by_id(self, campaign_id: str) -> Campaign | None: ...

    async def save_campaign(self, draft: CampaignDraft) -> Campaign: ...

    async def update_campaign(self, campaign_id: str, updates: CampaignUpdate) -> Campaign: ...

    async def delete_campaign(self, campaign_id: str) -> None: ...

    async def reset(self) -> None: ...

    def for_user(self, user_id: str | None) -> "CampaignStore": ...


# =================================================================
# KEY-VALUE BLOB STORE
# =================================================================


class KeyValueCampaignStore:
    """Campaign list serialized under one key, optionally scoped per user."""

    def __init__(self, kv: KeyValueStore, user_id: str | None = None):
        self.kv = kv
        self.user_id = user_id

    @property
    def key(self) -> str:
        return f"{CAMPAIGNS_KEY}_{self.user_id}" if self.user_id else CAMPAIGNS_KEY

    def for_user(self, user_id: str | None) -> "KeyValueCampaignStore":
        return KeyValueCampaignStore(self.kv, user_id)

    async def _load_raw(self) -> list[dict[str, Any]]:
        try:
            data = await self.kv.get_json(self.key, default=[])
        except KeyValueStoreError as e:
            raise PersistenceError(str(e), operation="load_campaigns") from e
        if not isinstance(data, list):
            logger.error("Campaign blob is not a list, treating as empty", key=self.key)
            return []
        return data

    async def _store_raw(self, records: list[dict[str, Any]], operation: str) -> None:
        try:
            await self.kv.set_json(self.key, records)
        except KeyValueStoreError as e:
            raise PersistenceError(str(e), operation=operation) from e

    async def get_campaigns(self) -> list[Campaign]:
        campaigns = []
        for record in await self._load_raw():
            try:
                campaigns.append(_parse_campaign(record))
            except CorruptRecordError as e:
                logger.warning("Skipping malformed campaign", record_id=e.record_id, detail=e.detail)
        return campaigns

    async def get_campaign_by_id(self, campaign_id: str) -> Campaign | None:
        for record in await self._load_raw():
            if isinstance(record, dict) and record.get("id") == campaign_id:
                return _parse_campaign(record)
        logger.info("Campaign not found", campaign_id=campaign_id)
        return None

    async def save_campaign(self, draft: CampaignDraft) -> Campaign:
        records = await self._load_raw()
        existing_ids = {r.get("id") for r in records if isinstance(r, dict)}

        campaign = Campaign(
            **draft.model_dump(),
            id=generate_campaign_id(existing_ids),
            created_at=utc_now(),
        )
        records.append(campaign.to_json_dict())
        await self._store_raw(records, "save_campaign")

        logger.info("Campaign saved", campaign_id=campaign.id, title=campaign.title)
        return campaign

    async def update_campaign(self, campaign_id: str, updates: CampaignUpdate) -> Campaign:
        """Merge updates into the stored record; a full Campaign replaces it."""
        records = await self._load_raw()
        index = next(
            (i for i, r in enumerate(records) if isinstance(r, dict) and r.get("id") == campaign_id),
            None,
        )
        if index is None:
            raise CampaignNotFoundError(campaign_id)

        patch = updates.to_json_dict() if isinstance(updates, Campaign) else dict(updates)
        patch["id"] = campaign_id
        patch["updatedAt"] = utc_now().isoformat()
        merged = patch if isinstance(updates, Campaign) else {**records[index], **patch}

        campaign = Campaign.model_validate(merged)
        records[index] = campaign.to_json_dict()
        await self._store_raw(records, "update_campaign")

        logger.info("Campaign updated", campaign_id=campaign_id, fields=sorted(patch))
        return campaign

    async def delete_campaign(self, campaign_id: str) -> None:
        records = await self._load_raw()
        remaining = [r for r in records if not (isinstance(r, dict) and r.get("id") == campaign_id)]
        await self._store_raw(remaining, "delete_campaign")
        logger.info("Campaign deleted", campaign_id=campaign_id, removed=len(records) - len(remaining))

    async def reset(self) -> None:
        await self._store_raw([], "reset")
        logger.warning("Campaign store reset", key=self.key)


# =================================================================
# RELATIONAL STORE
# =================================================================

_UPSERT_CAMPAIGN = """
INSERT INTO campaigns (
    id, user_id, title, department, location, employment_type, experience_level,
    salary_range, job_description, requirements, openings, skills, stages, settings,
    created_at, updated_at
)
VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
ON CONFLICT (id) DO UPDATE SET
    title = EXCLUDED.title,
    department = EXCLUDED.department,
    location = EXCLUDED.location,
    employment_type = EXCLUDED.employment_type,
    experience_level = EXCLUDED.experience_level,
    salary_range = EXCLUDED.salary_range,
    job_description = EXCLUDED.job_description,
    requirements = EXCLUDED.requirements,
    openings = EXCLUDED.openings,
    skills = EXCLUDED.skills,
    stages = EXCLUDED.stages,
    settings = EXCLUDED.settings,
    updated_at = NOW()
"""

_UPSERT_CANDIDATE = """
INSERT INTO candidates (
    id, campaign_id, user_id, name, email, phone, resume_url, stage, notes,
    thread_id, communication_log, last_updated, updated_at
)
VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
ON CONFLICT (id) DO UPDATE SET
    name = EXCLUDED.name,
    email = EXCLUDED.email,
    phone = EXCLUDED.phone,
    resume_url = EXCLUDED.resume_url,
    stage = EXCLUDED.stage,
    notes = EXCLUDED.notes,
    thread_id = EXCLUDED.thread_id,
    communication_log = EXCLUDED.communication_log,
    last_updated = EXCLUDED.last_updated,
    updated_at = NOW()
"""

_DELETE_REMOVED_CANDIDATES = "DELETE FROM candidates WHERE campaign_id = %s AND NOT (id = ANY(%s))"


def _campaign_params(campaign: Campaign) -> tuple:
    return (
        campaign.id,
        campaign.user_id,
        campaign.title,
        campaign.department,
        campaign.location,
        campaign.employment_type,
        campaign.experience_level,
        campaign.salary_range,
        campaign.description,
        campaign.requirements,
        campaign.openings,
        Jsonb(campaign.skills),
        Jsonb([stage.to_json_dict() for stage in campaign.stages]),
        Jsonb(campaign.settings.to_json_dict()) if campaign.settings else None,
        campaign.created_at,
    )


def _row_to_record(row: dict[str, Any], candidate_rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Map table columns onto the domain field names."""
    return {
        "id": row["id"],
        "user_id": row.get("user_id"),
        "title": row["title"],
        "description": row.get("job_description") or "",
        "department": row.get("department") or "",
        "location": row.get("location") or "",
        "skills": row.get("skills") or [],
        "openings": row.get("openings") or 1,
        "employment_type": row.get("employment_type"),
        "experience_level": row.get("experience_level"),
        "salary_range": row.get("salary_range"),
        "requirements": row.get("requirements"),
        "stages": row.get("stages") or [],
        "settings": row.get("settings"),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
        "candidates": [
            {
                "id": c["id"],
                "name": c["name"],
                "email": c["email"],
                "phone": c.get("phone"),
                "resume_url": c.get("resume_url"),
                "current_stage": c["stage"],
                "notes": c.get("notes"),
                "thread_id": c.get("thread_id"),
                "communication_log": c.get("communication_log") or [],
                "last_updated": c.get("last_updated") or c.get("updated_at"),
            }
            for c in candidate_rows
        ],
    }


class DatabaseCampaignStore:
    """Campaign rows plus one candidate row per candidate, upserted by id."""

    def __init__(self, db: DatabasePoolManager, user_id: str | None = None):
        self.db = db
        self.user_id = user_id

    def for_user(self, user_id: str | None) -> "DatabaseCampaignStore":
        return DatabaseCampaignStore(self.db, user_id)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def _fetch_campaign_rows(self, campaign_id: str | None = None) -> list[dict[str, Any]]:
        clauses: list[sql.Composable] = [sql.SQL("TRUE")]
        params: list[Any] = []
        if campaign_id is not None:
            clauses.append(sql.SQL("id = %s"))
            params.append(campaign_id)
        if self.user_id is not None:
            clauses.append(sql.SQL("user_id = %s"))
            params.append(self.user_id)
        query = sql.SQL("SELECT * FROM campaigns WHERE {} ORDER BY created_at").format(
            sql.SQL(" AND ").join(clauses)
        )
        return await fetch_all(self.db, query, tuple(params))

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def _fetch_candidate_rows(self, campaign_ids: list[str]) -> list[dict[str, Any]]:
        return await fetch_all(
            self.db,
            "SELECT * FROM candidates WHERE campaign_id = ANY(%s) ORDER BY added_date, id",
            (campaign_ids,),
        )

    async def _load(self, campaign_id: str | None = None) -> list[dict[str, Any]]:
        try:
            rows = await self._fetch_campaign_rows(campaign_id)
            if not rows:
                return []
            candidate_rows = await self._fetch_candidate_rows([row["id"] for row in rows])
        except DatabaseError as e:
            raise PersistenceError(str(e), operation="load_campaigns") from e

        by_campaign: dict[str, list[dict[str, Any]]] = {}
        for candidate_row in candidate_rows:
            by_campaign.setdefault(candidate_row["campaign_id"], []).append(candidate_row)
        return [_row_to_record(row, by_campaign.get(row["id"], [])) for row in rows]

    async def get_campaigns(self) -> list[Campaign]:
        campaigns = []
        for record in await self._load():
            try:
                campaigns.append(_parse_campaign(record))
            except CorruptRecordError as e:
                logger.warning("Skipping malformed campaign", record_id=e.record_id, detail=e.detail)
        return campaigns

    async def get_campaign_by_id(self, campaign_id: str) -> Campaign | None:
        records = await self._load(campaign_id)
        if not records:
            logger.info("Campaign not found", campaign_id=campaign_id)
            return None
        return _parse_campaign(records[0])

    async def _write(self, campaign: Campaign, operation: str) -> None:
        """
        Upsert the campaign row, then its candidates.

        The candidate batch runs in its own transaction after the campaign
        row; a failure between the two leaves the campaign row updated.
        """
        candidate_statements: list[tuple] = [
            (
                _UPSERT_CANDIDATE,
                (
                    candidate.id,
                    campaign.id,
                    campaign.user_id,
                    candidate.name,
                    candidate.email,
                    candidate.phone,
                    candidate.resume_url,
                    candidate.current_stage,
                    candidate.notes,
                    candidate.thread_id,
                    Jsonb([m.to_json_dict() for m in candidate.communication_log]),
                    candidate.last_updated,
                ),
            )
            for candidate in campaign.candidates
        ]
        candidate_statements.append(
            (_DELETE_REMOVED_CANDIDATES, (campaign.id, [c.id for c in campaign.candidates]))
        )

        try:
            await execute_query(self.db, _UPSERT_CAMPAIGN, _campaign_params(campaign))
            await execute_transaction(self.db, candidate_statements)
        except DatabaseError as e:
            raise PersistenceError(str(e), operation=operation) from e

    async def save_campaign(self, draft: CampaignDraft) -> Campaign:
        campaign = Campaign(
            **draft.model_dump(),
            id=generate_campaign_id(),
            created_at=utc_now(),
        )
        if self.user_id and not campaign.user_id:
            campaign.user_id = self.user_id

        await self._write(campaign, "save_campaign")
        logger.info("Campaign saved", campaign_id=campaign.id, title=campaign.title)
        return campaign

    async def update_campaign(self, campaign_id: str, updates: CampaignUpdate) -> Campaign:
        current = await self.get_campaign_by_id(campaign_id)
        if current is None:
            raise CampaignNotFoundError(campaign_id)

        if isinstance(updates, Campaign):
            campaign = updates.model_copy(update={"id": campaign_id, "updated_at": utc_now()})
        else:
            merged = {**current.to_json_dict(), **updates, "id": campaign_id}
            campaign = Campaign.model_validate(merged)
            campaign.updated_at = utc_now()

        await self._write(campaign, "update_campaign")
        logger.info("Campaign updated", campaign_id=campaign_id, candidates=len(campaign.candidates))
        return campaign

    async def delete_campaign(self, campaign_id: str) -> None:
        query = "DELETE FROM campaigns WHERE id = %s"
        params: tuple = (campaign_id,)
        if self.user_id is not None:
            query += " AND user_id = %s"
            params = (campaign_id, self.user_id)
        try:
            deleted = await execute_query(self.db, query, params)
        except DatabaseError as e:
            raise PersistenceError(str(e), operation="delete_campaign") from e
        logger.info("Campaign deleted", campaign_id=campaign_id, removed=deleted)

    async def reset(self) -> None:
        try:
            if self.user_id is not None:
                await execute_query(self.db, "DELETE FROM campaigns WHERE user_id = %s", (self.user_id,))
            else:
                await execute_query(self.db, "DELETE FROM campaigns")
        except DatabaseError as e:
            raise PersistenceError(str(e), operation="reset") from e
        logger.warning("Campaign store reset", user_id=self.user_id)


def build_campaign_store(
    backend: str,
    kv: KeyValueStore | None,
    db: DatabasePoolManager | None,
) -> CampaignStore:
    """Pick the campaign store for the configured backend."""
    if backend == "database":
        if db is None or not db.is_initialized:
            raise RuntimeError("STORAGE_BACKEND=database requires DATABASE_URL")
        logger.info("Using relational campaign store")
        return DatabaseCampaignStore(db)

    if kv is None:
        raise RuntimeError("STORAGE_BACKEND=kv requires a key-value store")
    logger.info("Using key-value campaign store")
    return KeyValueCampaignStore(kv)
