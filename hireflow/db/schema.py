"""
Relational schema for HireFlow.

Tables are created idempotently at startup so a fresh Neon branch works
without a separate migration step.
"""

from hireflow.db.helpers import execute_transaction
from hireflow.db.pool import DatabasePoolManager
from hireflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TABLE_DDL: dict[str, str] = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(255) PRIMARY KEY,
            email VARCHAR(255) UNIQUE NOT NULL,
            name VARCHAR(255) NOT NULL,
            picture TEXT,
            verified_email BOOLEAN DEFAULT false,
            onboarding_completed BOOLEAN DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "user_profiles": """
        CREATE TABLE IF NOT EXISTS user_profiles (
            user_id VARCHAR(255) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            full_name VARCHAR(255),
            job_title VARCHAR(255),
            company VARCHAR(255),
            company_size VARCHAR(64),
            industry VARCHAR(255),
            phone VARCHAR(64),
            profile_completed BOOLEAN DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "campaigns": """
        CREATE TABLE IF NOT EXISTS campaigns (
            id VARCHAR(255) PRIMARY KEY,
            user_id VARCHAR(255) REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(255) NOT NULL,
            department VARCHAR(255),
            location VARCHAR(255),
            employment_type VARCHAR(64),
            experience_level VARCHAR(64),
            salary_range VARCHAR(128),
            job_description TEXT,
            requirements TEXT,
            openings INTEGER DEFAULT 1,
            skills JSONB DEFAULT '[]'::jsonb,
            stages JSONB DEFAULT '[]'::jsonb,
            settings JSONB,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "candidates": """
        CREATE TABLE IF NOT EXISTS candidates (
            id VARCHAR(255) PRIMARY KEY,
            campaign_id VARCHAR(255) NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
            user_id VARCHAR(255) REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            email VARCHAR(255) NOT NULL,
            phone VARCHAR(64),
            resume_url TEXT,
            stage VARCHAR(255) NOT NULL,
            notes TEXT,
            thread_id VARCHAR(255),
            communication_log JSONB DEFAULT '[]'::jsonb,
            added_date TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            last_updated TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """,
    "analytics_events": """
        CREATE TABLE IF NOT EXISTS analytics_events (
            id BIGSERIAL PRIMARY KEY,
            event_type VARCHAR(255) NOT NULL,
            event_data JSONB,
            user_id VARCHAR(255),
            user_email VARCHAR(255),
            timestamp TIMESTAMPTZ NOT NULL,
            ip_address VARCHAR(64),
            user_agent TEXT,
            currency VARCHAR(8),
            session_id VARCHAR(255)
        )
    """,
    "user_feedback": """
        CREATE TABLE IF NOT EXISTS user_feedback (
            id BIGSERIAL PRIMARY KEY,
            user_name VARCHAR(255),
            user_email VARCHAR(255),
            responses JSONB NOT NULL,
            timestamp TIMESTAMPTZ NOT NULL,
            ip_address VARCHAR(64),
            user_agent TEXT
        )
    """,
}

INDEX_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_candidates_campaign ON candidates(campaign_id)",
    "CREATE INDEX IF NOT EXISTS idx_campaigns_user ON campaigns(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_analytics_events_type_ts ON analytics_events(event_type, timestamp)",
]


async def create_tables(db: DatabasePoolManager) -> None:
    """Create every table and index if missing, parents before children."""
    statements = [(ddl, ()) for ddl in TABLE_DDL.values()]
    statements.extend((ddl, ()) for ddl in INDEX_DDL)

    await execute_transaction(db, statements)
    logger.info("Database schema verified", tables=list(TABLE_DDL))
