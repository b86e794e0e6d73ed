"""
User repository for the users and user_profiles tables, plus the
account-settings blob kept in the key-value store.

Without a database these calls degrade to pass-through: save returns its
input, reads return None and the onboarding flag update reports success,
so sign-in and onboarding keep working in local development.

Service layer returns domain models only - API layer handles HTTP concerns.
"""

from hireflow.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from hireflow.db.pool import DatabasePoolManager
from hireflow.infrastructure.observability.logging import get_logger
from hireflow.models.domain.user_domain import AccountSettings, User, UserProfile
from hireflow.services.kv_store import KeyValueStore

logger = get_logger(__name__)

ACCOUNT_SETTINGS_PREFIX = "accountSettings"
SESSION_USER_KEY = "hireflow_user"


class UserRepository:
    def __init__(self, db: DatabasePoolManager | None, kv: KeyValueStore):
        self.db = db if db is not None and db.is_initialized else None
        self.kv = kv

    @property
    def database_available(self) -> bool:
        return self.db is not None

    # =================================================================
    # USERS
    # =================================================================

    async def save_user(self, user: User) -> User:
        """
        Insert or refresh a user keyed by email.

        Returns the stored row, or the input when the database is missing or
        the write fails.
        """
        if self.db is None:
            logger.warning("Database not available, user kept in session only", email=user.email)
            return user

        query = """
        INSERT INTO users (id, email, name, picture, verified_email, onboarding_completed)
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (email)
        DO UPDATE SET
            name = EXCLUDED.name,
            picture = EXCLUDED.picture,
            verified_email = EXCLUDED.verified_email,
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """

        try:
            row = await fetch_one(
                self.db,
                query,
                (
                    user.id,
                    user.email,
                    user.name,
                    user.picture,
                    user.verified_email,
                    user.onboarding_completed,
                ),
            )
            if not row:
                return user

            logger.info("User saved", user_id=row["id"])
            return User.model_validate(row)

        except DatabaseError as e:
            logger.error("Error saving user", email=user.email, error=str(e))
            return user

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def _fetch_user(self, email: str) -> dict | None:
        return await fetch_one(self.db, "SELECT * FROM users WHERE email = %s", (email,))

    async def get_user(self, email: str) -> User | None:
        if self.db is None:
            logger.warning("Database not available, no stored user", email=email)
            return None

        try:
            row = await self._fetch_user(email)
        except DatabaseError as e:
            logger.error("Error getting user", email=email, error=str(e))
            return None

        return User.model_validate(row) if row else None

    async def update_user_onboarding(self, email: str, completed: bool) -> bool:
        if self.db is None:
            logger.warning("Database not available, onboarding flag not persisted", email=email)
            return True

        try:
            await execute_query(
                self.db,
                """
                UPDATE users
                SET onboarding_completed = %s, updated_at = CURRENT_TIMESTAMP
                WHERE email = %s
                """,
                (completed, email),
            )
            logger.info("Onboarding status updated", email=email, completed=completed)
            return True

        except DatabaseError as e:
            logger.error("Error updating user onboarding", email=email, error=str(e))
            return False

    # =================================================================
    # PROFILES
    # =================================================================

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        if self.db is None:
            logger.warning("Database not available, profile not persisted", user_id=profile.user_id)
            return profile

        query = """
        INSERT INTO user_profiles (
            user_id, full_name, job_title, company, company_size, industry, phone, profile_completed
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (user_id)
        DO UPDATE SET
            full_name = EXCLUDED.full_name,
            job_title = EXCLUDED.job_title,
            company = EXCLUDED.company,
            company_size = EXCLUDED.company_size,
            industry = EXCLUDED.industry,
            phone = EXCLUDED.phone,
            profile_completed = EXCLUDED.profile_completed,
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """

        try:
            row = await fetch_one(
                self.db,
                query,
                (
                    profile.user_id,
                    profile.full_name,
                    profile.job_title,
                    profile.company,
                    profile.company_size,
                    profile.industry,
                    profile.phone,
                    profile.profile_completed,
                ),
            )
            return UserProfile.model_validate(row) if row else profile

        except DatabaseError as e:
            logger.error("Error saving profile", user_id=profile.user_id, error=str(e))
            return profile

    async def get_profile(self, user_id: str) -> UserProfile | None:
        if self.db is None:
            return None

        try:
            row = await fetch_one(self.db, "SELECT * FROM user_profiles WHERE user_id = %s", (user_id,))
        except DatabaseError as e:
            logger.error("Error getting profile", user_id=user_id, error=str(e))
            return None

        return UserProfile.model_validate(row) if row else None

    # =================================================================
    # ACCOUNT SETTINGS (key-value)
    # =================================================================

    async def get_account_settings(self, user_id: str) -> AccountSettings | None:
        raw = await self.kv.get_json(f"{ACCOUNT_SETTINGS_PREFIX}:{user_id}")
        if not raw:
            return None
        try:
            return AccountSettings.model_validate(raw)
        except ValueError as e:
            logger.warning("Discarding malformed account settings", user_id=user_id, error=str(e))
            return None

    async def save_account_settings(self, user_id: str, account: AccountSettings) -> AccountSettings:
        await self.kv.set_json(f"{ACCOUNT_SETTINGS_PREFIX}:{user_id}", account.to_json_dict())
        logger.info("Account settings saved", user_id=user_id)
        return account

    async def clear_session(self, user_id: str) -> None:
        """Sign-out: forget the session identity and the account settings."""
        await self.kv.delete(f"{SESSION_USER_KEY}_{user_id}")
        await self.kv.delete(f"{ACCOUNT_SETTINGS_PREFIX}:{user_id}")

    async def save_session_user(self, user: User) -> None:
        """Identity blob the dashboard reads on reload."""
        await self.kv.set_json(f"{SESSION_USER_KEY}_{user.id}", user.model_dump(mode="json"))

    async def get_session_user(self, user_id: str) -> User | None:
        raw = await self.kv.get_json(f"{SESSION_USER_KEY}_{user_id}")
        return User.model_validate(raw) if raw else None
