from unittest.mock import AsyncMock, MagicMock

from hireflow.db.helpers import DatabaseError
from hireflow.models.domain.user_domain import AccountSettings, User, UserProfile
from hireflow.repositories.user_repository import UserRepository

USER = User(id="user-123", email="recruiter@example.com", name="Rita Recruiter")


async def test_without_database_calls_pass_through(fake_kv):
    repository = UserRepository(None, fake_kv)

    assert repository.database_available is False
    assert await repository.save_user(USER) == USER
    assert await repository.get_user(USER.email) is None
    assert await repository.update_user_onboarding(USER.email, True) is True
    profile = UserProfile(user_id=USER.id, full_name="Rita")
    assert await repository.save_profile(profile) == profile
    assert await repository.get_profile(USER.id) is None


async def test_save_user_returns_stored_row(monkeypatch, fake_kv):
    row = {**USER.model_dump(), "onboarding_completed": True}
    monkeypatch.setattr("hireflow.repositories.user_repository.fetch_one", AsyncMock(return_value=row))
    repository = UserRepository(MagicMock(is_initialized=True), fake_kv)

    stored = await repository.save_user(USER)

    assert stored.onboarding_completed is True


async def test_save_user_failure_returns_input(monkeypatch, fake_kv):
    monkeypatch.setattr(
        "hireflow.repositories.user_repository.fetch_one",
        AsyncMock(side_effect=DatabaseError("Query failed")),
    )
    repository = UserRepository(MagicMock(is_initialized=True), fake_kv)

    assert await repository.save_user(USER) == USER


async def test_onboarding_update_failure_reports_false(monkeypatch, fake_kv):
    monkeypatch.setattr(
        "hireflow.repositories.user_repository.execute_query",
        AsyncMock(side_effect=DatabaseError("Query failed")),
    )
    repository = UserRepository(MagicMock(is_initialized=True), fake_kv)

    assert await repository.update_user_onboarding(USER.email, True) is False


async def test_account_settings_and_session_cleared_on_sign_out(fake_kv):
    repository = UserRepository(None, fake_kv)
    await repository.save_account_settings(USER.id, AccountSettings(full_name="Rita", company="Acme"))
    await repository.save_session_user(USER)

    assert (await repository.get_account_settings(USER.id)).company == "Acme"
    assert (await repository.get_session_user(USER.id)).email == USER.email

    await repository.clear_session(USER.id)

    assert await repository.get_account_settings(USER.id) is None
    assert await repository.get_session_user(USER.id) is None
