from unittest.mock import AsyncMock, MagicMock

from hireflow.repositories.user_repository import UserRepository
from tests.factories import TEST_USER


def test_settings_default_to_token_identity(client):
    response = client.get("/account/settings")

    assert response.status_code == 200
    assert response.json()["fullName"] == TEST_USER.name
    assert response.json()["email"] == TEST_USER.email


def test_settings_require_full_name(client):
    response = client.put("/account/settings", json={"fullName": "  ", "email": TEST_USER.email})

    assert response.status_code == 422


def test_settings_saved(client):
    client.put("/account/settings", json={"fullName": "Rita R.", "company": "Acme"})

    assert client.get("/account/settings").json()["company"] == "Acme"


def test_sign_in_and_out(client):
    signed_in = client.post("/account/session")

    assert signed_in.status_code == 200
    assert client.get("/account/session").json()["email"] == TEST_USER.email

    assert client.delete("/account/session").status_code == 204
    assert client.get("/account/session").status_code == 404


def test_expired_session_restored_from_stored_user(client, test_app, fake_kv, monkeypatch):
    row = {"id": TEST_USER.id, "email": TEST_USER.email, "name": TEST_USER.name, "onboarding_completed": True}
    monkeypatch.setattr("hireflow.repositories.user_repository.fetch_one", AsyncMock(return_value=row))
    test_app.state.user_repository = UserRepository(MagicMock(is_initialized=True), fake_kv)

    response = client.get("/account/session")

    assert response.status_code == 200
    assert response.json()["onboarding_completed"] is True
    assert client.get("/account/session").json()["email"] == TEST_USER.email


def test_onboarding_seeds_account_settings(client):
    response = client.post(
        "/account/onboarding",
        json={"fullName": "Rita Recruiter", "jobTitle": "Talent Lead", "company": "Acme"},
    )

    assert response.status_code == 200
    assert response.json()["onboarding_completed"] is True
    settings = client.get("/account/settings").json()
    assert (settings["jobTitle"], settings["company"]) == ("Talent Lead", "Acme")
