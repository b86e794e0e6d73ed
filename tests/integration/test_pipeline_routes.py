import json

from hireflow.repositories.campaign_store import CAMPAIGNS_KEY
from tests.factories import TEST_USER

REASON = "Passed the phone screen"


def _stored_candidates(fake_kv) -> dict[str, dict]:
    campaigns = json.loads(fake_kv.store[f"{CAMPAIGNS_KEY}_{TEST_USER.id}"])
    return {c["id"]: c for c in campaigns[0]["candidates"]}


def test_stage_change_persists(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c1/stage",
        json={"targetStage": "screening", "reason": REASON},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["changed"] is True
    assert body["message"] == "Successfully moved Grace Hopper to Screening"
    assert _stored_candidates(fake_kv)["c1"]["currentStage"] == "screening"


def test_stage_change_to_same_stage_is_a_no_op(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c3/stage",
        json={"targetStage": "screening"},
    )

    assert response.status_code == 200
    assert response.json()["changed"] is False


def test_stage_change_requires_reason(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c1/stage",
        json={"targetStage": "screening", "reason": "too short"},
    )

    assert response.status_code == 422
    assert _stored_candidates(fake_kv)["c1"]["currentStage"] == "sourced"


def test_stage_change_unknown_candidate(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/nobody/stage",
        json={"targetStage": "screening", "reason": REASON},
    )

    assert response.status_code == 404


def test_bulk_stage_change(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/bulk/stage",
        json={"candidateIds": ["c1", "c2"], "targetStage": "interview", "reason": "Strong portfolio reviews"},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Successfully moved 2 candidates to Interview"
    stored = _stored_candidates(fake_kv)
    assert stored["c1"]["currentStage"] == stored["c2"]["currentStage"] == "interview"
    assert stored["c1"]["lastUpdated"] == stored["c2"]["lastUpdated"]


def test_bulk_delete_requires_confirmation(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/bulk/delete",
        json={"candidateIds": ["c1"], "confirmation": "yes"},
    )

    assert response.status_code == 422
    assert "c1" in _stored_candidates(fake_kv)


def test_bulk_delete(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/bulk/delete",
        json={"candidateIds": ["c1", "c2"], "confirmation": "CONFIRM"},
    )

    assert response.status_code == 200
    assert response.json()["removed"] == 2
    assert list(_stored_candidates(fake_kv)) == ["c3"]


def test_bulk_email_personalises_each_message(client, stored_campaign, fake_kv):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/bulk/email",
        json={
            "mode": "filtered",
            "stageFilter": "sourced",
            "subject": "Next steps for {{candidate.name}}",
            "body": "Hi {{candidate.name}}, thanks for applying to {{campaign.title}}.",
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Successfully sent emails to 2 candidates"
    stored = _stored_candidates(fake_kv)
    assert stored["c1"]["communicationLog"][0]["subject"] == "Next steps for Grace Hopper"
    assert stored["c2"]["communicationLog"][0]["body"].startswith("Hi Ada Lovelace")
    assert stored["c3"]["communicationLog"] == []


def test_bulk_email_requires_recipients(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/bulk/email",
        json={"mode": "filtered", "stageFilter": "hired", "subject": "Hello", "body": "Hello"},
    )

    assert response.status_code == 422


def test_send_message_and_update_notes(client, stored_campaign, fake_kv):
    sent = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c2/messages",
        json={"subject": "Interview slot", "body": "Does Tuesday work?"},
    )
    notes = client.put(
        f"/campaigns/{stored_campaign.id}/candidates/c2/notes",
        json={"notes": "Prefers mornings"},
    )

    assert sent.status_code == 200
    assert notes.status_code == 200
    stored = _stored_candidates(fake_kv)["c2"]
    assert stored["communicationLog"][0]["direction"] == "outgoing"
    assert stored["notes"] == "Prefers mornings"


def test_send_message_requires_subject(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c2/messages",
        json={"subject": "", "body": "Does Tuesday work?"},
    )

    assert response.status_code == 422


def test_sending_a_message_clears_its_draft(client, stored_campaign):
    draft_url = "/communication/drafts/c2"
    client.put(draft_url, json={"campaignId": stored_campaign.id, "subject": "Interview slot", "body": "Tuesday?"})

    sent = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/c2/messages",
        json={"subject": "Interview slot", "body": "Does Tuesday work?"},
    )

    assert sent.status_code == 200
    assert client.get(draft_url, params={"campaignId": stored_campaign.id}).status_code == 404
