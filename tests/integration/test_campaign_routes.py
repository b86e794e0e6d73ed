import json

from hireflow.repositories.campaign_store import CAMPAIGNS_KEY
from tests.factories import TEST_USER, build_campaign, seed_campaigns

USER_KEY = f"{CAMPAIGNS_KEY}_{TEST_USER.id}"

NEW_CAMPAIGN = {
    "title": "Product Designer",
    "department": "Design",
    "location": "Berlin",
    "description": "Own the hiring dashboard experience",
    "skills": ["figma"],
}

CSV_TEXT = """Name,Email,Phone,Stage
Katherine Johnson,katherine@example.com,,Interview
,missing-name@example.com,,Sourced
Dorothy Vaughan,dorothy@example.com,,
"""


def test_create_campaign_uses_default_stages(client, fake_kv):
    response = client.post("/campaigns", json=NEW_CAMPAIGN)

    assert response.status_code == 201
    body = response.json()
    assert body["id"].startswith("campaign-")
    assert [s["id"] for s in body["stages"]] == ["sourced", "screening", "interview", "hired", "rejected"]
    assert body["candidates"] == []
    assert body["userId"] == TEST_USER.id
    assert USER_KEY in fake_kv.store


def test_create_campaign_rejects_missing_title(client):
    response = client.post("/campaigns", json={**NEW_CAMPAIGN, "title": ""})

    assert response.status_code == 422


def test_list_campaigns(client, stored_campaign):
    response = client.get("/campaigns")

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["campaigns"][0]["id"] == stored_campaign.id


def test_list_campaigns_search_keeps_totals(client, fake_kv):
    backend = build_campaign(campaign_id="campaign-1")
    design = build_campaign(campaign_id="campaign-2").model_copy(
        update={"title": "Product Designer", "department": "Design", "location": "Berlin", "openings": 3}
    )
    seed_campaigns(fake_kv, [backend, design], TEST_USER.id)

    body = client.get("/campaigns", params={"search": "design"}).json()

    assert [c["id"] for c in body["campaigns"]] == ["campaign-2"]
    assert body["total"] == 2
    assert body["totalOpenings"] == 4


def test_get_campaign_not_found(client, stored_campaign):
    response = client.get("/campaigns/campaign-missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Campaign not found"


def test_patch_merges_fields(client, stored_campaign):
    response = client.patch(f"/campaigns/{stored_campaign.id}", json={"title": "Principal Engineer"})

    assert response.status_code == 200
    assert response.json()["title"] == "Principal Engineer"
    assert len(response.json()["candidates"]) == 3


def test_patch_without_fields(client, stored_campaign):
    response = client.patch(f"/campaigns/{stored_campaign.id}", json={})

    assert response.status_code == 400


def test_delete_campaign(client, stored_campaign, fake_kv):
    response = client.delete(f"/campaigns/{stored_campaign.id}")

    assert response.status_code == 204
    assert json.loads(fake_kv.store[USER_KEY]) == []


def test_add_candidate_manually(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates",
        json={"name": "Margaret Hamilton", "email": "margaret@example.com", "stage": "Interview"},
    )

    assert response.status_code == 201
    added = response.json()["added"][0]
    assert added["id"].startswith("manual-")
    assert added["currentStage"] == "interview"
    assert response.json()["message"] == "Successfully added candidate Margaret Hamilton!"


def test_add_candidate_rejects_bad_email(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates",
        json={"name": "Margaret Hamilton", "email": "margaret-at-example"},
    )

    assert response.status_code == 422


def test_import_preview(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/import/preview",
        json={"csvText": CSV_TEXT},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["headers"] == ["Name", "Email", "Phone", "Stage"]
    assert body["totalRows"] == 3
    assert [m["systemField"] for m in body["mappings"]] == ["name", "email", "phone", "stage"]


def test_import_reports_skipped_rows(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/import",
        json={"csvText": CSV_TEXT},
    )

    assert response.status_code == 201
    body = response.json()
    assert [c["name"] for c in body["added"]] == ["Katherine Johnson", "Dorothy Vaughan"]
    assert [c["currentStage"] for c in body["added"]] == ["interview", "sourced"]
    assert body["warnings"] == ["Row 3: Missing name"]
    assert body["message"] == "Successfully uploaded 2 candidates"


def test_import_without_valid_rows(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/import",
        json={"csvText": "Name,Email\n,nobody@example.com\n"},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "No valid candidates found in file"


def test_import_with_only_a_header(client, stored_campaign):
    response = client.post(
        f"/campaigns/{stored_campaign.id}/candidates/import",
        json={"csvText": "Name,Email\n"},
    )

    assert response.status_code == 400


def test_import_template_download(client):
    response = client.get("/campaigns/import-template")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "candidate_upload_template.csv" in response.headers["content-disposition"]


def test_storage_failure_returns_retry_message(client, stored_campaign, fake_kv):
    fake_kv.fail_writes = True

    response = client.patch(f"/campaigns/{stored_campaign.id}", json={"title": "Principal Engineer"})

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to save changes. Please try again."
