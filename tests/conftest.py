import pytest

from hireflow.auth.verify import auth_dependency
from hireflow.pipeline.stages import StagePolicy
from hireflow.repositories.campaign_store import KeyValueCampaignStore
from tests.factories import TEST_USER, FakeKeyValue, build_campaign, build_candidate, seed_campaigns


@pytest.fixture
def fake_kv():
    return FakeKeyValue()


@pytest.fixture
def kv_store(fake_kv):
    return KeyValueCampaignStore(fake_kv)


@pytest.fixture
def campaign():
    return build_campaign(
        [
            build_candidate("c1", "Grace Hopper", "grace@example.com", "sourced"),
            build_candidate("c2", "Ada Lovelace", "ada@example.com", "sourced", phone="+44 20 7946 0000"),
            build_candidate("c3", "Alan Turing", "alan@example.com", "screening", notes="Strong on theory"),
        ]
    )


@pytest.fixture
def stored_campaign(fake_kv, campaign):
    """The campaign fixture persisted in the key-value store under the test user."""
    seed_campaigns(fake_kv, [campaign], TEST_USER.id)
    return campaign


@pytest.fixture
def test_app(fake_kv):
    """FastAPI app with state wired to in-memory services and auth bypassed."""
    from hireflow.main import app
    from hireflow.repositories.user_repository import UserRepository
    from hireflow.services.analytics_service import AnalyticsTracker
    from hireflow.services.communication_service import AIEnhancer, DraftStore
    from hireflow.services.feedback_service import FeedbackService

    app.state.kv = fake_kv
    app.state.db = None
    app.state.campaign_store = KeyValueCampaignStore(fake_kv)
    app.state.stage_policy = StagePolicy.FALLBACK
    app.state.user_repository = UserRepository(None, fake_kv)
    app.state.analytics_repository = None
    app.state.analytics_tracker = AnalyticsTracker(fake_kv)
    app.state.feedback_service = FeedbackService(fake_kv)
    app.state.draft_store = DraftStore(fake_kv)
    app.state.ai_enhancer = AIEnhancer(delay_s=0)

    app.dependency_overrides[auth_dependency] = lambda: TEST_USER
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    from fastapi.testclient import TestClient

    return TestClient(test_app)
