import pytest
from fastapi.testclient import TestClient

from auth import TokenIdentityProvider
from config import Settings
from database import AssessmentStore
from errors import PersistenceError
from main import create_app
from schemas import ApplicantProfile


class FakeProvider:
    """Stands in for the AI provider: returns canned text or raises."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def complete(self, prompt, system_prompt=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


class RecordingStore:
    def __init__(self, error=None):
        self.error = error
        self.saved = []

    def save(self, user_id, profile, result, breakdown=()):
        if self.error is not None:
            raise self.error
        self.saved.append((user_id, profile, result, list(breakdown)))
        return f"assessment-{len(self.saved)}"


class FailingStore(AssessmentStore):
    def save(self, user_id, profile, result, breakdown=()):
        raise PersistenceError("disk full")


@pytest.fixture
def scenario_one_payload():
    return {
        "monthlyIncome": 50000,
        "employmentType": "salaried",
        "employmentDurationMonths": 30,
        "existingLoans": [],
        "creditScore": 780,
        "loanAmountRequested": 500000,
        "loanPurpose": "Buy a tractor",
    }


@pytest.fixture
def scenario_two_payload():
    return {
        "monthlyIncome": 20000,
        "employmentType": "self_employed",
        "employmentDurationMonths": 6,
        "existingLoans": [{"type": "gold_loan", "amount": 60000, "monthlyEmi": 5000}],
        "creditScore": 580,
        "loanAmountRequested": 200000,
        "loanPurpose": "Dairy expansion",
    }


@pytest.fixture
def scenario_one(scenario_one_payload):
    return ApplicantProfile.model_validate(scenario_one_payload)


@pytest.fixture
def scenario_two(scenario_two_payload):
    return ApplicantProfile.model_validate(scenario_two_payload)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_PATH=str(tmp_path / "assessments.db"),
        SECRET_KEY="test-secret",
        AI_API_KEY="test-key",
        FALLBACK_ON_PROVIDER_ERROR=False,
    )


@pytest.fixture
def identity(settings):
    return TokenIdentityProvider(settings.SECRET_KEY, settings.TOKEN_MAX_AGE_SECONDS)


@pytest.fixture
def auth_headers(identity):
    return {"Authorization": f"Bearer {identity.issue_token('farmer-1')}"}


@pytest.fixture
def make_client(settings, identity):
    def _make(provider, store=None):
        app = create_app(settings, provider=provider, store=store, identity=identity)
        return TestClient(app)

    return _make
