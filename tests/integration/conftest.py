"""Shared fixtures for API integration tests.

Every test gets fresh pipeline singletons wired to in-memory stubs.
"""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from votegate.api.dependencies.pipeline import (
    reset_pipeline_dependencies,
    set_dispatcher,
    set_feature_store,
    set_pipeline_config,
    set_rate_limit_config,
    set_security_config,
)
from votegate.api.main import app
from votegate.bootstrap.metrics import reset_metrics
from votegate.config.pipeline_config import (
    TEST_PIPELINE_CONFIG,
    RateLimitConfig,
    SecurityConfig,
)
from votegate.infrastructure.stubs import (
    FeatureStoreStub,
    ImplementationDispatcherStub,
)

OPERATOR_TOKEN = "operator-test-token"


@pytest.fixture(autouse=True)
def reset_deps():
    """Reset pipeline singletons before and after each test."""
    reset_pipeline_dependencies()
    reset_metrics()
    yield
    reset_pipeline_dependencies()
    reset_metrics()


@pytest.fixture
def store() -> FeatureStoreStub:
    store = FeatureStoreStub()
    set_feature_store(store)
    return store


@pytest.fixture
def dispatcher() -> ImplementationDispatcherStub:
    dispatcher = ImplementationDispatcherStub.succeeding()
    set_dispatcher(dispatcher)
    return dispatcher


@pytest.fixture
def security() -> SecurityConfig:
    config = SecurityConfig(operator_token=OPERATOR_TOKEN)
    set_security_config(config)
    return config


@pytest.fixture
def client(store, dispatcher, security) -> TestClient:
    set_pipeline_config(TEST_PIPELINE_CONFIG)
    set_rate_limit_config(RateLimitConfig(submissions_per_day=3, votes_per_minute=100))
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OPERATOR_TOKEN}", "X-Operator-Id": "sam"}


@pytest.fixture
def submit(client) -> Callable[..., dict]:
    """Submit a feature through the API and return the response body."""

    def _submit(user_id: str = "creator", **body) -> dict:
        body.setdefault("title", "Dark mode")
        body.setdefault("description", "Add a dark theme")
        response = client.post("/v1/features", json=body, headers={"X-User-Id": user_id})
        assert response.status_code == 201, response.text
        return response.json()

    return _submit
