"""
Pytest configuration and shared fixtures for Votegate tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- Unit tests go in tests/unit/
- Integration tests go in tests/integration/
"""

from collections.abc import Callable
from uuid import uuid4

import pytest

from votegate.domain.models.feature import Feature, FeatureStatus


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from votegate import __version__

    return __version__


@pytest.fixture
def make_feature() -> Callable[..., Feature]:
    """Factory for Feature instances with sensible defaults."""

    def _make(
        title: str = "Dark mode",
        description: str = "Add a dark colour scheme to the board.",
        creator_id: str = "creator-1",
        status: FeatureStatus = FeatureStatus.PENDING,
        **kwargs,
    ) -> Feature:
        return Feature(
            id=kwargs.pop("id", uuid4()),
            title=title,
            description=description,
            creator_id=creator_id,
            status=status,
            **kwargs,
        )

    return _make
