"""Unit tests for database bootstrap helpers."""

import pytest

from votegate.bootstrap.database import (
    get_database_url,
    is_database_configured,
    mask_database_url,
)


class TestDatabaseUrl:
    def test_not_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert not is_database_configured()
        with pytest.raises(ValueError, match="DATABASE_URL"):
            get_database_url()

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("postgresql://u:p@db/votes", "postgresql+asyncpg://u:p@db/votes"),
            ("postgres://u:p@db/votes", "postgresql+asyncpg://u:p@db/votes"),
            (
                "postgresql+asyncpg://u:p@db/votes",
                "postgresql+asyncpg://u:p@db/votes",
            ),
            ("u:p@db/votes", "postgresql+asyncpg://u:p@db/votes"),
        ],
    )
    def test_converts_to_asyncpg(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: str
    ) -> None:
        monkeypatch.setenv("DATABASE_URL", raw)
        assert is_database_configured()
        assert get_database_url() == expected

    def test_mask_hides_password(self) -> None:
        assert (
            mask_database_url("postgresql+asyncpg://votegate:hunter2@db:5432/votes")
            == "postgresql+asyncpg://votegate:***@db:5432/votes"
        )

    def test_mask_leaves_passwordless_url(self) -> None:
        url = "postgresql+asyncpg://db:5432/votes"
        assert mask_database_url(url) == url
