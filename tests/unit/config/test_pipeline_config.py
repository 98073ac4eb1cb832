"""Unit tests for pipeline configuration."""

import pytest

from votegate.config.pipeline_config import (
    DEFAULT_PIPELINE_CONFIG,
    TEST_PIPELINE_CONFIG,
    DispatchConfig,
    PipelineConfig,
    RateLimitConfig,
    SecurityConfig,
)


class TestPipelineConfig:
    def test_defaults(self) -> None:
        assert DEFAULT_PIPELINE_CONFIG.implementation_threshold == 5
        assert DEFAULT_PIPELINE_CONFIG.text_fallback_enabled is True
        assert DEFAULT_PIPELINE_CONFIG.auto_vote_on_submit is True
        assert DEFAULT_PIPELINE_CONFIG.observer_queue_size == 100

    def test_test_config_has_small_queue(self) -> None:
        assert TEST_PIPELINE_CONFIG.observer_queue_size == 4

    @pytest.mark.parametrize("threshold", [0, -1])
    def test_threshold_must_be_positive(self, threshold: int) -> None:
        with pytest.raises(ValueError, match="implementation_threshold"):
            PipelineConfig(implementation_threshold=threshold)

    def test_queue_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="observer_queue_size"):
            PipelineConfig(observer_queue_size=0)

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IMPLEMENTATION_THRESHOLD", "3")
        monkeypatch.setenv("RECONCILER_TEXT_FALLBACK", "off")
        monkeypatch.setenv("AUTO_VOTE_ON_SUBMIT", "yes")
        monkeypatch.setenv("LIVE_OBSERVER_QUEUE_SIZE", "not-a-number")

        config = PipelineConfig.from_environment()

        assert config.implementation_threshold == 3
        assert config.text_fallback_enabled is False
        assert config.auto_vote_on_submit is True
        assert config.observer_queue_size == 100


class TestDispatchConfig:
    def test_unconfigured_by_default(self) -> None:
        assert not DispatchConfig().is_configured

    def test_configured_with_token_and_repository(self) -> None:
        config = DispatchConfig(github_token="t", github_repository="acme/app")
        assert config.is_configured

    def test_repository_must_be_owner_slash_repo(self) -> None:
        with pytest.raises(ValueError, match="owner/repo"):
            DispatchConfig(github_repository="acme")

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="timeout_seconds"):
            DispatchConfig(timeout_seconds=0)

    def test_from_environment_treats_blank_as_unset(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "   ")
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/app")
        monkeypatch.setenv("DISPATCH_TIMEOUT_SECONDS", "2.5")

        config = DispatchConfig.from_environment()

        assert config.github_token is None
        assert config.github_repository == "acme/app"
        assert config.timeout_seconds == 2.5
        assert not config.is_configured


class TestRateLimitConfig:
    def test_defaults(self) -> None:
        config = RateLimitConfig()
        assert config.submissions_per_day == 3
        assert config.votes_per_minute == 10

    def test_limits_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RateLimitConfig(votes_per_minute=0)
        with pytest.raises(ValueError):
            RateLimitConfig(submissions_per_day=0)


class TestSecurityConfig:
    def test_repr_masks_secrets(self) -> None:
        config = SecurityConfig(operator_token="s3cret", hcaptcha_secret="h")
        text = repr(config)
        assert "s3cret" not in text
        assert "operator_token=***" in text
        assert "github_webhook_secret=None" in text

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPERATOR_TOKEN", "op")
        monkeypatch.delenv("GITHUB_WEBHOOK_SECRET", raising=False)
        monkeypatch.setenv("HCAPTCHA_SECRET_KEY", "")

        config = SecurityConfig.from_environment()

        assert config.operator_token == "op"
        assert config.github_webhook_secret is None
        assert config.hcaptcha_secret is None
