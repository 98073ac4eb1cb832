"""Unit tests for structured logging and the request log context."""

import json

import pytest
import structlog

from votegate import __version__
from votegate.infrastructure.observability.correlation import (
    MAX_CORRELATION_ID_LENGTH,
    CallerContext,
    accept_correlation_id,
    clear_request_context,
    correlation_id_processor,
    generate_correlation_id,
    get_caller,
    get_correlation_id,
    request_context_processor,
    set_caller,
    set_correlation_id,
)
from votegate.infrastructure.observability.logging import (
    LOG_FORMAT_ENV,
    configure_structlog,
    deployment_processor,
    get_logger_for_service,
)


@pytest.fixture(autouse=True)
def reset_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(LOG_FORMAT_ENV, raising=False)
    clear_request_context()
    yield
    clear_request_context()
    structlog.reset_defaults()


def _last_entry(capsys: pytest.CaptureFixture[str]) -> dict:
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


class TestCorrelation:
    def test_generate_is_unique(self) -> None:
        assert generate_correlation_id() != generate_correlation_id()

    def test_set_and_get(self) -> None:
        set_correlation_id("abc")
        assert get_correlation_id() == "abc"

    def test_processor_adds_id_when_set(self) -> None:
        set_correlation_id("abc")
        assert correlation_id_processor(None, "info", {"event": "x"}) == {
            "event": "x",
            "correlation_id": "abc",
        }

    def test_processor_keeps_explicit_id(self) -> None:
        set_correlation_id("abc")
        event = correlation_id_processor(None, "info", {"correlation_id": "mine"})
        assert event["correlation_id"] == "mine"

    def test_processor_noop_when_unset(self) -> None:
        assert correlation_id_processor(None, "info", {"event": "x"}) == {"event": "x"}

    @pytest.mark.parametrize("candidate", ["req-42", "gh:run.991", "A1_b2"])
    def test_accepts_safe_inbound_id(self, candidate: str) -> None:
        assert accept_correlation_id(candidate) == candidate

    @pytest.mark.parametrize(
        "candidate",
        [None, "", "has space", "line\nbreak", "x" * (MAX_CORRELATION_ID_LENGTH + 1)],
    )
    def test_replaces_unsafe_inbound_id(self, candidate: str | None) -> None:
        accepted = accept_correlation_id(candidate)
        assert accepted
        assert accepted != candidate


class TestCallerContext:
    def test_unset_by_default(self) -> None:
        assert get_caller() is None

    def test_set_caller(self) -> None:
        set_caller(user_id="alice")
        assert get_caller() == CallerContext(user_id="alice")

    def test_set_caller_without_ids_clears(self) -> None:
        set_caller(user_id="alice")
        set_caller()
        assert get_caller() is None

    def test_processor_adds_caller_and_correlation(self) -> None:
        set_correlation_id("req-1")
        set_caller(user_id="alice", operator_id="ops")

        event = request_context_processor(None, "info", {"event": "vote_toggled"})

        assert event == {
            "event": "vote_toggled",
            "correlation_id": "req-1",
            "user_id": "alice",
            "operator_id": "ops",
        }

    def test_processor_keeps_explicit_user(self) -> None:
        set_caller(user_id="alice")
        event = request_context_processor(None, "info", {"user_id": "bob"})
        assert event["user_id"] == "bob"

    def test_clear_request_context(self) -> None:
        set_correlation_id("req-1")
        set_caller(operator_id="ops")

        clear_request_context()

        assert get_correlation_id() == ""
        assert get_caller() is None
        assert request_context_processor(None, "info", {}) == {}


class TestConfigureStructlog:
    def test_production_renders_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_structlog(environment="production")
        set_correlation_id("req-1")
        set_caller(user_id="alice")

        structlog.get_logger("test").info("vote_toggled", feature_id="f-1")

        entry = _last_entry(capsys)
        assert entry["event"] == "vote_toggled"
        assert entry["level"] == "info"
        assert entry["correlation_id"] == "req-1"
        assert entry["user_id"] == "alice"
        assert entry["feature_id"] == "f-1"
        assert "timestamp" in entry

    def test_entries_carry_deployment(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_structlog(environment="production")

        structlog.get_logger("test").info("votegate_api_starting")

        entry = _last_entry(capsys)
        assert entry["app"] == "votegate"
        assert entry["version"] == __version__
        assert entry["environment"] == "production"

    def test_log_format_forces_json(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv(LOG_FORMAT_ENV, "json")
        configure_structlog(environment="staging")

        structlog.get_logger("test").info("dispatch_sent")

        entry = _last_entry(capsys)
        assert entry["event"] == "dispatch_sent"
        assert entry["environment"] == "staging"

    def test_log_format_forces_console(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv(LOG_FORMAT_ENV, "console")
        configure_structlog(environment="production")

        structlog.get_logger("test").info("dispatch_sent")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        assert "dispatch_sent" in line
        with pytest.raises(json.JSONDecodeError):
            json.loads(line)

    def test_deployment_processor_keeps_explicit_values(self) -> None:
        add = deployment_processor("production")
        event = add(None, "info", {"environment": "canary"})
        assert event["environment"] == "canary"
        assert event["app"] == "votegate"

    def test_service_logger_binds_context(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_structlog(environment="production")

        get_logger_for_service("VoteService").info("ready")

        entry = _last_entry(capsys)
        assert entry["service"] == "VoteService"
        assert entry["component"] == "pipeline"
