"""Integration tests for operator endpoints."""

import pytest

from votegate.api.dependencies.pipeline import set_security_config
from votegate.config.pipeline_config import SecurityConfig

pytestmark = pytest.mark.integration


class TestOperatorAuth:
    def test_missing_token(self, client, submit) -> None:
        feature_id = submit()["feature"]["id"]

        response = client.post(f"/v1/features/{feature_id}/implement")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "operator_auth_required"

    def test_wrong_token(self, client, submit) -> None:
        feature_id = submit()["feature"]["id"]

        response = client.post(
            f"/v1/features/{feature_id}/implement",
            headers={"Authorization": "Bearer nope"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "operator_forbidden"

    def test_disabled_when_no_token_configured(self, client, submit) -> None:
        set_security_config(SecurityConfig())
        feature_id = submit()["feature"]["id"]

        response = client.post(
            f"/v1/features/{feature_id}/complete",
            headers={"Authorization": "Bearer anything"},
        )

        assert response.status_code == 403

    def test_user_identity_is_not_operator(self, client, submit) -> None:
        feature_id = submit()["feature"]["id"]

        response = client.post(
            f"/v1/features/{feature_id}/implement", headers={"X-User-Id": "admin"}
        )

        assert response.status_code == 401


class TestManualImplement:
    def test_implements_below_threshold(
        self, client, submit, dispatcher, operator_headers
    ) -> None:
        feature_id = submit()["feature"]["id"]

        response = client.post(
            f"/v1/features/{feature_id}/implement", headers=operator_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["claimed"] is True
        assert body["dispatched"] is True
        assert body["feature"]["status"] == "implementing"
        assert body["feature"]["voteTotal"] == 1
        assert dispatcher.call_count == 1

    def test_second_call_does_not_redispatch(
        self, client, submit, dispatcher, operator_headers
    ) -> None:
        feature_id = submit()["feature"]["id"]
        client.post(f"/v1/features/{feature_id}/implement", headers=operator_headers)

        response = client.post(
            f"/v1/features/{feature_id}/implement", headers=operator_headers
        )

        assert response.status_code == 200
        assert response.json()["claimed"] is False
        assert response.json()["dispatched"] is None
        assert dispatcher.call_count == 1

    def test_implemented_feature_conflicts(
        self, client, submit, operator_headers
    ) -> None:
        feature_id = submit()["feature"]["id"]
        client.post(f"/v1/features/{feature_id}/complete", headers=operator_headers)

        response = client.post(
            f"/v1/features/{feature_id}/implement", headers=operator_headers
        )

        assert response.status_code == 409
        assert response.json()["current_status"] == "implemented"

    def test_unknown_feature(self, client, operator_headers) -> None:
        response = client.post(
            "/v1/features/00000000-0000-0000-0000-000000000001/implement",
            headers=operator_headers,
        )
        assert response.status_code == 404


class TestForceComplete:
    def test_complete_pending_feature(self, client, submit, operator_headers) -> None:
        feature_id = submit()["feature"]["id"]

        response = client.post(
            f"/v1/features/{feature_id}/complete",
            headers=operator_headers,
            json={"externalRef": "https://pr/3"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["alreadyImplemented"] is False
        assert body["previousStatus"] == "pending"
        assert body["feature"]["status"] == "implemented"
        assert body["feature"]["voteTotal"] == 1
        assert body["feature"]["externalRef"] == "https://pr/3"

    def test_complete_is_idempotent(self, client, submit, operator_headers) -> None:
        feature_id = submit()["feature"]["id"]
        first = client.post(
            f"/v1/features/{feature_id}/complete", headers=operator_headers
        ).json()

        second = client.post(
            f"/v1/features/{feature_id}/complete", headers=operator_headers
        ).json()

        assert second["alreadyImplemented"] is True
        assert second["feature"]["implementedAt"] == first["feature"]["implementedAt"]
