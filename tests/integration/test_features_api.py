"""Integration tests for the feature board API."""

import pytest

pytestmark = pytest.mark.integration


class TestSubmitFeature:
    def test_submit_records_creator_vote(self, client, submit) -> None:
        body = submit("alice", title="Dark mode")

        assert body["hasVoted"] is True
        assert body["voteTotal"] == 1
        assert body["implementing"] is False
        feature = body["feature"]
        assert feature["status"] == "pending"
        assert feature["creatorId"] == "alice"
        assert feature["createdAt"].endswith("Z")

    def test_requires_user(self, client) -> None:
        response = client.post(
            "/v1/features", json={"title": "t", "description": "d"}
        )

        assert response.status_code == 401
        assert response.headers["content-type"] == "application/problem+json"
        assert response.json()["error"] == "authentication_required"

    @pytest.mark.parametrize(
        "body",
        [
            {"title": "", "description": "d"},
            {"title": "   ", "description": "d"},
            {"title": "x" * 201, "description": "d"},
            {"title": "t"},
        ],
    )
    def test_validation(self, client, body: dict) -> None:
        response = client.post("/v1/features", json=body, headers={"X-User-Id": "u"})
        assert response.status_code == 422
        assert response.headers["content-type"] == "application/problem+json"
        assert "error" in response.json()

    def test_validation_problem_document(self, client) -> None:
        response = client.post(
            "/v1/features", json={"title": ""}, headers={"X-User-Id": "u"}
        )

        body = response.json()
        assert body["error"] == "validation_error"
        assert body["status"] == 422
        assert {tuple(e["loc"]) for e in body["errors"]} >= {
            ("body", "title"),
            ("body", "description"),
        }

    def test_submission_rate_limit(self, client, submit) -> None:
        for i in range(3):
            submit("alice", title=f"Idea {i}")

        response = client.post(
            "/v1/features",
            json={"title": "One more", "description": "d"},
            headers={"X-User-Id": "alice"},
        )

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        body = response.json()
        assert body["error"] == "rate_limited"
        assert body["action"] == "submit"

    def test_variation_of_implemented_feature_rejected(
        self, client, submit, operator_headers
    ) -> None:
        parent = submit("alice")["feature"]
        client.post(f"/v1/features/{parent['id']}/complete", headers=operator_headers)

        response = client.post(
            "/v1/features",
            json={"title": "Darker", "description": "d", "parentId": parent["id"]},
            headers={"X-User-Id": "bob"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "parent_implemented"

    def test_variation_of_unknown_parent(self, client) -> None:
        response = client.post(
            "/v1/features",
            json={
                "title": "Darker",
                "description": "d",
                "parent_id": "00000000-0000-0000-0000-000000000001",
            },
            headers={"X-User-Id": "bob"},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "parent_not_found"


class TestBoard:
    def test_board_lists_features_with_user_state(self, client, submit) -> None:
        first = submit("alice", title="First")["feature"]
        submit("bob", title="Second")
        client.post(f"/v1/features/{first['id']}/vote", headers={"X-User-Id": "carol"})

        response = client.get("/v1/features", headers={"X-User-Id": "carol"})

        assert response.status_code == 200
        board = response.json()
        assert board["threshold"] == 5
        assert board["canSubmit"] is True
        assert [(f["title"], f["voteTotal"]) for f in board["features"]] == [
            ("First", 2),
            ("Second", 1),
        ]
        assert board["features"][0]["userHasVoted"] is True
        assert board["features"][1]["userHasVoted"] is False
        assert board["implementedFeatures"] == []

    def test_anonymous_board(self, client, submit) -> None:
        submit("alice")

        board = client.get("/v1/features").json()

        assert board["canSubmit"] is None
        assert board["features"][0]["userHasVoted"] is False

    def test_get_feature(self, client, submit) -> None:
        feature = submit("alice")["feature"]

        response = client.get(
            f"/v1/features/{feature['id']}", headers={"X-User-Id": "alice"}
        )

        assert response.status_code == 200
        assert response.json()["userHasVoted"] is True

    def test_get_unknown_feature(self, client) -> None:
        response = client.get("/v1/features/00000000-0000-0000-0000-000000000001")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "feature_not_found"
        assert body["status"] == 404

    def test_malformed_id(self, client) -> None:
        response = client.get("/v1/features/not-a-uuid")

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


class TestVote:
    def test_toggle(self, client, submit) -> None:
        feature_id = submit("alice")["feature"]["id"]

        added = client.post(f"/v1/features/{feature_id}/vote", headers={"X-User-Id": "bob"})
        removed = client.post(
            f"/v1/features/{feature_id}/vote", headers={"X-User-Id": "bob"}
        )

        assert added.json() == {
            "action": "added",
            "hasVoted": True,
            "voteTotal": 2,
            "implementing": False,
            "dispatched": None,
            "message": None,
        }
        assert removed.json()["action"] == "removed"
        assert removed.json()["voteTotal"] == 1

    def test_requires_user(self, client, submit) -> None:
        feature_id = submit("alice")["feature"]["id"]
        response = client.post(f"/v1/features/{feature_id}/vote")
        assert response.status_code == 401

    def test_malformed_id(self, client) -> None:
        response = client.post(
            "/v1/features/not-a-uuid/vote", headers={"X-User-Id": "bob"}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["errors"][0]["loc"] == ["path", "feature_id"]

    def test_unknown_feature(self, client) -> None:
        response = client.post(
            "/v1/features/00000000-0000-0000-0000-000000000001/vote",
            headers={"X-User-Id": "bob"},
        )
        assert response.status_code == 404

    def test_vote_rate_limit(self, client, submit) -> None:
        from votegate.api.dependencies.pipeline import set_rate_limit_config
        from votegate.config.pipeline_config import RateLimitConfig

        set_rate_limit_config(RateLimitConfig(votes_per_minute=2))
        feature_id = submit("alice")["feature"]["id"]
        for _ in range(2):
            client.post(f"/v1/features/{feature_id}/vote", headers={"X-User-Id": "bob"})

        response = client.post(
            f"/v1/features/{feature_id}/vote", headers={"X-User-Id": "bob"}
        )

        assert response.status_code == 429
        assert response.json()["action"] == "vote"
        assert "Retry-After" in response.headers


class TestHealthAndMetrics:
    def test_health(self, client) -> None:
        response = client.get("/v1/health")
        assert response.json() == {"status": "healthy"}
        assert "X-Correlation-ID" in response.headers

    def test_correlation_id_is_echoed(self, client) -> None:
        response = client.get("/v1/health", headers={"X-Correlation-ID": "req-42"})
        assert response.headers["X-Correlation-ID"] == "req-42"

    def test_metrics_count_votes(self, client, submit) -> None:
        submit("alice")

        response = client.get("/v1/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "votegate_votes_total{" in response.text
        assert 'action="added"' in response.text
