"""
Tests for the GitHub Actions run-history adapter.
"""

from unittest.mock import MagicMock, patch

import requests

from deployctl.adapters.base import ExecutionContext
from deployctl.adapters.ci.github import GitHubActionsAdapter, github_api_headers
from deployctl.core.models.action import Action


def _ctx(**params) -> ExecutionContext:
    values = {
        "operation": "last_run",
        "api_url": "https://api.github.com/",
        "repository": "acme/shop",
        "token": "ghs_test",
        "branch": "main",
    }
    values.update(params)
    action = Action(id="op:last_run", name="last_run", adapter="github", params=values)
    return ExecutionContext(action=action, params=values)


def _response(payload) -> MagicMock:
    r = MagicMock()
    r.json.return_value = payload
    r.raise_for_status.return_value = None
    return r


class TestHeaders:
    def test_bearer_token(self):
        headers = github_api_headers("abc")
        assert headers["Authorization"] == "Bearer abc"
        assert headers["Accept"] == "application/vnd.github.v3+json"


class TestValidate:
    def test_ok(self):
        assert GitHubActionsAdapter().validate(_ctx()) == (True, "")

    def test_missing_token(self):
        ok, err = GitHubActionsAdapter().validate(_ctx(token=""))
        assert not ok
        assert "token" in err

    def test_unknown_operation(self):
        assert not GitHubActionsAdapter().validate(_ctx(operation="rerun"))[0]


class TestLastRun:
    @patch("deployctl.adapters.ci.github.requests.get")
    def test_request(self, mock_get):
        mock_get.return_value = _response({"workflow_runs": []})
        GitHubActionsAdapter().execute(_ctx())

        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.github.com/repos/acme/shop/actions/runs"
        assert kwargs["params"] == {"status": "completed", "branch": "main", "per_page": 2}
        assert kwargs["headers"]["Authorization"] == "Bearer ghs_test"

    @patch("deployctl.adapters.ci.github.requests.get")
    def test_newest_run_wins(self, mock_get):
        mock_get.return_value = _response({
            "workflow_runs": [
                {"id": 1, "conclusion": "success", "created_at": "2026-01-01T10:00:00Z"},
                {"id": 2, "conclusion": "failure", "created_at": "2026-01-02T10:00:00Z"},
            ]
        })
        receipt = GitHubActionsAdapter().execute(_ctx())
        assert receipt.ok
        assert receipt.output == "failure"
        assert receipt.metadata == {"conclusion": "failure", "run_id": 2, "runs_seen": 2}

    @patch("deployctl.adapters.ci.github.requests.get")
    def test_no_runs(self, mock_get):
        mock_get.return_value = _response({"total_count": 0, "workflow_runs": []})
        receipt = GitHubActionsAdapter().execute(_ctx())
        assert receipt.ok
        assert receipt.output == "null"
        assert receipt.metadata["conclusion"] is None

    @patch("deployctl.adapters.ci.github.requests.get")
    def test_http_error(self, mock_get):
        r = _response({})
        r.raise_for_status.side_effect = requests.HTTPError("401 Client Error: Unauthorized")
        mock_get.return_value = r
        receipt = GitHubActionsAdapter().execute(_ctx())
        assert receipt.failed
        assert "401" in receipt.error

    @patch("deployctl.adapters.ci.github.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")
        receipt = GitHubActionsAdapter().execute(_ctx())
        assert receipt.failed
        assert "connection refused" in receipt.error

    @patch("deployctl.adapters.ci.github.requests.get")
    def test_invalid_json(self, mock_get):
        r = _response(None)
        r.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = r
        receipt = GitHubActionsAdapter().execute(_ctx())
        assert receipt.failed
        assert "Unexpected GitHub response" in receipt.error
