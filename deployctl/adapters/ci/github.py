"""
GitHub Actions adapter — workflow run history over the REST API.

Only one question is asked of the API: how did the most recent
completed run on this branch conclude?
"""

from __future__ import annotations

import logging

import requests

from deployctl.adapters.base import Adapter, ExecutionContext
from deployctl.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


def github_api_headers(token: str) -> dict:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": "deployctl",
    }


class GitHubActionsAdapter(Adapter):
    """GitHub Actions run history.

    Action params:
        operation (str): 'last_run'.
        api_url (str): API base URL (default: https://api.github.com).
        repository (str): owner/repo.
        token (str): Access token.
        branch (str): Branch to look at.
        timeout (int): Request timeout in seconds (default: 30).
    """

    VALID_OPS = {"last_run"}

    @property
    def name(self) -> str:
        return "github"

    def is_available(self) -> bool:
        return True  # plain HTTPS

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        operation = params.get("operation", "")
        if operation not in self.VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self.VALID_OPS))}"
        for key in ("repository", "token", "branch"):
            if not params.get(key):
                return False, f"Missing required param: '{key}'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        try:
            return self._last_run(context)
        except requests.RequestException as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"GitHub API error: {e}",
            )
        except ValueError as e:
            # body was not JSON
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Unexpected GitHub response: {e}",
            )

    def _last_run(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        api_url = (params.get("api_url") or DEFAULT_API_URL).rstrip("/")
        url = f"{api_url}/repos/{params['repository']}/actions/runs"
        query = {"status": "completed", "branch": params["branch"], "per_page": 2}

        logger.debug("GET %s %s", url, query)
        r = requests.get(
            url,
            headers=github_api_headers(params["token"]),
            params=query,
            timeout=params.get("timeout", 30),
        )
        r.raise_for_status()

        runs = (r.json() or {}).get("workflow_runs") or []
        runs = sorted(runs, key=lambda run: run.get("created_at") or "", reverse=True)
        latest = runs[0] if runs else {}
        conclusion = latest.get("conclusion")

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=conclusion or "null",
            metadata={
                "conclusion": conclusion,
                "run_id": latest.get("id"),
                "runs_seen": len(runs),
            },
        )
