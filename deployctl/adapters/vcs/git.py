"""
Git adapter — the version control queries the resolver needs.

Uses the git CLI in the CI checkout (the working folder).
"""

from __future__ import annotations

import logging
import shutil
import subprocess

from deployctl.adapters.base import Adapter, ExecutionContext
from deployctl.core.models.action import Receipt

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Git version control operations.

    Action params:
        operation (str): One of 'head', 'diff_names'.
        base (str): Older commit (for 'diff_names').
        target (str): Newer commit (for 'diff_names', default: HEAD).
        timeout (int): Timeout in seconds (default: 30).
    """

    VALID_OPS = {"head", "diff_names"}

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in self.VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self.VALID_OPS))}"

        if operation == "diff_names" and not context.action.params.get("base"):
            return False, "Missing required param: 'base' for diff_names operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        try:
            if operation == "head":
                return self._head(context)
            elif operation == "diff_names":
                return self._diff_names(context)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown operation: {operation}",
                )
        except subprocess.TimeoutExpired as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"git timed out after {e.timeout}s",
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Git error: {e}",
            )

    # ── Operations ──────────────────────────────────────────────

    def _head(self, ctx: ExecutionContext) -> Receipt:
        sha = self._git(["rev-parse", "HEAD"], ctx).strip()
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=sha,
            metadata={"sha": sha},
        )

    def _diff_names(self, ctx: ExecutionContext) -> Receipt:
        base = ctx.action.params["base"]
        target = ctx.action.params.get("target") or "HEAD"
        output = self._git(["diff", "--name-only", base, target], ctx)
        paths = [p.strip() for p in output.splitlines() if p.strip()]
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=output.strip(),
            metadata={"paths": paths, "base": base, "target": target},
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, args: list[str], ctx: ExecutionContext) -> str:
        """Run a git command and return stdout."""
        timeout = ctx.action.params.get("timeout", 30)
        logger.debug("git %s (cwd=%s)", " ".join(args), ctx.working_dir)
        result = subprocess.run(
            ["git", *args],
            cwd=ctx.working_dir,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.strip() or f"git {args[0]} failed")
        return result.stdout
