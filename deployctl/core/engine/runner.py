"""
Tool runner — the engine's single doorway to adapters.

Every external step goes through ``attempt`` (returns the Receipt, the
caller inspects it) or ``run`` (a failed Receipt raises
ExternalToolError and stops the run). Receipts are kept in call order
for the run report.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from deployctl.adapters.registry import AdapterRegistry
from deployctl.core.errors import ExternalToolError
from deployctl.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class ToolRunner:
    """Sequential, fail-fast step dispatcher for one run."""

    def __init__(
        self,
        registry: AdapterRegistry,
        operation_id: str,
        working_folder: Path | str = ".",
        environment: str = "",
    ):
        self.registry = registry
        self.operation_id = operation_id
        self.working_folder = Path(working_folder)
        self.environment = environment
        self.receipts: list[Receipt] = []

    def attempt(self, adapter: str, operation: str, *, step: str | None = None, **params: Any) -> Receipt:
        """Execute one step and return its receipt, failed or not."""
        step = step or operation
        action = Action(
            id=f"{self.operation_id}:{step}",
            name=step,
            adapter=adapter,
            params={"operation": operation, **params},
        )
        receipt = self.registry.execute_action(
            action,
            working_folder=str(self.working_folder),
            environment=self.environment,
        )
        self.receipts.append(receipt)

        logger.debug(
            "%s %s:%s (%dms)",
            "✓" if receipt.ok else "✗",
            adapter,
            step,
            receipt.duration_ms,
        )
        return receipt

    def run(self, adapter: str, operation: str, *, step: str | None = None, **params: Any) -> Receipt:
        """Execute one step; a failure aborts the run."""
        receipt = self.attempt(adapter, operation, step=step, **params)
        if receipt.failed:
            step = step or operation
            logger.error("✗ %s failed (exit %s): %s", step, receipt.return_code, receipt.error)
            raise ExternalToolError(step, receipt)
        return receipt


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
