"""
Mock adapter — scripted test double for any adapter.

Responses are keyed by step name (``Action.name``), so a test can say
"compose_services returns 'api\\npostgres'" or "migrate fails with exit 1"
without knowing the generated operation id.
"""

from __future__ import annotations

from typing import Any

from deployctl.adapters.base import Adapter, ExecutionContext
from deployctl.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns success with ``default_output`` for everything.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def steps(self) -> list[str]:
        """Step names in call order."""
        return [c.action.name for c in self._call_log]

    def calls_for(self, step: str) -> list[ExecutionContext]:
        """Contexts of every call to ``step``."""
        return [c for c in self._call_log if c.action.name == step]

    def is_available(self) -> bool:
        return self._available

    def set_output(self, step: str, output: str = "", **metadata: Any) -> None:
        """Configure a step to succeed with the given stdout and metadata."""
        self._responses[step] = Receipt.success(
            adapter=self._name,
            action_id=step,
            output=output,
            metadata=metadata,
        )

    def set_failure(self, step: str, error: str = "Mock failure", return_code: int = 1) -> None:
        """Configure a step to fail."""
        self._responses[step] = Receipt.failure(
            adapter=self._name,
            action_id=step,
            error=error,
            metadata={"return_code": return_code},
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        scripted = self._responses.get(context.action.name)
        if scripted is not None:
            return scripted.model_copy(update={"action_id": context.action.id})

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            metadata={"mock": True},
        )
