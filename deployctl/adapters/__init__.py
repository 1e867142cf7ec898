"""Adapters — tool bindings for external integrations.

Public re-exports for convenient access.
"""

from deployctl.adapters.base import Adapter, ExecutionContext
from deployctl.adapters.mock import MockAdapter
from deployctl.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
