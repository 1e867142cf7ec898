"""
Error taxonomy.

    DeployError
     ├── ConfigError            mandatory input missing or invalid (fatal, nothing done yet)
     ├── ChangeDetectionError   diff / run-history lookup failed (resolver maps it to "deploy all")
     ├── MigrationError         migration tool exited non-zero (fatal)
     └── ExternalToolError      any other external step failed (fatal)
"""

from __future__ import annotations

from deployctl.core.models.action import Receipt


class DeployError(Exception):
    """Base class for every error deployctl raises on purpose."""


class ConfigError(DeployError):
    """Raised when a mandatory input is missing or configuration is invalid."""


class ChangeDetectionError(DeployError):
    """Raised when the change set cannot be computed."""


class MigrationError(DeployError):
    """Raised when the schema migration fails."""

    def __init__(self, message: str, receipt: Receipt | None = None):
        super().__init__(message)
        self.receipt = receipt


class ExternalToolError(DeployError):
    """Raised when an external step fails and the run must stop."""

    def __init__(self, step: str, receipt: Receipt | None = None, message: str = ""):
        self.step = step
        self.receipt = receipt
        if not message:
            detail = (receipt.error if receipt else None) or "failed"
            message = f"{step}: {detail}"
        super().__init__(message)

    @property
    def return_code(self) -> int | None:
        return self.receipt.return_code if self.receipt else None
