"""
Domain models — Pydantic types for deployctl.

    from deployctl.core.models import Module, DeploymentContext, ChangeDecision
"""

from deployctl.core.models.action import Action, Receipt
from deployctl.core.models.deployment import (
    ZERO_SHA,
    ChangeDecision,
    CommitRange,
    DeploymentContext,
    DeploymentRequest,
    DeploymentTopology,
    MigrationOutcome,
    ResolverContext,
)
from deployctl.core.models.module import Module
from deployctl.core.models.settings import DeploySettings, MigrationSettings

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # deployment.py
    "ChangeDecision",
    "CommitRange",
    "DeploymentContext",
    "DeploymentRequest",
    "DeploymentTopology",
    "MigrationOutcome",
    "ResolverContext",
    "ZERO_SHA",
    # module.py
    "Module",
    # settings.py
    "DeploySettings",
    "MigrationSettings",
]
