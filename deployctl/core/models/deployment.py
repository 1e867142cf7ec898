"""
Deployment models — topology, run contexts, and the change decision.

Contexts are frozen: they are built once from the process environment
at the entry point and passed down explicitly. Nothing below the use
case layer reads ``os.environ``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from deployctl.core.models.module import Module

# "No history" marker sent by GitHub for first pushes and tag refs.
ZERO_SHA = "0" * 40


class DeploymentTopology(str, Enum):
    """How the target host runs the application."""

    SINGLE_HOST = "single-host"
    CLUSTERED = "clustered"


class MigrationOutcome(str, Enum):
    """Result of the schema migration step for one run."""

    NOT_NEEDED = "not-needed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CommitRange(BaseModel):
    """The pushed range: ``previous_sha`` (may be absent) to ``current_sha``."""

    model_config = ConfigDict(frozen=True)

    previous_sha: str | None = None
    current_sha: str = "HEAD"

    @property
    def has_history(self) -> bool:
        """False for first pushes and tag pushes."""
        return bool(self.previous_sha) and self.previous_sha != ZERO_SHA


class ResolverContext(BaseModel):
    """CI inputs for the change scope resolver."""

    model_config = ConfigDict(frozen=True)

    previous_sha: str | None = None
    token: str
    repository: str             # owner/repo
    api_url: str
    ref: str                    # refs/heads/main, refs/tags/v1, ...
    output_path: Path | None = None

    @property
    def branch(self) -> str:
        return self.ref.removeprefix("refs/heads/")


class DeploymentContext(BaseModel):
    """Everything about the deployment target that is fixed for one run."""

    model_config = ConfigDict(frozen=True)

    project_name: str
    environment_name: str
    is_production: bool = False
    topology: DeploymentTopology = DeploymentTopology.SINGLE_HOST
    working_folder: Path
    data_folder: Path
    secrets_file: Path
    compose_file: str = "docker-compose.yml"

    @property
    def folder(self) -> str:
        """Per-project-per-environment key, e.g. ``shop_prod``."""
        return f"{self.project_name}_{self.environment_name}"

    @property
    def stack_name(self) -> str:
        """Compose project / swarm stack name, always environment-prefixed."""
        return f"{self.environment_name}-{self.project_name}"

    @property
    def clustered(self) -> bool:
        return self.topology is DeploymentTopology.CLUSTERED

    def service_name(self, service: str) -> str:
        """Fully qualified swarm service name, e.g. ``prod-shop_api``."""
        return f"{self.stack_name}_{service}"


class DeploymentRequest(BaseModel):
    """Complete executor input: where to deploy, what, and whether the DB changed."""

    model_config = ConfigDict(frozen=True)

    context: DeploymentContext
    modules: list[Module] = Field(default_factory=list)
    db_changed: bool = False

    def tags(self) -> dict[str, str | None]:
        """Module name → tag (None = keep running version)."""
        return {m.name: m.tag for m in self.modules}


class ChangeDecision(BaseModel):
    """Per-module changed/unchanged verdict of one resolver run.

    ``requested`` keeps the caller's order; ``changed`` is the subset to
    redeploy. Unchanged modules are simply absent from the output.
    """

    model_config = ConfigDict(frozen=True)

    requested: tuple[str, ...]
    changed: frozenset[str] = frozenset()
    reason: str = ""

    @classmethod
    def everything(cls, modules: list[str] | tuple[str, ...], reason: str) -> ChangeDecision:
        """Mark every requested module changed."""
        return cls(requested=tuple(modules), changed=frozenset(modules), reason=reason)

    @property
    def all_changed(self) -> bool:
        return self.changed == frozenset(self.requested)

    def is_changed(self, module: str) -> bool:
        return module in self.changed

    def as_mapping(self) -> dict[str, bool]:
        """Only changed modules, each mapped to True."""
        return {m: True for m in self.requested if m in self.changed}

    def output_lines(self) -> list[str]:
        """Lines for the CI output sink: ``<module>=true`` per changed module."""
        return [f"{m}=true" for m in self.as_mapping()]

    def to_dict(self) -> dict:
        return {
            "requested": list(self.requested),
            "changed": [m for m in self.requested if m in self.changed],
            "reason": self.reason,
        }
