"""
Deploy use case — materialize, migrate and roll out one target.

The full vertical slice: environment → request → executor → audit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from deployctl.adapters.registry import AdapterRegistry
from deployctl.core.config.loader import load_deployment_request, load_settings
from deployctl.core.engine.executor import DeploymentExecutor, DeploymentReport
from deployctl.core.engine.runner import ToolRunner, generate_operation_id
from deployctl.core.errors import ConfigError, ExternalToolError, MigrationError
from deployctl.core.models.deployment import DeploymentRequest
from deployctl.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    """Result of a deployment run."""

    request: DeploymentRequest | None = None
    report: DeploymentReport | None = None
    error: str | None = None
    error_kind: str | None = None      # config, migration, tool
    return_code: int | None = None     # failing tool's exit status
    audit_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"status": "ok" if self.ok else "failed"}
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
            result["return_code"] = self.return_code
        if self.report:
            result["report"] = self.report.to_dict()
        if self.audit_path:
            result["audit_path"] = str(self.audit_path)
        return result


def default_registry() -> AdapterRegistry:
    from deployctl.adapters.containers.docker import DockerAdapter

    registry = AdapterRegistry()
    registry.register(DockerAdapter())
    return registry


def run_deploy(
    environ: Mapping[str, str],
    *,
    config_path: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> DeployResult:
    """Deploy the target described by ``environ``.

    Args:
        environ: Process environment, read once here.
        config_path: Optional explicit deployctl.yml.
        registry: Optional pre-configured adapter registry.
    """
    result = DeployResult()

    try:
        settings = load_settings(config_path)
        request = load_deployment_request(environ, settings)
    except ConfigError as e:
        result.error = str(e)
        result.error_kind = "config"
        return result
    result.request = request
    ctx = request.context

    if registry is None:
        registry = default_registry()

    runner = ToolRunner(
        registry,
        generate_operation_id(),
        working_folder=ctx.working_folder,
        environment=ctx.environment_name,
    )
    executor = DeploymentExecutor(request, settings, runner)

    start = time.monotonic()
    try:
        executor.deploy()
    except ConfigError as e:
        result.error, result.error_kind = str(e), "config"
    except MigrationError as e:
        result.error, result.error_kind = str(e), "migration"
    except ExternalToolError as e:
        result.error, result.error_kind = str(e), "tool"
        result.return_code = e.return_code

    report = executor.report
    report.error = result.error
    result.report = report
    if result.error:
        logger.error("Deployment failed: %s", result.error)

    writer = AuditWriter(data_folder=ctx.data_folder)
    writer.write(AuditEntry(
        operation_id=report.operation_id,
        project=ctx.project_name,
        environment=ctx.environment_name,
        topology=report.topology,
        first_deployment=report.first_deployment,
        deployed_services=report.deployed_services,
        tags=report.tags,
        migration=report.migration.value,
        status=report.status,
        duration_ms=int((time.monotonic() - start) * 1000),
        error=report.error,
    ))
    result.audit_path = writer.path

    return result
