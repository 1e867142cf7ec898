"""
Deployment executor — roll the tagged modules onto the target.

Flow:
    promote .env → [clustered: resolve missing tags] → substitute tags →
    production/dev redactions → topology branch

Single host (docker compose), per-service control:
    pull → database up → [db changed: stop api → migrate → start api] →
    up <changed services> → refresh the watchdog sidecar

Clustered (docker stack), whole-stack only:
    first deployment (database not running): deploy stack → migrate, done
    otherwise: [db changed: migrate] → deploy stack → drop the working folder

The API is never left stopped: the restart after a single-host migration
runs whether the migration succeeded, failed, or errored.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field

from deployctl.core.engine.materializer import (
    MaterializedEnvironment,
    materialize,
    promote_env_file,
    unresolved_tags,
)
from deployctl.core.engine.migration import MigrationRoutine
from deployctl.core.engine.runner import ToolRunner
from deployctl.core.errors import ExternalToolError, MigrationError
from deployctl.core.models.action import Receipt
from deployctl.core.models.deployment import DeploymentRequest, MigrationOutcome
from deployctl.core.models.settings import DeploySettings

logger = logging.getLogger(__name__)


@dataclass
class DeploymentReport:
    """What a deployment run did, filled in as it goes."""

    operation_id: str = ""
    project: str = ""
    environment: str = ""
    topology: str = ""
    first_deployment: bool = False
    tags: dict[str, str | None] = field(default_factory=dict)
    deployed_services: list[str] = field(default_factory=list)
    skipped_services: list[str] = field(default_factory=list)
    migration: MigrationOutcome = MigrationOutcome.NOT_NEEDED
    working_folder_removed: bool = False
    receipts: list[Receipt] = field(default_factory=list)
    error: str | None = None

    @property
    def status(self) -> str:
        return "failed" if self.error else "ok"

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "project": self.project,
            "environment": self.environment,
            "topology": self.topology,
            "status": self.status,
            "first_deployment": self.first_deployment,
            "tags": dict(self.tags),
            "deployed_services": list(self.deployed_services),
            "skipped_services": list(self.skipped_services),
            "migration": self.migration.value,
            "working_folder_removed": self.working_folder_removed,
            "error": self.error,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def parse_image_tag(image: str) -> str | None:
    """Tag component of an image reference.

    ``registry:5000/org/api:v12@sha256:...`` → ``v12``. A colon before the
    last slash is a registry port, not a tag.
    """
    ref = image.strip().split("@", 1)[0]
    last = ref.rsplit("/", 1)[-1]
    if ":" not in last:
        return None
    return last.rsplit(":", 1)[1] or None


class DeploymentExecutor:
    """Executes one deployment request against its target."""

    def __init__(self, request: DeploymentRequest, settings: DeploySettings, runner: ToolRunner):
        self.request = request
        self.context = request.context
        self.settings = settings
        self.runner = runner
        self.migration = MigrationRoutine(runner, self.context, settings)
        self.report = DeploymentReport(
            operation_id=runner.operation_id,
            project=self.context.project_name,
            environment=self.context.environment_name,
            topology=self.context.topology.value,
            tags=request.tags(),
            receipts=runner.receipts,
        )

    def deploy(self) -> DeploymentReport:
        """Run the deployment.

        Raises:
            ConfigError: Env or compose file missing from the working folder.
            MigrationError: The migration tool exited non-zero.
            ExternalToolError: Any other external step failed.
        """
        ctx = self.context
        logger.info("DB_CHANGED: %s", self.request.db_changed)
        for name, tag in self.request.tags().items():
            logger.info("%s tag: %s", name, tag or "(unchanged)")
        logger.info("PROJECT_NAME: %s", ctx.project_name)
        logger.info("DEPLOYMENT_ENVIRONMENT: %s", ctx.environment_name)
        logger.info("Production: %s, topology: %s", ctx.is_production, ctx.topology.value)
        logger.info("Folder: %s", ctx.working_folder)
        logger.info("Container/Stack name: %s", ctx.stack_name)

        promote_env_file(ctx.working_folder, ctx.environment_name)

        tags = self.request.tags()
        if ctx.clustered:
            tags = self.resolve_missing_tags(tags)
        self.report.tags = tags

        env = materialize(ctx, tags, self.settings.aux_networks)

        if ctx.clustered:
            self._deploy_clustered(env)
        else:
            self._deploy_single_host(env)

        logger.info("Deployment of %s finished", ctx.stack_name)
        return self.report

    # ── Tag resolution ──────────────────────────────────────────

    def resolve_missing_tags(self, tags: dict[str, str | None]) -> dict[str, str | None]:
        """Pin every untagged module to the tag its service runs now."""
        resolved = dict(tags)
        for module, tag in tags.items():
            if tag:
                continue
            service = self.context.service_name(module)
            step = f"inspect_{module}"
            receipt = self.runner.run("docker", "service_image", step=step, service=service)
            image = receipt.metadata.get("image") or receipt.output
            running_tag = parse_image_tag(image)
            if not running_tag:
                raise ExternalToolError(
                    step,
                    receipt,
                    message=f"{step}: service {service} runs '{image}', which has no tag",
                )
            logger.info("%s did not change. Using %s tag.", module.upper(), running_tag)
            resolved[module] = running_tag
        return resolved

    # ── Single host ─────────────────────────────────────────────

    def deploy_set(self, services: list[str]) -> list[str]:
        """All services except modules that keep their running version."""
        keep = {m.name for m in self.request.modules if not m.changed}
        for name in sorted(keep & set(services)):
            logger.info("%s will not be deployed.", name.upper())
        return [s for s in services if s not in keep]

    def _deploy_single_host(self, env: MaterializedEnvironment) -> None:
        compose = self.context.compose_file
        db = self.settings.database_service
        api = self.settings.api_service
        logger.info("Deploying using regular Docker Compose (NON Swarm mode)")

        listed = self.runner.run("docker", "compose_services", compose_file=compose)
        services = list(listed.metadata.get("services") or listed.output.split())

        self.runner.run("docker", "compose_pull", compose_file=compose)

        logger.info("Bringing up the database")
        self.runner.run("docker", "compose_up", step="database_up", compose_file=compose, services=[db])

        if self.request.db_changed:
            logger.info("Database has changed, running migrations.")
            network = self.migration.network()
            self.runner.run("docker", "compose_stop", step="api_stop", compose_file=compose, service=api)
            try:
                outcome = self.migration.run(network)
            finally:
                logger.info("Restarting the %s service", api)
                self.runner.run("docker", "compose_start", step="api_start", compose_file=compose, service=api)
            self.report.migration = outcome
            if outcome is MigrationOutcome.FAILED:
                raise MigrationError(
                    f"Migration failed; {api} restarted on its previous version",
                    self.migration.receipt,
                )

        deploy = self.deploy_set(services)
        self.report.skipped_services = [s for s in services if s not in deploy]
        if deploy:
            logger.info("Deploying the following services: %s", " ".join(deploy))
            self.runner.run("docker", "compose_up", step="deploy_up", compose_file=compose, services=deploy)
        else:
            logger.info("No services to deploy")
        self.report.deployed_services = deploy

        self._refresh_watchdog(env)

    def _refresh_watchdog(self, env: MaterializedEnvironment) -> None:
        """Hand the final env and compose files to the watchdog and restart it."""
        watchdog = self.settings.watchdog_service
        if not watchdog:
            return
        compose = self.context.compose_file
        self.runner.run(
            "docker", "compose_cp", step="watchdog_env",
            compose_file=compose, source=env.env_file.name, target=f"{watchdog}:/{env.env_file.name}",
        )
        self.runner.run(
            "docker", "compose_cp", step="watchdog_compose",
            compose_file=compose, source=compose, target=f"{watchdog}:/{compose}",
        )
        self.runner.run("docker", "compose_restart", step="watchdog_restart", compose_file=compose, service=watchdog)

    # ── Clustered ───────────────────────────────────────────────

    def _deploy_clustered(self, env: MaterializedEnvironment) -> None:
        missing = unresolved_tags(env.env_file, [m.name for m in self.request.modules])
        if missing:
            raise ExternalToolError(
                "substitute_tags",
                message=f"Refusing to deploy the stack with unresolved tags: {', '.join(missing)}",
            )

        db_service = self.context.service_name(self.settings.database_service)
        db_state = self.runner.run("docker", "service_running", step="database_running", service=db_service)

        if not db_state.metadata.get("running"):
            logger.info("Database is not running, probably first time deployment. Deploying the stack and migrating DB.")
            self.report.first_deployment = True
            self._stack_deploy(env)
            self._migrate()
            return

        if self.request.db_changed:
            logger.info("Database is running, and DB scripts have changed. Migrating the database")
            self._migrate()
        self._stack_deploy(env)
        self._cleanup()

    def _cleanup(self) -> None:
        folder = self.context.working_folder
        logger.info("Cleaning up the folder %s", folder)
        try:
            shutil.rmtree(folder)
        except OSError as e:
            raise ExternalToolError("cleanup", message=f"cleanup: cannot remove {folder}: {e}") from e
        self.report.working_folder_removed = True

    def _stack_deploy(self, env: MaterializedEnvironment) -> None:
        logger.info("Deploying the stack %s", self.context.stack_name)
        self.runner.run(
            "docker",
            "stack_deploy",
            stack=self.context.stack_name,
            compose_file=self.context.compose_file,
            env=env.values,
        )
        self.report.deployed_services = [f"{self.context.stack_name} (stack)"]

    def _migrate(self) -> None:
        network = self.migration.network()
        outcome = self.migration.run(network)
        self.report.migration = outcome
        if outcome is MigrationOutcome.FAILED:
            raise MigrationError("Migration failed", self.migration.receipt)
