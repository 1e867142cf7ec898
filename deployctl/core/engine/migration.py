"""
Schema migration routine.

Runs the migration container (dbmate by default) on the deployment's
private network, with the connection string from the secrets file in the
stable data folder and the scripts from the working folder:

    docker run --rm --network <net> \\
        -v <working>/db/migrations:/db/migrations \\
        --env-file <data>/secrets.env \\
        amacneil/dbmate:latest --wait up

Any timeout behavior belongs to the tool (``--wait``).
"""

from __future__ import annotations

import logging

from deployctl.core.engine.runner import ToolRunner
from deployctl.core.models.action import Receipt
from deployctl.core.models.deployment import DeploymentContext, MigrationOutcome
from deployctl.core.models.settings import DeploySettings

logger = logging.getLogger(__name__)


class MigrationRoutine:
    """Runs the migration at most once per executor run."""

    def __init__(self, runner: ToolRunner, context: DeploymentContext, settings: DeploySettings):
        self.runner = runner
        self.context = context
        self.settings = settings
        self.outcome = MigrationOutcome.NOT_NEEDED
        self.receipt: Receipt | None = None

    @property
    def ran(self) -> bool:
        return self.outcome is not MigrationOutcome.NOT_NEEDED

    def network(self) -> str:
        """Real name of the compose file's private network."""
        receipt = self.runner.run(
            "docker",
            "compose_network",
            step="migration_network",
            compose_file=self.context.compose_file,
            network=self.settings.network,
        )
        return receipt.metadata.get("network_name") or receipt.output

    def run(self, network: str) -> MigrationOutcome:
        """Run the migration tool; a non-zero exit is ``FAILED``, not an exception."""
        if self.ran:
            logger.warning("Migration already ran in this run (%s), not running again", self.outcome.value)
            return self.outcome

        migration = self.settings.migration
        migrations_dir = self.context.working_folder / migration.migrations_dir
        logger.info("Migrating the database, with the network name %s", network)

        receipt = self.runner.attempt(
            "docker",
            "run",
            step="migrate",
            image=migration.image,
            network=network,
            volumes=[f"{migrations_dir}:{migration.mount_point}"],
            env_file=str(self.context.secrets_file),
            args=list(migration.args),
        )
        self.receipt = receipt

        if receipt.ok:
            logger.info("Database migration succeeded")
            self.outcome = MigrationOutcome.SUCCEEDED
        else:
            logger.error("DB migration failed (exit %s): %s", receipt.return_code, receipt.error)
            self.outcome = MigrationOutcome.FAILED
        return self.outcome
