"""
Settings model — the optional ``deployctl.yml`` file.

Every field has a default matching the conventional layout (a .NET API,
an Angular web app, Postgres migrated by dbmate, a ``doneman`` network
watchdog), so a target without a settings file deploys as-is.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class MigrationSettings(BaseModel):
    """How the schema migration container is invoked."""

    image: str = "amacneil/dbmate:latest"
    migrations_dir: str = "db/migrations"    # relative to the working folder
    mount_point: str = "/db/migrations"
    secrets_file: str = "secrets.env"        # relative to the data folder
    args: list[str] = Field(default_factory=lambda: ["--wait", "up"])


class DeploySettings(BaseModel):
    """Deployment layout shared by every environment of a project."""

    version: int = 1

    # Modules that ship an image tag (``<NAME>_SHA_TAG`` in, ``<NAME>_TAG`` out).
    modules: list[str] = Field(default_factory=lambda: ["api", "web"])

    database_service: str = "postgres"
    api_service: str = "api"
    watchdog_service: str | None = "doneman"

    compose_file: str = "docker-compose.yml"
    swarm_compose_file: str = "swarm-compose.yml"
    network: str = "local"
    aux_networks: list[str] = Field(default_factory=lambda: ["admin", "internet"])

    # Diff paths under these prefixes affect every module.
    critical_prefixes: list[str] = Field(
        default_factory=lambda: [".github", "docker-compose", ".env", "swarm-compose"],
    )

    work_root: str = "/tmp"
    data_root: str = "/data"

    migration: MigrationSettings = Field(default_factory=MigrationSettings)
