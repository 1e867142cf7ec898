"""
Configuration loader — settings file and process environment.

Two sources feed a run:

    deployctl.yml   optional, describes the deployment layout
                    (service names, compose files, migration image, roots)
    environment     the per-run inputs the CI job exports
                    (commit range, tags, project/environment names, flags)

Both are read exactly once, at the entry point, into frozen models.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml

from deployctl.core.errors import ConfigError
from deployctl.core.models.deployment import (
    DeploymentContext,
    DeploymentRequest,
    DeploymentTopology,
    ResolverContext,
)
from deployctl.core.models.module import Module
from deployctl.core.models.settings import DeploySettings

logger = logging.getLogger(__name__)

# Default settings filename
SETTINGS_FILE = "deployctl.yml"

RESOLVER_REQUIRED = ("GITHUB_TOKEN", "GITHUB_REPOSITORY", "GITHUB_API_URL", "GITHUB_REF")
DEPLOY_REQUIRED = (
    "DB_CHANGED",
    "PROJECT_NAME",
    "DEPLOYMENT_ENVIRONMENT",
    "DEPLOYMENT_IS_PRODUCTION",
    "IS_SWARM",
)


# ── Settings file ───────────────────────────────────────────────


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for deployctl.yml starting from the given directory, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> DeploySettings:
    """Load and validate deployment settings.

    Args:
        path: Explicit path to a settings file. If None, searches upward
            and falls back to defaults when nothing is found.

    Raises:
        ConfigError: If an explicit file is missing, or a file is invalid.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            logger.debug("No %s found, using default settings", SETTINGS_FILE)
            return DeploySettings()
    elif not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return DeploySettings()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        return DeploySettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e


# ── Environment ─────────────────────────────────────────────────


def _missing(environ: Mapping[str, str], names: tuple[str, ...]) -> list[str]:
    return [n for n in names if not environ.get(n, "").strip()]


def _flag(value: str) -> bool:
    return value.strip().lower() == "true"


def tag_variable(module: str) -> str:
    """Environment variable carrying a module's tag, e.g. ``API_SHA_TAG``."""
    return f"{module.upper()}_SHA_TAG"


def load_resolver_context(
    environ: Mapping[str, str],
    output_path: Path | None = None,
) -> ResolverContext:
    """Build the resolver context from CI environment variables.

    ``PREVIOUS_SHA`` must be set but may be empty (first push).
    ``GITHUB_OUTPUT`` names the output sink unless ``output_path`` is given.

    Raises:
        ConfigError: If a mandatory variable is absent.
    """
    missing = _missing(environ, RESOLVER_REQUIRED)
    if "PREVIOUS_SHA" not in environ:
        missing.insert(0, "PREVIOUS_SHA")
    if missing:
        raise ConfigError(f"Mandatory environment variables are not set: {', '.join(missing)}")

    if output_path is None and environ.get("GITHUB_OUTPUT", "").strip():
        output_path = Path(environ["GITHUB_OUTPUT"])

    return ResolverContext(
        previous_sha=environ["PREVIOUS_SHA"].strip() or None,
        token=environ["GITHUB_TOKEN"],
        repository=environ["GITHUB_REPOSITORY"].strip(),
        api_url=environ["GITHUB_API_URL"].strip(),
        ref=environ["GITHUB_REF"].strip(),
        output_path=output_path,
    )


def load_deployment_request(
    environ: Mapping[str, str],
    settings: DeploySettings,
) -> DeploymentRequest:
    """Build the executor input from deployment environment variables.

    Raises:
        ConfigError: If a mandatory variable is absent.
    """
    missing = _missing(environ, DEPLOY_REQUIRED)
    if missing:
        raise ConfigError(f"Mandatory environment variables are not set: {', '.join(missing)}")

    project = environ["PROJECT_NAME"].strip()
    environment = environ["DEPLOYMENT_ENVIRONMENT"].strip()
    clustered = _flag(environ["IS_SWARM"])
    folder = f"{project}_{environment}"
    data_folder = Path(settings.data_root) / folder

    context = DeploymentContext(
        project_name=project,
        environment_name=environment,
        is_production=_flag(environ["DEPLOYMENT_IS_PRODUCTION"]),
        topology=DeploymentTopology.CLUSTERED if clustered else DeploymentTopology.SINGLE_HOST,
        working_folder=Path(settings.work_root) / folder,
        data_folder=data_folder,
        secrets_file=data_folder / settings.migration.secrets_file,
        compose_file=settings.swarm_compose_file if clustered else settings.compose_file,
    )

    modules = [
        Module(name=name, tag=environ.get(tag_variable(name), "").strip() or None)
        for name in settings.modules
    ]

    return DeploymentRequest(
        context=context,
        modules=modules,
        db_changed=_flag(environ["DB_CHANGED"]),
    )
