"""
Environment materializer — turn checked-in templates into deployable files.

The working folder arrives with ``.env.<environment>`` and the compose
files exactly as they are in the repository. Before any running service
is touched, this module:

    1. promotes ``.env.<environment>`` to ``.env``
    2. writes the resolved image tags into the ``<MODULE>_TAG=`` lines
    3. production: strips port forwarding from the compose file
       otherwise:  enables the commented-out helper network attachments
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from deployctl.core.errors import ConfigError
from deployctl.core.models.deployment import DeploymentContext

logger = logging.getLogger(__name__)

ENV_FILE = ".env"


@dataclass
class MaterializedEnvironment:
    """Files produced for the run and the values they now hold."""

    env_file: Path
    compose_file: Path
    substituted: list[str] = field(default_factory=list)
    values: dict[str, str] = field(default_factory=dict)


# ── Env file ────────────────────────────────────────────────────


def promote_env_file(working_folder: Path, environment_name: str) -> Path:
    """Copy ``.env.<environment>`` to ``.env`` and return the new path."""
    source = working_folder / f"{ENV_FILE}.{environment_name}"
    if not source.is_file():
        raise ConfigError(f"Environment file not found: {source}")

    target = working_folder / ENV_FILE
    shutil.copyfile(source, target)
    logger.info("Using %s as %s", source.name, ENV_FILE)
    return target


def tag_key(module: str) -> str:
    return f"{module.upper()}_TAG"


def substitute_tags(env_file: Path, tags: Mapping[str, str | None]) -> list[str]:
    """Fill ``<MODULE>_TAG=`` lines with resolved tags.

    Modules without a tag keep their line untouched.

    Returns:
        Keys that were written.
    """
    pending = {tag_key(module): tag for module, tag in tags.items() if tag}
    lines = env_file.read_text(encoding="utf-8").splitlines(keepends=True)
    written: list[str] = []

    for i, line in enumerate(lines):
        key = line.split("=", 1)[0].strip()
        if key in pending and "=" in line:
            ending = "\n" if line.endswith("\n") else ""
            lines[i] = f"{key}={pending[key]}{ending}"
            written.append(key)

    for key in pending.keys() - set(written):
        logger.warning("No %s= placeholder in %s", key, env_file.name)

    env_file.write_text("".join(lines), encoding="utf-8")
    return written


def unresolved_tags(env_file: Path, modules: Iterable[str]) -> list[str]:
    """Tag keys that are missing or still empty in the env file."""
    values = read_env_file(env_file)
    return [tag_key(m) for m in modules if not values.get(tag_key(m))]


def read_env_file(env_file: Path) -> dict[str, str]:
    """Parse .env content into key→value dict."""
    result = {}
    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, _, v = line.partition("=")
        k = k.strip()
        v = v.strip()
        if len(v) >= 2 and v[0] == v[-1] and v[0] in ('"', "'"):
            v = v[1:-1]
        result[k] = v
    return result


# ── Compose file ────────────────────────────────────────────────


def strip_port_forwarding(text: str) -> str:
    """Drop every ``ports:`` line together with the line right after it."""
    lines = text.splitlines(keepends=True)
    kept: list[str] = []
    i = 0
    while i < len(lines):
        if "ports:" in lines[i]:
            i += 2
            continue
        kept.append(lines[i])
        i += 1
    return "".join(kept)


def enable_aux_networks(text: str, networks: Iterable[str]) -> str:
    """Uncomment ``#- <network>`` attachments."""
    for network in networks:
        text = text.replace(f"#- {network}", f"- {network}")
    return text


def apply_redactions(compose_file: Path, is_production: bool, aux_networks: Iterable[str]) -> None:
    """Production or dev adjustments to the compose file, in place."""
    if not compose_file.is_file():
        raise ConfigError(f"Compose file not found: {compose_file}")

    text = compose_file.read_text(encoding="utf-8")
    if is_production:
        logger.info("Production: removing port forwarding from %s", compose_file.name)
        text = strip_port_forwarding(text)
    else:
        networks = list(aux_networks)
        logger.info("Non-production: enabling %s networks in %s", ", ".join(networks), compose_file.name)
        text = enable_aux_networks(text, networks)
    compose_file.write_text(text, encoding="utf-8")


def materialize(
    context: DeploymentContext,
    tags: Mapping[str, str | None],
    aux_networks: Iterable[str],
) -> MaterializedEnvironment:
    """Write tags into ``.env`` and adjust the compose file for the environment.

    ``promote_env_file`` must have run first.
    """
    env_file = context.working_folder / ENV_FILE
    compose_file = context.working_folder / context.compose_file

    substituted = substitute_tags(env_file, tags)
    apply_redactions(compose_file, context.is_production, aux_networks)

    return MaterializedEnvironment(
        env_file=env_file,
        compose_file=compose_file,
        substituted=substituted,
        values=read_env_file(env_file),
    )
