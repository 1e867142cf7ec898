"""
Config check use case — validate deployctl.yml and the local toolchain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from deployctl.adapters.registry import AdapterRegistry
from deployctl.core.config.loader import find_settings_file, load_settings
from deployctl.core.errors import ConfigError
from deployctl.core.models.settings import DeploySettings


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: DeploySettings | None = None
    config_path: Path | None = None
    adapters: dict[str, dict] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "modules": list(self.settings.modules) if self.settings else [],
            "adapters": self.adapters,
        }


def default_registry() -> AdapterRegistry:
    from deployctl.adapters.ci.github import GitHubActionsAdapter
    from deployctl.adapters.containers.docker import DockerAdapter
    from deployctl.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry()
    registry.register(GitAdapter())
    registry.register(GitHubActionsAdapter())
    registry.register(DockerAdapter())
    return registry


def check_config(
    config_path: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> ConfigCheckResult:
    """Validate settings and report which external tools are reachable.

    A missing settings file is not an error: defaults apply.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_settings_file()
        if config_path is None:
            result.warnings.append("No deployctl.yml found, using defaults.")
    result.config_path = config_path

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.settings = settings

    if not settings.modules:
        result.errors.append("No modules defined. Nothing would ever be deployed.")

    dupes = sorted({m for m in settings.modules if settings.modules.count(m) > 1})
    if dupes:
        result.errors.append(f"Duplicate module names: {', '.join(dupes)}")

    for name in settings.modules:
        if not name or "/" in name or name != name.strip():
            result.errors.append(f"Invalid module name: '{name}'")

    if settings.compose_file == settings.swarm_compose_file:
        result.warnings.append("compose_file and swarm_compose_file are the same file.")

    if settings.watchdog_service is None:
        result.warnings.append("No watchdog service configured; it will not be refreshed.")

    if registry is None:
        registry = default_registry()
    result.adapters = registry.adapter_status()
    for name, status in result.adapters.items():
        if not status["available"]:
            result.warnings.append(f"Adapter '{name}' is not available on this host.")

    result.valid = not result.errors
    return result
