"""
Check-changes use case — resolve the change scope of a push.

Loads the CI context, asks the resolver which modules changed, and
writes ``<module>=true`` lines for the pipeline's later jobs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from deployctl.adapters.registry import AdapterRegistry
from deployctl.core.config.loader import load_resolver_context, load_settings
from deployctl.core.engine.resolver import current_sha, emit, resolve
from deployctl.core.engine.runner import ToolRunner, generate_operation_id
from deployctl.core.errors import ConfigError
from deployctl.core.models.deployment import ChangeDecision, CommitRange
from deployctl.core.persistence.outputs import OutputSink

logger = logging.getLogger(__name__)


@dataclass
class CheckChangesResult:
    """Result of a change scope check."""

    decision: ChangeDecision | None = None
    lines: list[str] = field(default_factory=list)
    output_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.decision is not None
        return {
            **self.decision.to_dict(),
            "outputs": list(self.lines),
            "output_path": str(self.output_path) if self.output_path else None,
        }


def default_registry() -> AdapterRegistry:
    from deployctl.adapters.ci.github import GitHubActionsAdapter
    from deployctl.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry()
    registry.register(GitAdapter())
    registry.register(GitHubActionsAdapter())
    return registry


def check_changes(
    modules: Sequence[str],
    environ: Mapping[str, str],
    *,
    output_path: Path | None = None,
    config_path: Path | None = None,
    checkout: Path | None = None,
    registry: AdapterRegistry | None = None,
    stream: TextIO | None = None,
) -> CheckChangesResult:
    """Decide which modules changed and emit them to the output sink.

    Args:
        modules: Module names to check (directory names at the repo root).
        environ: Process environment, read once here.
        output_path: Overrides ``GITHUB_OUTPUT``.
        config_path: Optional explicit deployctl.yml.
        checkout: Repository checkout to diff (default: cwd).
        registry: Optional pre-configured adapter registry.
        stream: Where lines go when there is no output file (default: stdout).
    """
    result = CheckChangesResult()

    if not modules:
        result.error = "No modules provided."
        return result

    try:
        settings = load_settings(config_path)
        ci = load_resolver_context(environ, output_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if registry is None:
        registry = default_registry()

    runner = ToolRunner(registry, generate_operation_id(), working_folder=checkout or Path.cwd())
    commit_range = CommitRange(previous_sha=ci.previous_sha, current_sha=current_sha(runner))

    decision = resolve(commit_range, list(modules), ci, runner, settings.critical_prefixes)
    result.decision = decision
    result.output_path = ci.output_path

    try:
        result.lines = emit(decision, OutputSink(ci.output_path, stream))
    except OSError as e:
        result.error = f"Cannot write outputs to {ci.output_path}: {e}"

    return result
