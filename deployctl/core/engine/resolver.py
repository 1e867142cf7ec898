"""
Change scope resolver — which modules does this push need to redeploy?

Short-circuits, each of which marks every requested module changed:

    first push      no previous commit (empty or all-zero sha)
    last run failed the previous completed run on the branch did not succeed,
                    so the target may be half-upgraded; redeploy everything
    no diff         git could not diff the range (history unavailable)
    critical path   the diff touches CI workflows or root compose/env files

Otherwise a module is changed iff the diff holds a path under ``<module>/``.
Lookup failures (git, run history) never abort: they mean "deploy all".

The order of the short-circuits does not matter; they all end in the
same decision. The local check runs first so a first push makes no API
call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from deployctl.core.engine.runner import ToolRunner
from deployctl.core.errors import ChangeDetectionError
from deployctl.core.models.deployment import ChangeDecision, CommitRange, ResolverContext
from deployctl.core.persistence.outputs import OutputSink

logger = logging.getLogger(__name__)

REASON_FIRST_PUSH = "first-push"
REASON_HISTORY_UNAVAILABLE = "history-unavailable"
REASON_LAST_RUN_FAILED = "last-run-failed"
REASON_DIFF_FAILED = "diff-failed"
REASON_CRITICAL_FILES = "critical-files"
REASON_DIFF = "diff"


def current_sha(runner: ToolRunner) -> str:
    """HEAD of the checkout, or the literal ``HEAD`` if git can't say."""
    receipt = runner.attempt("git", "head")
    if receipt.failed or not receipt.output:
        logger.warning("Could not resolve HEAD (%s), diffing against HEAD", receipt.error)
        return "HEAD"
    return receipt.output


def last_run_conclusion(ci: ResolverContext, runner: ToolRunner) -> str | None:
    """Conclusion of the newest completed run on the branch (None = no run).

    Raises:
        ChangeDetectionError: If the run history can't be fetched.
    """
    receipt = runner.attempt(
        "github",
        "last_run",
        api_url=ci.api_url,
        repository=ci.repository,
        token=ci.token,
        branch=ci.branch,
    )
    if receipt.failed:
        raise ChangeDetectionError(f"Run history unavailable: {receipt.error}")
    return receipt.metadata.get("conclusion")


def diff_paths(commit_range: CommitRange, runner: ToolRunner) -> list[str]:
    """Paths changed between the two commits.

    Raises:
        ChangeDetectionError: If git fails to diff the range.
    """
    receipt = runner.attempt(
        "git",
        "diff_names",
        base=commit_range.previous_sha,
        target=commit_range.current_sha,
    )
    if receipt.failed:
        raise ChangeDetectionError(f"git diff failed: {receipt.error}")
    return list(receipt.metadata.get("paths") or [])


def critical_paths(paths: Iterable[str], prefixes: Sequence[str]) -> list[str]:
    """Paths that affect every module's runtime."""
    return [p for p in paths if p.startswith(tuple(prefixes))]


def module_changed(module: str, paths: Iterable[str]) -> bool:
    prefix = f"{module}/"
    return any(p.startswith(prefix) for p in paths)


def resolve(
    commit_range: CommitRange,
    modules: Sequence[str],
    ci: ResolverContext,
    runner: ToolRunner,
    critical_prefixes: Sequence[str],
) -> ChangeDecision:
    """Decide which of ``modules`` changed in ``commit_range``."""
    logger.info("=== Checking changes ===")
    logger.info("PREVIOUS_SHA: %s", commit_range.previous_sha or "")
    logger.info("CURRENT_SHA: %s", commit_range.current_sha)
    logger.info("GITHUB_REF: %s", ci.ref)
    logger.info("GITHUB_REPOSITORY: %s", ci.repository)
    logger.info("modules: %s", " ".join(modules))

    if not commit_range.has_history:
        logger.info("First push. Deploying all modules.")
        return ChangeDecision.everything(modules, REASON_FIRST_PUSH)

    try:
        conclusion = last_run_conclusion(ci, runner)
    except ChangeDetectionError as e:
        logger.warning("%s. Deploying all modules.", e)
        return ChangeDecision.everything(modules, REASON_HISTORY_UNAVAILABLE)

    logger.info("Last run conclusion: %s", conclusion or "null")
    if conclusion is not None and conclusion != "success":
        logger.info("Last run failed. Deploying all modules.")
        return ChangeDecision.everything(modules, REASON_LAST_RUN_FAILED)

    try:
        paths = diff_paths(commit_range, runner)
    except ChangeDetectionError as e:
        logger.warning("%s. Deploying all modules.", e)
        return ChangeDecision.everything(modules, REASON_DIFF_FAILED)

    critical = critical_paths(paths, critical_prefixes)
    if critical:
        logger.info("Critical workflow/config files changed (%s). Deploying all modules.", ", ".join(critical))
        return ChangeDecision.everything(modules, REASON_CRITICAL_FILES)

    changed = set()
    for module in modules:
        if module_changed(module, paths):
            logger.info("%s changed. Deploying %s.", module, module)
            changed.add(module)
        else:
            logger.info("%s unchanged.", module)

    return ChangeDecision(
        requested=tuple(modules),
        changed=frozenset(changed),
        reason=REASON_DIFF,
    )


def emit(decision: ChangeDecision, sink: OutputSink) -> list[str]:
    """Write ``<module>=true`` for each changed module; return the lines."""
    lines = decision.output_lines()
    sink.write(lines)
    return lines
