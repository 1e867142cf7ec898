"""
Tests for the change scope resolver.
"""

import io
from pathlib import Path

import pytest

from deployctl.core.engine.resolver import (
    REASON_CRITICAL_FILES,
    REASON_DIFF,
    REASON_DIFF_FAILED,
    REASON_FIRST_PUSH,
    REASON_HISTORY_UNAVAILABLE,
    REASON_LAST_RUN_FAILED,
    critical_paths,
    current_sha,
    emit,
    module_changed,
    resolve,
)
from deployctl.core.models import ZERO_SHA, CommitRange, ResolverContext
from deployctl.core.models.settings import DeploySettings
from deployctl.core.persistence.outputs import OutputSink

MODULES = ["api", "web"]
PREFIXES = DeploySettings().critical_prefixes


@pytest.fixture
def ci() -> ResolverContext:
    return ResolverContext(
        previous_sha="1" * 40,
        token="ghs_test",
        repository="acme/shop",
        api_url="https://api.github.com",
        ref="refs/heads/main",
    )


@pytest.fixture
def commit_range() -> CommitRange:
    return CommitRange(previous_sha="1" * 40, current_sha="2" * 40)


def _diff(git, *paths: str) -> None:
    git.set_output("diff_names", "\n".join(paths), paths=list(paths))


def _last_run(github, conclusion) -> None:
    github.set_output("last_run", conclusion or "null", conclusion=conclusion)


class TestFirstPush:
    @pytest.mark.parametrize("previous", [None, "", ZERO_SHA])
    def test_everything_flagged(self, previous, ci, ci_runner, git, github):
        decision = resolve(CommitRange(previous_sha=previous), MODULES, ci, ci_runner, PREFIXES)
        assert decision.all_changed
        assert decision.reason == REASON_FIRST_PUSH
        assert github.call_count == 0
        assert "diff_names" not in git.steps


class TestRunHistory:
    def test_last_run_failed(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "failure")
        _diff(git, "docs/readme.md")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.all_changed
        assert decision.reason == REASON_LAST_RUN_FAILED

    def test_cancelled_counts_as_failed(self, commit_range, ci, ci_runner, github):
        _last_run(github, "cancelled")
        assert resolve(commit_range, MODULES, ci, ci_runner, PREFIXES).all_changed

    def test_no_previous_run_uses_diff(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, None)
        _diff(git, "web/src/app.ts")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.output_lines() == ["web=true"]

    def test_history_unavailable(self, commit_range, ci, ci_runner, github):
        github.set_failure("last_run", "401 Unauthorized")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.all_changed
        assert decision.reason == REASON_HISTORY_UNAVAILABLE

    def test_queries_branch(self, commit_range, ci, ci_runner, github):
        _last_run(github, "success")
        resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        params = github.calls_for("last_run")[0].params
        assert params["branch"] == "main"
        assert params["repository"] == "acme/shop"
        assert params["token"] == "ghs_test"


class TestDiff:
    def test_single_module(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        _diff(git, "api/Foo.cs")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.reason == REASON_DIFF
        assert decision.output_lines() == ["api=true"]

    def test_diff_range(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        params = git.calls_for("diff_names")[0].params
        assert params["base"] == "1" * 40
        assert params["target"] == "2" * 40

    def test_critical_path(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        _diff(git, ".github/workflows/deploy.yml")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.all_changed
        assert decision.reason == REASON_CRITICAL_FILES

    def test_nothing_changed(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        _diff(git, "README.md")
        assert resolve(commit_range, MODULES, ci, ci_runner, PREFIXES).output_lines() == []

    def test_diff_failed(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        git.set_failure("diff_names", "fatal: bad object 1111")
        decision = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert decision.all_changed
        assert decision.reason == REASON_DIFF_FAILED

    def test_idempotent(self, commit_range, ci, ci_runner, git, github):
        _last_run(github, "success")
        _diff(git, "api/Foo.cs", "docs/x.md")
        first = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        second = resolve(commit_range, MODULES, ci, ci_runner, PREFIXES)
        assert first == second


class TestHelpers:
    def test_module_changed_needs_directory(self):
        assert module_changed("api", ["api/Foo.cs"])
        assert not module_changed("api", ["apiary/x.py", "web/api/y.ts"])

    def test_critical_paths(self):
        paths = [".github/workflows/ci.yml", "docker-compose.yml", ".env.prod", "api/x", "swarm-compose.yml"]
        assert critical_paths(paths, PREFIXES) == [
            ".github/workflows/ci.yml",
            "docker-compose.yml",
            ".env.prod",
            "swarm-compose.yml",
        ]

    def test_current_sha(self, ci_runner):
        assert current_sha(ci_runner) == "2" * 40

    def test_current_sha_falls_back_to_head(self, ci_runner, git):
        git.set_failure("head", "not a git repository")
        assert current_sha(ci_runner) == "HEAD"


class TestEmit:
    def test_to_file(self, commit_range, ci, ci_runner, git, github, tmp_path: Path):
        _last_run(github, "success")
        _diff(git, "api/Foo.cs", "web/app.ts")
        out = tmp_path / "github_output"
        out.write_text("previous=1\n")
        lines = emit(resolve(commit_range, MODULES, ci, ci_runner, PREFIXES), OutputSink(out))
        assert lines == ["api=true", "web=true"]
        assert out.read_text() == "previous=1\napi=true\nweb=true\n"

    def test_nothing_to_emit(self, commit_range, ci, ci_runner, github, tmp_path: Path):
        _last_run(github, "success")
        out = tmp_path / "github_output"
        assert emit(resolve(commit_range, MODULES, ci, ci_runner, PREFIXES), OutputSink(out)) == []
        assert not out.exists()

    def test_to_stream(self):
        from deployctl.core.models import ChangeDecision

        stream = io.StringIO()
        emit(ChangeDecision.everything(["api"], REASON_FIRST_PUSH), OutputSink(stream=stream))
        assert stream.getvalue() == "api=true\n"
