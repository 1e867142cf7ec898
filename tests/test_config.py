"""
Tests for configuration loading — deployctl.yml and the process environment.
"""

import textwrap
from pathlib import Path

import pytest

from deployctl.core.config.loader import (
    find_settings_file,
    load_deployment_request,
    load_resolver_context,
    load_settings,
    tag_variable,
)
from deployctl.core.errors import ConfigError
from deployctl.core.models import DeploySettings, DeploymentTopology

# ── Settings file ────────────────────────────────────────────────────


class TestFindSettingsFile:
    def test_found_in_parent(self, tmp_path: Path):
        (tmp_path / "deployctl.yml").write_text("modules: [api]\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_settings_file(nested) == (tmp_path / "deployctl.yml").resolve()

    def test_not_found(self, tmp_path: Path):
        assert find_settings_file(tmp_path) is None


class TestLoadSettings:
    def test_explicit_file(self, tmp_path: Path):
        path = tmp_path / "deployctl.yml"
        path.write_text(textwrap.dedent("""\
            modules: [api, web, worker]
            database_service: db
            watchdog_service: null
            migration:
              image: amacneil/dbmate:2
        """))
        s = load_settings(path)
        assert s.modules == ["api", "web", "worker"]
        assert s.database_service == "db"
        assert s.watchdog_service is None
        assert s.migration.image == "amacneil/dbmate:2"
        assert s.migration.migrations_dir == "db/migrations"

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "deployctl.yml"
        path.write_text("")
        assert load_settings(path) == DeploySettings()

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "deployctl.yml"
        path.write_text("modules: [api\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "deployctl.yml"
        path.write_text("- api\n- web\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_schema_violation(self, tmp_path: Path):
        path = tmp_path / "deployctl.yml"
        path.write_text("modules: 5\n")
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings(path)


# ── Environment ──────────────────────────────────────────────────────


class TestLoadResolverContext:
    def test_complete(self, resolver_env):
        ctx = load_resolver_context(resolver_env)
        assert ctx.previous_sha == "1111111111111111111111111111111111111111"
        assert ctx.repository == "acme/shop"
        assert ctx.branch == "main"
        assert ctx.output_path is None

    def test_previous_sha_unset(self, resolver_env):
        del resolver_env["PREVIOUS_SHA"]
        with pytest.raises(ConfigError, match="PREVIOUS_SHA"):
            load_resolver_context(resolver_env)

    def test_previous_sha_empty_means_first_push(self, resolver_env):
        resolver_env["PREVIOUS_SHA"] = ""
        assert load_resolver_context(resolver_env).previous_sha is None

    def test_missing_lists_every_variable(self, resolver_env):
        del resolver_env["GITHUB_TOKEN"]
        resolver_env["GITHUB_REF"] = " "
        with pytest.raises(ConfigError) as exc:
            load_resolver_context(resolver_env)
        assert "GITHUB_TOKEN" in str(exc.value)
        assert "GITHUB_REF" in str(exc.value)

    def test_github_output_is_sink(self, resolver_env, tmp_path: Path):
        resolver_env["GITHUB_OUTPUT"] = str(tmp_path / "out")
        assert load_resolver_context(resolver_env).output_path == tmp_path / "out"

    def test_explicit_output_wins(self, resolver_env, tmp_path: Path):
        resolver_env["GITHUB_OUTPUT"] = str(tmp_path / "out")
        ctx = load_resolver_context(resolver_env, output_path=tmp_path / "mine")
        assert ctx.output_path == tmp_path / "mine"


class TestLoadDeploymentRequest:
    def test_single_host(self, deploy_env, settings, tmp_path: Path):
        req = load_deployment_request(deploy_env, settings)
        ctx = req.context
        assert ctx.project_name == "shop"
        assert ctx.environment_name == "staging"
        assert ctx.topology is DeploymentTopology.SINGLE_HOST
        assert not ctx.is_production
        assert ctx.working_folder == tmp_path / "work" / "shop_staging"
        assert ctx.data_folder == tmp_path / "data" / "shop_staging"
        assert ctx.secrets_file == tmp_path / "data" / "shop_staging" / "secrets.env"
        assert ctx.compose_file == "docker-compose.yml"
        assert not req.db_changed

    def test_empty_tag_is_none(self, deploy_env, settings):
        req = load_deployment_request(deploy_env, settings)
        assert req.tags() == {"api": "a1b2c3", "web": None}

    def test_absent_tag_is_none(self, deploy_env, settings):
        del deploy_env["WEB_SHA_TAG"]
        assert load_deployment_request(deploy_env, settings).tags()["web"] is None

    def test_flags_case_insensitive(self, deploy_env, settings):
        deploy_env.update(IS_SWARM="TRUE", DEPLOYMENT_IS_PRODUCTION="True", DB_CHANGED="true")
        req = load_deployment_request(deploy_env, settings)
        assert req.context.clustered
        assert req.context.is_production
        assert req.context.compose_file == "swarm-compose.yml"
        assert req.db_changed

    def test_non_true_flag_is_false(self, deploy_env, settings):
        deploy_env["DB_CHANGED"] = "yes"
        assert not load_deployment_request(deploy_env, settings).db_changed

    def test_missing_variable(self, deploy_env, settings):
        deploy_env["PROJECT_NAME"] = ""
        with pytest.raises(ConfigError, match="PROJECT_NAME"):
            load_deployment_request(deploy_env, settings)

    def test_configured_modules(self, deploy_env, settings):
        settings = settings.model_copy(update={"modules": ["api", "worker"]})
        deploy_env["WORKER_SHA_TAG"] = "w9"
        req = load_deployment_request(deploy_env, settings)
        assert req.tags() == {"api": "a1b2c3", "worker": "w9"}


class TestTagVariable:
    def test_name(self):
        assert tag_variable("api") == "API_SHA_TAG"


class TestDefaultSettings:
    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_settings() == DeploySettings()
