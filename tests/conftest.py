"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from deployctl.adapters.mock import MockAdapter
from deployctl.adapters.registry import AdapterRegistry
from deployctl.core.engine.runner import ToolRunner
from deployctl.core.models.settings import DeploySettings

ENV_TEMPLATE = textwrap.dedent("""\
    # shop environment
    API_TAG=
    WEB_TAG=
    DB_HOST=postgres
""")

COMPOSE_TEMPLATE = textwrap.dedent("""\
    services:
      api:
        image: registry.example.com/shop/api:${API_TAG}
        ports:
          - "8080:80"
        networks:
          - local
          #- admin
      web:
        image: registry.example.com/shop/web:${WEB_TAG}
        ports:
          - "80:80"
        networks:
          - local
          #- internet
    networks:
      local:
      admin:
      internet:
""")


@pytest.fixture
def settings(tmp_path: Path) -> DeploySettings:
    """Default settings rooted in the test's temp directory."""
    return DeploySettings(
        work_root=str(tmp_path / "work"),
        data_root=str(tmp_path / "data"),
    )


@pytest.fixture
def deploy_env() -> dict[str, str]:
    """A complete single-host deployment environment."""
    return {
        "DB_CHANGED": "false",
        "PROJECT_NAME": "shop",
        "DEPLOYMENT_ENVIRONMENT": "staging",
        "DEPLOYMENT_IS_PRODUCTION": "false",
        "IS_SWARM": "false",
        "API_SHA_TAG": "a1b2c3",
        "WEB_SHA_TAG": "",
    }


@pytest.fixture
def resolver_env() -> dict[str, str]:
    """A complete change-detection environment for a normal push."""
    return {
        "PREVIOUS_SHA": "1111111111111111111111111111111111111111",
        "GITHUB_TOKEN": "ghs_test",
        "GITHUB_REPOSITORY": "acme/shop",
        "GITHUB_API_URL": "https://api.github.com",
        "GITHUB_REF": "refs/heads/main",
    }


def _make_working_folder(
    settings: DeploySettings,
    project: str = "shop",
    environment: str = "staging",
    env_text: str = ENV_TEMPLATE,
    compose_text: str = COMPOSE_TEMPLATE,
) -> Path:
    """Lay out a working folder the way the CI copy step leaves it."""
    folder = Path(settings.work_root) / f"{project}_{environment}"
    folder.mkdir(parents=True, exist_ok=True)
    (folder / f".env.{environment}").write_text(env_text)
    (folder / settings.compose_file).write_text(compose_text)
    (folder / settings.swarm_compose_file).write_text(compose_text)
    (folder / "db" / "migrations").mkdir(parents=True, exist_ok=True)
    return folder


@pytest.fixture
def docker() -> MockAdapter:
    return MockAdapter(adapter_name="docker")


@pytest.fixture
def docker_registry(docker: MockAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(docker)
    return registry


@pytest.fixture
def git() -> MockAdapter:
    return MockAdapter(adapter_name="git", default_output="2222222222222222222222222222222222222222")


@pytest.fixture
def github() -> MockAdapter:
    return MockAdapter(adapter_name="github")


@pytest.fixture
def ci_registry(git: MockAdapter, github: MockAdapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(git)
    registry.register(github)
    return registry


@pytest.fixture
def ci_runner(ci_registry: AdapterRegistry) -> ToolRunner:
    return ToolRunner(ci_registry, "op-test")


@pytest.fixture
def make_working_folder(settings: DeploySettings):
    """Factory: ``make_working_folder(environment=..., env_text=...)``."""

    def factory(**kwargs) -> Path:
        return _make_working_folder(settings, **kwargs)

    return factory
