"""
Docker adapter — compose, swarm service and one-shot container operations.

Uses the docker CLI — never the Docker API directly. Compose operations
run in the working folder against an explicit ``-f`` compose file.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess

from deployctl.adapters.base import Adapter, ExecutionContext
from deployctl.core.models.action import Receipt

logger = logging.getLogger(__name__)


class DockerAdapter(Adapter):
    """Docker, Docker Compose and Swarm operations.

    Action params:
        operation (str): See ``VALID_OPS``.
        compose_file (str): Compose file for ``compose_*`` and ``stack_deploy``.
        service (str): Target service (stop/start/restart, service_* ops).
        services (list[str]): Services to bring up (``compose_up``).
        network (str): Network key (``compose_network``) or name (``run``).
        source, target (str): Copy endpoints (``compose_cp``).
        stack (str): Stack name (``stack_deploy``).
        env (dict): Extra environment for ``stack_deploy``.
        image, volumes, env_file, args: Container spec for ``run``.
        timeout (int): Timeout in seconds (default: 300).
    """

    VALID_OPS = {
        "compose_services",
        "compose_network",
        "compose_pull",
        "compose_up",
        "compose_stop",
        "compose_start",
        "compose_restart",
        "compose_cp",
        "service_image",
        "service_running",
        "stack_deploy",
        "run",
    }

    _REQUIRED = {
        "compose_stop": ("service",),
        "compose_start": ("service",),
        "compose_restart": ("service",),
        "compose_cp": ("source", "target"),
        "compose_network": ("network",),
        "service_image": ("service",),
        "service_running": ("service",),
        "stack_deploy": ("stack", "compose_file"),
        "run": ("image",),
    }

    @property
    def name(self) -> str:
        return "docker"

    def is_available(self) -> bool:
        return shutil.which("docker") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.action.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in self.VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(self.VALID_OPS))}"

        for param in self._REQUIRED.get(operation, ()):
            if not context.action.params.get(param):
                return False, f"Missing required param: '{param}' for {operation} operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.params["operation"]
        handler = getattr(self, f"_{operation}", None)
        if handler is None:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Unknown operation: {operation}",
            )
        try:
            return handler(context)
        except subprocess.TimeoutExpired as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"docker timed out after {e.timeout}s",
                metadata={"operation": operation},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Docker error: {e}",
                metadata={"operation": operation},
            )

    # ── Compose ─────────────────────────────────────────────────

    def _compose_services(self, ctx: ExecutionContext) -> Receipt:
        result = self._docker(self._compose_args(ctx, "config", "--services"), ctx)
        if result.returncode != 0:
            return self._failed(ctx, result)
        services = [s.strip() for s in result.stdout.splitlines() if s.strip()]
        return self._ok(ctx, result, services=services)

    def _compose_network(self, ctx: ExecutionContext) -> Receipt:
        """Resolve a network key from the compose file to its real name."""
        key = ctx.action.params["network"]
        result = self._docker(self._compose_args(ctx, "config", "--format", "json"), ctx)
        if result.returncode != 0:
            return self._failed(ctx, result)

        config = json.loads(result.stdout or "{}")
        network = (config.get("networks") or {}).get(key) or {}
        network_name = network.get("name")
        if not network_name:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Network '{key}' not declared in compose file",
                metadata={"return_code": result.returncode},
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=network_name,
            metadata={"network_name": network_name, "return_code": 0},
        )

    def _compose_pull(self, ctx: ExecutionContext) -> Receipt:
        result = self._docker(self._compose_args(ctx, "pull"), ctx, timeout=900)
        return self._receipt(ctx, result)

    def _compose_up(self, ctx: ExecutionContext) -> Receipt:
        services = list(ctx.action.params.get("services") or [])
        result = self._docker(self._compose_args(ctx, "up", "-d", *services), ctx, timeout=900)
        return self._receipt(ctx, result, services=services)

    def _compose_stop(self, ctx: ExecutionContext) -> Receipt:
        service = ctx.action.params["service"]
        return self._receipt(ctx, self._docker(self._compose_args(ctx, "stop", service), ctx))

    def _compose_start(self, ctx: ExecutionContext) -> Receipt:
        service = ctx.action.params["service"]
        return self._receipt(ctx, self._docker(self._compose_args(ctx, "start", service), ctx))

    def _compose_restart(self, ctx: ExecutionContext) -> Receipt:
        service = ctx.action.params["service"]
        return self._receipt(ctx, self._docker(self._compose_args(ctx, "restart", service), ctx))

    def _compose_cp(self, ctx: ExecutionContext) -> Receipt:
        source = ctx.action.params["source"]
        target = ctx.action.params["target"]
        return self._receipt(ctx, self._docker(self._compose_args(ctx, "cp", source, target), ctx))

    # ── Swarm ───────────────────────────────────────────────────

    def _service_image(self, ctx: ExecutionContext) -> Receipt:
        service = ctx.action.params["service"]
        result = self._docker(
            [
                "service", "inspect",
                "--format", "{{.Spec.TaskTemplate.ContainerSpec.Image}}",
                service,
            ],
            ctx,
            timeout=30,
        )
        if result.returncode != 0:
            return self._failed(ctx, result)
        image = result.stdout.strip()
        return self._ok(ctx, result, image=image)

    def _service_running(self, ctx: ExecutionContext) -> Receipt:
        """Whether a swarm service exists with at least one running replica."""
        service = ctx.action.params["service"]
        result = self._docker(
            ["service", "ls", "--filter", f"name={service}", "--format", "{{.Name}} {{.Replicas}}"],
            ctx,
            timeout=30,
        )
        if result.returncode != 0:
            return self._failed(ctx, result)

        running = False
        replicas = ""
        for line in result.stdout.splitlines():
            parts = line.split()
            # name filter is a prefix match; require the exact service
            if len(parts) >= 2 and parts[0] == service:
                replicas = parts[1]
                current = replicas.split("/", 1)[0]
                running = current.isdigit() and int(current) > 0
                break
        return self._ok(ctx, result, running=running, replicas=replicas)

    def _stack_deploy(self, ctx: ExecutionContext) -> Receipt:
        params = ctx.action.params
        env = {**os.environ, **(params.get("env") or {})}
        result = self._docker(
            [
                "stack", "deploy", params["stack"],
                "--compose-file", params["compose_file"],
                "--detach=false",
            ],
            ctx,
            timeout=1800,
            env=env,
        )
        return self._receipt(ctx, result, stack=params["stack"])

    # ── Containers ──────────────────────────────────────────────

    def _run(self, ctx: ExecutionContext) -> Receipt:
        """One-shot ``docker run --rm`` (used for migrations)."""
        params = ctx.action.params
        args = ["run", "--rm"]
        if params.get("network"):
            args += ["--network", params["network"]]
        for volume in params.get("volumes") or []:
            args += ["-v", volume]
        if params.get("env_file"):
            args += ["--env-file", params["env_file"]]
        args.append(params["image"])
        args += list(params.get("args") or [])
        result = self._docker(args, ctx, timeout=1800)
        return self._receipt(ctx, result, image=params["image"])

    # ── Helpers ─────────────────────────────────────────────────

    def _compose_args(self, ctx: ExecutionContext, *args: str) -> list[str]:
        compose_file = ctx.action.params.get("compose_file")
        base = ["compose"]
        if compose_file:
            base += ["-f", compose_file]
        return [*base, *args]

    def _docker(
        self,
        args: list[str],
        ctx: ExecutionContext,
        timeout: int = 300,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a docker command in the working folder."""
        timeout = ctx.action.params.get("timeout", timeout)
        logger.debug("docker %s (cwd=%s)", " ".join(args), ctx.working_dir)
        return subprocess.run(
            ["docker", *args],
            cwd=ctx.working_dir,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )

    def _receipt(self, ctx: ExecutionContext, result: subprocess.CompletedProcess[str], **metadata) -> Receipt:
        if result.returncode != 0:
            return self._failed(ctx, result)
        return self._ok(ctx, result, **metadata)

    def _ok(self, ctx: ExecutionContext, result: subprocess.CompletedProcess[str], **metadata) -> Receipt:
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=result.stdout.strip(),
            metadata={"return_code": result.returncode, **metadata},
        )

    def _failed(self, ctx: ExecutionContext, result: subprocess.CompletedProcess[str]) -> Receipt:
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=result.stderr.strip() or f"Exit code {result.returncode}",
            metadata={
                "return_code": result.returncode,
                "stdout": result.stdout.strip(),
            },
        )
