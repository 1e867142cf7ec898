"""
deployctl — CLI entrypoint.

Usage:
    deployctl --help
    deployctl check-changes api web
    deployctl deploy
    deployctl history shop prod
    deployctl config check
"""

from __future__ import annotations

import io
import json
import os
import sys
from pathlib import Path

import click

from deployctl import __version__
from deployctl.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="deployctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to deployctl.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """deployctl — change detection and deployment for compose/swarm targets."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose=verbose, quiet=quiet, debug=debug, environ=os.environ),
        log_file=os.environ.get("DEPLOYCTL_LOG_FILE"),
        log_file_level=os.environ.get("DEPLOYCTL_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command("check-changes")
@click.argument("modules", nargs=-1)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="File to append key=value lines to (default: $GITHUB_OUTPUT, else stdout).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check_changes_cmd(
    ctx: click.Context,
    modules: tuple[str, ...],
    output_path: str | None,
    as_json: bool,
) -> None:
    """Flag which MODULES changed since the previous push."""
    from deployctl.core.use_cases.check_changes import check_changes

    result = check_changes(
        modules,
        os.environ,
        output_path=Path(output_path) if output_path else None,
        config_path=ctx.obj.get("config_path"),
        # JSON mode carries the lines itself; keep stdout parseable
        stream=io.StringIO() if as_json else None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    if not ctx.obj.get("quiet"):
        decision = result.decision
        assert decision is not None  # guaranteed after error check above
        changed = [m for m in decision.requested if decision.is_changed(m)]
        click.secho(
            f"✅ {len(changed)}/{len(decision.requested)} module(s) changed ({decision.reason})",
            fg="green",
            err=True,
        )


@cli.command("deploy")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deploy_cmd(ctx: click.Context, as_json: bool) -> None:
    """Deploy the target described by the environment."""
    from deployctl.core.use_cases.deploy import run_deploy

    result = run_deploy(os.environ, config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)
        return

    if not result.ok:
        code = f" (exit {result.return_code})" if result.return_code is not None else ""
        click.secho(f"❌ {result.error}{code}", fg="red", err=True)
        sys.exit(1)

    report = result.report
    assert report is not None  # guaranteed on success
    if not ctx.obj.get("quiet"):
        click.secho(f"\n✅ Deployed {report.project} to {report.environment}", fg="green", bold=True)
        click.echo(f"   Topology:  {report.topology}")
        if report.first_deployment:
            click.echo("   First deployment")
        for name, tag in report.tags.items():
            click.echo(f"   {name}: {tag or '(unchanged)'}")
        click.echo(f"   Services:  {', '.join(report.deployed_services) or '(none)'}")
        click.echo(f"   Migration: {report.migration.value}")
        click.echo()


@cli.command("history")
@click.argument("project")
@click.argument("environment")
@click.option("--limit", "-n", default=10, show_default=True, help="Number of entries to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history_cmd(ctx: click.Context, project: str, environment: str, limit: int, as_json: bool) -> None:
    """Show recent deployments of PROJECT to ENVIRONMENT from the ledger."""
    from deployctl.core.config.loader import load_settings
    from deployctl.core.errors import ConfigError
    from deployctl.core.persistence.audit import AuditWriter

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    data_folder = Path(settings.data_root) / f"{project}_{environment}"
    entries = AuditWriter(data_folder=data_folder).read_all()[-limit:] if limit > 0 else []

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No deployments recorded for {project} ({environment}).")
        return

    for entry in entries:
        color = "green" if entry.status == "ok" else "red"
        click.echo(f"{entry.timestamp}  {entry.operation_id}  ", nl=False)
        click.secho(entry.status or "?", fg=color, nl=False)
        tags = ", ".join(f"{k}={v or '-'}" for k, v in entry.tags.items())
        click.echo(f"  migration={entry.migration or '-'}  {tags}")
        if entry.error:
            click.echo(f"    {entry.error}")


@cli.group()
def config() -> None:
    """Settings commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate deployctl.yml and check tool availability."""
    from deployctl.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.settings is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File:    {result.config_path or '(defaults)'}")
        click.echo(f"   Modules: {', '.join(result.settings.modules)}")
        for name, status in result.adapters.items():
            mark = "✓" if status["available"] else "✗"
            click.echo(f"   {mark} {name}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


def main() -> None:
    """Entry point for ``python -m deployctl``."""
    cli(obj={})


if __name__ == "__main__":
    main()
