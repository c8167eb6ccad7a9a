"""
devbox — CLI entrypoint.

Usage:
    devbox --help
    devbox provision
    devbox provision --only sites
    devbox config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devbox import __version__
from devbox.core.observability.logging_config import setup_logging

_STATUS_COLORS = {"ok": "green", "partial": "yellow", "failed": "red"}


@click.group()
@click.version_option(version=__version__, prog_name="devbox")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devbox — provision the development virtual machine."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DEVBOX_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DEVBOX_LOG_FILE"),
        log_file_level=os.environ.get("DEVBOX_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--dry-run", is_flag=True, help="Validate but don't change anything.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option(
    "--only",
    "only",
    multiple=True,
    help="Run only these steps (repeatable). 'sites' selects all site steps.",
)
@click.option("--strict", is_flag=True, help="Exit non-zero when any action failed.")
@click.pass_context
def provision(
    ctx: click.Context,
    as_json: bool,
    dry_run: bool,
    mock: bool,
    only: tuple[str, ...],
    strict: bool,
) -> None:
    """Provision the machine described by provision.yml.

    Examples:

        devbox provision

        devbox provision --only sites

        devbox provision --dry-run
    """
    from devbox.core.use_cases.provision import run_provision

    result = run_provision(
        config_path=ctx.obj.get("config_path"),
        dry_run=dry_run,
        mock_mode=mock,
        only=list(only) if only else None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error or (strict and result.report and result.report.failed > 0):
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None
    assert result.config is not None
    quiet = ctx.obj.get("quiet", False)

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}provision — {result.config.name}", fg="cyan", bold=True)
    click.echo()

    for step in report.steps:
        color = _STATUS_COLORS.get(step.status, "white")
        click.secho(f"   {step.name}", fg=color, bold=True, nl=False)
        click.echo(f"  ({step.succeeded} ok, {step.skipped} skipped, {step.failed} failed)")

        for receipt in step.receipts:
            if receipt.ok:
                if quiet:
                    continue
                click.secho("     ✓ ", fg="green", nl=False)
                click.echo(receipt.action_id)
                if ctx.obj.get("verbose") and receipt.output:
                    for line in receipt.output.split("\n")[:10]:
                        click.echo(f"       │ {line}")
            elif receipt.failed:
                click.secho("     ✗ ", fg="red", nl=False)
                click.echo(receipt.action_id)
                if receipt.error:
                    for line in receipt.error.split("\n")[:5]:
                        click.echo(f"       │ {line}")
            elif not quiet:
                click.secho("     ⊘ ", fg="yellow", nl=False)
                click.echo(f"{receipt.action_id} ({receipt.output})")

    # Summary
    click.echo()
    click.secho(
        f"   Result: {report.succeeded} ok, {report.skipped} skipped, {report.failed} failed",
        fg=_STATUS_COLORS.get(report.status, "white"),
        bold=True,
    )

    click.echo()
    click.secho("-" * 45, fg="cyan")
    click.echo(f"Provisioning complete in {report.elapsed_seconds} seconds")
    connectivity_color = "green" if result.connectivity.connected else "yellow"
    click.secho(f"Internet connection: {result.connectivity.label}", fg=connectivity_color)
    if result.connectivity.connected:
        click.echo("External network connection established, packages up to date.")
    else:
        click.echo("No external network available. Package installation and maintenance skipped.")
    for label, url in result.config.links.items():
        click.echo(f"{label}: {url}")
    click.echo()

    if strict and report.failed > 0:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def sites(ctx: click.Context, as_json: bool) -> None:
    """List discovered project descriptors and their derived names."""
    from devbox.core.models.site import DescriptorKind
    from devbox.core.use_cases.sites import list_sites

    result = list_sites(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.config is not None
    click.secho(f"\n🌐 Sites under {result.config.sites.www_root}", fg="cyan", bold=True)

    hooks = result.descriptors.get(DescriptorKind.INIT_HOOK, [])
    click.echo()
    click.secho(f"   Init hooks: {len(hooks)}", fg="white", bold=True)
    for hook in hooks:
        click.echo(f"     • {hook.path}")

    click.echo()
    click.secho(f"   Vhosts: {len(result.vhost_names)}", fg="white", bold=True)
    for source, name in result.vhost_names.items():
        click.echo(f"     • {name}  ← {source}")

    click.echo()
    click.secho(f"   Hosts lists: {len(result.hostnames)}", fg="white", bold=True)
    for source, names in result.hostnames.items():
        click.echo(f"     • {source}")
        for name in names:
            click.echo(f"         {name}")

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the last provisioning run."""
    from devbox.core.use_cases.status import get_status

    result = get_status(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.config is not None
    click.secho(f"\n📋 {result.config.name}", fg="cyan", bold=True)
    click.echo(f"   Config: {result.config_path}")
    click.echo()

    if not result.has_run:
        click.echo("   Not provisioned yet. Run 'devbox provision'.")
        click.echo()
        return

    assert result.state is not None
    run = result.state.last_run
    click.secho("   Last run:", fg="white", bold=True)
    click.echo(f"     {run.run_id} — ", nl=False)
    click.secho(run.status, fg=_STATUS_COLORS.get(run.status, "white"))
    click.echo(f"     at {run.ended_at} ({run.elapsed_seconds}s)")
    click.echo(f"     network: {'Connected' if run.connected else 'Not Connected'}")
    if run.dry_run:
        click.secho("     (dry run)", fg="yellow")

    for record in run.steps.values():
        color = _STATUS_COLORS.get(record.status, "white")
        click.secho(f"     • {record.name}", fg=color, nl=False)
        click.echo(f"  {record.succeeded} ok, {record.skipped} skipped, {record.failed} failed")

    if result.state.vhosts:
        click.echo()
        click.secho(f"   Vhosts: {len(result.state.vhosts)}", fg="white", bold=True)
        for name in result.state.vhosts:
            click.echo(f"     • {name}")

    if result.state.hostnames:
        click.echo()
        click.secho(f"   Hostnames: {len(result.state.hostnames)}", fg="white", bold=True)
        for name in result.state.hostnames:
            click.echo(f"     • {name}")

    click.echo()


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from devbox.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Machine: {result.config.name}")
        click.echo(f"   Packages: {len(result.config.packages.desired)}")
        click.echo(f"   Config groups: {len(result.config.config_groups)}")
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

    click.echo()


if __name__ == "__main__":
    cli()
