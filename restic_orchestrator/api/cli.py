#!/usr/bin/env python3
"""
Command Line Interface for restic-orchestrator.
Runs the scheduled cycle and provides manual inspection tools.
"""

from __future__ import annotations

import json
import sys
from typing import Optional

import click

from restic_orchestrator.backup.cleanup_manager import CleanupManager
from restic_orchestrator.config.loader import ConfigLoader, Settings
from restic_orchestrator.core.exceptions import ConfigurationError, OrchestratorError
from restic_orchestrator.core.logger import setup_logging, get_logger
from restic_orchestrator.core.models import Phase
from restic_orchestrator.core.run_log import RunLogFactory
from restic_orchestrator.discovery.disk_scanner import DiskScanner
from restic_orchestrator.discovery.source_resolver import ResolutionStatus, SourceResolver
from restic_orchestrator.engine.client import ResticEngine
from restic_orchestrator.main import main as run_main
from restic_orchestrator.network.connectivity import ConnectivityGate, derive_repository_host
from restic_orchestrator.network.probe import SystemNetworkProbe
from restic_orchestrator.state.store import StateStore

logger = get_logger(__name__)


def _load_settings(ctx: click.Context) -> Settings:
    try:
        return ConfigLoader.load(ctx.obj["config"])
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


# CLI root
@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to the JSON options file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """restic-orchestrator - scheduled backups and repository maintenance"""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    setup_logging(log_level="DEBUG" if verbose else "WARNING")

    if verbose:
        logger.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def run(ctx: click.Context):
    """Run one backup and (when due) maintenance cycle"""
    sys.exit(run_main(ctx.obj["config"]))


@cli.command(name="check-connectivity")
@click.option("--attempts", "-n", type=int, default=None, help="Override the number of checks")
@click.pass_context
def check_connectivity(ctx: click.Context, attempts: Optional[int]):
    """Check whether the repository is reachable"""
    settings = _load_settings(ctx)
    gate = ConnectivityGate(
        SystemNetworkProbe(),
        delay_seconds=settings.internet_test_delay_seconds,
        avoid_metered=settings.avoid_metered_networks,
    )

    host = derive_repository_host(settings.repository)
    click.echo(f"Repository: {settings.repository}")
    click.echo(f"Probe host: {host or 'n/a'}")

    max_attempts = settings.internet_test_attempts if attempts is None else attempts
    if gate.check(settings.repository, max_attempts):
        click.echo("✅ Repository is available")
    else:
        click.echo(f"❌ Repository unavailable: {gate.last_blocking_reason}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def sources(ctx: click.Context):
    """Resolve the configured backup sources"""
    settings = _load_settings(ctx)
    resolver = SourceResolver(DiskScanner())

    failed = False
    for source in settings.sources:
        resolution = resolver.resolve(source)

        if resolution.status == ResolutionStatus.RESOLVED:
            root = resolution.root
            snapshot = "snapshot" if root.snapshot_capable else "no snapshot"
            click.echo(f"✅ {source.identifier} -> {root.root_path} ({snapshot})")
            for path in root.include_paths:
                click.echo(f"   {path}")
            for missing in resolution.missing_paths:
                click.echo(f"   ⚠️  missing: {missing}")
        elif resolution.status == ResolutionStatus.MISSING and settings.ignore_missing_sources:
            click.echo(f"⚠️  {source.identifier}: {resolution.reason} (ignored)")
        else:
            failed = True
            click.echo(f"❌ {source.identifier}: {resolution.reason}")

    if failed:
        sys.exit(1)


@cli.command()
def disks():
    """List block devices usable as backup sources"""
    scanner = DiskScanner()
    found = scanner.scan_disks()

    if not found:
        click.echo("No disks found")
        return

    for i, disk in enumerate(found, 1):
        size = (
            f"{disk.size_gb:.1f}GB"
            if disk.size_gb >= 1
            else f"{disk.size_gb * 1024:.0f}MB"
        )
        click.echo(f"{i}. {disk.name} ({disk.device_type}, {size}, {disk.filesystem or 'Unknown'})")

        if disk.label:
            click.echo(f"   Label: {disk.label}")
        if disk.serial:
            click.echo(f"   Serial: {disk.serial}")
        if disk.mountpoint:
            click.echo(f"   Mounted at: {disk.mountpoint}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def state(ctx: click.Context, as_json: bool):
    """Show the persisted orchestration state"""
    settings = _load_settings(ctx)
    current = StateStore(settings.state_file).load()
    data = current.to_dict()

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"State file: {settings.state_file}")
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


@cli.command()
@click.pass_context
def init(ctx: click.Context):
    """Initialise the repository and record it in the state file"""
    settings = _load_settings(ctx)
    if not settings.log_path.is_dir():
        click.echo(f"Log directory does not exist: {settings.log_path}", err=True)
        sys.exit(1)

    engine = ResticEngine(settings.engine_path, settings.repository, settings.environment)
    try:
        engine.ensure_available()
    except OrchestratorError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    attempt = RunLogFactory(settings.log_path).open_attempt(Phase.INIT, 1)
    returncode = engine.init(attempt)

    store = StateStore(settings.state_file)
    current = store.load()
    current.repository_initialized = returncode == 0
    store.save(current)

    if returncode == 0:
        click.echo(f"✅ Repository initialised: {settings.repository}")
    else:
        click.echo(f"❌ Initialisation failed (exit code {returncode}), see {attempt.error_log}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def cleanup(ctx: click.Context):
    """Delete attempt logs past the retention window"""
    settings = _load_settings(ctx)
    result = CleanupManager(settings.log_path, settings.log_retention_days).cleanup_old_logs()
    click.echo(f"Deleted {len(result.files_deleted)} log file(s), kept {result.files_kept}")
    if not result.success:
        click.echo(f"Cleanup error: {result.error}", err=True)
        sys.exit(1)


# Config commands
@cli.group()
def config():
    """Configuration commands"""
    pass


@config.command(name="show")
@click.pass_context
def config_show(ctx: click.Context):
    """Show current configuration (secrets omitted)"""
    settings = _load_settings(ctx.parent)

    click.echo("Current Configuration:")
    click.echo(f"  Repository: {settings.repository}")
    click.echo(f"  Engine: {settings.engine_path}")
    click.echo(f"  Log path: {settings.log_path}")
    click.echo(f"  State file: {settings.state_file}")
    click.echo(f"  Sources:")
    for source in settings.sources:
        sub_paths = ", ".join(source.sub_paths) or "(whole root)"
        click.echo(f"    {source.identifier}: {sub_paths}")
    click.echo(f"  Retry attempts: {settings.global_retry_attempts} "
               f"(cooldown {settings.retry_cooldown_seconds}s)")
    click.echo(f"  Maintenance: every {settings.maintenance_interval} backups "
               f"or {settings.maintenance_days} days "
               f"({'enabled' if settings.maintenance_enabled else 'disabled'})")
    click.echo(f"  Deep check every: {settings.deep_maintenance_days} days")
    click.echo(f"  Email reports: {'yes' if settings.smtp else 'no'}")
    click.echo(f"  Webhook reports: {'yes' if settings.webhook_url else 'no'}")
    click.echo(f"  Environment variables: {', '.join(sorted(settings.environment)) or 'none'}")


@config.command(name="validate")
@click.pass_context
def config_validate(ctx: click.Context):
    """Validate configuration"""
    _load_settings(ctx.parent)
    click.echo("✅ Configuration is valid")


if __name__ == "__main__":
    cli()
