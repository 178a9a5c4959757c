"""Command-line interface for the mirror backup application."""

import asyncio
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config.settings import BackupConfig, build_config
from .sync.backup_manager import BackupManager
from .sync.file_tracker import FileTracker
from .sync.scheduler import BackupScheduler
from .sync.statistics import BackupStats
from .utils.file_utils import FileHelper
from .utils.logging import setup_logging

DEFAULT_CONFIG_PATH = Path('config/config.yaml')


@click.group()
@click.version_option(version=__version__)
def cli():
    """Mirror Backup Tool

    Incrementally mirrors source directories into backup directories on a
    schedule. Only changed files are copied and files removed from the
    source are removed from the backup.
    """
    pass


@cli.command()
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to configuration file')
@click.option('--dry-run', '-d',
              is_flag=True,
              help='Show what would be copied and deleted without changing anything')
@click.option('--once',
              is_flag=True,
              help='Run a single backup and exit instead of scheduling')
@click.option('--no-color',
              is_flag=True,
              help='Disable colored output')
def backup(config: Path, dry_run: bool, once: bool, no_color: bool):
    """Run the configured backup tasks."""
    console = Console(no_color=no_color, highlight=not no_color)
    try:
        with console.status("Loading configuration..."):
            backup_config = BackupConfig.from_yaml(config)
        if dry_run:
            backup_config = backup_config.model_copy(update={'dry_run': True})

        setup_logging(log_level=backup_config.log_level, log_file=backup_config.log_file,
                      file_level=backup_config.log_file_level)
    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold", markup=False)
        sys.exit(1)

    console.print(f"✅ Configuration loaded from {config}", style="green")
    if backup_config.dry_run:
        console.print("🔍 DRY RUN MODE - No files will be copied or deleted", style="yellow bold")
    if not backup_config.tasks:
        console.print("⚠️ No backup tasks configured", style="yellow")

    interval = 0 if once else backup_config.interval_millis
    scheduler = BackupScheduler(BackupManager(backup_config), interval)

    try:
        runs = asyncio.run(_run_scheduler(scheduler, console))
    except KeyboardInterrupt:
        console.print("\n⚠️ Interrupted", style="yellow")
        return
    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold", markup=False)
        sys.exit(1)

    console.print(f"🏁 Finished after {runs} run(s)", style="cyan")


async def _run_scheduler(scheduler: BackupScheduler, console: Console) -> int:
    """Run the scheduler with SIGINT/SIGTERM wired to a clean stop."""
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    def _on_signal():
        console.print("\n⚠️ Stop requested, finishing the current run...", style="yellow")
        scheduler.stop()
        # A second signal falls back to the default behaviour
        for sig in signals:
            loop.remove_signal_handler(sig)

    installed = []
    for sig in signals:
        try:
            loop.add_signal_handler(sig, _on_signal)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C raises KeyboardInterrupt instead
            pass

    try:
        return await scheduler.run_forever(
            on_complete=lambda stats: _display_run_summary(stats, console)
        )
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _display_run_summary(stats: BackupStats, console: Console):
    """Display the statistics of one run in a table."""
    summary = stats.to_dict()

    table = Table(title="📊 Backup Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Duration", summary['duration_human'])
    table.add_row("Transferred", f"{summary['bytes_copied_human']} ({summary['rate_human']})")
    table.add_row("Files copied", f"[green]{summary['files_copied']}[/green]")
    table.add_row("Files skipped", f"[blue]{summary['files_skipped']}[/blue]")
    table.add_row("Space saved", summary['bytes_saved_human'])
    table.add_row("Items ignored", str(summary['items_ignored']))
    table.add_row("Items deleted", f"[yellow]{summary['items_deleted']}[/yellow]")
    error_style = "red" if summary['errors'] else "green"
    table.add_row("Errors", f"[{error_style}]{summary['errors']}[/{error_style}]")

    console.print(table)


@cli.command()
@click.option('--config', '-c',
              type=click.Path(dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to save configuration file')
def init(config: Path):
    """Initialize a new configuration file."""
    console = Console()
    if config.exists():
        if not click.confirm(f"Configuration file {config} already exists. Overwrite?"):
            return

    console.print("🚀 Creating new configuration file...")

    sample_config = {
        'tasks': [
            {
                'source': str(Path.home() / 'projects'),
                'backup': str(Path.home() / 'backups' / 'projects'),
            }
        ],
        'interval_millis': 30 * 60 * 1000,
        'dry_run': False,
        'use_hash_comparison': True,
        'state_file': 'backup-state.json',
        'log_file': 'logs/backup.log',
    }

    backup_config = build_config(sample_config)
    backup_config.to_yaml(config)

    console.print(f"✅ Configuration saved to {config}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit the tasks in the configuration file to match your folders")
    console.print(f"2. Run 'mirror-backup backup --config {config} --dry-run --once' to preview")
    console.print(f"3. Run 'mirror-backup backup --config {config}' to start backing up")


@cli.command()
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to configuration file')
def status(config: Path):
    """Show configured tasks and the tracked backup state."""
    console = Console()
    try:
        backup_config = BackupConfig.from_yaml(config)

        console.print("📁 [bold]Backup Tasks:[/bold]")
        table = Table()
        table.add_column("Source", style="cyan")
        table.add_column("Backup", style="magenta")
        table.add_column("Source exists", justify="center")

        for task in backup_config.tasks:
            exists = "✅" if task.source.is_dir() else "❌"
            table.add_row(str(task.source), str(task.backup), exists)

        console.print(table)

        interval = backup_config.interval_millis
        schedule = FileHelper.format_duration(interval / 1000) if interval else "Manual"
        console.print("\n⚙️ [bold]Options:[/bold]")
        console.print(f"   • Interval: {schedule}")
        console.print(f"   • Dry run: {backup_config.dry_run}")
        console.print(f"   • Hash comparison: {backup_config.use_hash_comparison}")
        console.print(f"   • Ignored names: {', '.join(sorted(backup_config.ignored_directory_names))}")
        console.print(f"   • Ignore patterns: {', '.join(backup_config.ignore_patterns)}")

        tracker = FileTracker(backup_config.state_file)
        tracker.load()
        tracker_stats = tracker.get_stats()
        console.print(f"\n💾 [bold]State ({backup_config.state_file}):[/bold]")
        console.print(f"   • Tracked files: {tracker_stats['total_files']}")
        console.print(f"   • Hashed files: {tracker_stats['hashed_files']}")
        console.print(f"   • Tracked size: {FileHelper.format_file_size(tracker_stats['total_size'])}")

    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold", markup=False)
        sys.exit(1)


if __name__ == '__main__':
    cli()
