import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .cli_config import OUTPUT_FORMATS, create_sample_config, get_config, load_config
from .collector import CollectionResult, collect
from .error_handling import FreezeCommandError, setup_error_handling
from .reconciler import (
    DriftReport,
    ReportSink,
    compare_declared_with_installed,
    compare_installed_with_declared,
)
from .reporting import ConsoleReporter, JsonReporter
from .structured_logging import (
    clear_run_context,
    configure_logging,
    log_check_complete,
    log_check_start,
    set_run_context,
)

console = Console()


def _setup_from_config() -> None:
    config = load_config()
    configure_logging(config.logging.log_level)
    setup_error_handling(
        log_level=getattr(logging, config.logging.log_level.upper(), logging.WARNING),
        mask_sensitive=config.logging.enable_sensitive_data_masking,
    )


def collect_dependencies(directory: str, quiet: bool) -> CollectionResult:
    """Collect both mappings, turning a broken freeze command into a click error."""
    on_progress = None if quiet else (lambda message: console.print(message, style="dim"))

    try:
        result = collect(directory, get_config().check, on_progress)
    except FreezeCommandError as e:
        raise click.ClickException(str(e))

    if not quiet:
        console.print()
    return result


def run_comparisons(
    result: CollectionResult, check_pip: bool, check_file: bool, sink: ReportSink
) -> List[DriftReport]:
    """Run the selected directions; declared-vs-installed always goes first."""
    reports = []
    if check_pip:
        reports.append(compare_declared_with_installed(result.declared, result.installed, sink))
    if check_file:
        reports.append(compare_installed_with_declared(result.declared, result.installed, sink))
    return reports


@click.group(invoke_without_command=True)
@click.option(
    "--all",
    "-a",
    "check_all",
    is_flag=True,
    help="Check if there is any difference between pip installed packages and requirements",
)
@click.option(
    "--pip",
    "-p",
    "check_pip",
    is_flag=True,
    help="Check if there are requirements listed that are not installed",
)
@click.option(
    "--file",
    "-f",
    "check_file",
    is_flag=True,
    help="Check if there are installed packages that are not listed in requirements",
)
@click.option(
    "--directory",
    "-d",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory holding requirements*.txt and pyproject.toml",
    show_default=True,
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit with error code if drift or collection errors are found",
)
@click.option(
    "--output-format",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default=None,
    help="Output format for results (default from config or console)",
)
@click.option("--quiet", "-q", is_flag=True, help="Only print drift findings")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(
    ctx,
    check_all: bool,
    check_pip: bool,
    check_file: bool,
    directory: str,
    strict: bool,
    output_format: Optional[str],
    quiet: bool,
    verbose: bool,
    version: bool,
):
    """
    Compares the contents of requirement files (requirements*.txt and
    pyproject.toml) with the output of `pip freeze`.

    Examples:

      req-drift --all

      req-drift --pip --strict

      req-drift -a --output-format json
    """
    if version:
        console.print(f"req-drift version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is not None:
        return

    _setup_from_config()
    config = get_config()
    if verbose:
        configure_logging("DEBUG")

    output_format = (output_format or config.check.output_format).lower()
    fail_on_drift = strict or config.check.fail_on_drift
    as_json = output_format == "json"

    run_id = f"check_{int(time.time())}"
    resolved_directory = str(Path(directory).resolve())
    set_run_context(run_id=run_id, directory=resolved_directory)

    result = collect_dependencies(directory, quiet or as_json)
    log_check_start(run_id, resolved_directory, len(result.declared), len(result.installed))

    if check_all:
        check_pip = check_file = True

    reporter = ConsoleReporter(console=console, quiet=quiet)
    json_reporter = JsonReporter()
    sink: ReportSink = json_reporter if as_json else reporter

    if not as_json:
        reporter.print_errors(result.errors)

    reports = run_comparisons(result, check_pip, check_file, sink)
    for report in reports:
        log_check_complete(run_id, report.direction.value, len(report.findings))
    clear_run_context()

    if as_json:
        click.echo(json_reporter.render(result.errors))

    if fail_on_drift and (any(r.has_drift for r in reports) or result.has_errors):
        sys.exit(1)


@cli.command()
@click.option(
    "--directory",
    "-d",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory holding requirements*.txt and pyproject.toml",
    show_default=True,
)
def show(directory: str):
    """Show the declared and installed dependencies as collected."""
    _setup_from_config()
    result = collect_dependencies(directory, quiet=True)

    reporter = ConsoleReporter(console=console)
    reporter.print_errors(result.errors)
    reporter.print_mapping("📄 Declared dependencies", result.declared)
    reporter.print_mapping("📦 Installed dependencies (pip freeze)", result.installed)


@cli.command()
def info():
    """Show information about inputs, checks and configuration."""
    info_text = """
[bold blue]📋 Inputs:[/bold blue]

• [green]requirements*.txt[/green] - every match in the directory, in name order
• [green]pyproject.toml[/green] - project.dependencies and project.optional-dependencies
• [green]pip freeze[/green] - packages installed in the active environment

[bold blue]🔍 Checks:[/bold blue]

• [yellow]--pip[/yellow] - requirements that pip is missing or has at another version
• [yellow]--file[/yellow] - installed packages the requirements are missing or pin differently
• [yellow]--all[/yellow] - both of the above

Constraints are compared as text: [cyan]flask==2.0[/cyan] and [cyan]flask>=2.0[/cyan] both declare "2.0".

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]REQ_DRIFT_PATTERN[/cyan] - Requirement file glob
• [cyan]REQ_DRIFT_MANIFEST[/cyan] - Manifest file name
• [cyan]REQ_DRIFT_FREEZE_COMMAND[/cyan] - Command printing installed packages
• [cyan]REQ_DRIFT_FAIL_ON_DRIFT[/cyan] - Exit 1 when drift is found
• [cyan]REQ_DRIFT_LOG_LEVEL[/cyan] - Structured log level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].req-drift.json[/green] / [green].req-drift.yaml[/green] - Project-level config
• [green]~/.config/req-drift/config.json[/green] - User-level config
"""
    console.print(
        Panel(
            info_text,
            title="[bold]req-drift Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".req-drift.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    console.print_json(data=get_config().to_dict())


def main():
    cli()


if __name__ == "__main__":
    main()
