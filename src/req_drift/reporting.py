"""
Reporting and output formatting for drift check results.

Provides color-coded console output using Rich library, a JSON renderer
for automation, and an in-memory sink.
"""

import json
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .dependency import DependencyMap
from .reconciler import Direction, DriftFinding, DriftKind, DriftReport, ReportSink

_HEADERS = {
    Direction.PIP: "Comparing requirements with pip.",
    Direction.FILE: "Comparing pip with requirements.",
}

_CLEAN_SUMMARIES = {
    Direction.PIP: "No dependency diversion found from requirements to pip.",
    Direction.FILE: "No dependency diversion found from pip to requirements.",
}

_MISSING_MESSAGES = {
    Direction.PIP: "Pip is missing dependency: {name}",
    Direction.FILE: "Requirements is missing dependency: {name}",
}

_MISMATCH_MESSAGES = {
    Direction.PIP: "File dependency {name} has different version than pip:",
    Direction.FILE: "Pip dependency {name} has different version than requirements:",
}

DRIFT_SUMMARY = "Check above errors for diversions."


def format_finding(finding: DriftFinding, direction: Direction) -> str:
    """Plain-text message for one finding."""
    if finding.kind is DriftKind.MISSING:
        return _MISSING_MESSAGES[direction].format(name=finding.name)

    source_label = direction.source_role.capitalize()
    target_label = direction.target_role.capitalize()
    return (
        _MISMATCH_MESSAGES[direction].format(name=finding.name)
        + f"\n\t- {source_label} version: {finding.source_constraint}"
        + f"\n\t- {target_label} version: {finding.target_constraint}"
    )


def format_summary(report: DriftReport) -> str:
    return DRIFT_SUMMARY if report.has_drift else _CLEAN_SUMMARIES[report.direction]


class ConsoleReporter(ReportSink):
    """Findings go to stderr, headers and summaries to stdout."""

    def __init__(
        self,
        console: Optional[Console] = None,
        error_console: Optional[Console] = None,
        quiet: bool = False,
    ):
        self.console = console or Console()
        self.error_console = error_console or Console(stderr=True)
        self.quiet = quiet

    def start(self, direction: Direction) -> None:
        if not self.quiet:
            self.console.print(_HEADERS[direction], style="bold blue")

    def record_finding(self, finding: DriftFinding, direction: Direction) -> None:
        style = "red" if finding.kind is DriftKind.MISSING else "yellow"
        self.error_console.print(
            escape(format_finding(finding, direction)), style=style, soft_wrap=True
        )

    def record_summary(self, report: DriftReport) -> None:
        if self.quiet and not report.has_drift:
            return
        self.console.print()
        if report.has_drift:
            self.console.print(f"❌ {format_summary(report)}", style="red")
        else:
            self.console.print(f"✅ {format_summary(report)}", style="green")
        self.console.print()

    def print_errors(self, errors: List[str]) -> None:
        """Print collection problems that did not stop the run."""
        for error in errors:
            self.error_console.print(f"⚠️  {escape(error)}", style="yellow", soft_wrap=True)

    def print_mapping(self, title: str, mapping: DependencyMap) -> None:
        """Print a collected mapping as a table."""
        table = Table(title=title, box=box.ROUNDED, title_style="bold cyan")
        table.add_column("Package", style="bold")
        table.add_column("Constraint")

        for name in sorted(mapping):
            table.add_row(escape(name), escape(mapping[name]) or "[dim]-[/dim]")

        self.console.print(table)


class CollectingSink(ReportSink):
    """Keeps everything in memory."""

    def __init__(self):
        self.findings: List[DriftFinding] = []
        self.reports: List[DriftReport] = []

    def record_finding(self, finding: DriftFinding, direction: Direction) -> None:
        self.findings.append(finding)

    def record_summary(self, report: DriftReport) -> None:
        self.reports.append(report)

    @property
    def has_drift(self) -> bool:
        return any(report.has_drift for report in self.reports)


class JsonReporter(CollectingSink):
    """Collects reports and renders them as one JSON document."""

    def to_dict(self, errors: Optional[List[str]] = None) -> Dict[str, Any]:
        return {
            "has_drift": self.has_drift,
            "reports": [
                {
                    "direction": report.direction.value,
                    "has_drift": report.has_drift,
                    "findings": [
                        {
                            "kind": finding.kind.value,
                            "name": finding.name,
                            f"{report.direction.source_role}_version": finding.source_constraint,
                            f"{report.direction.target_role}_version": finding.target_constraint,
                        }
                        for finding in report.findings
                    ],
                }
                for report in self.reports
            ],
            "errors": list(errors or []),
        }

    def render(self, errors: Optional[List[str]] = None) -> str:
        return json.dumps(self.to_dict(errors), indent=2, ensure_ascii=False)
