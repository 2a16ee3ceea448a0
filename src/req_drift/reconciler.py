"""
Directional comparison of two dependency mappings.

``compare(source, target)`` visits every entry of ``source`` once and reports
names missing from ``target`` and names whose constraint string differs.
Constraints are compared as plain strings, never as versions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .dependency import DependencyMap


class Direction(Enum):
    """Which mapping is compared against which."""

    # declared (file) against installed (pip)
    PIP = "pip"
    # installed (pip) against declared (file)
    FILE = "file"

    @property
    def source_role(self) -> str:
        return "file" if self is Direction.PIP else "pip"

    @property
    def target_role(self) -> str:
        return "pip" if self is Direction.PIP else "file"


class DriftKind(Enum):
    MISSING = "missing"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class DriftFinding:
    """One discrepancy for one package name."""

    kind: DriftKind
    name: str
    source_constraint: str
    target_constraint: Optional[str] = None


@dataclass
class DriftReport:
    """Findings of one comparison direction."""

    direction: Direction
    findings: List[DriftFinding] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return bool(self.findings)

    @property
    def missing(self) -> List[DriftFinding]:
        return [f for f in self.findings if f.kind is DriftKind.MISSING]

    @property
    def mismatched(self) -> List[DriftFinding]:
        return [f for f in self.findings if f.kind is DriftKind.MISMATCH]


class ReportSink(ABC):
    """Receives findings as they are produced and the report once a direction is done."""

    def start(self, direction: Direction) -> None:
        """Called before the first finding of a direction."""

    @abstractmethod
    def record_finding(self, finding: DriftFinding, direction: Direction) -> None:
        ...

    @abstractmethod
    def record_summary(self, report: DriftReport) -> None:
        ...


def compare(
    source: DependencyMap,
    target: DependencyMap,
    direction: Direction,
    sink: Optional[ReportSink] = None,
) -> DriftReport:
    """
    Compare ``source`` against ``target``.

    Args:
        source: Mapping whose entries are checked
        target: Mapping they are looked up in
        direction: Labels the report and the roles of both mappings
        sink: Optional receiver for findings and the final summary

    Returns:
        DriftReport: Missing and mismatched entries of ``source``
    """
    report = DriftReport(direction=direction)
    if sink is not None:
        sink.start(direction)

    for name, constraint in source.items():
        if name not in target:
            finding = DriftFinding(DriftKind.MISSING, name, constraint)
        elif target[name] != constraint:
            finding = DriftFinding(DriftKind.MISMATCH, name, constraint, target[name])
        else:
            continue

        report.findings.append(finding)
        if sink is not None:
            sink.record_finding(finding, direction)

    if sink is not None:
        sink.record_summary(report)
    return report


def compare_declared_with_installed(
    declared: DependencyMap, installed: DependencyMap, sink: Optional[ReportSink] = None
) -> DriftReport:
    """Declared requirements that pip is missing or has at another version."""
    return compare(declared, installed, Direction.PIP, sink)


def compare_installed_with_declared(
    declared: DependencyMap, installed: DependencyMap, sink: Optional[ReportSink] = None
) -> DriftReport:
    """Installed packages the requirements are missing or pin differently."""
    return compare(installed, declared, Direction.FILE, sink)
