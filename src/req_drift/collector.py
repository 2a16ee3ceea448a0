"""
Collect declared and installed dependencies.

Declared dependencies come from every ``requirements*.txt`` in a directory
followed by ``pyproject.toml``; installed ones from ``pip freeze``. Both are
folded into a name -> constraint mapping where the last occurrence wins.
"""

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from .cli_config import CheckConfig, get_config
from .dependency import DependencyMap
from .error_handling import (
    FreezeCommandError,
    ManifestError,
    log_filesystem_error,
    log_parsing_error,
    log_subprocess_error,
)
from .parsers import (
    fold_specifiers,
    get_project_table,
    iter_specifier_lines,
    load_manifest,
    parse_freeze_output,
    project_dependencies,
    project_optional_dependencies,
)
from .structured_logging import get_collector_logger, log_source_read

ProgressCallback = Callable[[str], None]
PathLike = Union[str, Path]


@dataclass
class CollectionResult:
    """Everything gathered for one drift check."""

    declared: DependencyMap = field(default_factory=dict)
    installed: DependencyMap = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def default_freeze_command() -> List[str]:
    """Run pip as a module of the current interpreter, so the active environment is the one inspected."""
    return [sys.executable, "-m", "pip", "freeze"]


def _progress(callback: Optional[ProgressCallback], message: str) -> None:
    if callback is not None:
        callback(message)


def find_requirement_files(
    directory: PathLike, pattern: str = "requirements*.txt"
) -> List[Path]:
    """Regular files in ``directory`` (not recursive) matching ``pattern``, sorted by name."""
    return sorted(path for path in Path(directory).glob(pattern) if path.is_file())


def collect_requirement_files(
    directory: PathLike,
    mapping: DependencyMap,
    config: Optional[CheckConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    result: Optional[CollectionResult] = None,
) -> DependencyMap:
    """Fold every requirements file into ``mapping``, skipping unreadable ones."""
    config = config or get_config().check

    _progress(on_progress, f"Searching for files matching: '{config.requirements_pattern}'")

    for path in find_requirement_files(directory, config.requirements_pattern):
        _progress(on_progress, f"Reading content from: {path}")
        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            log_filesystem_error(
                "Failed to read file content.",
                "collector",
                "collect_requirement_files",
                file_path=str(path),
                exception=e,
            )
            if result is not None:
                result.errors.append(f"Failed to read {path.name}: {e}")
            continue

        lines = list(iter_specifier_lines(content, config.skip_comments))
        fold_specifiers(lines, mapping)
        log_source_read(str(path), "requirements", len(lines))
        if result is not None:
            result.sources.append(str(path))

    return mapping


def collect_manifest(
    directory: PathLike,
    mapping: DependencyMap,
    config: Optional[CheckConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    result: Optional[CollectionResult] = None,
) -> DependencyMap:
    """
    Fold ``project.dependencies`` and ``project.optional-dependencies`` into ``mapping``.

    A missing, unreadable or syntactically invalid manifest, or one without a
    ``[project]`` table, is skipped. A manifest whose ``project`` data has the
    wrong shape is logged and recorded in ``result.errors``; whatever was
    folded before the bad section is kept.
    """
    config = config or get_config().check

    _progress(on_progress, f"Searching for files matching: '{config.manifest_name}'")

    path = Path(directory) / config.manifest_name
    if not path.is_file():
        return mapping

    _progress(on_progress, f"Reading content from: {path}")
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        log_filesystem_error(
            "Failed to read file content.",
            "collector",
            "collect_manifest",
            file_path=str(path),
            exception=e,
        )
        if result is not None:
            result.errors.append(f"Failed to read {path.name}: {e}")
        return mapping

    data = load_manifest(content)
    if data is None:
        get_collector_logger().debug("manifest_skipped", source=str(path), reason="invalid_toml")
        return mapping

    folded = 0
    try:
        project = get_project_table(data, str(path))
        if project is None:
            get_collector_logger().debug("manifest_skipped", source=str(path), reason="no_project_table")
            return mapping

        for section in (project_dependencies, project_optional_dependencies):
            specifiers = section(project, str(path))
            fold_specifiers(specifiers, mapping)
            folded += len(specifiers)
    except ManifestError as e:
        log_parsing_error(str(e), "collector", "collect_manifest", file_path=str(path), exception=e)
        if result is not None:
            result.errors.append(str(e))
        return mapping

    log_source_read(str(path), "manifest", folded)
    if result is not None:
        result.sources.append(str(path))

    return mapping


def collect_declared(
    directory: PathLike = ".",
    config: Optional[CheckConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    result: Optional[CollectionResult] = None,
) -> DependencyMap:
    """Requirement files first, then the manifest; later entries overwrite earlier ones."""
    mapping: DependencyMap = {}
    collect_requirement_files(directory, mapping, config, on_progress, result)
    collect_manifest(directory, mapping, config, on_progress, result)
    return mapping


def run_freeze(
    command: Optional[Sequence[str]] = None, timeout: Optional[float] = None
) -> Optional[str]:
    """
    Run the freeze command and return its decoded standard output.

    Returns:
        Optional[str]: The output, or None when the command exited non-zero

    Raises:
        FreezeCommandError: The command could not be started, timed out,
            or wrote output that is not valid UTF-8
    """
    command = list(command) if command else default_freeze_command()

    try:
        completed = subprocess.run(command, capture_output=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise FreezeCommandError(command, e) from e

    if completed.returncode != 0:
        log_subprocess_error(
            f"Error executing `{' '.join(command)}`",
            "collector",
            "run_freeze",
            command=command,
            returncode=completed.returncode,
            stderr=completed.stderr.decode("utf-8", errors="replace"),
        )
        return None

    try:
        return completed.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FreezeCommandError(command, e) from e


def collect_installed(
    config: Optional[CheckConfig] = None, result: Optional[CollectionResult] = None
) -> DependencyMap:
    """Installed dependencies; empty when the freeze command exits non-zero."""
    config = config or get_config().check

    output = run_freeze(config.freeze_command, config.freeze_timeout_seconds)
    if output is None:
        if result is not None:
            result.errors.append("Error executing `pip freeze`")
        return {}

    mapping = parse_freeze_output(output, config.skip_comments)
    log_source_read("pip freeze", "freeze", len(mapping))
    if result is not None:
        result.sources.append("pip freeze")
    return mapping


def collect(
    directory: PathLike = ".",
    config: Optional[CheckConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> CollectionResult:
    """Build both mappings for ``directory``."""
    config = config or get_config().check

    result = CollectionResult()
    result.declared = collect_declared(directory, config, on_progress, result)
    result.installed = collect_installed(config, result)
    return result
