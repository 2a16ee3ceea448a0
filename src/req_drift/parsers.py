import re
from typing import Any, Dict, Iterable, Iterator, List, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .dependency import Dependency, DependencyMap
from .error_handling import (
    InvalidDependenciesArray,
    InvalidOptionalDependenciesTable,
    InvalidProjectTable,
)

# Checked in this order; the first operator present wins, not the leftmost one.
# "==" precedes "===", so "pkg===1.0" splits into ("pkg", "=1.0").
SPECIFIER_OPERATORS = ("@", "==", "===", "<=", ">=", "!=", "~=", ">", "<")

# pip only treats "#" as a comment when it starts the line or follows whitespace,
# which keeps URL fragments such as "#egg=name" intact.
_COMMENT_RE = re.compile(r"(^|\s+)#.*$")


def split_specifier(line: str) -> Dependency:
    """
    Split one specifier into its package name and version constraint.

    The line is split once, at the first occurrence of the highest-priority
    operator it contains. Anything after that, further operators included,
    stays in the constraint verbatim: ``"a>=1,<2"`` gives ``("a", "1,<2")``.

    A line without any operator is a bare name and gets an empty constraint.
    This never fails; ``""`` gives ``("", "")``.

    Args:
        line: A requirements line, manifest array entry or freeze output line

    Returns:
        Dependency: The trimmed name and constraint
    """
    for operator in SPECIFIER_OPERATORS:
        if operator in line:
            name, constraint = line.split(operator, 1)
            return Dependency(name=name.strip(), constraint=constraint.strip())

    return Dependency(name=line.strip(), constraint="")


def iter_specifier_lines(text: str, skip_comments: bool = True) -> Iterator[str]:
    """
    Yield the lines of a requirements file or freeze output worth parsing.

    Blank lines are always dropped. With ``skip_comments`` (the default),
    ``#`` comments and pip option lines such as ``-r other.txt``,
    ``--index-url ...`` or ``-e path`` are dropped too, and inline comments
    are stripped.
    """
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if skip_comments:
            line = _COMMENT_RE.sub("", line).strip()
            if not line or line.startswith("-"):
                continue

        yield line


def fold_specifiers(
    specifiers: Iterable[str], mapping: Optional[DependencyMap] = None
) -> DependencyMap:
    """Parse specifiers into ``mapping``; a repeated name overwrites the earlier entry."""
    if mapping is None:
        mapping = {}

    for specifier in specifiers:
        dependency = split_specifier(specifier)
        mapping[dependency.name] = dependency.constraint

    return mapping


def parse_requirements_text(text: str, skip_comments: bool = True) -> DependencyMap:
    """Parse the content of a requirements*.txt file."""
    return fold_specifiers(iter_specifier_lines(text, skip_comments))


def parse_freeze_output(text: str, skip_comments: bool = True) -> DependencyMap:
    """Parse ``pip freeze`` output, normally ``name==version`` per line."""
    return fold_specifiers(iter_specifier_lines(text, skip_comments))


def load_manifest(content: str) -> Optional[Dict[str, Any]]:
    """Parse pyproject.toml content, or return None when it is not valid TOML."""
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError:
        return None


def get_project_table(
    data: Optional[Dict[str, Any]], manifest_path: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Return the ``[project]`` table, or None when the manifest has none."""
    if data is None or "project" not in data:
        return None

    project = data["project"]
    if not isinstance(project, dict):
        raise InvalidProjectTable(manifest_path)
    return project


def project_dependencies(
    project: Dict[str, Any], manifest_path: Optional[str] = None
) -> List[str]:
    """Specifier strings of ``project.dependencies``."""
    dependencies = project.get("dependencies")
    if dependencies is None:
        return []
    if not isinstance(dependencies, list):
        raise InvalidDependenciesArray(manifest_path)
    return [dep for dep in dependencies if isinstance(dep, str)]


def project_optional_dependencies(
    project: Dict[str, Any], manifest_path: Optional[str] = None
) -> List[str]:
    """Specifier strings of every ``project.optional-dependencies`` group, flattened."""
    optional_dependencies = project.get("optional-dependencies")
    if optional_dependencies is None:
        return []
    if not isinstance(optional_dependencies, dict):
        raise InvalidOptionalDependenciesTable(manifest_path)

    specifiers = []
    for group, group_dependencies in optional_dependencies.items():
        if not isinstance(group_dependencies, list):
            raise InvalidOptionalDependenciesTable(manifest_path, group=group)
        specifiers.extend(dep for dep in group_dependencies if isinstance(dep, str))
    return specifiers


def parse_pyproject_toml(content: str, manifest_path: Optional[str] = None) -> List[str]:
    """
    Extract dependency specifiers from pyproject.toml content.

    Returns ``project.dependencies`` followed by every group of
    ``project.optional-dependencies``, in document order. Content that is
    not valid TOML, or has no ``[project]`` table, yields an empty list.
    Non-string array items are ignored.

    Args:
        content: Raw text of the manifest
        manifest_path: Path used in error messages

    Returns:
        List[str]: Specifier strings, not yet parsed

    Raises:
        InvalidProjectTable: ``project`` is not a table
        InvalidDependenciesArray: ``project.dependencies`` is not an array
        InvalidOptionalDependenciesTable: ``project.optional-dependencies``
            is not a table, or one of its groups is not an array
    """
    project = get_project_table(load_manifest(content), manifest_path)
    if project is None:
        return []

    return project_dependencies(project, manifest_path) + project_optional_dependencies(
        project, manifest_path
    )
