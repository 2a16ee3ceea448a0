# In src/req_drift/dependency.py
from dataclasses import dataclass
from typing import Dict

# name -> constraint, last insertion wins
DependencyMap = Dict[str, str]


@dataclass(frozen=True)
class Dependency:
    """A unified internal data structure to represent a parsed specifier."""

    name: str
    constraint: str
