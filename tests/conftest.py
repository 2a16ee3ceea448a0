"""
Shared fixtures for req-drift tests.
"""

import logging
import subprocess
from unittest.mock import patch

import pytest

from req_drift.cli_config import reset_config

SAMPLE_PYPROJECT = """[build-system]
requires = ["setuptools"]

[project]
name = "sample"
version = "0.1.0"
dependencies = [
    "click>=8.0",
    "rich==13.7.1",
]

[project.optional-dependencies]
test = ["pytest==8.0.0"]
docs = ["sphinx~=7.2", "furo"]
"""


@pytest.fixture(autouse=True)
def reset_global_config(monkeypatch, tmp_path_factory):
    """Keep user config files and REQ_DRIFT_* variables out of every test."""
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    for key in [
        "REQ_DRIFT_PATTERN",
        "REQ_DRIFT_MANIFEST",
        "REQ_DRIFT_FREEZE_COMMAND",
        "REQ_DRIFT_FREEZE_TIMEOUT",
        "REQ_DRIFT_SKIP_COMMENTS",
        "REQ_DRIFT_FAIL_ON_DRIFT",
        "REQ_DRIFT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path, monkeypatch):
    """An empty working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def project_dir(temp_dir):
    """A project with two requirement files and a pyproject.toml."""
    (temp_dir / "requirements.txt").write_text(
        "# runtime\nflask==2.0\nrequests\n\n-r requirements-dev.txt\n"
    )
    (temp_dir / "requirements-dev.txt").write_text("pytest>=7.0\nblack==24.1.0  # formatter\n")
    (temp_dir / "pyproject.toml").write_text(SAMPLE_PYPROJECT)
    return temp_dir


def completed(stdout: str = "", returncode: int = 0, stderr: str = ""):
    return subprocess.CompletedProcess(
        args=["pip", "freeze"],
        returncode=returncode,
        stdout=stdout.encode("utf-8"),
        stderr=stderr.encode("utf-8"),
    )


@pytest.fixture
def fake_freeze():
    """Patch the freeze subprocess; set ``.return_value`` with ``completed(...)``."""
    with patch("req_drift.collector.subprocess.run") as mock_run:
        mock_run.return_value = completed("flask==2.1\nclick==8.0\n")
        yield mock_run


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def drift_events():
    """Records emitted by the structured collector and comparison loggers."""
    handler = RecordingHandler()
    loggers = [logging.getLogger("req_drift.collector"), logging.getLogger("req_drift.reconciler")]
    levels = [logger.level for logger in loggers]
    for logger in loggers:
        logger.addHandler(handler)
    yield handler.records
    for logger, level in zip(loggers, levels):
        logger.removeHandler(handler)
        logger.setLevel(level)
