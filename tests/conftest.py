"""Shared test fixtures for quickcode.

Provides reusable fixtures for isolated config environments, managing output
state, canned API payloads, and running CLI commands. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from quickcode.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config or stored secrets. Clears
    all QUICKCODE_* environment variables and changes the working
    directory to ``tmp_path / "work"``.

    Returns:
        The working directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["QUICKCODE_API_URL", "QUICKCODE_PROJECT"]:
        monkeypatch.delenv(var, raising=False)

    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def breakdown_payload() -> dict[str, Any]:
    """A ``GetGenerationSteps`` body with one finished, one running, one queued step."""
    return {
        "allSteps": [
            {"actionId": 1, "description": "Prepare solution"},
            {"actionId": 2, "description": "Generate entities"},
            {"actionId": 3, "description": "Build"},
        ],
        "allActions": [
            {
                "id": 1,
                "isCompleted": True,
                "startDate": "2024-05-01T10:00:00Z",
                "elapsedTime": 2500,
            },
            {"id": 2, "isCompleted": False, "startDate": "2024-05-01T10:00:03Z"},
            {"id": 3, "isCompleted": False, "startDate": None},
        ],
    }


@pytest.fixture
def finished_payload() -> dict[str, Any]:
    """A ``GetGenerationSteps`` body where every action has completed."""
    return {
        "allSteps": [
            {"actionId": 1, "description": "Prepare solution"},
            {"actionId": 2, "description": "Build"},
        ],
        "allActions": [
            {"id": 1, "isCompleted": True, "startDate": "2024-05-01T10:00:00Z", "elapsedTime": 1000},
            {"id": 2, "isCompleted": True, "startDate": "2024-05-01T10:00:01Z", "elapsedTime": 65000},
        ],
    }


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
