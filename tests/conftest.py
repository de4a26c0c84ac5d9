"""Shared test fixtures for the Toolgate test suite."""

import logging

import pytest

from toolgate.config import GatewaySettings


@pytest.fixture(autouse=True)
def _reset_toolgate_logger():
    """Drop handlers a test installed so later tests don't write to closed streams."""
    logger = logging.getLogger("toolgate")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = True


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hello')\n")
    (tmp_path / "README.md").write_text("# Sample\n")
    return tmp_path


@pytest.fixture
def workspace_settings(workspace):
    return GatewaySettings(workspace_root=str(workspace), allowed_commands=[])
