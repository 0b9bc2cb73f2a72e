"""Shared test fixtures for Threadboard tests."""

import shutil
import tempfile
from pathlib import Path

import pytest
from PyQt6.QtCore import QCoreApplication

from threadboard.core.config_manager import ConfigManager
from threadboard.core.database import DatabaseManager
from threadboard.core.types import UserIdentity


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset all singletons after each test."""
    yield
    ConfigManager.reset()
    DatabaseManager.reset()


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def tmp_db_path(tmp_dir):
    """Provide a temporary database path."""
    return tmp_dir / "comments.db"


@pytest.fixture(scope="session")
def qapp():
    """Provide the QCoreApplication needed by timers and worker threads."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def alice():
    return UserIdentity(id="u-alice", username="alice", role="editor")


@pytest.fixture
def bob():
    return UserIdentity(id="u-bob", username="bob", role="viewer")


@pytest.fixture
def admin():
    return UserIdentity(id="u-admin", username="root", role="admin")
