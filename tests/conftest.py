import logging
import sys
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging replaces root handlers; undo it after each test."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_repo(root: Path, relative: str) -> Path:
    path = root / relative
    (path / ".jj").mkdir(parents=True)
    return path


def python_command(script: str):
    """Command factory running a Python snippet instead of jj."""
    return lambda path: [sys.executable, "-c", script]


@pytest.fixture
def repo_tree(tmp_path):
    """github/alice/x, github/bob/y and gitlab/alice/z under tmp_path/root."""
    root = tmp_path / "root"
    for relative in ("github/alice/x", "github/bob/y", "gitlab/alice/z"):
        make_repo(root, relative)
    return root
