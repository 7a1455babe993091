"""Pytest fixtures shared across all test modules."""

import pytest

from flownote.scope import Scope


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point FLOWNOTE_HOME at a temp dir so no test touches ~/.flownote."""
    home = tmp_path / "flownote_home"
    monkeypatch.setenv("FLOWNOTE_HOME", str(home))
    monkeypatch.delenv("FLOWNOTE_GLOBALS", raising=False)
    monkeypatch.delenv("FLOWNOTE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("FLOWNOTE_POLL_INTERVAL", raising=False)
    return home


@pytest.fixture
def scope():
    return Scope()


@pytest.fixture
def write_document(tmp_path):
    """Write document text to a file and return its path as a string."""

    def _write(content: str, name: str = "note.flow") -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write
