"""
Pytest configuration and fixtures for the nl test suite.
"""

import sys

import pytest

import nl


@pytest.fixture
def write_file(tmp_path):
    """Writes `content` (text or bytes) under tmp_path and returns its path as a string."""

    def _write(name, content):
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
        return str(path)

    return _write


@pytest.fixture
def run_nl(capsys, monkeypatch):
    """Runs nl.main() with the given arguments and returns (status, stdout, stderr)."""

    def _run(*args):
        monkeypatch.setattr(sys, "argv", ["nl", *args])
        with pytest.raises(SystemExit) as excinfo:
            nl.main()
        captured = capsys.readouterr()
        return excinfo.value.code, captured.out, captured.err

    return _run
