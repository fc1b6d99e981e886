# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides source trees of fake pod5 files, stand-in executables for the
basecaller, and a logging context reset. Stand-in executables are plain
/bin/sh scripts, so tests that run them are POSIX only.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Callable

import pytest

from podbatch.batch.models import SourceFile
from podbatch.logging.context import clear_context

_POSIX = sys.platform != "win32" and shutil.which("sh") is not None


def pytest_collection_modifyitems(config, items):
    """Skip tests marked @pytest.mark.posix where /bin/sh scripts can't run."""
    if _POSIX:
        return
    skip = pytest.mark.skip(reason="stand-in executables are /bin/sh scripts")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip)


# === Helpers ===


def write_executable(path: Path, body: str) -> Path:
    """Write a /bin/sh script and mark it executable."""
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def pod5_content(name: str) -> bytes:
    """Deterministic fake content of a pod5 file."""
    return f"SIGNAL:{name}\n".encode()


# === FIXTURES: Source trees ===


@pytest.fixture
def make_pod5_tree(tmp_path: Path) -> Callable[[int], Path]:
    """Factory: create ``n`` fake pod5 files spread over two subdirectories."""

    def _make(n: int, root_name: str = "pod5s") -> Path:
        root = tmp_path / root_name
        root.mkdir()
        for i in range(n):
            sub = root / ("run_a" if i % 2 == 0 else "run_b")
            sub.mkdir(exist_ok=True)
            name = f"read_{i:04d}.pod5"
            (sub / name).write_bytes(pod5_content(name))
        return root

    return _make


@pytest.fixture
def sample_sources(tmp_path: Path) -> list[SourceFile]:
    """Three real pod5 files with unique base names."""
    root = tmp_path / "sources"
    root.mkdir()
    files = []
    for name in ("a.pod5", "b.pod5", "c.pod5"):
        p = root / name
        p.write_bytes(pod5_content(name))
        files.append(SourceFile(path=str(p), name=name))
    return files


# === FIXTURES: Stand-in executables ===


@pytest.fixture
def fake_dorado(tmp_path: Path) -> Path:
    """Basecaller stand-in: emits one record per staged file, in name order.

    Invoked as ``<exe> basecaller <model> -r --emit-fastq <dir>/``. When
    PODBATCH_TEST_RECORD is set, appends the staged names of each call to
    that file, one line per call.
    """
    return write_executable(
        tmp_path / "fake_dorado",
        'dir="$5"\n'
        'if [ -n "$PODBATCH_TEST_RECORD" ]; then\n'
        '  ls "$dir" | tr "\\n" " " >> "$PODBATCH_TEST_RECORD"\n'
        '  echo >> "$PODBATCH_TEST_RECORD"\n'
        "fi\n"
        'echo "fake basecaller on $dir" >&2\n'
        'for f in "$dir"*; do\n'
        '  [ -e "$f" ] || continue\n'
        '  printf "@%s\\n" "$(basename "$f")"\n'
        '  cat "$f"\n'
        "done\n",
    )


@pytest.fixture
def failing_dorado(tmp_path: Path) -> Path:
    """Basecaller stand-in that prints a little and exits with status 3."""
    return write_executable(
        tmp_path / "failing_dorado",
        'echo "@partial"\necho "model not found" >&2\nexit 3\n',
    )


@pytest.fixture
def bulk_dorado(tmp_path: Path) -> Path:
    """Basecaller stand-in writing exactly 300000 bytes, ignoring its input."""
    return write_executable(
        tmp_path / "bulk_dorado",
        "dd if=/dev/zero bs=1000 count=300 2>/dev/null\n",
    )


@pytest.fixture
def cat_path() -> str:
    """Identity 'compressor'."""
    path = shutil.which("cat")
    if path is None:
        pytest.skip("cat not available")
    return path


# === FIXTURES: Environment ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()
    logging.getLogger("podbatch").handlers.clear()


@pytest.fixture
def no_env_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop PODBATCH_* variables from the environment."""
    for key in list(os.environ):
        if key.startswith("PODBATCH_"):
            monkeypatch.delenv(key)


@pytest.fixture
def make_executable(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory: write a stand-in executable named ``name`` into tmp_path."""

    def _make(name: str, body: str) -> Path:
        return write_executable(tmp_path / name, body)

    return _make


@pytest.fixture
def basecalled() -> Callable[[list[str]], bytes]:
    """What fake_dorado emits for a batch holding ``names``."""

    def _records(names: list[str]) -> bytes:
        return b"".join(f"@{n}\n".encode() + pod5_content(n) for n in sorted(names))

    return _records
