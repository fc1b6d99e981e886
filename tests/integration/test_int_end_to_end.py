# tests/integration/test_int_end_to_end.py - v1
"""End-to-end runs of the podbatch CLI against stand-in executables.

Covers: main.py, batch/*, pipeline/*, tracking/*
"""

from __future__ import annotations

import gzip
import json
import shutil
from pathlib import Path

import pytest

from podbatch.batch.scanner import discover
from podbatch.main import (
    EXIT_BATCH_FAILED,
    EXIT_OK,
    EXIT_SETUP,
    EXIT_STREAM_INTEGRITY,
    main,
)
from podbatch.tracking.exporter import load_timing_csv

pytestmark = pytest.mark.posix


@pytest.fixture(autouse=True)
def _clean_env(no_env_settings):
    yield


def _argv(tmp_path: Path, input_dir: Path, dorado: Path, *extra: str) -> list[str]:
    return [
        "--in", str(input_dir),
        "--dorado", str(dorado),
        "--out", str(tmp_path / "reads.fastq.zst"),
        "--staging-dir", str(tmp_path / "tmpdir"),
        "--report", str(tmp_path / "chan_stats.csv"),
        *extra,
    ]


def _expected_output(input_dir: Path, chunk: int, basecalled) -> bytes:
    files = discover(input_dir)
    batches = [files[i:i + chunk] for i in range(0, len(files), chunk)]
    return b"".join(basecalled([f.name for f in batch]) for batch in batches)


# =====================================================================
#  SUCCESSFUL RUNS
# =====================================================================

class TestSuccessfulRun:

    def test_120_files_in_three_batches(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path, cat_path: str,
        basecalled, monkeypatch,
    ):
        record = tmp_path / "calls.txt"
        monkeypatch.setenv("PODBATCH_TEST_RECORD", str(record))
        input_dir = make_pod5_tree(120)

        code = main(_argv(tmp_path, input_dir, fake_dorado, "--compressor", cat_path))

        assert code == EXIT_OK
        calls = record.read_text().splitlines()
        assert [len(line.split()) for line in calls] == [50, 50, 20]
        assert len({name for line in calls for name in line.split()}) == 120
        assert (tmp_path / "reads.fastq.zst").read_bytes() == _expected_output(
            input_dir, 50, basecalled,
        )

    def test_staging_dir_removed(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path, cat_path: str,
    ):
        code = main(_argv(tmp_path, make_pod5_tree(3), fake_dorado, "--compressor", cat_path))
        assert code == EXIT_OK
        assert not (tmp_path / "tmpdir").exists()

    def test_no_report_without_monitoring(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path, cat_path: str,
    ):
        main(_argv(tmp_path, make_pod5_tree(5), fake_dorado, "--compressor", cat_path, "--chunk", "2"))
        assert not (tmp_path / "chan_stats.csv").exists()

    @pytest.mark.skipif(shutil.which("gzip") is None, reason="gzip not installed")
    def test_monitored_gzip_round_trip(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path, basecalled,
    ):
        input_dir = make_pod5_tree(7)
        code = main(_argv(
            tmp_path, input_dir, fake_dorado,
            "--compressor", "gzip", "--chunk", "3", "--monitor-pressure",
        ))

        assert code == EXIT_OK
        decompressed = gzip.decompress((tmp_path / "reads.fastq.zst").read_bytes())
        assert decompressed == _expected_output(input_dir, 3, basecalled)

        samples = load_timing_csv(tmp_path / "chan_stats.csv")
        assert sum(s.byte_count for s in samples) == len(decompressed)


    def test_json_log_file_carries_batch_context(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path, cat_path: str,
        monkeypatch,
    ):
        log_file = tmp_path / "logs" / "podbatch.log"
        monkeypatch.setenv("PODBATCH_LOG_FILE", str(log_file))
        monkeypatch.setenv("PODBATCH_LOG_FORMAT", "json")

        code = main(_argv(
            tmp_path, make_pod5_tree(4), fake_dorado, "--compressor", cat_path, "--chunk", "3",
        ))

        assert code == EXIT_OK
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        batch_lines = [e for e in entries if e["message"].startswith("basecalling from")]
        assert [e["message"] for e in batch_lines] == [
            "basecalling from 0 to 3 files of 4",
            "basecalling from 3 to 4 files of 4",
        ]
        assert [e["context"]["batch_range"] for e in batch_lines] == ["0-3", "3-4"]
        assert all(e["context"]["phase"] == "staging" for e in batch_lines)


# =====================================================================
#  FAILURES
# =====================================================================

class TestFailedRun:

    def test_no_files_is_fatal(self, tmp_path: Path, fake_dorado: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        (empty / "notes.txt").write_text("not a pod5")

        assert main(_argv(tmp_path, empty, fake_dorado)) == EXIT_SETUP
        assert not (tmp_path / "tmpdir").exists()
        assert not (tmp_path / "reads.fastq.zst").exists()

    def test_existing_staging_dir_is_fatal(
        self, tmp_path: Path, make_pod5_tree, fake_dorado: Path,
    ):
        (tmp_path / "tmpdir").mkdir()
        assert main(_argv(tmp_path, make_pod5_tree(2), fake_dorado)) == EXIT_SETUP
        assert (tmp_path / "tmpdir").is_dir()

    def test_basecaller_failure_stops_run(
        self, tmp_path: Path, make_pod5_tree, cat_path: str, make_executable,
    ):
        counter = tmp_path / "count"
        dorado = make_executable(
            "second_batch_fails",
            f'echo x >> "{counter}"\n'
            f'[ $(wc -l < "{counter}") -lt 2 ] || exit 7\n'
            'echo "@ok"\n',
        )
        code = main(_argv(
            tmp_path, make_pod5_tree(6), dorado, "--compressor", cat_path, "--chunk", "2",
        ))

        assert code == EXIT_BATCH_FAILED
        assert counter.read_text().count("x") == 2
        assert (tmp_path / "reads.fastq.zst").read_bytes() == b"@ok\n"
        assert not (tmp_path / "tmpdir").exists()

    def test_integrity_failure_exit_code(
        self, tmp_path: Path, make_pod5_tree, bulk_dorado: Path, make_executable,
    ):
        quitter = make_executable("quitter", "exit 0\n")
        code = main(_argv(
            tmp_path, make_pod5_tree(2), bulk_dorado,
            "--compressor", str(quitter), "--monitor-pressure",
        ))
        assert code == EXIT_STREAM_INTEGRITY
        assert not (tmp_path / "tmpdir").exists()
        assert not (tmp_path / "chan_stats.csv").exists()
