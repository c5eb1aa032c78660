"""Tests for the counter readers and fast-path selection."""

import os
import pathlib
from unittest.mock import patch

import pytest

from host_metrics.sensors import reader as reader_module
from host_metrics.sensors.reader import (
    FastCounterReader,
    PortableCounterReader,
    fast_path_available,
    select_counter_reader,
)


@pytest.fixture(autouse=True)
def reset_probe():
    """Forget the cached fast-path probe around each test."""
    reader_module._reset_fast_path_probe()
    yield
    reader_module._reset_fast_path_probe()


@pytest.fixture
def stat_file(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "stat"
    path.write_text("cpu  100 0 100 700\ncpu0 50 0 50 350\n\ncpu1 50 0 50 350\n")
    return path


class TestPortableCounterReader:
    """Buffered text reader."""

    def test_reads_existing_file(self, stat_file: pathlib.Path) -> None:
        assert PortableCounterReader().read_text(str(stat_file)).startswith("cpu  100")

    def test_missing_file_returns_none(self, tmp_path: pathlib.Path) -> None:
        assert PortableCounterReader().read_text(str(tmp_path / "missing")) is None

    def test_directory_returns_none(self, tmp_path: pathlib.Path) -> None:
        assert PortableCounterReader().read_text(str(tmp_path)) is None

    def test_read_lines_skips_blank_lines(self, stat_file: pathlib.Path) -> None:
        lines = PortableCounterReader().read_lines(str(stat_file))
        assert lines == ["cpu  100 0 100 700", "cpu0 50 0 50 350", "cpu1 50 0 50 350"]

    def test_read_many(self, stat_file: pathlib.Path, tmp_path: pathlib.Path) -> None:
        missing = str(tmp_path / "missing")
        result = PortableCounterReader().read_many([str(stat_file), missing])
        assert result[missing] is None
        assert result[str(stat_file)] is not None


class TestFastCounterReader:
    """Raw descriptor reader with portable fallback."""

    def test_matches_portable_reader(self, stat_file: pathlib.Path) -> None:
        assert FastCounterReader().read_text(str(stat_file)) == PortableCounterReader().read_text(
            str(stat_file)
        )

    def test_missing_file_returns_none(self, tmp_path: pathlib.Path) -> None:
        assert FastCounterReader().read_text(str(tmp_path / "missing")) is None

    def test_falls_back_when_direct_read_fails(self, stat_file: pathlib.Path) -> None:
        reader = FastCounterReader()
        with patch.object(reader, "_read_direct", side_effect=OSError("EPERM")):
            text = reader.read_text(str(stat_file))
        assert text is not None
        assert text.startswith("cpu  100")

    def test_fallback_failure_returns_none(self, tmp_path: pathlib.Path) -> None:
        reader = FastCounterReader()
        with patch.object(reader, "_read_direct", side_effect=RuntimeError("boom")):
            assert reader.read_text(str(tmp_path / "missing")) is None


class TestReaderSelection:
    """Fast path probing happens once per process."""

    @pytest.mark.skipif(os.name != "posix", reason="fast path is posix only")
    def test_selects_fast_reader_on_posix(self) -> None:
        assert select_counter_reader().name == "fast"

    def test_selects_portable_reader_when_probe_fails(self) -> None:
        with patch.object(reader_module, "_probe_fast_path", return_value=False):
            assert select_counter_reader().name == "portable"

    def test_probe_runs_once(self) -> None:
        with patch.object(reader_module, "_probe_fast_path", return_value=True) as probe:
            assert fast_path_available() is True
            assert fast_path_available() is True
            select_counter_reader()
        assert probe.call_count == 1
