"""Counter reader: the shared I/O leaf for every sensor source.

Every kernel/driver text interface (procfs, sysfs) is read through a
``CounterReader``. A read never raises: missing paths, permission errors
(common under SELinux/AppArmor policies) and I/O errors all collapse to
``None``.

Two implementations share the protocol:
- ``PortableCounterReader``: buffered text I/O via ``open()``.
- ``FastCounterReader``: raw ``os.open``/``os.read`` system calls with no
  intermediate buffering or decoding layers. Any failure falls back to the
  portable reader inside the same call, so callers cannot tell which path
  served the request.

``select_counter_reader()`` probes the fast path once per process and caches
the outcome.
"""

import os
import threading
from collections.abc import Iterable
from typing import Protocol

from host_metrics.telemetry import COUNTER_FAST_PATH_FAILED, COUNTER_READER_SELECTED, get_logger

log = get_logger(__name__)

_READ_CHUNK = 8192
# procfs files report st_size 0, so reads are capped at this many bytes
_MAX_READ_BYTES = 4 * 1024 * 1024


class CounterReader(Protocol):
    """Read-only access to named kernel/driver text interfaces."""

    name: str

    def read_text(self, path: str) -> str | None:
        """Return the file content, or None if it cannot be read."""
        ...

    def read_many(self, paths: Iterable[str]) -> dict[str, str | None]:
        """Read several independent paths; equivalent to read_text per path."""
        ...

    def read_lines(self, path: str) -> list[str] | None:
        """Return the non-blank lines of a file, or None if it cannot be read."""
        ...


def _split_lines(text: str | None) -> list[str] | None:
    if text is None:
        return None
    return [line for line in text.splitlines() if line.strip()]


class PortableCounterReader:
    """Counter reader backed by Python's buffered text I/O."""

    name = "portable"

    def read_text(self, path: str) -> str | None:
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                return f.read(_MAX_READ_BYTES)
        except (OSError, ValueError) as e:
            log.debug("counter_unreadable", path=path, reader=self.name, error=str(e))
            return None

    def read_many(self, paths: Iterable[str]) -> dict[str, str | None]:
        return {path: self.read_text(path) for path in paths}

    def read_lines(self, path: str) -> list[str] | None:
        return _split_lines(self.read_text(path))


class FastCounterReader:
    """Counter reader issuing raw read(2) calls on a file descriptor.

    Falls back to ``fallback`` whenever the direct path fails for any reason.
    """

    name = "fast"

    def __init__(self, fallback: PortableCounterReader | None = None) -> None:
        self._fallback = fallback or PortableCounterReader()

    def _read_direct(self, path: str) -> str:
        flags = os.O_RDONLY | getattr(os, "O_CLOEXEC", 0)
        fd = os.open(path, flags)
        try:
            chunks: list[bytes] = []
            total = 0
            while total < _MAX_READ_BYTES:
                chunk = os.read(fd, _READ_CHUNK)
                if not chunk:
                    break
                chunks.append(chunk)
                total += len(chunk)
        finally:
            os.close(fd)
        return b"".join(chunks).decode("utf-8", errors="replace")

    def read_text(self, path: str) -> str | None:
        try:
            return self._read_direct(path)
        except Exception as e:
            log.debug(
                COUNTER_FAST_PATH_FAILED, path=path, error=str(e), error_type=type(e).__name__
            )
            return self._fallback.read_text(path)

    def read_many(self, paths: Iterable[str]) -> dict[str, str | None]:
        return {path: self.read_text(path) for path in paths}

    def read_lines(self, path: str) -> list[str] | None:
        return _split_lines(self.read_text(path))


_fast_path_available: bool | None = None
_probe_lock = threading.Lock()


def _probe_fast_path() -> bool:
    if os.name != "posix":
        return False
    try:
        FastCounterReader()._read_direct(os.devnull)
    except Exception as e:
        log.info("fast_counter_path_unavailable", error=str(e), error_type=type(e).__name__)
        return False
    return True


def fast_path_available() -> bool:
    """Return whether the fast reader works on this host (probed once)."""
    global _fast_path_available
    with _probe_lock:
        if _fast_path_available is None:
            _fast_path_available = _probe_fast_path()
        return _fast_path_available


def select_counter_reader() -> CounterReader:
    """Return the fastest counter reader available on this host."""
    reader: CounterReader = (
        FastCounterReader() if fast_path_available() else PortableCounterReader()
    )
    log.info(COUNTER_READER_SELECTED, reader=reader.name)
    return reader


def _reset_fast_path_probe() -> None:
    """Forget the cached probe outcome (used by tests)."""
    global _fast_path_available
    with _probe_lock:
        _fast_path_available = None
