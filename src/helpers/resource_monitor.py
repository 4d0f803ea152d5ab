from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Tuple

import psutil

LoadAverage = Tuple[float, float, float]


@dataclass(frozen=True)
class ResourceSample:
    """Process metrics captured at one point in time."""

    taken_at: float
    rss_mb: float
    cpu_total: float
    thread_count: int
    io_read_bytes: float | None
    io_write_bytes: float | None
    load_avg: LoadAverage | None


@dataclass(frozen=True)
class ResourceDelta:
    """How the process metrics moved between two samples."""

    duration_sec: float
    cpu_percent: float
    rss_after_mb: float
    rss_delta_mb: float
    thread_count: int
    io_read_mb: float | None
    io_write_mb: float | None
    load_avg: LoadAverage | None


class ResourceMonitor:
    """psutil-backed telemetry used by the importer's --profile mode."""

    _MB = 1024 * 1024

    def __init__(self, pid: int | None = None) -> None:
        self._process = psutil.Process(pid or os.getpid())
        self._cpu_count = psutil.cpu_count(logical=True) or 1

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def snapshot(self) -> ResourceSample:
        with self._process.oneshot():
            mem_info = self._process.memory_info()
            cpu_times = self._process.cpu_times()
            thread_count = self._process.num_threads()
            io_read: float | None = None
            io_write: float | None = None
            # io_counters is unavailable on macOS.
            if hasattr(self._process, "io_counters"):
                try:
                    counters = self._process.io_counters()
                except (psutil.AccessDenied, NotImplementedError):
                    counters = None
                if counters is not None:
                    io_read = float(counters.read_bytes)
                    io_write = float(counters.write_bytes)
        return ResourceSample(
            taken_at=time.perf_counter(),
            rss_mb=mem_info.rss / self._MB,
            cpu_total=float(cpu_times.user + cpu_times.system),
            thread_count=int(thread_count),
            io_read_bytes=io_read,
            io_write_bytes=io_write,
            load_avg=self._load_average(),
        )

    def delta(self, before: ResourceSample, after: ResourceSample) -> ResourceDelta:
        duration = max(0.0, after.taken_at - before.taken_at)
        cpu_percent = 0.0
        if duration > 0:
            cpu_delta = after.cpu_total - before.cpu_total
            cpu_percent = max(0.0, (cpu_delta / duration) * 100.0 / float(self._cpu_count))
        io_read_mb = None
        if before.io_read_bytes is not None and after.io_read_bytes is not None:
            io_read_mb = max(0.0, after.io_read_bytes - before.io_read_bytes) / self._MB
        io_write_mb = None
        if before.io_write_bytes is not None and after.io_write_bytes is not None:
            io_write_mb = max(0.0, after.io_write_bytes - before.io_write_bytes) / self._MB
        return ResourceDelta(
            duration_sec=duration,
            cpu_percent=cpu_percent,
            rss_after_mb=after.rss_mb,
            rss_delta_mb=after.rss_mb - before.rss_mb,
            thread_count=after.thread_count,
            io_read_mb=io_read_mb,
            io_write_mb=io_write_mb,
            load_avg=after.load_avg,
        )

    def describe(self, delta: ResourceDelta) -> str:
        """Return a short, human-friendly summary string."""
        parts = [
            f"time={delta.duration_sec:.2f}s",
            f"cpu={delta.cpu_percent:.1f}%/{self._cpu_count}c",
            f"rss={delta.rss_after_mb:.1f}MB({delta.rss_delta_mb:+.1f})",
            f"threads={delta.thread_count}",
        ]
        if delta.io_read_mb is not None and delta.io_write_mb is not None:
            parts.append(f"io[R/W]={delta.io_read_mb:.2f}MB/{delta.io_write_mb:.2f}MB")
        if delta.load_avg is not None:
            parts.append("load=" + ",".join(f"{value:.2f}" for value in delta.load_avg))
        return " ".join(parts)

    @staticmethod
    def _load_average() -> LoadAverage | None:
        try:
            load = os.getloadavg()
        except (AttributeError, OSError):
            return None
        return float(load[0]), float(load[1]), float(load[2])
