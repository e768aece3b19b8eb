"""Utility functions for CLI operations."""

import sys
from typing import Optional, TextIO

from cli.constants import GREEN, RESET
from engine.transfer_scheduler import ProgressEvent


class ProgressPrinter:
    """
    Progress observer that prints one line per finished chunk.

    The running average is the mean of the per-chunk throughputs seen so far.
    """

    def __init__(self, label: str, stream: Optional[TextIO] = None):
        self.label = label
        self.stream = stream
        self.chunk_count = 0
        self.finished = 0
        self.total_bytes = 0
        self._throughput_sum = 0.0

    @property
    def average_throughput(self) -> float:
        return self._throughput_sum / self.finished if self.finished else 0.0

    def __call__(self, event: ProgressEvent) -> None:
        if event.type == "start":
            self.chunk_count = event.data["chunk_count"]
            self._write(f"{self.label}: {self.chunk_count} chunk(s)\n")
        elif event.type in ("chunk_uploaded", "chunk_downloaded"):
            self.finished += 1
            self.total_bytes += event.data["bytes"]
            self._throughput_sum += event.data["throughput"]
            verb = "Uploaded" if event.type == "chunk_uploaded" else "Downloaded"
            self._write(
                f"  {verb} chunk {event.data['index']} "
                f"({format_file_size(event.data['bytes'])} in {format_duration(event.data['elapsed_time'])}) "
                f"[{GREEN}{self.finished}/{self.chunk_count}{RESET}] "
                f"avg {format_file_size(int(self.average_throughput))}/s\n"
            )
        elif event.type == "end":
            self._write(f"{self.label}: done, {format_file_size(self.total_bytes)} transferred\n")

    def _write(self, text: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        stream.write(text)
        stream.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as '850 ms', '4.20 s' or '2m 05s'."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest:02d}s"
