"""
CI output sink — ``key=value`` lines for the calling pipeline.

On GitHub Actions this is the file named by ``GITHUB_OUTPUT``; later
steps read the keys as ``steps.<id>.outputs.<key>``. Without a file the
lines go to stdout.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class OutputSink:
    """Append-only writer of ``key=value`` lines."""

    def __init__(self, path: Path | None = None, stream: TextIO | None = None):
        self._path = path
        self._stream = stream

    @property
    def path(self) -> Path | None:
        return self._path

    def write(self, lines: list[str]) -> None:
        """Append lines. Writing nothing leaves the sink untouched."""
        if not lines:
            return
        payload = "".join(f"{line}\n" for line in lines)

        if self._path is None:
            (self._stream or sys.stdout).write(payload)
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(payload)
        logger.debug("Wrote %d output line(s) to %s", len(lines), self._path)
