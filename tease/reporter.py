"""Diagnostics for a tease run.

Two sinks:
  - stderr, for the user (warnings and fatal errors, one line each)
  - an optional append-only journal file (timestamped lines), for post-mortem

The terminal's stdout belongs to the tail line, so nothing here writes there.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional, TextIO


EXIT_STDERR_UNWRITABLE = 12

PREFIX = "[tease]"


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(line.rstrip("\n") + "\n")


class Reporter:
    def __init__(self, journal_path: Optional[Path] = None, stream: Optional[TextIO] = None) -> None:
        self.journal_path = journal_path
        self._stream = stream
        self._journal_broken = False

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so tests that swap sys.stderr see their replacement.
        return self._stream if self._stream is not None else sys.stderr

    def _eprint(self, msg: str) -> None:
        try:
            print(f"{PREFIX} {msg}", file=self.stream, flush=True)
        except OSError:
            # Nowhere left to complain; let the caller's finally blocks clean up.
            raise SystemExit(EXIT_STDERR_UNWRITABLE)

    def journal(self, msg: str) -> None:
        if self.journal_path is None or self._journal_broken:
            return
        try:
            _append_line(self.journal_path, f"[{_utc_iso()}] {msg}")
        except OSError as e:
            self._journal_broken = True
            self._eprint(f"warning: journal disabled, cannot write {self.journal_path}: {e}")

    def info(self, msg: str) -> None:
        self.journal(msg)

    def warn(self, msg: str) -> None:
        self._eprint(f"warning: {msg}")
        self.journal(f"warning: {msg}")

    def error(self, msg: str) -> None:
        self._eprint(msg)
        self.journal(f"error: {msg}")
