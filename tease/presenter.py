"""Terminal side: one overwritten tail line, or the full dump on failure."""

from __future__ import annotations

import os
import sys
from typing import BinaryIO, Optional

from tease.reporter import Reporter
from tease.settings import DEFAULT_DUMP_CHUNK_BYTES


CLEAR_LINE = b"\r\x1b[K"


class Presenter:
    def __init__(
        self,
        stream: Optional[BinaryIO] = None,
        *,
        width: Optional[int] = None,
        chunk_bytes: int = DEFAULT_DUMP_CHUNK_BYTES,
        reporter: Optional[Reporter] = None,
    ) -> None:
        self._stream = stream
        self.width = width
        self.chunk_bytes = chunk_bytes
        self.reporter = reporter
        self.shown_any = False
        self.broken = False

    @property
    def stream(self) -> BinaryIO:
        return self._stream if self._stream is not None else sys.stdout.buffer

    def _clip(self, fragment: str) -> str:
        fragment = fragment.rstrip("\r")
        # A wrapped line can't be erased with a single EL, so stay one short of the edge.
        # Width is counted in code points: wide glyphs, tabs and the child's own
        # escape sequences can still wrap or clip early.
        if self.width is not None and self.width > 1 and len(fragment) >= self.width:
            fragment = fragment[: self.width - 1]
        return fragment

    def _emit(self, data: bytes) -> bool:
        if self.broken:
            return False
        out = self.stream
        try:
            out.write(data)
            out.flush()
        except OSError as e:
            self.broken = True
            if self._stream is None:
                # Point stdout at devnull so the interpreter's exit flush can't fail again.
                devnull = os.open(os.devnull, os.O_WRONLY)
                os.dup2(devnull, sys.stdout.fileno())
                os.close(devnull)
            if self.reporter is not None:
                self.reporter.warn(f"can't write to stdout any more, drawing stopped: {e}")
            return False
        return True

    def render_tail(self, fragment: str) -> None:
        if self._emit(CLEAR_LINE + self._clip(fragment).encode("utf-8", errors="replace")):
            self.shown_any = True

    def finalize(self) -> None:
        if not self.shown_any:
            return
        self._emit(b"\n")

    def render_full(self, handle: BinaryIO) -> bool:
        if not self._emit(CLEAR_LINE):
            return False
        try:
            handle.seek(0, os.SEEK_SET)
        except OSError as e:
            self._read_failed(e)
            return False
        while True:
            try:
                chunk = handle.read(self.chunk_bytes)
            except OSError as e:
                self._read_failed(e)
                return False
            if not chunk:
                return True
            if not self._emit(chunk):
                return False

    def _read_failed(self, e: OSError) -> None:
        if self.reporter is not None:
            self.reporter.warn(f"couldn't read the temp file while dumping it: {e}")
