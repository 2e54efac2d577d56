"""Extract the most recent (possibly partial) output line from the scratch file.

Only the trailing window of the file is read on each poll, so the cost per
poll is bounded by the window size, not the file size. The window may start
mid-line; if a single line is longer than the window, the fragment is that
line truncated from the left. That is accepted rather than corrected.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Tuple

from tease.reporter import Reporter
from tease.settings import DEFAULT_WINDOW_BYTES


@dataclass
class TailState:
    last_observed_size: int = 0
    window: bytearray = field(default_factory=lambda: bytearray(DEFAULT_WINDOW_BYTES))

    @classmethod
    def with_capacity(cls, window_bytes: int) -> "TailState":
        if window_bytes <= 0:
            raise ValueError(f"window_bytes must be positive, got {window_bytes}")
        return cls(last_observed_size=0, window=bytearray(window_bytes))

    @property
    def capacity(self) -> int:
        return len(self.window)


def extract_tail(window: bytes) -> bytes:
    """Return the last line of ``window``, ignoring one trailing newline."""

    end = len(window)
    if end and window[end - 1] == 0x0A:
        end -= 1
    nl = window.rfind(b"\n", 0, end)
    return bytes(window[nl + 1 : end])


def _read_window(handle: BinaryIO, state: TailState, offset: int, n: int) -> int:
    handle.seek(offset, os.SEEK_SET)
    view = memoryview(state.window)
    got = 0
    while got < n:
        chunk = handle.readinto(view[got:n])
        if not chunk:
            # Size ran ahead of readable content; use what is there.
            break
        got += chunk
    return got


def poll(handle: BinaryIO, state: TailState, reporter: Optional[Reporter] = None) -> Tuple[Optional[str], TailState]:
    """Read the window ending at the current end of file.

    Returns ``(None, state)`` when nothing new was appended, or when the file
    could not be stat'ed/read (reported as a warning; the state is left alone
    so the next poll retries).
    """

    try:
        size = os.fstat(handle.fileno()).st_size
    except OSError as e:
        if reporter is not None:
            reporter.warn(f"couldn't stat the temp file: {e}")
        return None, state

    if size <= state.last_observed_size:
        return None, state

    n = min(state.capacity, size)
    try:
        got = _read_window(handle, state, size - n, n)
    except OSError as e:
        if reporter is not None:
            reporter.warn(f"couldn't read the temp file: {e}")
        return None, state

    if got == 0:
        return None, state

    fragment = extract_tail(state.window[:got]).decode("utf-8", errors="replace")
    # Equal to size unless the read came up short; then the rest is re-read next poll.
    state.last_observed_size = size - n + got
    return fragment, state
