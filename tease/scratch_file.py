"""The scratch file that collects the child's combined output."""

from __future__ import annotations

import enum
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

from tease.reporter import Reporter
from tease.settings import SCRATCH_PREFIX


class Location(enum.IntEnum):
    PRIMARY = 0
    FALLBACK = 1


_SINK_FLAGS = os.O_WRONLY | os.O_APPEND | getattr(os, "O_BINARY", 0)


class ScratchFile:
    """One owner-only file per run.

    ``handle`` is the parent's reader. ``sink_fd`` is a separate append-mode
    descriptor handed to the child, so child writes land at end-of-file no
    matter where the reader is positioned.
    """

    def __init__(self, path: Path, handle: BinaryIO, sink_fd: int, location: Location, reporter: Reporter) -> None:
        self.path = path
        self.handle = handle
        self.sink_fd = sink_fd
        self.location = location
        self._reporter = reporter
        self._closed = False
        self._deleted = False

    @classmethod
    def create(cls, locations: Sequence[Path], reporter: Reporter) -> Optional["ScratchFile"]:
        """Create the file in the first writable location; None if none works."""

        tried = []
        for idx, directory in enumerate(locations[:2]):
            tried.append(str(directory))
            try:
                fd, raw_path = tempfile.mkstemp(prefix=SCRATCH_PREFIX, dir=str(directory))
            except OSError as e:
                if idx + 1 < min(len(locations), 2):
                    reporter.warn(f"cannot create a temp file in {directory} ({e.strerror or e}); trying {locations[idx + 1]} instead")
                continue

            path = Path(raw_path)
            handle = os.fdopen(fd, "rb", buffering=0)
            try:
                sink_fd = os.open(raw_path, _SINK_FLAGS)
            except OSError as e:
                handle.close()
                _unlink_quietly(path, reporter)
                reporter.warn(f"cannot open {path} for appending ({e.strerror or e})")
                continue

            location = Location.PRIMARY if idx == 0 else Location.FALLBACK
            reporter.info(f"scratch file {path} ({location.name.lower()})")
            return cls(path, handle, sink_fd, location, reporter)

        reporter.error(f"Failed to create a temp file in any of: {', '.join(tried)}. Giving up")
        return None

    def close(self) -> bool:
        if self._closed:
            return True
        self._closed = True
        ok = True
        try:
            os.close(self.sink_fd)
        except OSError as e:
            ok = False
            self._reporter.warn(f"couldn't close the temp file's write end, but that should be fine ({e})")
        try:
            self.handle.close()
        except OSError as e:
            ok = False
            self._reporter.warn(f"couldn't close the temp file, but that should be fine ({e})")
        return ok

    def delete(self) -> bool:
        if self._deleted:
            return True
        self._deleted = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            self._reporter.warn(f"deleting the temp file has failed ({e.strerror or e})")
            self._reporter.warn(f"you can delete this file manually: {self.path}")
            return False
        self._reporter.info(f"deleted scratch file {self.path}")
        return True

    def cleanup(self) -> bool:
        """Close, then delete. Both steps always run."""

        closed = self.close()
        deleted = self.delete()
        return closed and deleted


def _unlink_quietly(path: Path, reporter: Reporter) -> None:
    try:
        path.unlink()
    except OSError as e:
        reporter.warn(f"you can delete this file manually: {path} ({e.strerror or e})")
