"""Run one command under tease: scratch file, child, poll loop, cleanup.

States: STARTING -> RUNNING -> SUCCEEDED | FAILED | INTERRUPTED.
Every path, including early STARTING failures, leaves through the same
cleanup (close, then delete the scratch file).
"""

from __future__ import annotations

import enum
import os
import shutil
import signal
import sys
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

from tease import child_runner, tail_reader
from tease.presenter import Presenter
from tease.reporter import Reporter
from tease.scratch_file import ScratchFile
from tease.settings import Settings


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class RunState(enum.IntEnum):
    STARTING = 0
    RUNNING = 1
    SUCCEEDED = 2
    FAILED = 3
    INTERRUPTED = 4


@dataclass
class RunOutcome:
    state: RunState
    exit_code: int
    scratch_path: Optional[str] = None


def terminal_width(stream=None) -> Optional[int]:
    out = stream if stream is not None else sys.stdout
    try:
        if not out.isatty():
            return None
    except (AttributeError, ValueError):
        return None
    return shutil.get_terminal_size().columns


class Supervisor:
    def __init__(
        self,
        settings: Settings,
        reporter: Reporter,
        presenter: Presenter,
        *,
        sleep: Callable[[float], None] = time.sleep,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.settings = settings
        self.reporter = reporter
        self.presenter = presenter
        self._sleep = sleep
        self._env = env
        self.state = RunState.STARTING

    def run(self, argv: Sequence[str]) -> RunOutcome:
        rep = self.reporter
        rep.info(f"supervisor start pid={os.getpid()}")
        rep.info(f"child cmd: {list(argv)!r}")

        scratch = ScratchFile.create(self.settings.scratch_locations(), rep)
        if scratch is None:
            self.state = RunState.FAILED
            return RunOutcome(self.state, EXIT_FAILURE)

        try:
            outcome = self._supervise(argv, scratch)
        finally:
            scratch.cleanup()
        rep.info(f"supervisor exit state={outcome.state.name} rc={outcome.exit_code}")
        return outcome

    def _supervise(self, argv: Sequence[str], scratch: ScratchFile) -> RunOutcome:
        rep = self.reporter
        spawned = child_runner.spawn(argv, scratch.sink_fd, self._env)
        if not spawned.ok:
            rep.error(spawned.message)
            self.state = RunState.FAILED
            return RunOutcome(self.state, EXIT_FAILURE, str(scratch.path))

        # From here on the child must not outlive us, whatever goes wrong.
        child = spawned.child
        try:
            return self._watch(child, scratch)
        except KeyboardInterrupt:
            rep.warn(f"interrupted; killing child pid={child.pid}")
            child_runner.terminate_tree(child)
            self.state = RunState.INTERRUPTED
            self.presenter.render_full(scratch.handle)
            return RunOutcome(self.state, EXIT_INTERRUPTED, str(scratch.path))
        except BaseException:
            child_runner.terminate_tree(child)
            raise

    def _watch(self, child, scratch: ScratchFile) -> RunOutcome:
        rep = self.reporter
        tail = tail_reader.TailState.with_capacity(self.settings.window_bytes)
        self.state = RunState.RUNNING
        start_mono = time.monotonic()
        rep.info(f"child pid={child.pid}")

        rc = self._poll_loop(child, scratch, tail)
        if rc is None:
            # Child state is unknowable; nothing sensible left to show.
            self.state = RunState.FAILED
            return RunOutcome(self.state, EXIT_FAILURE, str(scratch.path))

        code = child_runner.exit_code_of(rc)
        rep.info(f"child exit rc={rc} dur_s={time.monotonic() - start_mono:.1f} pid={child.pid}")

        if code == EXIT_SUCCESS:
            self.state = RunState.SUCCEEDED
            self.presenter.finalize()
        else:
            self.state = RunState.FAILED
            self.presenter.render_full(scratch.handle)
        return RunOutcome(self.state, code, str(scratch.path))

    def _poll_loop(self, child, scratch: ScratchFile, tail: tail_reader.TailState) -> Optional[int]:
        rep = self.reporter
        while True:
            self._sleep(self.settings.poll_interval_s)
            self._show_tail(scratch, tail)
            try:
                rc = child.poll()
            except OSError as e:
                rep.error(f"couldn't wait for the child pid={child.pid}: {e}")
                return None
            if rc is not None:
                # Catch whatever was written between the last poll and exit.
                self._show_tail(scratch, tail)
                return rc

    def _show_tail(self, scratch: ScratchFile, tail: tail_reader.TailState) -> None:
        fragment, _ = tail_reader.poll(scratch.handle, tail, self.reporter)
        if fragment is not None:
            self.presenter.render_tail(fragment)


def run_command(
    argv: Sequence[str],
    settings: Settings,
    reporter: Optional[Reporter] = None,
    presenter: Optional[Presenter] = None,
) -> int:
    rep = reporter if reporter is not None else Reporter(settings.journal_path)
    pres = presenter if presenter is not None else Presenter(
        width=terminal_width(),
        chunk_bytes=settings.dump_chunk_bytes,
        reporter=rep,
    )

    # SIGTERM takes the same road as Ctrl-C: kill the child, dump, clean up.
    prev_term = None
    if hasattr(signal, "SIGTERM"):
        try:
            prev_term = signal.signal(signal.SIGTERM, signal.default_int_handler)
        except ValueError:
            # Not on the main thread.
            prev_term = None
    try:
        return Supervisor(settings, rep, pres).run(argv).exit_code
    finally:
        if prev_term is not None:
            signal.signal(signal.SIGTERM, prev_term)
