"""Launch the wrapped command with stdout+stderr pointed at the scratch file."""

from __future__ import annotations

import enum
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence


class SpawnError(enum.IntEnum):
    NONE = 0
    UNKNOWN_COMMAND = 1
    START_FAILED = 2


@dataclass(frozen=True)
class SpawnResult:
    child: Optional[subprocess.Popen]
    error: SpawnError = SpawnError.NONE
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.child is not None and self.error == SpawnError.NONE


def spawn(argv: Sequence[str], sink_fd: int, env: Optional[Mapping[str, str]] = None) -> SpawnResult:
    # Both slots get a dup of the same descriptor: one merged stream, one file.
    popen_kwargs: Dict[str, Any] = {
        "stdout": sink_fd,
        "stderr": sink_fd,
        "env": dict(os.environ if env is None else env),
    }

    # Own process group so an interrupted run can take the whole tree down.
    if os.name == "nt":
        creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        popen_kwargs["creationflags"] = int(creationflags)
    else:
        popen_kwargs["start_new_session"] = True

    try:
        child = subprocess.Popen(list(argv), **popen_kwargs)  # noqa: S603
    except FileNotFoundError:
        return SpawnResult(None, SpawnError.UNKNOWN_COMMAND, f"Unknown command: {argv[0]}")
    except OSError as e:
        return SpawnResult(None, SpawnError.START_FAILED, f"Couldn't start the process: {argv[0]}: {e.strerror or e}")
    return SpawnResult(child)


def exit_code_of(returncode: int) -> int:
    """Map a Popen return code to this program's exit code.

    Signaled children (negative return codes) follow the shell convention of
    128 + signal number.
    """

    rc = int(returncode)
    if rc < 0:
        return 128 + (-rc)
    return rc


def terminate_tree(child: subprocess.Popen, timeout_s: float = 5.0) -> Optional[int]:
    pid = int(getattr(child, "pid", 0) or 0)
    if pid <= 0 or child.poll() is not None:
        return child.returncode
    if os.name == "nt":
        # /T = tree, /F = force
        subprocess.call(["taskkill", "/PID", str(pid), "/T", "/F"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    else:
        try:
            os.killpg(pid, signal.SIGKILL)
        except OSError:
            try:
                os.kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
    try:
        return child.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return None
