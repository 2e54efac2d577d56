"""Command line entry point: ``tease [OPTIONS] COMMAND [ARGS...]``."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from tease.reporter import Reporter
from tease.settings import load_settings
from tease.supervisor import EXIT_FAILURE, EXIT_INTERRUPTED, run_command


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tease",
        description="Run COMMAND showing only its latest output line; dump everything if it fails.",
        allow_abbrev=False,
    )
    p.add_argument(
        "--poll-interval-ms",
        type=int,
        default=None,
        help="How often to check the output and the child (default: TEASE_POLL_INTERVAL_MS or 30).",
    )
    p.add_argument(
        "--window-bytes",
        type=int,
        default=None,
        help="Trailing bytes read per check to find the last line (default: TEASE_WINDOW_BYTES or 500).",
    )
    p.add_argument(
        "--scratch-dir",
        default=None,
        help="Where to put the temp file (default: TEASE_SCRATCH_DIR or the current directory).",
    )
    p.add_argument("--log", default=None, help="Append a run journal to this file (default: TEASE_LOG, off).")
    p.add_argument("child_cmd", nargs=argparse.REMAINDER, help="Command to run, with its own arguments.")
    return p.parse_args(list(argv) if argv is not None else None)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    cmd = list(args.child_cmd)
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]

    if not cmd:
        Reporter().error("No command given!")
        return EXIT_FAILURE

    try:
        settings = load_settings().with_overrides(
            poll_interval_ms=args.poll_interval_ms,
            window_bytes=args.window_bytes,
            scratch_dir=args.scratch_dir,
            journal=args.log,
        )
    except ValueError as e:
        Reporter().error(f"bad settings: {e}")
        return EXIT_FAILURE

    try:
        return run_command(cmd, settings)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
