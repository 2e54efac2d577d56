"""Run settings: defaults, TEASE_* environment overrides, CLI overrides."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_POLL_INTERVAL_MS = 30
DEFAULT_WINDOW_BYTES = 500
DEFAULT_DUMP_CHUNK_BYTES = 8192

SCRATCH_PREFIX = "tmp.tease."


@dataclass(frozen=True)
class Settings:
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_MS / 1000.0
    window_bytes: int = DEFAULT_WINDOW_BYTES
    dump_chunk_bytes: int = DEFAULT_DUMP_CHUNK_BYTES
    primary_dir: Optional[Path] = None
    fallback_dir: Optional[Path] = None
    journal_path: Optional[Path] = None

    def scratch_locations(self) -> list[Path]:
        primary = self.primary_dir if self.primary_dir is not None else Path.cwd()
        fallback = self.fallback_dir if self.fallback_dir is not None else Path(tempfile.gettempdir())
        return [primary, fallback]

    def with_overrides(
        self,
        *,
        poll_interval_ms: Optional[int] = None,
        window_bytes: Optional[int] = None,
        scratch_dir: Optional[str] = None,
        journal: Optional[str] = None,
    ) -> "Settings":
        out = self
        if poll_interval_ms is not None:
            out = replace(out, poll_interval_s=_positive(poll_interval_ms, label="--poll-interval-ms") / 1000.0)
        if window_bytes is not None:
            out = replace(out, window_bytes=_positive(window_bytes, label="--window-bytes"))
        if scratch_dir:
            out = replace(out, primary_dir=Path(scratch_dir).expanduser())
        if journal:
            out = replace(out, journal_path=Path(journal).expanduser())
        return out


def _positive(val: int, *, label: str) -> int:
    if val <= 0:
        raise ValueError(f"{label} must be a positive integer, got {val}")
    return val


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        val = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    return _positive(val, label=name)


def _env_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    raw = env.get(name, "").strip()
    return Path(raw).expanduser() if raw else None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from defaults plus TEASE_* environment overrides.

    Raises ValueError on malformed values.
    """

    env = os.environ if environ is None else environ
    poll_ms = _env_int(env, "TEASE_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS)
    return Settings(
        poll_interval_s=poll_ms / 1000.0,
        window_bytes=_env_int(env, "TEASE_WINDOW_BYTES", DEFAULT_WINDOW_BYTES),
        dump_chunk_bytes=_env_int(env, "TEASE_DUMP_CHUNK_BYTES", DEFAULT_DUMP_CHUNK_BYTES),
        primary_dir=_env_path(env, "TEASE_SCRATCH_DIR"),
        fallback_dir=_env_path(env, "TEASE_FALLBACK_DIR"),
        journal_path=_env_path(env, "TEASE_LOG"),
    )
