"""Run a noisy command, show only its latest output line, dump it all on failure."""

from tease.settings import Settings, load_settings
from tease.supervisor import RunState, Supervisor, run_command

__all__ = ["RunState", "Settings", "Supervisor", "load_settings", "run_command"]

__version__ = "0.1.0"
