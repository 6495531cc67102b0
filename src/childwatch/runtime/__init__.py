"""Runtime module for spawning, pipe streaming and exit detection.

This module provides the OS-facing side of childwatch: process creation with
optional pipes, signal delivery, existence probes and the per-child reaper.
"""

from __future__ import annotations

from .reaper import Reaper
from .spawner import SpawnResult, probe_exists, signal_process, spawn
from .streams import PipeBundle, PipeReader, PipeWriter

__all__ = [
    "PipeBundle",
    "PipeReader",
    "PipeWriter",
    "Reaper",
    "SpawnResult",
    "probe_exists",
    "signal_process",
    "spawn",
]
