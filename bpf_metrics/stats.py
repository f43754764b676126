"""
BPF run-time statistics toggle.

The kernel only accounts ``run_time_ns`` / ``run_cnt`` while
``kernel.bpf_stats_enabled`` is set; without it those fields are absent and the
matching updates are skipped.
"""
from __future__ import annotations

import logging
from pathlib import Path

from bpf_metrics.errors import AdapterError

logger = logging.getLogger(__name__)

PROCFS_BPF_STATS_ENABLED = Path("/proc/sys/kernel/bpf_stats_enabled")

_SUBJECT = "bpf_stats"


def _write(path: Path, value: str) -> None:
    try:
        path.write_text(value)
    except OSError as exc:
        raise AdapterError(_SUBJECT, f"cannot write {path}: {exc}") from exc


def enable_stats_procfs(path: Path = PROCFS_BPF_STATS_ENABLED) -> None:
    _write(path, "1")
    logger.info("Enabled BPF run-time statistics via %s", path)


def disable_stats_procfs(path: Path = PROCFS_BPF_STATS_ENABLED) -> None:
    _write(path, "0")
    logger.info("Disabled BPF run-time statistics via %s", path)


def is_stats_enabled_procfs(path: Path = PROCFS_BPF_STATS_ENABLED) -> bool:
    try:
        content = path.read_text()
    except OSError as exc:
        raise AdapterError(_SUBJECT, f"cannot read {path}: {exc}") from exc
    return content.strip() == "1"
