"""
bpftool-backed data source.

Runs ``bpftool --json {prog|map|link} show`` and normalizes every JSON object
into the Snapshot shape. Normalization is lazy: a malformed object only fails
its own validation later, never the listing.
"""
from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Iterator

from bpf_metrics.errors import AdapterError
from bpf_metrics.registry.kinds import SubjectKind

logger = logging.getLogger(__name__)

# numeric bpftool keys kept per subject kind
NUMERIC_FIELDS: dict[SubjectKind, tuple[str, ...]] = {
    SubjectKind.PROG: (
        "run_time_ns",
        "run_cnt",
        "bytes_xlated",
        "bytes_jited",
        "bytes_memlock",
        "verified_insns",
    ),
    SubjectKind.MAP: ("bytes_key", "bytes_value", "max_entries", "bytes_memlock"),
    SubjectKind.LINK: ("prog_id",),
}


def normalize(subject: SubjectKind, obj: dict[str, Any]) -> dict[str, Any]:
    """Map one bpftool JSON object onto the Snapshot fields."""
    numeric = {}
    for key in NUMERIC_FIELDS[subject]:
        value = obj.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            numeric[key] = value
    return {
        "id": obj.get("id"),
        "type_name": str(obj.get("type", "")),
        "name": str(obj.get("name", "")),
        "tag": obj.get("tag"),
        "numeric_fields": numeric,
        "loaded_at": obj.get("loaded_at"),
    }


class BpftoolSource:
    """Lists programs, maps and links through the bpftool CLI."""

    def __init__(self, bpftool_path: str = "bpftool", timeout: float = 5.0):
        self.bpftool_path = bpftool_path
        self.timeout = timeout

    def _run(self, subject: SubjectKind) -> list[dict[str, Any]]:
        cmd = [self.bpftool_path, "--json", subject.value, "show"]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise AdapterError(subject.value, f"{self.bpftool_path} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise AdapterError(
                subject.value, f"{' '.join(cmd)} timed out after {self.timeout}s"
            ) from exc

        if proc.returncode != 0:
            raise AdapterError(
                subject.value,
                f"{' '.join(cmd)} exited with {proc.returncode}: {proc.stderr.strip()}",
            )
        try:
            payload = json.loads(proc.stdout or "[]")
        except json.JSONDecodeError as exc:
            raise AdapterError(subject.value, f"invalid JSON from bpftool: {exc}") from exc
        if not isinstance(payload, list):
            raise AdapterError(subject.value, "bpftool did not return a JSON list")
        return payload

    def list_snapshots(self, subject: SubjectKind) -> Iterator[dict[str, Any]]:
        objects = self._run(subject)
        logger.debug("bpftool listed %d %s objects", len(objects), subject.value)
        return (normalize(subject, obj) for obj in objects if isinstance(obj, dict))
