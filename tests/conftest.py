"""
shared pytest fixtures for the bpf_metrics test suite.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bpf_metrics.facade import BpfMetrics
from bpf_metrics.registry.kinds import SubjectKind
from bpf_metrics.sources.base import StaticSource

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

# ── Records shaped like normalized bpftool output ──────────────────────────

SAMPLE_PROG = {
    "id": 7,
    "type_name": "kprobe",
    "name": "foo",
    "tag": "a04f5eef06a7f555",
    "numeric_fields": {
        "run_time_ns": 1_500_000,
        "run_cnt": 42,
        "bytes_xlated": 512,
        "bytes_jited": 320,
        "bytes_memlock": 4096,
        "verified_insns": 64,
    },
    "loaded_at": NOW - timedelta(seconds=2),
}

SAMPLE_MAP = {
    "id": 3,
    "type_name": "hash",
    "name": "counts",
    "numeric_fields": {"bytes_key": 4, "bytes_value": 8, "max_entries": 1024},
}

SAMPLE_LINK = {
    "id": 11,
    "type_name": "perf_event",
    "numeric_fields": {"prog_id": 7},
}


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def source() -> StaticSource:
    return StaticSource({
        SubjectKind.PROG: [SAMPLE_PROG],
        SubjectKind.MAP: [SAMPLE_MAP],
        SubjectKind.LINK: [SAMPLE_LINK],
    })


@pytest.fixture
def bpf_metrics(source: StaticSource) -> BpfMetrics:
    return BpfMetrics(source, clock=fixed_clock)
