"""
Metric kinds and the fixed metric table of every subject kind.

Each subject kind (program, map, link) owns its own MetricKind enum, so the
namespaces never overlap: ``ProgMetric.RUN_TIME`` can only ever be routed to the
program collection.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from bpf_metrics.errors import ConfigurationError


class SubjectKind(str, Enum):
    PROG = "prog"
    MAP = "map"
    LINK = "link"


class MetricType(str, Enum):
    COUNTER = "counter"  # monotonic, exported with a _total sample suffix
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricSpec:
    """Exposition metadata of one MetricKind."""
    name: str
    help: str
    unit: str  # "" = no UNIT line
    metric_type: MetricType


class ProgMetric(Enum):
    """Metric options for loaded programs."""
    SIZE_JITTED = "size_jitted"
    SIZE_TRANSLATED = "size_translated"
    UPTIME = "uptime"
    RUN_TIME = "run_time"
    RUN_COUNT = "run_count"
    VERIFIED_INSTRUCTIONS = "verified_instructions"
    MEMORY_LOCKED = "memory_locked"


class MapMetric(Enum):
    """Metric options for loaded maps."""
    KEY_SIZE = "key_size"
    VALUE_SIZE = "value_size"
    MAX_ENTRIES = "max_entries"


class LinkMetric(Enum):
    """Metric options for link objects."""
    ATTACHED = "attached"


MetricKind = Union[ProgMetric, MapMetric, LinkMetric]


# ── Fixed tables ─────────────────────────────────────────────────────────────

PROG_METRICS: dict[ProgMetric, MetricSpec] = {
    ProgMetric.SIZE_JITTED: MetricSpec(
        "size_jitted", "Size of program's JIT-compiled machine code", "bytes", MetricType.GAUGE,
    ),
    ProgMetric.SIZE_TRANSLATED: MetricSpec(
        "size_translated", "Size of program's translated bytecode", "bytes", MetricType.GAUGE,
    ),
    ProgMetric.UPTIME: MetricSpec(
        "uptime", "Duration program has been loaded", "nanoseconds", MetricType.COUNTER,
    ),
    ProgMetric.RUN_TIME: MetricSpec(
        "run_time", "Accumulated duration the program has actively ran", "nanoseconds",
        MetricType.COUNTER,
    ),
    ProgMetric.RUN_COUNT: MetricSpec(
        "execution", "Accumulated execution count of the program", "count", MetricType.COUNTER,
    ),
    ProgMetric.VERIFIED_INSTRUCTIONS: MetricSpec(
        "verified_instruction", "Number of verified instructions in the program", "count",
        MetricType.GAUGE,
    ),
    ProgMetric.MEMORY_LOCKED: MetricSpec(
        "memory_locked", "Amount of memory allocated and locked for the program", "bytes",
        MetricType.GAUGE,
    ),
}

MAP_METRICS: dict[MapMetric, MetricSpec] = {
    MapMetric.KEY_SIZE: MetricSpec("key_size", "Size of map key", "bytes", MetricType.GAUGE),
    MapMetric.VALUE_SIZE: MetricSpec("value_size", "Size of map value", "bytes", MetricType.GAUGE),
    MapMetric.MAX_ENTRIES: MetricSpec(
        "max_entries", "Maximum entries map can hold", "count", MetricType.GAUGE,
    ),
}

LINK_METRICS: dict[LinkMetric, MetricSpec] = {
    LinkMetric.ATTACHED: MetricSpec(
        "attached", "Link object attached to a program", "", MetricType.GAUGE,
    ),
}

_KIND_CLASSES: dict[type, SubjectKind] = {
    ProgMetric: SubjectKind.PROG,
    MapMetric: SubjectKind.MAP,
    LinkMetric: SubjectKind.LINK,
}

METRIC_TABLES: dict[SubjectKind, dict] = {
    SubjectKind.PROG: PROG_METRICS,
    SubjectKind.MAP: MAP_METRICS,
    SubjectKind.LINK: LINK_METRICS,
}


def subject_of(kind: MetricKind) -> SubjectKind:
    """Subject kind owning ``kind``; raises ConfigurationError for foreign objects."""
    try:
        return _KIND_CLASSES[type(kind)]
    except KeyError:
        raise ConfigurationError(f"{kind!r} is not a metric kind") from None


def spec_for(kind: MetricKind) -> MetricSpec:
    return METRIC_TABLES[subject_of(kind)][kind]


def parse_kinds(subject: SubjectKind, names: list[str]) -> list[MetricKind]:
    """
    Resolve configured names ("RUN_TIME", "run_time") to members of the
    subject's MetricKind enum, preserving order.
    """
    kind_cls = next(cls for cls, owner in _KIND_CLASSES.items() if owner is subject)
    kinds: list[MetricKind] = []
    for raw in names:
        key = raw.strip().upper()
        try:
            kinds.append(kind_cls[key])
        except KeyError:
            valid = ", ".join(member.name for member in kind_cls)
            raise ConfigurationError(
                f"unknown {subject.value} metric '{raw}' (valid: {valid})"
            ) from None
    return kinds
