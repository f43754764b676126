"""Generic metric registry: kinds, families, per-subject collections."""
from .collection import MetricCollection
from .family import MetricFamily
from .kinds import (
    LinkMetric,
    MapMetric,
    MetricKind,
    MetricSpec,
    MetricType,
    ProgMetric,
    SubjectKind,
)
from .registry import MetricRegistry

__all__ = [
    "MetricCollection",
    "MetricFamily",
    "MetricRegistry",
    "MetricKind",
    "MetricSpec",
    "MetricType",
    "SubjectKind",
    "ProgMetric",
    "MapMetric",
    "LinkMetric",
]
