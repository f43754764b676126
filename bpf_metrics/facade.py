"""
BpfMetrics: the one object callers hold.

Registers the metric kinds of each subject kind, runs collection cycles and
produces exposition payloads. A cycle is ``collect_metrics()`` followed by
``export_metrics()``; ``scrape()`` does both atomically.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, NamedTuple

from bpf_metrics.errors import AdapterError, ConfigurationError
from bpf_metrics.registry.kinds import (
    LinkMetric,
    MapMetric,
    MetricKind,
    ProgMetric,
    SubjectKind,
    parse_kinds,
)
from bpf_metrics.registry.registry import MetricRegistry, utcnow

if TYPE_CHECKING:
    from bpf_metrics.config import Settings
    from bpf_metrics.sources.base import SnapshotSource

logger = logging.getLogger(__name__)


class ScrapeResult(NamedTuple):
    payload: str
    errors: list[AdapterError]


class BpfMetrics:
    def __init__(
        self,
        source: SnapshotSource,
        prefix: str = "bpf",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = MetricRegistry(prefix=prefix, source=source, clock=clock)

    def _register_all(self, kinds: Iterable[MetricKind], expected: type) -> None:
        kinds = list(kinds)
        for kind in kinds:
            if not isinstance(kind, expected):
                raise ConfigurationError(f"{kind!r} is not a {expected.__name__}")
        for kind in kinds:
            self.registry.register_kind(kind)

    def register_prog_metrics(self, kinds: Iterable[ProgMetric]) -> None:
        self._register_all(kinds, ProgMetric)

    def register_map_metrics(self, kinds: Iterable[MapMetric]) -> None:
        self._register_all(kinds, MapMetric)

    def register_link_metrics(self, kinds: Iterable[LinkMetric]) -> None:
        self._register_all(kinds, LinkMetric)

    def collect_metrics(self) -> list[AdapterError]:
        """Gather every registered metric; returns the subject kinds that failed."""
        return self.registry.collect_all()

    def export_metrics(self) -> str:
        """Encode the collected metrics and clear them for the next cycle."""
        return self.registry.export_text()

    def scrape(self) -> ScrapeResult:
        with self.registry.lock:
            errors = self.collect_metrics()
            return ScrapeResult(self.export_metrics(), errors)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        source: SnapshotSource | None = None,
    ) -> "BpfMetrics":
        """Build a facade with the metric kinds activated in ``settings``."""
        if settings is None:
            from bpf_metrics.config import get_settings
            settings = get_settings()
        if source is None:
            from bpf_metrics.sources.bpftool import BpftoolSource
            source = BpftoolSource(settings.bpftool_path, settings.bpftool_timeout_seconds)

        metrics = cls(source, prefix=settings.registry_prefix)
        metrics.register_prog_metrics(parse_kinds(SubjectKind.PROG, settings.prog_metrics))
        metrics.register_map_metrics(parse_kinds(SubjectKind.MAP, settings.map_metrics))
        metrics.register_link_metrics(parse_kinds(SubjectKind.LINK, settings.link_metrics))
        logger.info(
            "Registered %d metric families for %s",
            sum(len(metrics.registry.collection(s) or ()) for s in metrics.registry.subjects),
            ", ".join(s.value for s in metrics.registry.subjects) or "no subject kind",
        )
        return metrics
