"""
MetricRegistry: per-subject-kind metric collections behind one collector registry.

One collect → export pass per cycle. Both run under the same lock, so an
export never sees a half-written family and two cycles never interleave.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from prometheus_client import CollectorRegistry

from bpf_metrics.errors import AdapterError, ConfigurationError, EncodeError
from bpf_metrics.exposition.encoder import encode
from bpf_metrics.models.labels import LabelSet
from bpf_metrics.registry.adapters import LABEL_SETS, collect_subject
from bpf_metrics.registry.collection import MetricCollection
from bpf_metrics.registry.kinds import MetricKind, MetricType, SubjectKind, spec_for, subject_of

if TYPE_CHECKING:
    from bpf_metrics.sources.base import SnapshotSource

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class MetricRegistry:
    """
    Registry of counter and gauge families for programs, maps and links.

    Subject kinds are kept as a tagged list (SubjectKind → MetricCollection) in
    the order they were first registered; collection and export walk it
    explicitly.
    """

    def __init__(
        self,
        prefix: str = "bpf",
        source: SnapshotSource | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.prefix = prefix
        self.source = source
        self._clock = clock
        self._registry = CollectorRegistry()
        self._subjects: dict[SubjectKind, MetricCollection] = {}
        self.lock = threading.RLock()

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def subjects(self) -> list[SubjectKind]:
        return list(self._subjects)

    def collection(self, subject: SubjectKind) -> MetricCollection | None:
        return self._subjects.get(subject)

    def is_registered(self, kind: MetricKind) -> bool:
        collection = self._subjects.get(subject_of(kind))
        return collection is not None and kind in collection

    # ── registration ─────────────────────────────────────────────────────────

    def register(
        self,
        kind: MetricKind,
        metric_type: MetricType,
        name: str,
        help: str,
        unit: str = "",
    ) -> None:
        """Bind ``kind`` to an empty family; ConfigurationError if already bound."""
        subject = subject_of(kind)
        with self.lock:
            collection = self._subjects.get(subject)
            if collection is None:
                collection = self._subjects[subject] = MetricCollection(
                    subject, LABEL_SETS[subject], f"{self.prefix}_{subject.value}"
                )
            family = collection.register(kind, metric_type, name, help, unit)
            try:
                self._registry.register(family)
            except ValueError as exc:
                collection.unregister(kind)
                if not len(collection):
                    del self._subjects[subject]
                raise ConfigurationError(str(exc)) from exc
        logger.debug("Registered %s as %s (%s)", kind, family.name, family.metric_type.value)

    def register_kind(self, kind: MetricKind) -> None:
        """Register ``kind`` with its entry of the fixed metric table."""
        spec = spec_for(kind)
        self.register(kind, spec.metric_type, spec.name, spec.help, spec.unit)

    # ── cycle ────────────────────────────────────────────────────────────────

    def update(self, kind: MetricKind, labels: LabelSet, value: int) -> None:
        """Set the value of ``kind`` for ``labels``; silently ignored when unregistered."""
        subject = subject_of(kind)
        with self.lock:
            collection = self._subjects.get(subject)
            if collection is None:
                return
            collection.update(kind, labels, value)

    def collect_all(self) -> list[AdapterError]:
        """
        Run every registered subject kind's adapter once.

        A failing data source only loses its own subject kind for this cycle;
        the errors are returned, not raised.
        """
        if self.source is None:
            raise ConfigurationError("no data source attached to the registry")
        errors: list[AdapterError] = []
        with self.lock:
            now = self._clock()
            for subject, collection in self._subjects.items():
                try:
                    applied = collect_subject(collection, self.source, now)
                except AdapterError as exc:
                    logger.warning("Skipping %s metrics this cycle: %s", subject.value, exc)
                    errors.append(exc)
                    continue
                logger.debug("Collected %d %s snapshots", applied, subject.value)
        return errors

    def render_text(self) -> str:
        """Encode the current state without clearing it."""
        with self.lock:
            return encode(self._registry)

    def export_text(self) -> str:
        """
        Encode and clear every family: a scrape consumes the collected samples.

        Families are cleared even when encoding fails, so a bad value cannot
        leak into the next cycle.
        """
        with self.lock:
            try:
                return encode(self._registry)
            except EncodeError:
                logger.error("Export failed, dropping the collected samples", exc_info=True)
                raise
            finally:
                self.clear()

    def clear(self) -> None:
        with self.lock:
            for collection in self._subjects.values():
                collection.clear()
