"""Metric collection: the families registered for one subject kind."""
from __future__ import annotations

from bpf_metrics.errors import ConfigurationError
from bpf_metrics.models.labels import LabelSet
from bpf_metrics.registry.family import MetricFamily
from bpf_metrics.registry.kinds import MetricKind, MetricSpec, MetricType, SubjectKind


class MetricCollection:
    """
    Counter and gauge families of one subject kind, keyed by MetricKind.

    Every family shares the subject's label set shape and name prefix
    (``<registry_prefix>_<subject>``).
    """

    def __init__(self, subject: SubjectKind, label_cls: type[LabelSet], prefix: str):
        self.subject = subject
        self.label_cls = label_cls
        self.prefix = prefix
        self._families: dict[MetricKind, MetricFamily] = {}

    def __contains__(self, kind: object) -> bool:
        return kind in self._families

    def __len__(self) -> int:
        return len(self._families)

    @property
    def counters(self) -> dict[MetricKind, MetricFamily]:
        return {k: f for k, f in self._families.items() if f.metric_type is MetricType.COUNTER}

    @property
    def gauges(self) -> dict[MetricKind, MetricFamily]:
        return {k: f for k, f in self._families.items() if f.metric_type is MetricType.GAUGE}

    def families(self) -> list[MetricFamily]:
        """Families in registration order."""
        return list(self._families.values())

    def family(self, kind: MetricKind) -> MetricFamily | None:
        return self._families.get(kind)

    def register(
        self,
        kind: MetricKind,
        metric_type: MetricType,
        name: str,
        help: str,
        unit: str = "",
    ) -> MetricFamily:
        if kind in self._families:
            raise ConfigurationError(f"{self.subject.value} metric {kind.name} already registered")
        family = MetricFamily(
            kind,
            MetricSpec(name=name, help=help, unit=unit, metric_type=MetricType(metric_type)),
            f"{self.prefix}_{name}",
            self.label_cls,
        )
        self._families[kind] = family
        return family

    def unregister(self, kind: MetricKind) -> None:
        self._families.pop(kind, None)

    def update(self, kind: MetricKind, labels: LabelSet, value: int) -> bool:
        """
        Store ``value`` for ``labels``; last write wins within a cycle.

        Returns False (and does nothing) when ``kind`` is not registered.
        """
        family = self._families.get(kind)
        if family is None:
            return False
        if type(labels) is not self.label_cls:
            raise ConfigurationError(
                f"{self.subject.value} metrics take {self.label_cls.__name__}, "
                f"got {type(labels).__name__}"
            )
        family.set(labels, value)
        return True

    def clear(self) -> None:
        for family in self._families.values():
            family.clear()
