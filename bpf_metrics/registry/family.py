"""One metric family: the labeled values of a single MetricKind."""
from __future__ import annotations

from typing import Iterable, Iterator

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from bpf_metrics.models.labels import LabelSet
from bpf_metrics.registry.kinds import MetricKind, MetricSpec, MetricType


class MetricFamily(Collector):
    """
    LabelSet → value map exposed to a ``CollectorRegistry`` as a custom collector.

    Values are absolute readings from the data source; the family never
    accumulates. Entries only live until the next ``clear()``.
    """

    def __init__(
        self,
        kind: MetricKind,
        spec: MetricSpec,
        base_name: str,
        label_cls: type[LabelSet],
    ):
        self.kind = kind
        self.spec = spec
        self.base_name = base_name
        self.label_cls = label_cls
        self._values: dict[LabelSet, int] = {}

    @property
    def metric_type(self) -> MetricType:
        return self.spec.metric_type

    @property
    def name(self) -> str:
        """Exposed family name, unit suffix included."""
        unit = self.spec.unit
        if unit and not self.base_name.endswith("_" + unit):
            return f"{self.base_name}_{unit}"
        return self.base_name

    def set(self, labels: LabelSet, value: int) -> None:
        self._values[labels] = value

    def get(self, labels: LabelSet) -> int | None:
        return self._values.get(labels)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)

    def items(self) -> list[tuple[LabelSet, int]]:
        """Entries sorted by label set, independent of update order."""
        return sorted(self._values.items(), key=lambda item: item[0])

    def _build(self, items: Iterable[tuple[LabelSet, int]]) -> Metric:
        label_names = self.label_cls.label_names()
        if self.spec.metric_type is MetricType.COUNTER:
            family: Metric = CounterMetricFamily(
                self.base_name, self.spec.help, labels=label_names, unit=self.spec.unit,
            )
        else:
            family = GaugeMetricFamily(
                self.base_name, self.spec.help, labels=label_names, unit=self.spec.unit,
            )
        for labels, value in items:
            family.add_metric([str(v) for v in labels.label_values()], value)
        return family

    # ── prometheus_client collector protocol ────────────────────────────────

    def describe(self) -> Iterator[Metric]:
        yield self._build(())

    def collect(self) -> Iterator[Metric]:
        yield self._build(self.items())
