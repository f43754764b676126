"""Prometheus/OpenMetrics exporter for BPF programs, maps and links."""
from bpf_metrics.errors import (
    AdapterError,
    BpfMetricsError,
    ConfigurationError,
    EncodeError,
    ParseError,
)
from bpf_metrics.facade import BpfMetrics, ScrapeResult
from bpf_metrics.registry import LinkMetric, MapMetric, MetricRegistry, MetricType, ProgMetric

__all__ = [
    "BpfMetrics",
    "ScrapeResult",
    "MetricRegistry",
    "MetricType",
    "ProgMetric",
    "MapMetric",
    "LinkMetric",
    "BpfMetricsError",
    "AdapterError",
    "ConfigurationError",
    "EncodeError",
    "ParseError",
]
