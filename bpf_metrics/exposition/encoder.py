"""
OpenMetrics text encoder.

Walks a ``CollectorRegistry`` in registration order and writes, per family:
HELP, TYPE, optional UNIT, then one sample line per label set. The payload ends
with ``# EOF``. Values are written as integers: counters unsigned 64-bit,
gauges signed 64-bit.
"""
from __future__ import annotations

from typing import Any, Iterable, Protocol

from prometheus_client.core import Metric

from bpf_metrics.errors import EncodeError

EOF_MARKER = "# EOF\n"
CONTENT_TYPE = "application/openmetrics-text; version=1.0.0; charset=utf-8"

_U64_MAX = 2**64 - 1
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


class SupportsCollect(Protocol):
    def collect(self) -> Iterable[Metric]:
        ...


def escape_label_value(value: str) -> str:
    return value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")


def escape_help(text: str) -> str:
    return text.replace("\\", r"\\").replace("\n", r"\n")


def format_labels(labels: dict[str, Any]) -> str:
    if not labels:
        return ""
    pairs = []
    for name, value in labels.items():
        if isinstance(value, int) and not isinstance(value, bool):
            pairs.append(f'{name}="{value}"')  # digits never need escaping
        else:
            pairs.append(f'{name}="{escape_label_value(str(value))}"')
    return "{" + ",".join(pairs) + "}"


def in_range(metric_type: str, value: int) -> bool:
    """Counters are unsigned 64-bit, gauges signed 64-bit."""
    if metric_type == "counter":
        return 0 <= value <= _U64_MAX
    return _I64_MIN <= value <= _I64_MAX


def format_value(metric_type: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodeError(f"expected an integer sample value, got {value!r}")
    if not in_range(metric_type, value):
        if metric_type == "counter":
            raise EncodeError(f"counter value {value} outside the unsigned 64-bit range")
        raise EncodeError(f"gauge value {value} outside the signed 64-bit range")
    return str(value)


def encode_family(metric: Metric) -> str:
    if metric.type not in ("counter", "gauge"):
        raise EncodeError(f"unsupported metric type '{metric.type}' for {metric.name}")
    lines = [
        f"# HELP {metric.name} {escape_help(metric.documentation)}\n",
        f"# TYPE {metric.name} {metric.type}\n",
    ]
    if metric.unit:
        lines.append(f"# UNIT {metric.name} {metric.unit}\n")
    for sample in metric.samples:
        lines.append(
            f"{sample.name}{format_labels(sample.labels)} "
            f"{format_value(metric.type, sample.value)}\n"
        )
    return "".join(lines)


def encode(registry: SupportsCollect) -> str:
    """Serialize every family of ``registry``; raises EncodeError on the first bad family."""
    output: list[str] = []
    try:
        for metric in registry.collect():
            output.append(encode_family(metric))
    except EncodeError:
        raise
    except Exception as exc:
        raise EncodeError(f"failed to collect metric families: {exc}") from exc
    output.append(EOF_MARKER)
    return "".join(output)
