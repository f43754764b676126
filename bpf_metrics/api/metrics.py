"""Self-instrumentation of the exporter (default prometheus_client registry)."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

# ── Counters ─────────────────────────────────────────────────────────────────

SCRAPES_TOTAL = Counter(
    "bpf_exporter_scrapes_total",
    "Total collect/export cycles served on /metrics",
)

ADAPTER_ERRORS_TOTAL = Counter(
    "bpf_exporter_adapter_errors_total",
    "Total subject kinds skipped because their data source failed",
    ["subject"],
)

# ── Histograms ────────────────────────────────────────────────────────────────

SCRAPE_DURATION = Histogram(
    "bpf_exporter_scrape_duration_seconds",
    "Duration of a collect/export cycle",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
