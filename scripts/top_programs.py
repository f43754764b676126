#!/usr/bin/env python
"""
scripts/top_programs.py

top-like view of BPF programs: decodes successive scrapes and ranks programs by
CPU share of the last interval (run-time delta / elapsed load time).

Usage:
    python -m scripts.top_programs [--interval SECONDS] [--limit N]
"""
from __future__ import annotations

import argparse
import logging
import sys
import time

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("top_programs")

HEADER = f"{'ID':>6}  {'TYPE':<16} {'NAME':<20} {'CPU%':>7} {'EVENTS/s':>10} {'AVG ns':>10}"


def format_rows(records: dict, limit: int = 20) -> list[str]:
    """Render records sorted by run-time delta, busiest first."""
    rows = []
    ranked = sorted(records.values(), key=lambda r: r.run_time_delta_ns, reverse=True)
    for rec in ranked[:limit]:
        period = rec.period_ns
        cpu = 100.0 * rec.run_time_delta_ns / period if period > 0 else 0.0
        rate = rec.run_cnt_delta * 1e9 / period if period > 0 else 0.0
        avg = rec.run_time_delta_ns // rec.run_cnt_delta if rec.run_cnt_delta else 0
        rows.append(
            f"{rec.id:>6}  {rec.bpf_type:<16.16} {rec.name:<20.20} "
            f"{cpu:>6.2f}% {rate:>10.1f} {avg:>10}"
        )
    return rows


def main(interval: float | None = None, limit: int = 20, count: int = 0) -> int:
    from bpf_metrics.config import get_settings
    from bpf_metrics.exposition.decoder import decode
    from bpf_metrics.facade import BpfMetrics
    from bpf_metrics.registry.kinds import ProgMetric
    from bpf_metrics.sources.bpftool import BpftoolSource

    settings = get_settings()
    interval = settings.print_interval_seconds if interval is None else interval
    source = BpftoolSource(settings.bpftool_path, settings.bpftool_timeout_seconds)
    metrics = BpfMetrics(source, prefix=settings.registry_prefix)
    metrics.register_prog_metrics([ProgMetric.UPTIME, ProgMetric.RUN_TIME, ProgMetric.RUN_COUNT])

    previous: dict = {}
    shown = 0
    while not count or shown < count:
        result = metrics.scrape()
        for err in result.errors:
            logger.warning("%s", err)
        records = decode(result.payload, previous, prefix=f"{settings.registry_prefix}_prog")
        if previous:
            sys.stdout.write("\n".join([HEADER, *format_rows(records, limit)]) + "\n\n")
            sys.stdout.flush()
            shown += 1
        previous = records
        time.sleep(interval)
    return shown


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rank BPF programs by CPU usage")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between scrapes")
    parser.add_argument("--limit", type=int, default=20, help="Rows to display")
    args = parser.parse_args()
    try:
        main(args.interval, args.limit)
    except KeyboardInterrupt:
        pass
    sys.exit(0)
