#!/usr/bin/env python
"""
scripts/print_metrics.py

Prints one OpenMetrics payload per interval to stdout.

Usage:
    python -m scripts.print_metrics [--interval SECONDS] [--count N]
"""
from __future__ import annotations

import argparse
import logging
import sys
import time

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("print_metrics")


def main(interval: float | None = None, count: int = 0) -> int:
    from bpf_metrics.config import get_settings
    from bpf_metrics.facade import BpfMetrics

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    interval = settings.print_interval_seconds if interval is None else interval
    metrics = BpfMetrics.from_settings(settings)

    printed = 0
    while not count or printed < count:
        result = metrics.scrape()
        for err in result.errors:
            logger.warning("%s", err)
        sys.stdout.write(result.payload)
        sys.stdout.flush()
        printed += 1
        if not count or printed < count:
            time.sleep(interval)
    return printed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print BPF metrics periodically")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between scrapes")
    parser.add_argument("--count", type=int, default=0, help="Stop after N scrapes (0 = forever)")
    args = parser.parse_args()
    try:
        main(args.interval, args.count)
    except KeyboardInterrupt:
        pass
    sys.exit(0)
