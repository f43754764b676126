"""FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from bpf_metrics.api.routes import router
from bpf_metrics.config import get_settings
from bpf_metrics.errors import AdapterError
from bpf_metrics.stats import disable_stats_procfs, enable_stats_procfs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    stats_enabled = False
    if settings.enable_stats:
        try:
            enable_stats_procfs(settings.stats_procfs_path)
            stats_enabled = True
        except AdapterError as exc:
            # run-time metrics stay absent, everything else is still exported
            logger.warning("Could not enable BPF statistics: %s", exc)
    yield
    if stats_enabled:
        disable_stats_procfs(settings.stats_procfs_path)


app = FastAPI(
    title="BPF Metrics Exporter",
    description=(
        "Exposes loaded BPF programs, maps and links as Prometheus metrics "
        "in the OpenMetrics text format."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# Exporter self-metrics; /metrics itself serves the BPF families
app.mount("/internal/metrics", make_asgi_app())

app.include_router(router)


@app.get("/health", tags=["system"])
async def health_check():
    return {"status": "ok"}
