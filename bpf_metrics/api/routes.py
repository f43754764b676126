"""
FastAPI routes of the exporter.

GET /metrics   run one collect/export cycle and return the OpenMetrics payload
"""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Response, status

from bpf_metrics.api.metrics import ADAPTER_ERRORS_TOTAL, SCRAPE_DURATION, SCRAPES_TOTAL
from bpf_metrics.errors import EncodeError
from bpf_metrics.exposition.encoder import CONTENT_TYPE
from bpf_metrics.facade import BpfMetrics

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_bpf_metrics() -> BpfMetrics:
    return BpfMetrics.from_settings()


@router.get(
    "/metrics",
    tags=["metrics"],
    summary="Scrape BPF program, map and link metrics",
)
def get_metrics(metrics: BpfMetrics = Depends(get_bpf_metrics)) -> Response:
    """
    Collects every registered metric and returns it in the OpenMetrics text format.

    A failing data source drops only its own subject kind from the payload.
    """
    try:
        with SCRAPE_DURATION.time():
            result = metrics.scrape()
    except EncodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    SCRAPES_TOTAL.inc()
    for err in result.errors:
        ADAPTER_ERRORS_TOTAL.labels(subject=err.subject).inc()

    return Response(content=result.payload, media_type=CONTENT_TYPE)
