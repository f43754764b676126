"""
Subject-kind adapters: snapshot → MetricKind updates.

Each subject kind contributes a label set shape and an update function; the
registry walks its subjects and dispatches on the SubjectKind tag.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from pydantic import ValidationError

from bpf_metrics.errors import AdapterError
from bpf_metrics.exposition.encoder import in_range
from bpf_metrics.models.contracts import Snapshot
from bpf_metrics.models.labels import LabelSet, LinkLabels, MapLabels, ProgLabels
from bpf_metrics.registry.collection import MetricCollection
from bpf_metrics.registry.kinds import LinkMetric, MapMetric, ProgMetric, SubjectKind

if TYPE_CHECKING:
    from bpf_metrics.sources.base import SnapshotSource

logger = logging.getLogger(__name__)

LABEL_SETS: dict[SubjectKind, type[LabelSet]] = {
    SubjectKind.PROG: ProgLabels,
    SubjectKind.MAP: MapLabels,
    SubjectKind.LINK: LinkLabels,
}

# MetricKind → Snapshot.numeric_fields key
PROG_FIELDS: dict[ProgMetric, str] = {
    ProgMetric.SIZE_JITTED: "bytes_jited",
    ProgMetric.SIZE_TRANSLATED: "bytes_xlated",
    ProgMetric.RUN_TIME: "run_time_ns",
    ProgMetric.RUN_COUNT: "run_cnt",
    ProgMetric.VERIFIED_INSTRUCTIONS: "verified_insns",
    ProgMetric.MEMORY_LOCKED: "bytes_memlock",
}

MAP_FIELDS: dict[MapMetric, str] = {
    MapMetric.KEY_SIZE: "bytes_key",
    MapMetric.VALUE_SIZE: "bytes_value",
    MapMetric.MAX_ENTRIES: "max_entries",
}

_MICROSECOND = timedelta(microseconds=1)


def uptime_ns(loaded_at: datetime | None, now: datetime) -> int | None:
    """Nanoseconds since ``loaded_at``; None when unknown or in the future."""
    if loaded_at is None or loaded_at > now:
        return None
    return (now - loaded_at) // _MICROSECOND * 1000


def _update_fields(
    collection: MetricCollection,
    labels: LabelSet,
    snapshot: Snapshot,
    table: dict,
) -> None:
    for kind, key in table.items():
        value = snapshot.value_of(key)
        if value is None:
            continue  # e.g. run-time stats disabled on the host
        family = collection.family(kind)
        if family is not None and not in_range(family.metric_type.value, value):
            logger.debug(
                "Skipping %s=%d for %s id=%d: outside the %s range",
                key, value, collection.subject.value, snapshot.id, family.metric_type.value,
            )
            continue
        collection.update(kind, labels, value)


def _update_prog(collection: MetricCollection, snapshot: Snapshot, now: datetime) -> None:
    labels = ProgLabels.from_snapshot(snapshot)
    uptime = uptime_ns(snapshot.loaded_at, now)
    if uptime is not None:
        collection.update(ProgMetric.UPTIME, labels, uptime)
    _update_fields(collection, labels, snapshot, PROG_FIELDS)


def _update_map(collection: MetricCollection, snapshot: Snapshot, now: datetime) -> None:
    labels = MapLabels.from_snapshot(snapshot)
    _update_fields(collection, labels, snapshot, MAP_FIELDS)


def _update_link(collection: MetricCollection, snapshot: Snapshot, now: datetime) -> None:
    collection.update(LinkMetric.ATTACHED, LinkLabels.from_snapshot(snapshot), 1)


_ADAPTERS: dict[SubjectKind, Callable[[MetricCollection, Snapshot, datetime], None]] = {
    SubjectKind.PROG: _update_prog,
    SubjectKind.MAP: _update_map,
    SubjectKind.LINK: _update_link,
}


def load_snapshots(subject: SubjectKind, source: SnapshotSource) -> list[Snapshot]:
    """
    Materialize and validate the listing of one subject kind.

    Invalid records are skipped; a failing listing raises AdapterError.
    """
    try:
        records = list(source.list_snapshots(subject))
    except AdapterError:
        raise
    except Exception as exc:
        raise AdapterError(subject.value, f"listing failed: {exc}") from exc

    snapshots: list[Snapshot] = []
    for record in records:
        if isinstance(record, Snapshot):
            snapshots.append(record)
            continue
        try:
            snapshots.append(Snapshot.model_validate(record))
        except ValidationError as exc:
            logger.debug("Skipping invalid %s record: %s", subject.value, exc)
    return snapshots


def collect_subject(
    collection: MetricCollection,
    source: SnapshotSource,
    now: datetime,
) -> int:
    """
    Run one collection pass for ``collection.subject``.

    The listing is fully loaded before any family is touched, so a failing
    source leaves the families as they were. Returns the number of snapshots
    applied.
    """
    subject = collection.subject
    update = _ADAPTERS[subject]
    name_required = LABEL_SETS[subject].name_label is not None

    applied = 0
    for snapshot in load_snapshots(subject, source):
        if name_required and not snapshot.name:
            # not fully initialized yet
            logger.debug("Skipping unnamed %s id=%d", subject.value, snapshot.id)
            continue
        update(collection, snapshot, now)
        applied += 1
    return applied
