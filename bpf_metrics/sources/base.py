"""Data-source interface and an in-memory implementation."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping, Protocol, Union

from bpf_metrics.models.contracts import Snapshot

if TYPE_CHECKING:
    from bpf_metrics.registry.kinds import SubjectKind

SnapshotRecord = Union[Snapshot, Mapping[str, Any]]


class SnapshotSource(Protocol):
    """
    Anything able to list the kernel objects of one subject kind.

    Records may be ``Snapshot`` instances or plain mappings in the same shape;
    mappings are validated by the registry and dropped individually when invalid.
    Raising from ``list_snapshots`` (or while iterating its result) fails the
    whole subject kind for the current cycle.
    """

    def list_snapshots(self, subject: SubjectKind) -> Iterable[SnapshotRecord]:
        ...


class StaticSource:
    """Serves fixed records per subject kind; replaces the kernel in tests and replays."""

    def __init__(self, records: Mapping[SubjectKind, Iterable[SnapshotRecord]] | None = None):
        self._records: dict[SubjectKind, list[SnapshotRecord]] = {
            subject: list(items) for subject, items in (records or {}).items()
        }

    def set(self, subject: SubjectKind, records: Iterable[SnapshotRecord]) -> None:
        self._records[subject] = list(records)

    def list_snapshots(self, subject: SubjectKind) -> list[SnapshotRecord]:
        return list(self._records.get(subject, ()))
