"""
Label sets: immutable identity of one observed kernel object.

Frozen dataclasses: equality and hash cover every field, which makes a label set
the join key between a family and its per-instance value. Field order is the
label order in the exposition text.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

from bpf_metrics.models.contracts import Snapshot


class LabelSet:
    # label carrying the object name, if the shape has one; empty names are filtered
    name_label: ClassVar[str | None] = None

    @classmethod
    def label_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))  # type: ignore[arg-type]

    def label_values(self) -> tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self.label_names())

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self.label_names(), self.label_values()))

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "LabelSet":
        raise NotImplementedError


@dataclass(frozen=True, order=True)
class ProgLabels(LabelSet):
    """Labels of a program metric."""
    name_label: ClassVar[str | None] = "name"

    id: int
    program_type: str
    name: str
    tag: int = 0  # digest of the program's instructions

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "ProgLabels":
        return cls(
            id=snapshot.id,
            program_type=snapshot.type_name,
            name=snapshot.name,
            tag=snapshot.tag or 0,
        )


@dataclass(frozen=True, order=True)
class MapLabels(LabelSet):
    """Labels of a map metric."""
    name_label: ClassVar[str | None] = "name"

    id: int
    map_type: str
    name: str

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "MapLabels":
        return cls(id=snapshot.id, map_type=snapshot.type_name, name=snapshot.name)


@dataclass(frozen=True, order=True)
class LinkLabels(LabelSet):
    """Labels of a link metric. Links are identified by the program they attach."""

    id: int
    link_type: str
    prog_id: int

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "LinkLabels":
        return cls(
            id=snapshot.id,
            link_type=snapshot.type_name,
            prog_id=snapshot.value_of("prog_id") or 0,
        )
