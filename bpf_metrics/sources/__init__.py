from .base import SnapshotRecord, SnapshotSource, StaticSource
from .bpftool import BpftoolSource

__all__ = ["SnapshotRecord", "SnapshotSource", "StaticSource", "BpftoolSource"]
