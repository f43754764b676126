from .contracts import Snapshot
from .labels import LabelSet, LinkLabels, MapLabels, ProgLabels
from .records import ProgramRecord

__all__ = [
    "Snapshot",
    "LabelSet",
    "ProgLabels",
    "MapLabels",
    "LinkLabels",
    "ProgramRecord",
]
