from .filters import CandidateEntry, EntryKind, FilterSet, Verdict, walk_post_order
from .mover import DiskMover, MoveResult
from .policy import MoveOutcome, MovePolicy
from .resolver import DiskLookup, Volume, resolve_share_path, validate_disk, validate_disks

__all__ = [
    "CandidateEntry",
    "EntryKind",
    "FilterSet",
    "Verdict",
    "walk_post_order",
    "DiskMover",
    "MoveResult",
    "MoveOutcome",
    "MovePolicy",
    "DiskLookup",
    "Volume",
    "resolve_share_path",
    "validate_disk",
    "validate_disks",
]
