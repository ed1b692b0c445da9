__version__ = "0.1.0"

from .core import DiskLookup, DiskMover, MovePolicy
from .utils import BusyChecker, DirectoryManager, RunReporter

__all__ = [
    "DiskLookup",
    "DiskMover",
    "MovePolicy",
    "BusyChecker",
    "DirectoryManager",
    "RunReporter",
]
