from .busy import BusyChecker
from .directory_manager import DirectoryManager, mirror_metadata
from .reporter import RunReporter

__all__ = ["BusyChecker", "DirectoryManager", "mirror_metadata", "RunReporter"]
