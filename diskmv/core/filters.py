"""
Entry Filters

Decides, entry by entry, whether something under the share path may move.

Gates run in a fixed order and the first one that objects decides the verdict:
type, size, extension, busy, duplicate. Directories are only considered once
everything inside them has been handled, which is why the walk is post-order.
"""

import logging
import os
import stat
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


class Verdict(Enum):
    ELIGIBLE = "eligible"
    SKIP_BUSY = "skip-busy"
    SKIP_DUPLICATE = "skip-duplicate"
    SKIP_FILTERED = "skip-filtered"


class CandidateEntry:
    """One filesystem object met during the walk"""

    def __init__(self, path, kind, size=0):
        self.path = Path(path)
        self.kind = kind
        self.size = size

    @classmethod
    def from_path(cls, path):
        st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode):
            kind = EntryKind.SYMLINK
        elif stat.S_ISDIR(st.st_mode):
            kind = EntryKind.DIRECTORY
        elif stat.S_ISREG(st.st_mode):
            kind = EntryKind.FILE
        else:
            kind = EntryKind.OTHER
        return cls(path, kind, st.st_size)

    @property
    def extension(self):
        name = self.path.name
        if "." not in name.lstrip("."):
            return ""
        return name.rsplit(".", 1)[1].lower()

    def __repr__(self):
        return f"CandidateEntry({str(self.path)!r}, {self.kind.value}, {self.size})"


def walk_post_order(root):
    """
    Yield every entry under root, children before their directory, root last.

    Directory symlinks are yielded as entries but never descended into.
    """
    root = Path(root)
    if root.is_symlink() or not root.is_dir():
        yield CandidateEntry.from_path(root)
        return

    def on_error(e):
        logger.error(f"Cannot read directory {e.filename}: {e.strerror}")

    def entries(current, dirs, files):
        paths = [current / name for name in sorted(files)]
        # os.walk lists symlinks to directories with the directories
        paths += [current / name for name in sorted(dirs) if (current / name).is_symlink()]
        paths.append(current)
        for path in paths:
            try:
                yield CandidateEntry.from_path(path)
            except FileNotFoundError:
                logger.debug(f"Vanished during walk: {path}")

    for current, dirs, files in os.walk(root, topdown=False, onerror=on_error):
        yield from entries(Path(current), dirs, files)


class TypeGate:
    """Files always, symlinks on request, directories once emptied"""

    def __init__(self, policy, vacated):
        self.copy_symlinks = policy.copy_symlinks
        self.vacated = vacated

    def _is_empty(self, directory):
        try:
            with os.scandir(directory) as it:
                return all(Path(item.path) in self.vacated for item in it)
        except OSError as e:
            logger.debug(f"Cannot list {directory}: {e}")
            return False

    def check(self, entry, destination):
        if entry.kind is EntryKind.FILE:
            return None
        if entry.kind is EntryKind.SYMLINK:
            if self.copy_symlinks:
                return None
            return Verdict.SKIP_FILTERED, "symlink, use -l to copy links"
        if entry.kind is EntryKind.DIRECTORY:
            if self._is_empty(entry.path):
                return None
            return Verdict.SKIP_FILTERED, "directory not empty"
        return Verdict.SKIP_FILTERED, "not a regular file, directory or symlink"


class SizeGate:
    def __init__(self, max_size_bytes):
        self.max_size_bytes = max_size_bytes

    def check(self, entry, destination):
        if entry.kind is EntryKind.FILE and entry.size > self.max_size_bytes:
            return (
                Verdict.SKIP_FILTERED,
                f"larger than {self.max_size_bytes // 1024} KB",
            )
        return None


class ExtensionGate:
    def __init__(self, allowed_extensions):
        self.allowed_extensions = allowed_extensions

    def check(self, entry, destination):
        if entry.kind is EntryKind.FILE and entry.extension not in self.allowed_extensions:
            return Verdict.SKIP_FILTERED, "extension not selected"
        return None


class BusyGate:
    def __init__(self, busy_check):
        self.busy_check = busy_check

    def check(self, entry, destination):
        if entry.kind is EntryKind.FILE and self.busy_check(entry.path):
            return Verdict.SKIP_BUSY, "in use by another process"
        return None


class DuplicateGate:
    """Existing non-directories block the move; existing directories merge"""

    def check(self, entry, destination):
        if not os.path.lexists(destination):
            return None
        if destination.is_dir() and not destination.is_symlink():
            return None
        return Verdict.SKIP_DUPLICATE, "exists on destination, overwrite denied"


class FilterSet:
    """Ordered gates compiled once from a MovePolicy"""

    def __init__(self, policy, source_root, dest_root, busy_check, vacated=None):
        self.source_root = Path(source_root)
        self.dest_root = Path(dest_root)
        self.vacated = vacated if vacated is not None else set()

        self.gates = [TypeGate(policy, self.vacated)]
        if policy.max_size_bytes is not None:
            self.gates.append(SizeGate(policy.max_size_bytes))
        if policy.allowed_extensions is not None:
            self.gates.append(ExtensionGate(policy.allowed_extensions))
        self.gates.append(BusyGate(busy_check))
        if not policy.clobber:
            self.gates.append(DuplicateGate())

    def selects(self, entry):
        """True if the size and extension gates let entry through"""
        return not any(
            gate.check(entry, None)
            for gate in self.gates
            if isinstance(gate, (SizeGate, ExtensionGate))
        )

    def destination_for(self, path):
        """Mirror of a source path on the destination volume"""
        return self.dest_root / Path(path).relative_to(self.source_root)

    def evaluate(self, entry):
        """Return (verdict, reason); reason is None for eligible entries"""
        destination = self.destination_for(entry.path)
        for gate in self.gates:
            result = gate.check(entry, destination)
            if result is not None:
                logger.debug(f"{entry.path}: {type(gate).__name__} -> {result[0].value}")
                return result
        return Verdict.ELIGIBLE, None
