"""
Disk Mover

Moves the entries of one share path from a source volume to a destination
volume: copy first, then remove the source only once the copy succeeded.
"""

import logging
import os
import shutil
import stat

from diskmv.core.filters import EntryKind, FilterSet, Verdict, walk_post_order
from diskmv.core.policy import MoveOutcome
from diskmv.exceptions import InsufficientSpace
from diskmv.utils.busy import BusyChecker
from diskmv.utils.directory_manager import DirectoryManager, mirror_metadata
from diskmv.utils.reporter import RunReporter

logger = logging.getLogger(__name__)

_SKIP_OUTCOMES = {
    Verdict.SKIP_BUSY: MoveOutcome.SKIPPED_BUSY,
    Verdict.SKIP_DUPLICATE: MoveOutcome.SKIPPED_DUPLICATE,
    Verdict.SKIP_FILTERED: MoveOutcome.SKIPPED_FILTERED,
}


class MoveResult:
    """What happened to one entry"""

    def __init__(self, entry, share_path, outcome, reason=None, changes=()):
        self.entry = entry
        self.share_path = share_path
        self.outcome = outcome
        self.reason = reason
        self.changes = list(changes)

    def __repr__(self):
        return f"MoveResult({str(self.share_path)!r}, {self.outcome.value})"


def describe_changes(source, dest):
    """Attributes that differ between source and an existing dest"""
    if not os.path.lexists(dest):
        return ["new"]

    src_stat = os.lstat(source)
    dst_stat = os.lstat(dest)
    if stat.S_IFMT(src_stat.st_mode) != stat.S_IFMT(dst_stat.st_mode):
        return ["type"]

    changes = []
    if stat.S_ISLNK(src_stat.st_mode):
        if os.readlink(source) != os.readlink(dest):
            changes.append("target")
    elif stat.S_ISREG(src_stat.st_mode) and src_stat.st_size != dst_stat.st_size:
        changes.append("size")
    if int(src_stat.st_mtime) != int(dst_stat.st_mtime):
        changes.append("mtime")
    if stat.S_IMODE(src_stat.st_mode) != stat.S_IMODE(dst_stat.st_mode):
        changes.append("mode")
    if src_stat.st_uid != dst_stat.st_uid:
        changes.append("owner")
    if src_stat.st_gid != dst_stat.st_gid:
        changes.append("group")
    return changes


class DiskMover:
    """Walks a share path on the source volume and moves what the filters allow"""

    def __init__(
        self,
        share_path,
        source,
        dest,
        policy,
        busy_check=None,
        reporter=None,
    ):
        self.share_path = share_path
        self.source = source
        self.dest = dest
        self.policy = policy

        self.source_path = source.path / share_path
        self.vacated = set()
        self.filters = FilterSet(
            policy,
            source.path,
            dest.path,
            busy_check if busy_check is not None else BusyChecker(),
            self.vacated,
        )
        self.dir_manager = DirectoryManager(source.path, dest.path, policy.dry_run)
        self.reporter = reporter if reporter is not None else RunReporter(policy)
        self.results = []

    def _space_needed(self, entry):
        """Bytes the destination grows by when entry is copied"""
        destination = self.filters.destination_for(entry.path)
        if not os.path.lexists(destination):
            return entry.size
        if not self.policy.clobber:
            # Skipped as a duplicate
            return 0
        if destination.is_file() and not destination.is_symlink():
            return max(0, entry.size - destination.stat().st_size)
        return entry.size

    def _validate_space(self):
        """Check the selected files fit on the destination volume"""
        needed = sum(
            self._space_needed(entry)
            for entry in walk_post_order(self.source_path)
            if entry.kind is EntryKind.FILE and self.filters.selects(entry)
        )
        try:
            free = shutil.disk_usage(self.dest.path).free
        except OSError as e:
            raise RuntimeError(f"Cannot check destination space: {e}")

        logger.info(f"Selected files need {needed:,} bytes, {self.dest} has {free:,} free")
        if needed > free:
            message = (
                f"Insufficient space on {self.dest}: need {needed:,} bytes, "
                f"have {free:,} available"
            )
            if self.policy.dry_run:
                logger.warning(message)
            else:
                raise InsufficientSpace(message)

    def copy_entry(self, entry, destination):
        """Replicate one entry at destination, without recursing into directories"""
        self.dir_manager.ensure_directory(destination.parent)

        if entry.kind is EntryKind.DIRECTORY:
            if os.path.lexists(destination) and (
                destination.is_symlink() or not destination.is_dir()
            ):
                destination.unlink()
            if not destination.is_dir():
                destination.mkdir()
        elif entry.kind is EntryKind.SYMLINK:
            if os.path.lexists(destination):
                destination.unlink()
            os.symlink(os.readlink(entry.path), destination)
        else:
            # Overwrite in place, but never write through a symlink
            if destination.is_symlink():
                destination.unlink()
            shutil.copyfile(entry.path, destination)

        mirror_metadata(entry.path, destination)

    def remove_source(self, entry):
        if entry.kind is EntryKind.DIRECTORY:
            entry.path.rmdir()
        else:
            entry.path.unlink()

    def process(self, entry):
        """Evaluate one entry and act on it"""
        share_path = entry.path.relative_to(self.source.path)
        verdict, reason = self.filters.evaluate(entry)
        if verdict is not Verdict.ELIGIBLE:
            return MoveResult(entry, share_path, _SKIP_OUTCOMES[verdict], reason)

        destination = self.filters.destination_for(entry.path)
        changes = []
        if self.policy.verbosity >= 2:
            try:
                changes = describe_changes(entry.path, destination)
            except OSError as e:
                logger.error(f"Cannot inspect {entry.path}: {e}")
                return MoveResult(entry, share_path, MoveOutcome.FAILED, f"cannot inspect: {e}")

        if self.policy.dry_run:
            if self.policy.vacates_source:
                self.vacated.add(entry.path)
            return MoveResult(
                entry, share_path, MoveOutcome.DRY_RUN_WOULD_MOVE, changes=changes
            )

        try:
            self.copy_entry(entry, destination)
        except (OSError, shutil.Error) as e:
            logger.error(f"Copy failed: {entry.path} → {destination}: {e}")
            logger.debug("Copy failure detail", exc_info=True)
            return MoveResult(entry, share_path, MoveOutcome.FAILED, f"copy failed: {e}")

        if self.policy.deletes_source:
            try:
                self.remove_source(entry)
            except OSError as e:
                logger.error(f"Remove failed: {entry.path}: {e}")
                return MoveResult(
                    entry,
                    share_path,
                    MoveOutcome.FAILED,
                    f"copied, source not removed: {e}",
                    changes,
                )
            self.vacated.add(entry.path)

        return MoveResult(entry, share_path, MoveOutcome.MOVED, changes=changes)

    def move(self):
        """Execute the run and return the per-entry results"""
        if not os.path.lexists(self.source_path):
            self.reporter.start(self.share_path, self.source, self.dest)
            self.reporter.nothing_to_move(self.share_path, self.source)
            self.reporter.finish()
            return self.results

        self._validate_space()
        self.reporter.start(self.share_path, self.source, self.dest)

        for entry in walk_post_order(self.source_path):
            result = self.process(entry)
            self.results.append(result)
            self.reporter.entry(result)

        self.reporter.finish()
        return self.results
