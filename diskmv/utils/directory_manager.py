"""
Directory Manager for diskmv

Creates destination directories on demand, mirroring the owner, mode and
timestamps of the matching source directories, with caching to avoid
redundant operations.
"""

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def mirror_metadata(source, dest):
    """Copy numeric owner/group, mode, timestamps and xattrs from source to dest"""
    source_stat = os.lstat(source)
    try:
        os.chown(dest, source_stat.st_uid, source_stat.st_gid, follow_symlinks=False)
    except PermissionError:
        logger.warning(
            f"Could not preserve ownership {source_stat.st_uid}:{source_stat.st_gid} for {dest}"
        )
    # After chown: changing owner can clear setuid/setgid bits
    if os.path.islink(dest):
        try:
            shutil.copystat(source, dest, follow_symlinks=False)
        except NotImplementedError:
            logger.debug(f"Cannot set symlink timestamps on this platform: {dest}")
    else:
        shutil.copystat(source, dest)


class DirectoryManager:
    """Directory creation and caching to avoid redundant operations"""

    def __init__(self, source_root, dest_root, dry_run=False):
        self.source_root = Path(source_root)
        self.dest_root = Path(dest_root)
        self.dry_run = dry_run
        self.created_dirs = set()

    def _source_for(self, path):
        return self.source_root / path.relative_to(self.dest_root)

    def ensure_directory(self, path):
        """Create path and any missing parents below the destination root"""
        path = Path(path)
        if path in self.created_dirs or path.is_dir():
            return

        missing = []
        current = path
        while current != self.dest_root and not current.is_dir():
            missing.append(current)
            current = current.parent

        for directory in reversed(missing):
            if not self.dry_run:
                directory.mkdir()
                source = self._source_for(directory)
                if source.is_dir():
                    mirror_metadata(source, directory)
                logger.debug(f"Created directory: {directory}")
            self.created_dirs.add(directory)
