"""
Path and Disk Resolution

Turns command line path and disk arguments into a share-relative path and a
pair of validated volumes. Nothing here touches the filesystem beyond stat calls.
"""

import logging
import os
import posixpath
import re
from pathlib import Path, PurePosixPath

from diskmv.exceptions import InvalidDisk, InvalidPath, SameDisk

logger = logging.getLogger(__name__)

DEFAULT_MOUNT_ROOT = "/mnt"
SHARE_ROOT_NAME = "user"

# Array members disk1..disk30 and the cache volume
DISK_NAME_PATTERN = re.compile(r"^(disk([1-9]|[12][0-9]|30)|cache)$")

# Mount point names that may prefix a real path: user shares and volumes
_SHARE_VIEWS = ("user", "user0")


def is_disk_name(name):
    return bool(DISK_NAME_PATTERN.match(name))


class Volume:
    """A disk identifier bound to its mount point"""

    def __init__(self, name, path):
        self.name = name
        self.path = Path(path)

    def __eq__(self, other):
        return (
            isinstance(other, Volume)
            and self.name == other.name
            and self.path == other.path
        )

    def __hash__(self):
        return hash((self.name, self.path))

    def __repr__(self):
        return f"Volume({self.name!r}, {str(self.path)!r})"

    def __str__(self):
        return self.name


class DiskLookup:
    """Maps disk names to mount points under a mount root"""

    def __init__(self, mount_root=DEFAULT_MOUNT_ROOT):
        self.mount_root = Path(mount_root)

    @property
    def share_root(self):
        return self.mount_root / SHARE_ROOT_NAME

    def mount_point(self, name):
        return self.mount_root / name

    def volumes(self):
        """Recognized volumes currently present under the mount root"""
        try:
            names = sorted(os.listdir(self.mount_root))
        except OSError as e:
            logger.debug(f"Cannot list mount root {self.mount_root}: {e}")
            return []
        return [
            Volume(name, self.mount_point(name))
            for name in names
            if is_disk_name(name) and self.mount_point(name).is_dir()
        ]

    def _real_mount_root(self):
        return Path(os.path.realpath(self.mount_root))

    def bare_name(self, value):
        """Strip the mount root and any trailing segments: /mnt/disk3/x -> disk3"""
        text = str(value)
        for root in (str(self.mount_root), str(self._real_mount_root())):
            root = root.rstrip("/")
            if root and (text == root or text.startswith(root + "/")):
                text = text[len(root) :]
                break
        segments = [part for part in text.split("/") if part]
        return segments[0] if segments else ""


def validate_disk(value, lookup):
    """Validate one disk argument and return its Volume"""
    name = lookup.bare_name(value)
    if not is_disk_name(name):
        raise InvalidDisk(f"Invalid disk name: {value!r} (expected disk1-disk30 or cache)")

    mount_point = lookup.mount_point(name)
    if not mount_point.is_dir():
        raise InvalidDisk(f"Disk is not mounted: {name} ({mount_point})")

    logger.debug(f"Disk {value!r} resolved to {mount_point}")
    return Volume(name, mount_point)


def validate_disks(source, dest, lookup):
    """Validate the source and destination disks, rejecting source == dest"""
    source_volume = validate_disk(source, lookup)
    dest_volume = validate_disk(dest, lookup)
    if source_volume.name == dest_volume.name:
        raise SameDisk(f"Source and destination are the same disk: {source_volume}")
    return source_volume, dest_volume


def _strip_volume(real_path, lookup):
    """Share-relative form of a real path below the mount root"""
    real_root = lookup._real_mount_root()
    try:
        relative = Path(real_path).relative_to(real_root)
    except ValueError:
        raise InvalidPath(f"Path is not inside a share under {lookup.mount_root}: {real_path}")

    parts = relative.parts
    if not parts or not (parts[0] in _SHARE_VIEWS or is_disk_name(parts[0])):
        raise InvalidPath(f"Path is not inside a share under {lookup.mount_root}: {real_path}")
    return PurePosixPath(*parts[1:])


def _normalize_share_relative(value):
    normalized = posixpath.normpath("/" + str(value).strip()).lstrip("/")
    if normalized in ("", "."):
        raise InvalidPath(f"Path does not name anything inside a share: {value!r}")
    return PurePosixPath(normalized)


def resolve_share_path(value, lookup):
    """
    Canonical share-relative path for a user-supplied path.

    An existing path (absolute, or relative to the working directory) is
    resolved through symlinks and stripped of its mount prefix. Anything else
    is taken as already share-relative. The result must exist under the share
    root or one of the recognized volumes.
    """
    if not str(value).strip():
        raise InvalidPath("Empty path")

    if os.path.lexists(value):
        share_path = _strip_volume(os.path.realpath(value), lookup)
    else:
        share_path = _normalize_share_relative(value)

    if ".." in share_path.parts:
        raise InvalidPath(f"Path escapes the share: {value!r}")
    if not share_path.parts:
        raise InvalidPath(f"Path names a volume root, not a share path: {value!r}")

    roots = [lookup.share_root] + [volume.path for volume in lookup.volumes()]
    if not any(os.path.lexists(root / share_path) for root in roots):
        raise InvalidPath(f"Path does not exist in any share: {share_path}")

    logger.debug(f"Path {value!r} resolved to share path {share_path}")
    return share_path
