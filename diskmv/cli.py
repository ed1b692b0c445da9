#!/usr/bin/env python3
"""
diskmv - move a share path from one array disk to another

Copies every selected file, symlink and emptied directory of a share path from
the source disk to the same share path on the destination disk, and removes the
source only after its copy succeeded. Runs in test mode unless -f is given.

Usage:
    diskmv [options] PATH SRCDISK DESTDISK
    diskmv movies/Foo disk2 disk5            # preview only
    diskmv -f movies/Foo disk2 disk5         # move for real
    diskmv -f -s 1024 -e mkv,srt /mnt/user/movies disk2 cache
"""

import argparse
import logging
import os
import sys

from diskmv import __version__
from diskmv.core import DiskLookup, DiskMover, MovePolicy
from diskmv.core.resolver import DEFAULT_MOUNT_ROOT, resolve_share_path, validate_disks
from diskmv.exceptions import UsageError

# Configure logging
logging.basicConfig(
    level=logging.WARNING, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit status 1"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def kilobytes(value):
    try:
        size = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size in kilobytes: {value!r}")
    if size < 0:
        raise argparse.ArgumentTypeError(f"size must not be negative: {value!r}")
    return size


def build_parser():
    parser = ArgumentParser(
        prog="diskmv",
        description="Move a share path from one disk to another, "
        "removing the source only after a successful copy",
        epilog="Example: diskmv -f movies/Foo disk2 disk5",
    )
    parser.add_argument("path", help="Share path: /mnt/user/..., /mnt/diskN/... or share-relative")
    parser.add_argument("srcdisk", help="Source disk, e.g. disk2 or /mnt/disk2")
    parser.add_argument("destdisk", help="Destination disk, e.g. disk5 or cache")
    parser.add_argument(
        "-t",
        "--test",
        dest="dry_run",
        action="store_const",
        const=True,
        default=True,
        help="Test mode: only report what would happen (default)",
    )
    parser.add_argument(
        "-f",
        "--force",
        dest="dry_run",
        action="store_const",
        const=False,
        help="Actually move files",
    )
    parser.add_argument(
        "-k",
        "--keepsource",
        action="store_true",
        help="Do not remove the source after a successful copy",
    )
    parser.add_argument(
        "-l", "--links", action="store_true", help="Copy symlinks as symlinks (default: skip them)"
    )
    parser.add_argument(
        "-c", "--clobber", action="store_true", help="Overwrite files that already exist on the destination"
    )
    parser.add_argument(
        "-s",
        "--small",
        type=kilobytes,
        metavar="N",
        help="Only move files of at most N kilobytes",
    )
    parser.add_argument(
        "-e",
        "--extension",
        metavar="LIST",
        help="Only move files with an extension in the comma-separated LIST",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More output (repeatable)"
    )
    parser.add_argument(
        "-q", "--quiet", action="count", default=0, help="Less output (repeatable)"
    )
    parser.add_argument(
        "--mount-root",
        default=DEFAULT_MOUNT_ROOT,
        metavar="DIR",
        help=f"Directory holding the disk and user share mounts (default: {DEFAULT_MOUNT_ROOT})",
    )
    parser.add_argument("--version", action="version", version=f"diskmv {__version__}")
    return parser


def _log_level(verbosity):
    if verbosity >= 3:
        return logging.DEBUG
    if verbosity == 2:
        return logging.INFO
    if verbosity == 1:
        return logging.WARNING
    return logging.ERROR


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        policy = MovePolicy.from_args(args)
    except ValueError as e:
        parser.error(str(e))

    logging.getLogger().setLevel(_log_level(policy.verbosity))

    lookup = DiskLookup(args.mount_root)
    try:
        share_path = resolve_share_path(args.path, lookup)
        source, dest = validate_disks(args.srcdisk, args.destdisk, lookup)
    except UsageError as e:
        parser.error(str(e))

    if not policy.dry_run and os.geteuid() != 0:
        logger.warning("Not running as root: ownership may not be preserved")

    try:
        mover = DiskMover(share_path, source, dest, policy)
        mover.move()
    except UsageError as e:
        parser.error(str(e))
    except KeyboardInterrupt:
        logger.error("Interrupted: entries already moved stay moved, re-run to continue")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        logger.debug("Fatal error detail", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
