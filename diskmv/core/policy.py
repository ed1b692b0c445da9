"""
Move Policy

Immutable run configuration built once from the command line, and the
per-entry outcomes the run can produce.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional


class MoveOutcome(Enum):
    MOVED = "moved"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    SKIPPED_BUSY = "skipped-busy"
    SKIPPED_FILTERED = "skipped-filtered"
    DRY_RUN_WOULD_MOVE = "dry-run-would-move"
    FAILED = "failed"


def parse_extensions(value):
    """Turn 'mkv, .MP4,avi' into frozenset({'mkv', 'mp4', 'avi'})"""
    extensions = frozenset(
        part.strip().lstrip(".").lower() for part in value.split(",") if part.strip()
    )
    if not extensions:
        raise ValueError(f"No extensions in list: {value!r}")
    return extensions


@dataclass(frozen=True)
class MovePolicy:
    dry_run: bool = True
    keep_source: bool = False
    copy_symlinks: bool = False
    clobber: bool = False
    max_size_bytes: Optional[int] = None
    allowed_extensions: Optional[FrozenSet[str]] = None
    verbosity: int = 1

    @property
    def deletes_source(self):
        """True when a successful copy is followed by removing the source"""
        return not self.dry_run and not self.keep_source

    @property
    def vacates_source(self):
        """True when moved entries leave the source, for real or in preview"""
        return not self.keep_source

    @classmethod
    def from_args(cls, args):
        max_size = args.small * 1024 if args.small is not None else None
        extensions = parse_extensions(args.extension) if args.extension is not None else None
        return cls(
            dry_run=args.dry_run,
            keep_source=args.keepsource,
            copy_symlinks=args.links,
            clobber=args.clobber,
            max_size_bytes=max_size,
            allowed_extensions=extensions,
            verbosity=1 + args.verbose - args.quiet,
        )
