"""
Busy File Detection

Reports whether another process currently holds a file open.

The check and the copy that follows are separate steps: a process that opens
the file after the check is not noticed. Closing that window would need
cooperative locking with every writer on the share, which is not available.
Open handles are read from a snapshot of all processes that is reused for
max_age seconds, so the window can grow by up to max_age.
"""

import logging
import os
import time

import psutil

logger = logging.getLogger(__name__)


class BusyChecker:
    """Scans running processes for open handles on a file"""

    def __init__(self, ignore_pids=None, max_age=2.0):
        self.ignore_pids = set(ignore_pids or ()) | {os.getpid()}
        self.max_age = max_age
        self.denied_pids = set()
        self._snapshot = None
        self._taken_at = None

    def _open_paths(self, proc):
        try:
            return {item.path for item in proc.open_files()}
        except (psutil.NoSuchProcess, psutil.ZombieProcess):
            return set()
        except psutil.AccessDenied:
            if proc.pid not in self.denied_pids:
                self.denied_pids.add(proc.pid)
                logger.debug(f"Cannot inspect open files of pid {proc.pid}")
            return set()

    def snapshot(self):
        """Map of open path to holder PIDs, rescanned once older than max_age"""
        now = time.monotonic()
        if self._snapshot is not None and now - self._taken_at < self.max_age:
            return self._snapshot

        open_by = {}
        for proc in psutil.process_iter(["pid"]):
            if proc.pid in self.ignore_pids:
                continue
            for path in self._open_paths(proc):
                open_by.setdefault(path, []).append(proc.pid)
        self._snapshot = open_by
        self._taken_at = now
        logger.debug(f"Scanned processes: {len(open_by)} open path(s)")
        return open_by

    def holders(self, path):
        """PIDs of other processes holding path open"""
        return list(self.snapshot().get(os.path.realpath(path), ()))

    def is_busy(self, path):
        pids = self.holders(path)
        if pids:
            logger.debug(f"{path} is open by pid(s) {', '.join(map(str, pids))}")
        return bool(pids)

    __call__ = is_busy
