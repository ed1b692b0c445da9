"""
Run Reporter

Prints what the run did (or would do) for each entry, and a closing summary.
"""

import logging
import sys
from collections import Counter
from datetime import datetime

from diskmv.core.policy import MoveOutcome

logger = logging.getLogger(__name__)

TEST_MODE_NOTICE = "TEST MODE - no files will be moved, use -f to move"

_LABELS = {
    MoveOutcome.MOVED: "Moved",
    MoveOutcome.DRY_RUN_WOULD_MOVE: "Would move",
    MoveOutcome.SKIPPED_DUPLICATE: "Skipped duplicate",
    MoveOutcome.SKIPPED_BUSY: "Skipped busy",
    MoveOutcome.SKIPPED_FILTERED: "Skipped",
    MoveOutcome.FAILED: "Failed",
}

_KEEP_LABELS = {
    MoveOutcome.MOVED: "Copied",
    MoveOutcome.DRY_RUN_WOULD_MOVE: "Would copy",
}


class RunReporter:
    def __init__(self, policy, stream=None):
        self.policy = policy
        self.stream = stream if stream is not None else sys.stdout
        self.counts = Counter()

    def _print_action(self, message):
        """Print action with timestamp"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S,%f")[:-3]
        print(f"{timestamp} - {message}", file=self.stream, flush=True)

    def label(self, outcome):
        if self.policy.keep_source and outcome in _KEEP_LABELS:
            return _KEEP_LABELS[outcome]
        return _LABELS[outcome]

    def start(self, share_path, source, dest):
        if self.policy.dry_run:
            self._print_action(TEST_MODE_NOTICE)
        verb = "Copying" if self.policy.keep_source else "Moving"
        self._print_action(f"{verb} {share_path} from {source} to {dest}")

    def nothing_to_move(self, share_path, source):
        self._print_action(f"Nothing to move: {share_path} is not on {source}")

    def entry(self, result):
        self.counts[result.outcome] += 1
        if self.policy.verbosity < 1:
            return

        line = f"{self.label(result.outcome)}: {result.share_path}"
        if result.reason:
            line += f" ({result.reason})"
        self._print_action(line)

        if self.policy.verbosity >= 2 and result.changes:
            self._print_action(f"    changes: {', '.join(result.changes)}")

    def summary_text(self):
        parts = [
            f"{self.counts[outcome]} {outcome.value}"
            for outcome in MoveOutcome
            if self.counts[outcome]
        ]
        return ", ".join(parts) if parts else "no entries"

    def finish(self):
        if self.policy.dry_run:
            self._print_action(f"Test run completed: {self.summary_text()}")
            self._print_action(TEST_MODE_NOTICE)
        else:
            self._print_action(f"Move completed: {self.summary_text()}")
        if self.counts[MoveOutcome.FAILED]:
            logger.warning(f"{self.counts[MoveOutcome.FAILED]} entries failed, see above")
