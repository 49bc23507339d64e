"""
Observers for merge decisions.

The merge engine reports every link, copy and delete decision to a listener.
Listeners only observe; nothing they do feeds back into the merge.
"""

import logging
from typing import List

from ..models import MergeDecision


class MergeListener:
    """Base listener; ignores every decision."""

    def on_decision(self, decision: MergeDecision) -> None:
        pass


class LoggingMergeReporter(MergeListener):
    """Logs each decision as an aligned 'OPERATION kind name' line."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def on_decision(self, decision: MergeDecision) -> None:
        logging.log(self.level, f"   {decision}")


class RecordingMergeReporter(MergeListener):
    """Keeps every decision in memory, in the order they were taken."""

    def __init__(self):
        self.decisions: List[MergeDecision] = []

    def on_decision(self, decision: MergeDecision) -> None:
        self.decisions.append(decision)

    def by_operation(self, operation: str) -> List[MergeDecision]:
        return [d for d in self.decisions if d.operation.value == operation]
