"""Merging stacks between projects."""

from .engine import MergeEngine
from .ids import IdGenerator
from .reporting import LoggingMergeReporter, MergeListener, RecordingMergeReporter

__all__ = ["MergeEngine", "IdGenerator", "MergeListener", "LoggingMergeReporter", "RecordingMergeReporter"]
