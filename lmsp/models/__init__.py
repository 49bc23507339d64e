"""Data models for lmsp."""

from .project import Block, Comment, Mutation, Project, Target
from .entities import MergeDecision, MergeOperation, Stack, SymbolUsage, Usage

__all__ = [
    "Block",
    "Comment",
    "Mutation",
    "Project",
    "Target",
    "Stack",
    "SymbolUsage",
    "Usage",
    "MergeDecision",
    "MergeOperation"
]
