"""
lmsp: merge stacks between LEGO Education EV3 Classroom (LMSP) projects.

Copies My Blocks, scripts, variables, lists and broadcasts from one project
into another, which the EV3 Classroom application cannot do by itself.
"""

__version__ = "0.2.0"

# Import main components
from .errors import (
    AmbiguousNameError,
    IdSpaceExhaustedError,
    LMSPError,
    MalformedProjectError,
    SelectionError,
    StorageError,
    UnresolvedReferenceError,
)
from .models import Block, Comment, MergeDecision, Project, Stack, SymbolUsage, Usage
from .project import Document, ProjectInfo, ReferenceTracer
from .merge import IdGenerator, MergeEngine
from .importers import JSONImporter, LMSPImporter, MockImporter, get_importer
from .selection import select_stacks, select_synced_stacks

__all__ = [
    "AmbiguousNameError",
    "IdSpaceExhaustedError",
    "LMSPError",
    "MalformedProjectError",
    "SelectionError",
    "StorageError",
    "UnresolvedReferenceError",
    "Block",
    "Comment",
    "MergeDecision",
    "Project",
    "Stack",
    "SymbolUsage",
    "Usage",
    "Document",
    "ProjectInfo",
    "ReferenceTracer",
    "IdGenerator",
    "MergeEngine",
    "JSONImporter",
    "LMSPImporter",
    "MockImporter",
    "get_importer",
    "select_stacks",
    "select_synced_stacks"
]
