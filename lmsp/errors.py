"""
Exception hierarchy for lmsp.

Every failure raised by the library derives from LMSPError so the command line
front end can report it and stop before anything is written to disk.
"""

from typing import List, Optional


class LMSPError(Exception):
    """Base exception for all lmsp errors."""

    pass


class MalformedProjectError(LMSPError):
    """The project document does not have the expected structure."""

    pass


class UnresolvedReferenceError(MalformedProjectError):
    """An id referenced by a block (or used as a seed) does not exist."""

    def __init__(self, kind: str, ref_id: Optional[str], context: str = ""):
        self.kind = kind
        self.ref_id = ref_id
        message = f"Unresolved {kind} reference [{ref_id}]"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class AmbiguousNameError(LMSPError):
    """More than one symbol or stack shares a name that must be unique."""

    def __init__(self, kind: str, name: str, candidates: List[str]):
        self.kind = kind
        self.name = name
        self.candidates = list(candidates)
        super().__init__(
            f"Ambiguous {kind} name [{name}]: {len(self.candidates)} candidates "
            f"({', '.join(self.candidates)})"
        )


class IdSpaceExhaustedError(LMSPError):
    """The id generator could not find a free identifier."""

    pass


class SelectionError(LMSPError):
    """A user supplied stack identifier could not be resolved."""

    pass


class StorageError(LMSPError):
    """A project file could not be read or written."""

    pass
