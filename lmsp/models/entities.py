"""
Derived entity models for lmsp.

This module defines the records computed from a loaded project: stacks,
symbol usages collected by the reference tracer, and the decisions the
merge engine reports while it works.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .project import Block


class Stack(BaseModel):
    """
    A logical program unit: one block subtree rooted at a top level block.
    """

    id: str = Field(
        ...,
        description="Id of the root block (the definition block for procedures)"
    )

    index: int = Field(
        ...,
        description="1-based discovery order within the project"
    )

    name: str = Field(
        "",
        description="Signature for procedures, {name} from the root comment otherwise"
    )

    is_procedure: bool = Field(
        False,
        description="True when the root is a procedure definition"
    )

    @property
    def kind(self) -> str:
        return "procedure" if self.is_procedure else "stack"

    @property
    def title(self) -> str:
        """Human readable one-line description."""
        name = self.name if self.name else "with no name"
        return f"[{self.index}] {self.kind} {name}"


class SymbolUsage(BaseModel):
    """
    A symbol referenced from traced blocks.
    """

    type: str = Field(
        ...,
        description="One of 'variable', 'list', 'broadcast', 'procedure'"
    )

    id: Optional[str] = Field(
        None,
        description="Symbol id; for procedures the definition block id"
    )

    name: str = Field(
        ...,
        description="Display name (signature for procedures)"
    )

    data: Any = Field(
        None,
        description="Stored value of the symbol in its namespace"
    )

    count: int = Field(
        1,
        description="Number of references seen"
    )


class Usage(BaseModel):
    """
    Accumulated closure of a reference trace.
    """

    variables: Dict[str, SymbolUsage] = Field(default_factory=dict)
    lists: Dict[str, SymbolUsage] = Field(default_factory=dict)
    broadcasts: Dict[str, SymbolUsage] = Field(default_factory=dict)
    procedures: Dict[str, SymbolUsage] = Field(
        default_factory=dict,
        description="Keyed by signature"
    )
    blocks: Dict[str, Block] = Field(
        default_factory=dict,
        description="Visited blocks in visiting order"
    )


class MergeOperation(str, Enum):
    LINK = "LINK"
    COPY = "COPY"
    DELETE = "DELETE"


class MergeDecision(BaseModel):
    """
    One link/copy/delete decision taken by the merge engine.
    """

    operation: MergeOperation
    kind: str = Field(
        ...,
        description="'variable', 'list', 'broadcast', 'procedure' or 'stack'"
    )
    name: str
    old_id: Optional[str] = None
    new_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.operation.value:<10} {self.kind:<10} {self.name}"
