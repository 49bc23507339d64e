"""
Project file models for lmsp.

This module defines the pydantic models for the Scratch 3 project document
embedded in an LMSP file. Only the keys the merge engine works with are
declared; every other key is kept as an extra attribute so that a loaded
project serializes back without losing information.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


Number = Union[int, float]

# Input value types that reference a named symbol instead of a block
BROADCAST_PRIMITIVE = 11
VARIABLE_PRIMITIVE = 12
LIST_PRIMITIVE = 13

# Block fields that reference a named symbol
VARIABLE_FIELD = "VARIABLE"
LIST_FIELD = "LIST"
BROADCAST_FIELD = "BROADCAST_OPTION"

PROCEDURE_DEFINITION = "procedures_definition"
PROCEDURE_PROTOTYPE = "procedures_prototype"
PROCEDURE_CALL = "procedures_call"
PROTOTYPE_INPUT = "custom_block"


class Mutation(BaseModel):
    """
    Opcode specific metadata of a block.

    Procedure calls and prototypes carry the procedure signature (proccode)
    and the JSON encoded list of argument ids.
    """

    model_config = ConfigDict(extra="allow")

    proccode: Optional[str] = Field(
        None,
        description="Signature string: procedure name plus %s/%b placeholders"
    )

    argumentids: Optional[str] = Field(
        None,
        description="JSON encoded list of argument ids, in placeholder order"
    )

    @property
    def argument_ids(self) -> List[str]:
        """Decoded argument id list."""
        if not self.argumentids:
            return []
        return json.loads(self.argumentids)

    def set_argument_ids(self, argument_ids: List[str]) -> None:
        """Replace the argument id list."""
        self.argumentids = json.dumps(argument_ids)


class Block(BaseModel):
    """
    A single block of the program.

    The on-disk `parent` field holds either the enclosing block or the block
    preceding this one in a sequence; BlockArena splits the two relations.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    opcode: str = Field(
        ...,
        description="Operation tag"
    )

    next: Optional[str] = Field(
        None,
        description="Id of the following block in a sequence"
    )

    parent: Optional[str] = Field(
        None,
        description="Id of the enclosing or preceding block"
    )

    inputs: Dict[str, List[Any]] = Field(
        default_factory=dict,
        description="Named inputs: [shadow type, value, shadow value]"
    )

    fields: Dict[str, List[Any]] = Field(
        default_factory=dict,
        description="Named fields: [value] or [value, referenced id]"
    )

    mutation: Optional[Mutation] = None

    comment: Optional[str] = Field(
        None,
        description="Id of the attached comment"
    )

    shadow: bool = False

    top_level: bool = Field(
        False,
        alias="topLevel"
    )

    x: Optional[Number] = None
    y: Optional[Number] = None

    @property
    def is_stack_root(self) -> bool:
        """True for top level blocks that start a stack."""
        return self.top_level and not self.shadow

    @property
    def proccode(self) -> Optional[str]:
        """Signature carried by the mutation, if any."""
        return self.mutation.proccode if self.mutation else None

    def field_reference(self, name: str) -> Optional[str]:
        """Id referenced by the named field, or None."""
        value = self.fields.get(name)
        if value and len(value) > 1:
            return value[1]
        return None

    def input_block(self, name: str) -> Optional[str]:
        """Id of the block plugged into the named input, or None."""
        value = self.inputs.get(name)
        if value and len(value) > 1 and isinstance(value[1], str):
            return value[1]
        return None


class Comment(BaseModel):
    """
    A positioned text note, optionally attached to a block.

    Positions are absolute at rest. While a merge is in flight a comment may
    hold an offset from its stack root instead; that state is tracked by a
    private flag that never reaches the serialized document.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    block_id: Optional[str] = Field(
        None,
        alias="blockId"
    )

    x: Optional[Number] = None
    y: Optional[Number] = None
    text: str = ""

    _relative: bool = PrivateAttr(default=False)

    @property
    def relative(self) -> bool:
        return self._relative

    def make_relative(self, origin_x: Number, origin_y: Number) -> None:
        """Store the position as an offset from (origin_x, origin_y)."""
        self.x = (self.x or 0) - origin_x
        self.y = (self.y or 0) - origin_y
        self._relative = True

    def make_absolute(self, origin_x: Number, origin_y: Number) -> None:
        """Turn an offset back into an absolute position."""
        self.x = (self.x or 0) + origin_x
        self.y = (self.y or 0) + origin_y
        self._relative = False


class Target(BaseModel):
    """A sprite or the stage, each with its own namespaces."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""

    is_stage: bool = Field(
        False,
        alias="isStage"
    )

    variables: Dict[str, List[Any]] = Field(default_factory=dict)
    lists: Dict[str, List[Any]] = Field(default_factory=dict)
    broadcasts: Dict[str, str] = Field(default_factory=dict)

    # Top level reporters dropped on the canvas are stored as bare arrays
    blocks: Dict[str, Union[Block, List[Any]]] = Field(default_factory=dict)

    comments: Dict[str, Comment] = Field(default_factory=dict)


class Project(BaseModel):
    """The whole project document (project.json)."""

    model_config = ConfigDict(extra="allow")

    targets: List[Target] = Field(default_factory=list)

    def to_json_data(self) -> Dict[str, Any]:
        """Plain JSON-compatible data, with the keys as they were loaded."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)
