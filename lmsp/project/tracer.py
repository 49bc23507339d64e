"""
Reference tracer for lmsp.

The tracer walks the program from one or more seed blocks and collects every
block below them together with the variables, lists, broadcasts and procedures
those blocks use. With follow_procedures enabled, the bodies of called
procedures join the closure as well, transitively.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import UnresolvedReferenceError
from ..models import Block, SymbolUsage, Usage
from ..models.project import (
    BROADCAST_FIELD,
    BROADCAST_PRIMITIVE,
    LIST_FIELD,
    LIST_PRIMITIVE,
    PROCEDURE_CALL,
    PROCEDURE_DEFINITION,
    PROTOTYPE_INPUT,
    VARIABLE_FIELD,
    VARIABLE_PRIMITIVE,
)
from .document import Document
from .info import ProjectInfo


def iter_input_references(block: Block):
    """
    Yield (primitive type, referenced id) for every typed symbol reference
    found in the block's input slots.
    """
    for value in block.inputs.values():
        for slot in value[1:]:
            if (
                isinstance(slot, list)
                and len(slot) > 2
                and slot[0] in (BROADCAST_PRIMITIVE, VARIABLE_PRIMITIVE, LIST_PRIMITIVE)
            ):
                yield slot[0], slot[2]


def prototype_signature(document: Document, definition: Block) -> str:
    """Signature of a definition block, read from its prototype."""
    prototype_id = definition.input_block(PROTOTYPE_INPUT)
    prototype = document.blocks.get(prototype_id)
    if prototype.proccode is None:
        raise UnresolvedReferenceError("procedure prototype", prototype_id, "missing proccode")
    return prototype.proccode


class ReferenceTracer:
    """
    Accumulates the closure of blocks and symbols reachable from seed blocks.

    Example:
        >>> usage = ReferenceTracer(document).add(stack.id).usage()
        >>> sorted(u.name for u in usage.variables.values())
        ['speed', 'x']
    """

    def __init__(self, document: Document, follow_procedures: bool = False,
                 info: Optional[ProjectInfo] = None):
        """
        Initialize the tracer.

        Args:
            document: The document to trace in
            follow_procedures: Also trace the bodies of called procedures
            info: Precomputed ProjectInfo for the document, if available
        """
        self.document = document
        self.follow_procedures = follow_procedures
        self.info = info or ProjectInfo(document)
        self._usage = Usage()

    def add(self, block_id: str) -> "ReferenceTracer":
        """Add a seed block and everything reachable from it."""
        if block_id not in self.document.blocks:
            raise UnresolvedReferenceError("block", block_id, "trace seed")
        self._trace(block_id)
        return self

    def usage(self) -> Usage:
        """Current accumulated closure."""
        return self._usage

    def list(self) -> List[SymbolUsage]:
        """Used symbols: procedures, broadcasts, variables, then lists."""
        usage = self._usage
        return [
            *usage.procedures.values(),
            *usage.broadcasts.values(),
            *usage.variables.values(),
            *usage.lists.values(),
        ]

    def _trace(self, seed_id: str) -> None:
        visited = self._usage.blocks
        pending = [seed_id]

        while pending:
            block_id = pending.pop()
            if block_id in visited:
                continue

            block = self.document.blocks.get(block_id)
            visited[block_id] = block

            # Called procedure bodies are traced before the block's own children
            upcoming = self._check_block(block)
            upcoming.extend(self.document.blocks.children(block_id))
            pending.extend(reversed(upcoming))

    def _check_block(self, block: Block) -> List[str]:
        """Record the symbols a block uses; return procedure bodies to trace."""
        self._add_variable(block.field_reference(VARIABLE_FIELD))
        self._add_list(block.field_reference(LIST_FIELD))
        self._add_broadcast(block.field_reference(BROADCAST_FIELD))

        for primitive, ref_id in iter_input_references(block):
            if primitive == BROADCAST_PRIMITIVE:
                self._add_broadcast(ref_id)
            elif primitive == VARIABLE_PRIMITIVE:
                self._add_variable(ref_id)
            else:
                self._add_list(ref_id)

        bodies: List[str] = []

        if block.opcode == PROCEDURE_CALL:
            if block.proccode is None:
                raise UnresolvedReferenceError("procedure", None, "call without proccode")
            body = self._add_procedure(block.proccode)
            if body:
                bodies.append(body)

        if block.opcode == PROCEDURE_DEFINITION and self.follow_procedures:
            self._register_procedure(prototype_signature(self.document, block))

        return bodies

    def _add_symbol(self, table: Dict[str, SymbolUsage], kind: str, ref_id: str,
                    name: str, data: Any) -> None:
        info = table.get(ref_id)
        if info:
            info.count += 1
        else:
            table[ref_id] = SymbolUsage(type=kind, id=ref_id, name=name, data=data, count=1)

    def _add_variable(self, ref_id: Optional[str]) -> None:
        if not ref_id:
            return
        name = self.document.variable_name(ref_id)
        self._add_symbol(self._usage.variables, "variable", ref_id, name,
                         self.document.variables[ref_id])

    def _add_list(self, ref_id: Optional[str]) -> None:
        if not ref_id:
            return
        name = self.document.list_name(ref_id)
        self._add_symbol(self._usage.lists, "list", ref_id, name,
                         self.document.lists[ref_id])

    def _add_broadcast(self, ref_id: Optional[str]) -> None:
        if not ref_id:
            return
        name = self.document.broadcast_name(ref_id)
        self._add_symbol(self._usage.broadcasts, "broadcast", ref_id, name, name)

    def _add_procedure(self, signature: str) -> Optional[str]:
        """
        Count a call of `signature`.

        Returns:
            The definition block id when its body still has to be traced
        """
        info = self._usage.procedures.get(signature)
        if info:
            info.count += 1
            return None

        definition_id = self.info.block_for_signature(signature)
        if definition_id is None and self.follow_procedures:
            raise UnresolvedReferenceError("procedure", signature, "no definition implements it")

        self._usage.procedures[signature] = SymbolUsage(
            type="procedure", id=definition_id, name=signature, count=1
        )
        logging.debug(f"Traced call of procedure {signature}")

        if self.follow_procedures:
            return definition_id
        return None

    def _register_procedure(self, signature: str) -> None:
        """Record a definition reached directly, without counting a call."""
        if signature not in self._usage.procedures:
            self._usage.procedures[signature] = SymbolUsage(
                type="procedure",
                id=self.info.block_for_signature(signature),
                name=signature,
                count=0
            )
