"""
Merge engine for lmsp.

This module transplants a set of stacks from a source document into a target
document. Everything the stacks depend on comes along: blocks, called
procedures, variables, lists and broadcasts. Symbols that already exist in the
target under the same name are linked instead of copied, and stacks or
procedures that already exist in the target are replaced in place.

The merge works in two phases. The planning phase traces the closure and
performs every lookup that can fail; the target is only mutated once the plan
is complete, so a failed merge leaves the target untouched.
"""

import copy
import logging
import random
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import get_config
from ..errors import AmbiguousNameError, MalformedProjectError, UnresolvedReferenceError
from ..models import Block, MergeDecision, MergeOperation, Mutation, Stack, SymbolUsage, Usage
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
from ..project import Document, ProjectInfo, ReferenceTracer
from ..project.tracer import prototype_signature
from .ids import IdGenerator
from .reporting import LoggingMergeReporter, MergeListener


SYMBOL_FIELDS = (VARIABLE_FIELD, LIST_FIELD, BROADCAST_FIELD)
SYMBOL_PRIMITIVES = (BROADCAST_PRIMITIVE, VARIABLE_PRIMITIVE, LIST_PRIMITIVE)


class MergePlan:
    """Lookups resolved before the target is touched."""

    def __init__(self, usage: Usage):
        self.usage = usage
        # (kind, source id) -> existing target id, or None to copy
        self.symbol_links: Dict[Tuple[str, str], Optional[str]] = {}
        # source root id -> (kind, name, existing target root id or None)
        self.roots: Dict[str, Tuple[str, str, Optional[str]]] = {}
        # signature -> mutation of the incoming prototype
        self.prototypes: Dict[str, Mutation] = {}
        # procedure calls present in the target before the merge
        self.existing_calls: List[Block] = []


class MergeEngine:
    """
    Merges stacks of a source document into a target document.

    Example:
        >>> engine = MergeEngine()
        >>> engine.merge(source, target, [source_info.stack_by_index(3)])
    """

    def __init__(self, listener: Optional[MergeListener] = None,
                 id_length: Optional[int] = None,
                 alphabet: Optional[str] = None,
                 max_attempts: Optional[int] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the merge engine.

        Args:
            listener: Receives every link/copy/delete decision
            id_length: Length of generated ids (default from configuration)
            alphabet: Symbols generated ids are drawn from (default from configuration)
            max_attempts: Retry bound for id generation (default from configuration)
            rng: Random source, for reproducible ids
        """
        config = get_config()
        self.listener = listener or LoggingMergeReporter()
        self.id_length = id_length or config.id_length
        self.alphabet = alphabet or config.id_alphabet
        self.max_attempts = max_attempts or config.id_max_attempts
        self.rng = rng

    def merge(self, source: Document, target: Document, stacks: Sequence[Stack]) -> Document:
        """
        Merge `stacks` of `source` into `target`.

        The target is updated in place and returned. Source comments are left
        with relative positions afterwards, so the source document must not be
        used as a pristine source again.

        Raises:
            UnresolvedReferenceError: if the closure references a missing id
            AmbiguousNameError: if a name matches more than one target symbol or stack
            IdSpaceExhaustedError: if no free id could be generated
        """
        source_info = ProjectInfo(source)
        target_info = ProjectInfo(target)

        plan = self._plan(source, source_info, target, target_info, stacks)
        usage = plan.usage

        self._relativize_comments(source)

        new_id = IdGenerator(
            target.all_ids(),
            length=self.id_length,
            alphabet=self.alphabet,
            max_attempts=self.max_attempts,
            rng=self.rng
        )
        id_map: Dict[str, str] = {}

        self._merge_symbols(plan, usage.variables, target.variables, "variable", new_id, id_map)
        self._merge_symbols(plan, usage.lists, target.lists, "list", new_id, id_map)
        self._merge_symbols(plan, usage.broadcasts, target.broadcasts, "broadcast", new_id, id_map)

        for block_id in usage.blocks:
            id_map[block_id] = new_id()

        for block_id, source_block in usage.blocks.items():
            block = source_block.model_copy(deep=True)

            if block_id in plan.roots:
                self._install_root(plan, block_id, block, target, id_map)

            self._rewrite_references(block, id_map)
            target.blocks.insert(id_map[block_id], block)

            if block.comment:
                self._transplant_comment(source, target, block, id_map[block_id], new_id)

        self._absolutize_comments(target)

        logging.info(
            f"Merged {len(usage.blocks)} blocks from {len(stacks)} stacks "
            f"({len(usage.procedures)} procedures, {len(usage.variables)} variables, "
            f"{len(usage.lists)} lists, {len(usage.broadcasts)} broadcasts)"
        )
        return target

    # Planning

    def _plan(self, source: Document, source_info: ProjectInfo,
              target: Document, target_info: ProjectInfo,
              stacks: Sequence[Stack]) -> MergePlan:
        tracer = ReferenceTracer(source, follow_procedures=True, info=source_info)
        for stack in stacks:
            tracer.add(stack.id)

        plan = MergePlan(tracer.usage())
        self._check_closure(plan.usage)

        for kind, symbols, namespace in (
            ("variable", plan.usage.variables, target.variables),
            ("list", plan.usage.lists, target.lists),
        ):
            for symbol_id, info in symbols.items():
                matches = [tid for tid, data in namespace.items() if data and data[0] == info.name]
                plan.symbol_links[(kind, symbol_id)] = self._single(kind, info.name, matches)

        for symbol_id, info in plan.usage.broadcasts.items():
            matches = [tid for tid, name in target.broadcasts.items() if name == info.name]
            plan.symbol_links[("broadcast", symbol_id)] = self._single("broadcast", info.name, matches)

        for block_id, block in plan.usage.blocks.items():
            if not block.is_stack_root:
                continue

            if block.opcode == PROCEDURE_DEFINITION:
                signature = prototype_signature(source, block)
                prototype = source.blocks.get(block.input_block(PROTOTYPE_INPUT))
                plan.prototypes[signature] = prototype.mutation
                existing = self._single(
                    "procedure", signature, target_info.definitions_for_signature(signature)
                )
                plan.roots[block_id] = ("procedure", signature, existing)
            else:
                stack = source_info.stack_for_block(block_id)
                name = stack.name if stack else ""
                existing = None
                if name:
                    matches = [s.id for s in target_info.plain_stacks() if s.name == name]
                    existing = self._single("stack", name, matches)
                plan.roots[block_id] = ("stack", name, existing)

        plan.existing_calls = [
            block for _, block in target.blocks.items() if block.opcode == PROCEDURE_CALL
        ]
        return plan

    @staticmethod
    def _single(kind: str, name: str, matches: List[str]) -> Optional[str]:
        if len(matches) > 1:
            raise AmbiguousNameError(kind, name, matches)
        return matches[0] if matches else None

    @staticmethod
    def _referenced_blocks(block: Block) -> Iterator[str]:
        if block.next:
            yield block.next
        if block.parent:
            yield block.parent
        for value in block.inputs.values():
            for slot in value[1:]:
                if isinstance(slot, str):
                    yield slot

    def _check_closure(self, usage: Usage) -> None:
        """Every block referenced from the closure must be part of it."""
        for block_id, block in usage.blocks.items():
            for ref_id in self._referenced_blocks(block):
                if ref_id not in usage.blocks:
                    raise UnresolvedReferenceError(
                        "block", ref_id, f"referenced by {block_id} but not part of the copied stacks"
                    )

    # Applying

    def _report(self, operation: MergeOperation, kind: str, name: str,
                old_id: Optional[str], new_id: Optional[str]) -> None:
        self.listener.on_decision(MergeDecision(
            operation=operation, kind=kind, name=name, old_id=old_id, new_id=new_id
        ))

    def _merge_symbols(self, plan: MergePlan, symbols: Dict[str, SymbolUsage], namespace: dict,
                       kind: str, new_id: IdGenerator, id_map: Dict[str, str]) -> None:
        for symbol_id, info in symbols.items():
            existing = plan.symbol_links[(kind, symbol_id)]
            if existing is not None:
                id_map[symbol_id] = existing
                self._report(MergeOperation.LINK, kind, info.name, symbol_id, existing)
            else:
                copy_id = new_id()
                id_map[symbol_id] = copy_id
                namespace[copy_id] = copy.deepcopy(info.data)
                self._report(MergeOperation.COPY, kind, info.name, symbol_id, copy_id)

    def _install_root(self, plan: MergePlan, block_id: str, block: Block,
                      target: Document, id_map: Dict[str, str]) -> None:
        kind, name, existing_id = plan.roots[block_id]

        if kind == "procedure":
            self._remap_call_arguments(plan, name)

        if existing_id is not None and existing_id in target.blocks:
            existing = target.blocks.get(existing_id)
            block.x = existing.x
            block.y = existing.y
            target.remove_stack(existing_id)
            self._report(MergeOperation.DELETE, kind, name, existing_id, None)

        self._report(MergeOperation.COPY, kind, name, block_id, id_map[block_id])

    def _remap_call_arguments(self, plan: MergePlan, signature: str) -> None:
        """
        Point existing calls of `signature` at the incoming argument ids.

        A redefined procedure comes with freshly minted argument ids. Inputs of
        existing calls are re-keyed by position so every call keeps its bound
        values.
        """
        prototype = plan.prototypes[signature]
        new_ids = prototype.argument_ids

        for call in plan.existing_calls:
            if call.proccode != signature:
                continue

            renamed = dict(zip(call.mutation.argument_ids, new_ids))
            call.inputs = {renamed.get(key, key): value for key, value in call.inputs.items()}
            call.mutation.set_argument_ids(new_ids)
            logging.debug(f"Remapped call arguments of {signature}: {renamed}")

    def _rewrite_references(self, block: Block, id_map: Dict[str, str]) -> None:
        def mapped(kind: str, ref_id: str) -> str:
            if ref_id not in id_map:
                raise UnresolvedReferenceError(kind, ref_id, "missing from the merge id map")
            return id_map[ref_id]

        if block.next:
            block.next = mapped("block", block.next)
        if block.parent:
            block.parent = mapped("block", block.parent)

        for name in SYMBOL_FIELDS:
            value = block.fields.get(name)
            if value and len(value) > 1 and value[1]:
                value[1] = mapped(name.lower(), value[1])

        for value in block.inputs.values():
            for position in range(1, len(value)):
                slot = value[position]
                if isinstance(slot, str):
                    value[position] = mapped("block", slot)
                elif isinstance(slot, list) and len(slot) > 2 and slot[0] in SYMBOL_PRIMITIVES:
                    slot[2] = mapped("symbol", slot[2])

    def _transplant_comment(self, source: Document, target: Document, block: Block,
                            block_id: str, new_id: IdGenerator) -> None:
        source_comment = source.comments.get(block.comment)
        if source_comment is None:
            raise UnresolvedReferenceError("comment", block.comment)

        comment = source_comment.model_copy(deep=True)
        comment.block_id = block_id
        comment_id = new_id()
        block.comment = comment_id
        target.comments[comment_id] = comment

    # Comment positions

    @staticmethod
    def _relativize_comments(document: Document) -> None:
        for comment in document.comments.values():
            if comment.relative or comment.block_id not in document.blocks:
                continue
            root = document.blocks.root_block(comment.block_id)
            comment.make_relative(root.x or 0, root.y or 0)

    @staticmethod
    def _absolutize_comments(document: Document) -> None:
        for comment_id, comment in document.comments.items():
            if not comment.relative:
                continue
            if comment.block_id not in document.blocks:
                raise MalformedProjectError(
                    f"Comment {comment_id} is attached to missing block {comment.block_id}"
                )
            root = document.blocks.root_block(comment.block_id)
            comment.make_absolute(root.x or 0, root.y or 0)
