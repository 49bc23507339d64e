"""
Stack selection policies.

These functions turn user input into the concrete list of source stacks handed
to the merge engine, and reject anything unknown or ambiguous.
"""

import logging
from typing import Iterable, List

from .errors import SelectionError
from .models import Stack
from .project import Document, ProjectInfo


def _candidates(stacks: Iterable[Stack]) -> str:
    return "\n".join(f"    {stack.title}" for stack in stacks)


def select_stacks(source: Document, identifiers: Iterable[str]) -> List[Stack]:
    """
    Resolve stack identifiers against the source document.

    Each identifier is either a 1-based stack index, as printed by the list
    command, or a stack name. Names match exactly, or by prefix when nothing
    matches exactly.

    Args:
        source: Document the stacks are taken from
        identifiers: Indexes or names

    Returns:
        The selected stacks, without duplicates, in the order given

    Raises:
        SelectionError: for unknown indexes, unknown names and names matching
            more than one stack
    """
    info = ProjectInfo(source)
    selected: List[Stack] = []

    for identifier in identifiers:
        if identifier.strip().isdecimal():
            stack = info.stack_by_index(int(identifier))
            if stack is None:
                raise SelectionError(
                    f"Unknown stack index [{identifier}]. Use the list command to get available indexes"
                )
            matches = [stack]
        else:
            matches = info.stacks_by_name(identifier)
            if len(matches) > 1:
                raise SelectionError(
                    f"Ambiguous stack name [{identifier}]. Candidates are:\n\n{_candidates(matches)}"
                )
            if not matches:
                raise SelectionError(f"Invalid stack name [{identifier}]. Not found")

        for stack in matches:
            if stack.id not in {s.id for s in selected}:
                selected.append(stack)

    logging.debug(f"Selected {len(selected)} stacks by identifier")
    return selected


def select_synced_stacks(source: Document, target: Document) -> List[Stack]:
    """
    Select every source stack that also exists in the target.

    Procedures match by signature, other stacks by name; unnamed stacks are
    never synced.

    Raises:
        SelectionError: if a name exists more than once in the target
    """
    source_info = ProjectInfo(source)
    target_info = ProjectInfo(target)
    selected: List[Stack] = []

    for procedure in source_info.procedures():
        matches = [p for p in target_info.procedures() if p.name == procedure.name]
        if len(matches) > 1:
            raise SelectionError(f"Ambiguous procedure [{procedure.name}]. Multiple choices.")
        if matches:
            selected.append(procedure)

    for stack in source_info.plain_stacks():
        if not stack.name:
            continue
        matches = [s for s in target_info.plain_stacks() if s.name == stack.name]
        if len(matches) > 1:
            raise SelectionError(f"Ambiguous stack [{stack.name}]. Multiple choices.")
        if matches:
            selected.append(stack)

    logging.debug(f"Selected {len(selected)} stacks present in both projects")
    return selected
