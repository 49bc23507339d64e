"""
Block arena for lmsp.

The project format stores a single `parent` field per block that points either
at the enclosing block or at the block preceding it in a sequence. BlockArena
keeps the blocks keyed by id together with a parent -> children index and
answers both relations explicitly, so callers never rescan the whole table.
"""

from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..errors import UnresolvedReferenceError
from ..models import Block


class BlockArena:
    """
    Blocks of one target keyed by id, with a parent -> children index.

    The arena works on the target's own block dictionary, so insertions and
    removals are visible in the serialized project. Bare array entries
    (top level reporters) stay in the dictionary but are not indexed.
    """

    def __init__(self, blocks: Dict[str, Union[Block, List[Any]]]):
        self._blocks = blocks
        self._children: Dict[str, List[str]] = defaultdict(list)

        for block_id, block in self.items():
            if block.parent:
                self._children[block.parent].append(block_id)

    def __contains__(self, block_id: object) -> bool:
        return isinstance(self._blocks.get(block_id), Block)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return sum(1 for _ in self.items())

    def items(self) -> Iterator[Tuple[str, Block]]:
        """Iterate (id, block) pairs in enumeration order."""
        for block_id, block in self._blocks.items():
            if isinstance(block, Block):
                yield block_id, block

    def all_ids(self) -> List[str]:
        """Every key of the block table, bare array entries included."""
        return list(self._blocks)

    def get(self, block_id: Optional[str]) -> Block:
        """
        Look up a block.

        Raises:
            UnresolvedReferenceError: if no block has this id
        """
        block = self._blocks.get(block_id) if block_id is not None else None
        if not isinstance(block, Block):
            raise UnresolvedReferenceError("block", block_id)
        return block

    def find(self, block_id: Optional[str]) -> Optional[Block]:
        """Look up a block, returning None when it does not exist."""
        block = self._blocks.get(block_id) if block_id is not None else None
        return block if isinstance(block, Block) else None

    # Relations

    def children(self, block_id: str) -> List[str]:
        """Blocks whose parent field is block_id, in enumeration order."""
        return list(self._children.get(block_id, ()))

    def following(self, block_id: str) -> Optional[str]:
        """The block after block_id in its sequence."""
        return self.get(block_id).next

    def preceding(self, block_id: str) -> Optional[str]:
        """The block before block_id in its sequence."""
        parent_id = self.get(block_id).parent
        parent = self.find(parent_id)
        if parent is not None and parent.next == block_id:
            return parent_id
        return None

    def enclosing(self, block_id: str) -> Optional[str]:
        """The block block_id is plugged into (input or substack)."""
        parent_id = self.get(block_id).parent
        parent = self.find(parent_id)
        if parent is not None and parent.next != block_id:
            return parent_id
        return None

    def root_of(self, block_id: str) -> str:
        """Id of the top of the stack containing block_id."""
        seen = set()
        current = block_id
        while True:
            block = self.get(current)
            if not block.parent:
                return current
            if current in seen:
                raise UnresolvedReferenceError("block", current, "parent chain forms a cycle")
            seen.add(current)
            current = block.parent

    def root_block(self, block_id: str) -> Block:
        return self.get(self.root_of(block_id))

    def descendants(self, block_id: str) -> List[str]:
        """block_id and every block below it, depth first, parents first."""
        result = []
        pending = [block_id]
        while pending:
            current = pending.pop()
            result.append(current)
            pending.extend(reversed(self._children.get(current, ())))
        return result

    # Mutation

    def insert(self, block_id: str, block: Block) -> None:
        """Add a block under block_id and index it under its parent."""
        if block_id in self._blocks:
            self.remove(block_id)
        self._blocks[block_id] = block
        if block.parent:
            self._children[block.parent].append(block_id)

    def remove(self, block_id: str) -> Block:
        """Remove a single block, leaving its children in place."""
        block = self._blocks.pop(block_id)
        if isinstance(block, Block) and block.parent:
            siblings = self._children.get(block.parent)
            if siblings and block_id in siblings:
                siblings.remove(block_id)
        return block  # type: ignore[return-value]

    def remove_subtree(self, block_id: str) -> List[Tuple[str, Block]]:
        """
        Remove block_id and all its descendants.

        Returns:
            The removed (id, block) pairs, parents first
        """
        removed = []
        for current in self.descendants(block_id):
            if current in self:
                removed.append((current, self.remove(current)))
            self._children.pop(current, None)
        return removed
