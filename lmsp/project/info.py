"""
Stack and procedure index of a project.

ProjectInfo scans the block table once and derives the stacks of the program,
their names and 1-based indexes, and the signature <-> definition mapping of
procedures ("My Blocks").
"""

import re
from typing import Dict, List, Optional

from ..models import Stack
from ..models.project import PROCEDURE_DEFINITION, PROCEDURE_PROTOTYPE
from .document import Document


# A stack is named by "{name" anywhere in the comment attached to its root
STACK_NAME_PATTERN = re.compile(r"\{([^{}]*)")


def stack_name_from_comment(text: Optional[str]) -> str:
    """Extract a stack name from comment text, or '' when there is none."""
    if not text:
        return ""
    match = STACK_NAME_PATTERN.search(text)
    return match.group(1) if match else ""


class ProjectInfo:
    """
    Read-only view of the stacks and procedures of a document.

    The view is computed at construction time and reflects the document as it
    was at that moment.
    """

    def __init__(self, document: Document):
        self.document = document

        self._stacks: List[Stack] = []
        self._procedures: List[Stack] = []
        self._by_root: Dict[str, Stack] = {}
        self._definitions: Dict[str, List[str]] = {}
        self._signatures: Dict[str, str] = {}

        self._scan()

    def _scan(self) -> None:
        blocks = self.document.blocks

        for block_id, block in blocks.items():
            if block.opcode == PROCEDURE_PROTOTYPE:
                definition_id = block.parent
                signature = block.proccode
                if not definition_id or signature is None:
                    # Prototype not attached to a definition (palette leftovers)
                    continue

                self._definitions.setdefault(signature, []).append(definition_id)
                self._signatures[definition_id] = signature
                self._add_stack(Stack(
                    id=definition_id,
                    index=len(self._stacks) + 1,
                    name=signature,
                    is_procedure=True
                ))

            elif block.is_stack_root and block.opcode != PROCEDURE_DEFINITION:
                comment = self.document.comments.get(block.comment) if block.comment else None
                self._add_stack(Stack(
                    id=block_id,
                    index=len(self._stacks) + 1,
                    name=stack_name_from_comment(comment.text if comment else None),
                    is_procedure=False
                ))

    def _add_stack(self, stack: Stack) -> None:
        self._stacks.append(stack)
        self._by_root[stack.id] = stack
        if stack.is_procedure:
            self._procedures.append(stack)

    def stacks(self) -> List[Stack]:
        """All stacks, procedures included, in discovery order."""
        return list(self._stacks)

    def procedures(self) -> List[Stack]:
        """Procedure definition stacks only."""
        return list(self._procedures)

    def plain_stacks(self) -> List[Stack]:
        """Stacks that are not procedure definitions."""
        return [stack for stack in self._stacks if not stack.is_procedure]

    def stacks_by_name(self, name: str) -> List[Stack]:
        """
        Find stacks by name.

        Returns exact matches when there are any, otherwise every stack whose
        name starts with `name`.
        """
        exact = [stack for stack in self._stacks if stack.name == name]
        if exact:
            return exact
        return [stack for stack in self._stacks if stack.name.startswith(name)]

    def stack_for_block(self, block_id: str) -> Optional[Stack]:
        """The stack rooted at block_id, if any."""
        return self._by_root.get(block_id)

    def stack_by_index(self, index: int) -> Optional[Stack]:
        if 1 <= index <= len(self._stacks):
            return self._stacks[index - 1]
        return None

    def block_for_signature(self, signature: str) -> Optional[str]:
        """Id of the definition block implementing a signature."""
        definitions = self._definitions.get(signature)
        return definitions[0] if definitions else None

    def definitions_for_signature(self, signature: str) -> List[str]:
        """Every definition block implementing a signature."""
        return list(self._definitions.get(signature, ()))

    def signature_for_block(self, block_id: str) -> Optional[str]:
        """Signature implemented by a definition block."""
        return self._signatures.get(block_id)
