"""
Loaded project document for lmsp.

A Document splits a Scratch 3 project into the two namespaces the merge engine
works with: the global namespace (the stage, holding broadcasts) and the
program namespace (the sprite holding blocks, variables, lists and comments).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from ..errors import MalformedProjectError, UnresolvedReferenceError
from ..models import Comment, Project, Target
from .arena import BlockArena


class Document:
    """
    A project loaded into memory, ready to be inspected or merged.

    Attributes:
        project: The underlying project model, serialized on save.
        origin: Path of the archive the project was loaded from, if any.
            Writers that re-pack an archive use it as the template.
    """

    def __init__(self, project: Project, origin: Optional[Path] = None):
        self.project = project
        self.origin = origin

        stage = next((t for t in project.targets if t.is_stage), None)
        program = next((t for t in project.targets if not t.is_stage), None)

        if stage is None or program is None:
            raise MalformedProjectError(
                "Project must contain a stage and at least one sprite target"
            )

        self.globals: Target = stage
        self.program: Target = program
        self.blocks = BlockArena(program.blocks)

    @classmethod
    def from_json_data(cls, data: Dict[str, Any], origin: Optional[Path] = None) -> "Document":
        """
        Build a document from decoded project.json data.

        Raises:
            MalformedProjectError: if the data does not look like a project
        """
        try:
            project = Project.model_validate(data)
        except ValidationError as e:
            raise MalformedProjectError(f"Invalid project document: {e}") from e
        return cls(project, origin)

    def to_json_data(self) -> Dict[str, Any]:
        return self.project.to_json_data()

    # Namespaces

    @property
    def variables(self) -> Dict[str, List[Any]]:
        return self.program.variables

    @property
    def lists(self) -> Dict[str, List[Any]]:
        return self.program.lists

    @property
    def broadcasts(self) -> Dict[str, str]:
        return self.globals.broadcasts

    @property
    def comments(self) -> Dict[str, Comment]:
        return self.program.comments

    def variable_name(self, variable_id: str) -> str:
        data = self.variables.get(variable_id)
        if not data:
            raise UnresolvedReferenceError("variable", variable_id)
        return data[0]

    def list_name(self, list_id: str) -> str:
        data = self.lists.get(list_id)
        if not data:
            raise UnresolvedReferenceError("list", list_id)
        return data[0]

    def broadcast_name(self, broadcast_id: str) -> str:
        if broadcast_id not in self.broadcasts:
            raise UnresolvedReferenceError("broadcast", broadcast_id)
        return self.broadcasts[broadcast_id]

    def all_ids(self) -> Set[str]:
        """Every id in the combined block/symbol/comment id space."""
        ids: Set[str] = set(self.blocks.all_ids())
        ids.update(self.variables)
        ids.update(self.lists)
        ids.update(self.globals.variables)
        ids.update(self.globals.lists)
        ids.update(self.broadcasts)
        ids.update(self.comments)
        return ids

    # Comments

    def comment_for_block(self, block_id: str) -> Optional[Comment]:
        block = self.blocks.find(block_id)
        if block is None or not block.comment:
            return None
        return self.comments.get(block.comment)

    def remove_stack(self, root_id: str) -> List[str]:
        """
        Delete a stack and every comment attached to one of its blocks.

        Returns:
            Ids of the removed blocks
        """
        removed = self.blocks.remove_subtree(root_id)
        removed_ids = {block_id for block_id, _ in removed}

        for _, block in removed:
            if block.comment:
                self.comments.pop(block.comment, None)

        for comment_id in [
            cid for cid, comment in self.comments.items() if comment.block_id in removed_ids
        ]:
            del self.comments[comment_id]

        logging.debug(f"Removed {len(removed)} blocks below {root_id}")
        return [block_id for block_id, _ in removed]
