"""
Command implementations for lmsp.

Each command works on paths and returns what should be shown to the user;
main.py parses arguments and prints. An importer can be passed in to replace
the suffix based file importers (tests use the MockImporter).
"""

import json
import logging
from typing import Callable, Iterable, List, Optional, Sequence

from .config import get_config
from .importers import BaseImporter, LMSPImporter, PathLike, get_importer
from .merge import LoggingMergeReporter, MergeEngine, MergeListener
from .models import Stack
from .models.project import PROCEDURE_CALL
from .project import Document, ProjectInfo, ReferenceTracer
from .selection import select_stacks, select_synced_stacks


StackSelector = Callable[[Document, Document], Sequence[Stack]]

SEPARATOR = "-" * 80


def _importer_for(path: PathLike, importer: Optional[BaseImporter]) -> BaseImporter:
    return importer if importer is not None else get_importer(path)


def list_stacks(path: PathLike, importer: Optional[BaseImporter] = None) -> List[str]:
    """
    Describe every stack of a project.

    For each stack: its title, the opcodes along its main sequence (with
    called procedures and attached comments), and the symbols it uses.

    Returns:
        Output lines
    """
    document = _importer_for(path, importer).load(path)
    info = ProjectInfo(document)
    lines = [f"Stacks in file {path}", "", SEPARATOR, ""]

    for stack in info.stacks():
        lines.append(stack.title)
        lines.append("")

        block_id = stack.id
        while block_id:
            block = document.blocks.get(block_id)
            parts = [f"[{block.opcode}]"]
            if block.opcode == PROCEDURE_CALL:
                parts.append(f"-> ({block.proccode})")
            comment = document.comment_for_block(block_id)
            if comment is not None:
                parts.append(f"// {comment.text}")
            lines.append(f"   {' '.join(parts)}")
            block_id = block.next

        refs = ReferenceTracer(document, info=info).add(stack.id).list()
        if refs:
            lines.append("")
            for ref in refs:
                lines.append(f"   uses {ref.type:<10} \"{ref.name}\" ({ref.count})")

        lines.extend(["", SEPARATOR, ""])

    return lines


def export_json(path: PathLike, importer: Optional[BaseImporter] = None) -> str:
    """The project document of a file, pretty printed."""
    document = _importer_for(path, importer).load(path)
    return json.dumps(document.to_json_data(), indent=get_config().json_indent, ensure_ascii=False)


def export_svg(path: PathLike) -> str:
    """The project icon of an LMSP file."""
    return LMSPImporter().read_icon(path)


def merge_projects(source: PathLike, target: PathLike, output: PathLike,
                   selector: StackSelector,
                   importer: Optional[BaseImporter] = None,
                   listener: Optional[MergeListener] = None) -> List[Stack]:
    """
    Load two projects, merge the selected source stacks into the target and
    save the result.

    Nothing is written unless the whole merge succeeds.

    Args:
        source: Project the stacks are taken from
        target: Project the stacks are merged into
        output: Where the merged project is written
        selector: Picks the source stacks to merge
        importer: Replaces the suffix based importers
        listener: Receives merge decisions (logged by default)

    Returns:
        The merged stacks
    """
    source_document = _importer_for(source, importer).load(source)
    target_document = _importer_for(target, importer).load(target)

    stacks = list(selector(source_document, target_document))
    logging.info(f"Copy stacks from {source} to {target}:")
    for stack in stacks:
        logging.info(f"    {stack.title}")

    if not stacks:
        logging.warning("No stacks selected, nothing to merge")
        return stacks

    logging.info("Perform project merge:")
    engine = MergeEngine(listener=listener or LoggingMergeReporter())
    merged = engine.merge(source_document, target_document, stacks)

    logging.info(f"Save output --> {output}")
    _importer_for(output, importer).save(output, merged)
    return stacks


def copy_stacks(source: PathLike, target: PathLike, output: PathLike,
                identifiers: Iterable[str],
                importer: Optional[BaseImporter] = None,
                listener: Optional[MergeListener] = None) -> List[Stack]:
    """Merge the source stacks named by index or name into the target."""
    identifiers = list(identifiers)
    return merge_projects(
        source, target, output,
        lambda source_document, _: select_stacks(source_document, identifiers),
        importer=importer,
        listener=listener
    )


def sync_stacks(source: PathLike, target: PathLike, output: PathLike,
                importer: Optional[BaseImporter] = None,
                listener: Optional[MergeListener] = None) -> List[Stack]:
    """Merge every source stack that also exists in the target."""
    return merge_projects(
        source, target, output, select_synced_stacks,
        importer=importer,
        listener=listener
    )
