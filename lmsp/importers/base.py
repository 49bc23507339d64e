"""
Base importer interface for lmsp.

This module defines the abstract interface that all project loaders/writers
must implement, and the backup step shared by the writers.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from ..config import get_config
from ..project import Document


PathLike = Union[str, Path]


def backup_existing(path: PathLike) -> Path:
    """
    Move an existing file out of the way before it gets overwritten.

    The file is renamed (not copied or deleted) to the configured backup
    suffix; an older backup is replaced.

    Returns:
        The backup path
    """
    path = Path(path)
    backup = path.with_name(path.name + get_config().backup_suffix)
    if path.exists():
        path.replace(backup)
        logging.info(f"Existing {path} saved as {backup}")
    return backup


class BaseImporter(ABC):
    """
    Abstract base class for all project importers.

    Each importer reads a project from one physical form (LMSP archive, plain
    JSON, memory) into a Document and writes a Document back to that form.
    """

    @abstractmethod
    def load(self, path: PathLike) -> Document:
        """
        Load a project document.

        Args:
            path: Location of the project

        Returns:
            The loaded Document
        """
        pass

    @abstractmethod
    def save(self, path: PathLike, document: Document) -> None:
        """
        Write a project document, keeping any previous file as a backup.

        Args:
            path: Destination
            document: Document to write
        """
        pass
