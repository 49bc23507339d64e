"""
Mock importer for testing lmsp.

This module provides an in-memory project store, used to exercise the command
flow without touching the file system.
"""

import copy
from typing import Any, Dict, Optional

from ..config import get_config
from ..errors import StorageError
from ..project import Document
from .base import BaseImporter, PathLike


class MockImporter(BaseImporter):
    """
    Mock importer that keeps projects as JSON data in a dictionary.

    Saved documents are stored as plain data, so a later load returns an
    independent copy, just like a round trip through a real file.
    """

    def __init__(self, projects: Optional[Dict[str, Dict[str, Any]]] = None):
        """
        Initialize the mock importer.

        Args:
            projects: Initial store, mapping a path to project.json data
        """
        self.projects: Dict[str, Dict[str, Any]] = dict(projects or {})

    def load(self, path: PathLike) -> Document:
        key = str(path)
        if key not in self.projects:
            raise StorageError(f"No such project: {key}")
        return Document.from_json_data(copy.deepcopy(self.projects[key]))

    def save(self, path: PathLike, document: Document) -> None:
        key = str(path)
        if key in self.projects:
            self.projects[key + get_config().backup_suffix] = self.projects.pop(key)
        self.projects[key] = document.to_json_data()
