"""
Plain JSON importer for lmsp.

Reads and writes a bare project.json document, as produced by the json
command or by extracting a Scratch archive by hand.
"""

import json
import logging
from pathlib import Path

from ..config import get_config
from ..errors import StorageError
from ..project import Document
from .base import BaseImporter, PathLike, backup_existing


class JSONImporter(BaseImporter):
    """
    Importer for plain project.json files.
    """

    def load(self, path: PathLike) -> Document:
        path = Path(path)
        logging.debug(f"Reading JSON project {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read JSON project {path}: {e}") from e

        return Document.from_json_data(data)

    def save(self, path: PathLike, document: Document) -> None:
        path = Path(path)
        content = json.dumps(document.to_json_data(), indent=get_config().json_indent, ensure_ascii=False)

        backup_existing(path)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Cannot write JSON project {path}: {e}") from e

        logging.info(f"Wrote JSON project {path}")
