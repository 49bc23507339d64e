"""
LMSP archive importer for lmsp.

An LMSP file is a zip archive holding the project icon and a nested Scratch 3
archive (scratch.sb3), which in turn holds project.json and the assets.
Saving re-packs the archive the document was loaded from, replacing only
project.json, so assets and the icon are carried over untouched.
"""

import io
import json
import logging
import zipfile
from pathlib import Path
from typing import Dict, Optional

from ..config import get_config
from ..errors import StorageError
from ..project import Document
from .base import BaseImporter, PathLike, backup_existing


def _read_member(archive: zipfile.ZipFile, name: str, container: str) -> bytes:
    try:
        return archive.read(name)
    except KeyError as e:
        raise StorageError(f"{container} does not contain {name}") from e


def _replace_member(archive_bytes: bytes, replacements: Dict[str, bytes]) -> bytes:
    """Copy a zip archive, swapping the content of the named members."""
    output = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as source, \
            zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as result:
        for info in source.infolist():
            data = replacements.get(info.filename)
            result.writestr(info, data if data is not None else source.read(info.filename))
    return output.getvalue()


class LMSPImporter(BaseImporter):
    """
    Importer for EV3 Classroom .lmsp project files.
    """

    def __init__(self, inner_name: Optional[str] = None, project_name: Optional[str] = None,
                 icon_name: Optional[str] = None):
        config = get_config()
        self.inner_name = inner_name or config.archive_inner_name
        self.project_name = project_name or config.archive_project_name
        self.icon_name = icon_name or config.archive_icon_name

    def _open(self, path: Path) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(path)
        except (OSError, zipfile.BadZipFile) as e:
            raise StorageError(f"Cannot open LMSP archive {path}: {e}") from e

    def read_project_data(self, path: PathLike) -> dict:
        """Decoded project.json of an LMSP file."""
        path = Path(path)
        with self._open(path) as outer:
            inner_bytes = _read_member(outer, self.inner_name, str(path))

        try:
            with zipfile.ZipFile(io.BytesIO(inner_bytes)) as inner:
                content = _read_member(inner, self.project_name, f"{path}:{self.inner_name}")
        except zipfile.BadZipFile as e:
            raise StorageError(f"{path}:{self.inner_name} is not a valid archive: {e}") from e

        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Invalid {self.project_name} in {path}: {e}") from e

    def read_icon(self, path: PathLike) -> str:
        """The SVG icon stored next to the Scratch archive."""
        path = Path(path)
        with self._open(path) as outer:
            return _read_member(outer, self.icon_name, str(path)).decode("utf-8")

    def load(self, path: PathLike) -> Document:
        path = Path(path)
        logging.debug(f"Reading LMSP project {path}")
        return Document.from_json_data(self.read_project_data(path), origin=path)

    def save(self, path: PathLike, document: Document) -> None:
        """
        Write the document into a copy of the archive it was loaded from.

        Raises:
            StorageError: if the document was not loaded from an LMSP archive
        """
        path = Path(path)
        if document.origin is None:
            raise StorageError(
                f"Cannot write {path}: LMSP output needs a target project loaded from an LMSP file"
            )

        content = json.dumps(document.to_json_data(), separators=(",", ":"), ensure_ascii=False)

        try:
            outer_bytes = document.origin.read_bytes()
            with zipfile.ZipFile(io.BytesIO(outer_bytes)) as outer:
                inner_bytes = _read_member(outer, self.inner_name, str(document.origin))

            inner_bytes = _replace_member(inner_bytes, {self.project_name: content.encode("utf-8")})
            outer_bytes = _replace_member(outer_bytes, {self.inner_name: inner_bytes})
        except (OSError, zipfile.BadZipFile) as e:
            raise StorageError(f"Cannot re-pack LMSP archive {document.origin}: {e}") from e

        backup_existing(path)
        try:
            path.write_bytes(outer_bytes)
        except OSError as e:
            raise StorageError(f"Cannot write LMSP project {path}: {e}") from e

        logging.info(f"Wrote LMSP project {path}")
