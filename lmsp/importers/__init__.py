"""Project importers for the supported file forms."""

from pathlib import Path

from ..errors import StorageError
from .base import BaseImporter, PathLike, backup_existing
from .json_file import JSONImporter
from .lmsp_archive import LMSPImporter
from .mock import MockImporter

SUPPORTED_SUFFIXES = (".lmsp", ".json")


def get_importer(path: PathLike) -> BaseImporter:
    """Pick the importer for a file by its suffix."""
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return JSONImporter()
    if suffix == ".lmsp":
        return LMSPImporter()
    raise StorageError(f"Unsupported project file {path}: expected one of {', '.join(SUPPORTED_SUFFIXES)}")


__all__ = [
    "BaseImporter",
    "JSONImporter",
    "LMSPImporter",
    "MockImporter",
    "SUPPORTED_SUFFIXES",
    "backup_existing",
    "get_importer"
]
