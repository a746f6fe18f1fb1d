from __future__ import annotations
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def resolve_location(catalog_path: PathLike, data_file_path: PathLike) -> Path:
    """Relative data file paths live next to their catalog file."""
    path = Path(data_file_path)
    return path if path.is_absolute() else Path(catalog_path).parent / path


def catalog_key(catalog_path: PathLike) -> str:
    return str(Path(catalog_path).resolve())


def data_file_key(catalog_path: PathLike, data_file_path: PathLike) -> str:
    """
    Canonical spelling of a data file for a catalog.

    Files under the catalog's directory are keyed relative to it, so the
    catalog keeps working when the directory is moved; anything else is
    keyed by its absolute path.
    """
    location = resolve_location(catalog_path, data_file_path).resolve()
    try:
        return location.relative_to(Path(catalog_path).resolve().parent).as_posix()
    except ValueError:
        return str(location)
