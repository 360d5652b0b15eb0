from __future__ import annotations

from fnmatch import fnmatchcase
import os
from pathlib import Path
from typing import Iterable, List


def expand_path(value: str | os.PathLike[str]) -> Path:
    """Expand a leading ``~`` and make the path absolute without touching symlinks."""
    return Path(os.path.abspath(os.path.expanduser(os.fspath(value))))


def canonical_path(value: str | os.PathLike[str]) -> Path:
    """
    Return the identity form of a filesystem path: home expanded, absolute,
    symlinks resolved and redundant/trailing separators removed.
    """
    return expand_path(value).resolve()


def canonical_key(value: str | os.PathLike[str]) -> str:
    return str(canonical_path(value))


def normalize_exclude_entries(values: Iterable[str] | None) -> List[str]:
    """
    Clean exclude entries so matching never has to deal with whitespace,
    trailing separators or duplicates.
    """
    normalized: List[str] = []
    seen: set[str] = set()

    if not values:
        return normalized

    for raw in values:
        if not isinstance(raw, str):
            continue
        token = raw.strip()
        if len(token) > 1:
            token = token.rstrip("/\\")
        if not token:
            continue
        if token not in seen:
            seen.add(token)
            normalized.append(token)

    return normalized


def _has_separator(entry: str) -> bool:
    return "/" in entry or (os.sep != "/" and os.sep in entry)


def is_excluded(directory: Path, exclude_entries: Iterable[str]) -> bool:
    """
    Check a directory against exclude entries.

    Plain entries match the base name exactly or as a shell-style glob.
    Entries containing a separator match a trailing portion of the path.
    """
    name = directory.name
    posix_path = directory.as_posix()
    for entry in exclude_entries:
        if _has_separator(entry):
            fragment = entry.replace(os.sep, "/")
            if fragment.startswith("~"):
                fragment = expand_path(fragment).as_posix()
            if posix_path == fragment or posix_path.endswith("/" + fragment.lstrip("/")):
                return True
            continue
        if name == entry or fnmatchcase(name, entry):
            return True
    return False
