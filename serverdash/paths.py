"""
Directory path normalization.

Every path handed to the directory store goes through normalize() so two
spellings of the same directory always compare equal. Paths use forward
slashes only.
"""

from typing import Optional

ROOT = "/"
SEPARATOR = "/"


def normalize(raw: Optional[str]) -> str:
    """
    Turn an arbitrary directory path into its canonical form.

    Repeated separators collapse, a trailing separator is dropped (except for
    the root) and the result always starts with exactly one separator. Empty
    or missing input maps to the root.

    Args:
        raw: The path as typed, linked or returned by the panel

    Returns:
        The canonical path, e.g. ``normalize("//a//b/") == "/a/b"``
    """
    if not raw:
        return ROOT

    segments = [segment for segment in raw.split(SEPARATOR) if segment]
    return ROOT + SEPARATOR.join(segments)


def join_path(directory: Optional[str], name: str) -> str:
    """Join a directory and an entry name into a normalized path."""
    return normalize(f"{directory or ROOT}{SEPARATOR}{name}")


def parent_directory(path: Optional[str]) -> str:
    """Return the normalized directory containing ``path``."""
    normalized = normalize(path)
    if normalized == ROOT:
        return ROOT
    return normalize(normalized.rsplit(SEPARATOR, 1)[0])


def basename(path: Optional[str]) -> str:
    """Return the last segment of ``path``; the root has an empty basename."""
    return normalize(path).rsplit(SEPARATOR, 1)[-1]


def resolve_path(path: Optional[str]) -> str:
    """
    Normalize ``path`` and resolve its ``.`` and ``..`` segments.

    ``..`` above the root stays at the root, e.g.
    ``resolve_path("/home/../../x") == "/x"``. Directory paths kept by the
    store are not resolved; this is for rename and move destinations.
    """
    segments = []
    for segment in normalize(path).split(SEPARATOR):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return ROOT + SEPARATOR.join(segments)
