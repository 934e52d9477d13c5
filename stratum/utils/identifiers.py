"""
Identifier helpers for the routine loader.

The routine name is never taken from user input: it is the source file name
minus the source extension, and the ``create procedure|function <name>``
header inside the file must agree with it.

Usage:
    from stratum.utils.identifiers import routine_name_from_path

    routine_name_from_path("lib/psql/abc_user_get.psql", ".psql")   # → "abc_user_get"
"""

from __future__ import annotations

import re
from pathlib import Path

# Identifiers accepted for routine, table and column names in annotations.
IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_]+$")


def routine_name_from_path(path: Path | str, extension: str) -> str:
    """
    Return the routine name implied by a source file name.

    Args:
        path:      Path of the source file.
        extension: Source file suffix, e.g. ``'.psql'``.

    Returns:
        The file name without ``extension`` (unchanged if it doesn't end in it).
    """
    name = Path(path).name
    if extension and name.endswith(extension):
        return name[: -len(extension)]
    return name


def is_identifier(value: str) -> bool:
    """Return True if ``value`` is a plain (unquoted) identifier."""
    return bool(IDENTIFIER_RE.match(value))


def backtick(identifier: str) -> str:
    """
    Quote an identifier for use in SQL.

    Raises:
        ValueError: If ``identifier`` isn't a plain identifier.
    """
    if not is_identifier(identifier):
        raise ValueError(f"Not a plain identifier: {identifier!r}")
    return f"`{identifier}`"
