"""
Routine source file discovery and reading.

Handles:
- Recursive discovery of source files by extension, in a stable order.
- UTF-8 with or without BOM (``utf-8-sig``).
- Splitting on ``\\n`` only, so line numbers match what an editor shows.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stratum.configs.exceptions import ParseError
from stratum.models.models import RoutineSource

logger = logging.getLogger(__name__)


def read_source(path: Path | str, extension: str) -> RoutineSource:
    """
    Read one routine source file.

    Args:
        path:      Path of the source file.
        extension: Source file suffix; the file name minus this suffix is the
                   routine name.

    Returns:
        An immutable ``RoutineSource``.

    Raises:
        ParseError: If the file can't be read or isn't valid UTF-8.
    """
    path = Path(path)
    try:
        mtime = int(path.stat().st_mtime)
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ParseError(f"Cannot read {path}: {e}", source_path=str(path)) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"Source is not valid UTF-8: {e}", source_path=str(path)) from e

    return RoutineSource(
        path=path,
        extension=extension,
        text=text,
        lines=tuple(text.split("\n")),
        mtime=mtime,
    )


def discover_sources(source_dir: Path | str, extension: str) -> list[Path]:
    """
    Return every file under ``source_dir`` whose name ends in ``extension``.

    The search is recursive and the result is sorted by path.  A missing
    directory yields an empty list (and a warning).
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        logger.warning("Source directory %s does not exist.", source_dir)
        return []

    return sorted(
        p for p in source_dir.rglob(f"*{extension}")
        if p.is_file() and p.name.endswith(extension)
    )
