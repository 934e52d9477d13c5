"""
Placeholder substitution for the routine body.

Builds the final ``create`` statement from the raw source:

  1. The placeholders of the source (``@NAME@``) are replaced by their values.
  2. The magic constants are replaced by values derived from the compile
     context:

       ``__FILE__``     quoted absolute path of the source file
       ``__ROUTINE__``  quoted routine name
       ``__DIR__``      quoted absolute directory of the source file
       ``__LINE__``     the number of the line being substituted

Replacement is simultaneous and longest-key-first at every position, so a
value is never substituted again and ``@A.B@`` wins over ``@A@``.

The magic constants live in a table built for this call only; they never
reach the placeholder map persisted with the routine's metadata.
"""

from __future__ import annotations

import re
from pathlib import Path

from stratum.discovery.base import AbstractDataLayer
from stratum.models.models import RoutineSource

MAGIC_FILE = "__FILE__"
MAGIC_ROUTINE = "__ROUTINE__"
MAGIC_DIR = "__DIR__"
MAGIC_LINE = "__LINE__"

MAGIC_CONSTANTS: frozenset[str] = frozenset({MAGIC_FILE, MAGIC_ROUTINE, MAGIC_DIR, MAGIC_LINE})


def replace_all(text: str, pairs: dict[str, str], pattern: re.Pattern | None = None) -> str:
    """
    Replace every key of ``pairs`` in ``text`` with its value in one pass.

    Longer keys take precedence over shorter keys starting at the same position.
    ``pattern`` is a matcher built by ``_pattern_for`` for the same keys, for
    callers that replace many texts with one table.
    """
    if not pairs:
        return text
    return (pattern or _pattern_for(pairs)).sub(lambda m: str(pairs[m.group(0)]), text)


def _pattern_for(pairs: dict[str, str]) -> re.Pattern:
    keys = sorted(pairs, key=len, reverse=True)
    return re.compile("|".join(re.escape(k) for k in keys))


def magic_constants(
    source: RoutineSource,
    routine_name: str,
    data_layer: AbstractDataLayer,
) -> dict[str, str]:
    """Return the per-routine magic constants, except ``__LINE__``."""
    real_path = Path(source.path).resolve()
    return {
        MAGIC_FILE: data_layer.quote_string(str(real_path)),
        MAGIC_ROUTINE: data_layer.quote_string(routine_name),
        MAGIC_DIR: data_layer.quote_string(str(real_path.parent)),
    }


def substitute(
    source: RoutineSource,
    routine_name: str,
    placeholders: dict[str, str],
    data_layer: AbstractDataLayer,
) -> str:
    """
    Return the routine source with placeholders and magic constants replaced.

    Args:
        source:       The routine source file.
        routine_name: Name of the routine.
        placeholders: Placeholder tokens (as written in the source) and values.
        data_layer:   Used to quote the magic constant string values.
    """
    pairs = dict(placeholders)
    pairs.update(magic_constants(source, routine_name, data_layer))
    pairs[MAGIC_LINE] = "0"
    pattern = _pattern_for(pairs)

    lines = []
    for i, line in enumerate(source.lines):
        pairs[MAGIC_LINE] = str(i + 1)
        lines.append(replace_all(line, pairs, pattern))
    return "\n".join(lines)
