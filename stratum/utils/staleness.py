"""
Staleness check: must a routine be (re)loaded?

Decision order — the first rule that applies wins:

  1. No previous metadata                                   → reload
  2. Source modification time differs from the recorded one → reload
  3. A recorded placeholder is gone from the replace table,
     or its value changed                                   → reload
  4. The routine is absent from the database catalog        → reload
  5. The catalog's sql_mode, character set or collation
     differ from the session settings                       → reload
  6. Otherwise                                              → up to date

sql_mode is compared as a set of mode names: MySQL stores the modes of a
routine in its own canonical order, whatever order they were set in.

Rule 3 only looks at placeholders recorded by the previous build.  A
placeholder newly added to the source is caught by rule 2, because adding
it changes the file.

All functions are **pure** — no file or database access.
"""

from __future__ import annotations

from stratum.models.models import BuildMetadata, RoutineCatalogEntry, SessionSettings


def stale_reason(
    previous: BuildMetadata | None,
    mtime: int,
    replace_pairs: dict[str, str],
    session: SessionSettings,
    catalog_entry: RoutineCatalogEntry | None,
) -> str | None:
    """
    Return why the routine must be reloaded, or ``None`` if it is up to date.

    Args:
        previous:      Metadata recorded by the previous build, if any.
        mtime:         Current modification time of the source file.
        replace_pairs: Current placeholder values keyed by upper-cased token.
        session:       Session settings routines are loaded under.
        catalog_entry: The routine's entry in ``information_schema.ROUTINES``,
                       or ``None`` if it doesn't exist.
    """
    if previous is None:
        return "no previous metadata"

    if previous.timestamp != mtime:
        return "source file modified"

    for placeholder, old_value in previous.replace.items():
        key = placeholder.upper()
        if key not in replace_pairs:
            return f"placeholder {placeholder} removed"
        if str(replace_pairs[key]) != old_value:
            return f"placeholder {placeholder} changed"

    if catalog_entry is None:
        return "routine not in database"

    if _sql_modes(catalog_entry.sql_mode) != _sql_modes(session.sql_mode):
        return "sql_mode changed"
    if catalog_entry.character_set_client != session.character_set:
        return "character set changed"
    if catalog_entry.collation_connection != session.collation:
        return "collation changed"

    return None


def _sql_modes(value: str | None) -> frozenset[str]:
    """Mode names of a comma separated sql_mode; the server reorders them."""
    return frozenset(m.strip().upper() for m in (value or "").split(",") if m.strip())


def must_reload(
    previous: BuildMetadata | None,
    mtime: int,
    replace_pairs: dict[str, str],
    session: SessionSettings,
    catalog_entry: RoutineCatalogEntry | None,
) -> bool:
    """Return True if the routine must be (re)loaded.  See ``stale_reason``."""
    return stale_reason(previous, mtime, replace_pairs, session, catalog_entry) is not None
