"""
Loading a routine into MySQL.

Statement order for one routine:
  1. ``drop <procedure|function> if exists <name>`` — only when the catalog
     already holds a routine with this name, using the catalog's routine type.
  2. ``set sql_mode = ...``
  3. ``set names ... collate ...``
  4. The substituted ``create`` statement.

A failing statement raises ``DataLayerError``; nothing is retried.

Usage::

    from stratum.loaders.routine_loader import load_routine

    sql = load_routine(data_layer, source, annotations, config.session, catalog_entry)
"""

from __future__ import annotations

import logging

from stratum.discovery.annotations import RoutineAnnotations
from stratum.discovery.base import AbstractDataLayer
from stratum.models.models import RoutineCatalogEntry, RoutineSource, SessionSettings
from stratum.transformers.placeholders import substitute
from stratum.utils.identifiers import backtick

logger = logging.getLogger(__name__)

_ROUTINE_TYPES = frozenset({"procedure", "function"})


def drop_routine(data_layer: AbstractDataLayer, routine_type: str, routine_name: str) -> str:
    """
    Drop a routine if it exists.

    Returns:
        The executed statement.

    Raises:
        ValueError: If ``routine_type`` is neither ``procedure`` nor ``function``.
    """
    routine_type = routine_type.lower()
    if routine_type not in _ROUTINE_TYPES:
        raise ValueError(f"Unknown routine type {routine_type!r}")
    sql = f"drop {routine_type} if exists {backtick(routine_name)}"
    data_layer.execute_none(sql)
    return sql


def apply_session(data_layer: AbstractDataLayer, session: SessionSettings) -> None:
    """
    Set the SQL mode, character set and collation of the session.

    Values are always quoted as string literals; an empty sql_mode is the
    valid "no modes" setting and must not become NULL.
    """
    def literal(value: str) -> str:
        return f"'{data_layer.escape_string(value)}'"

    data_layer.execute_none(f"set sql_mode = {literal(session.sql_mode)}")
    data_layer.execute_none(
        f"set names {literal(session.character_set)} collate {literal(session.collation)}"
    )


def load_routine(
    data_layer: AbstractDataLayer,
    source: RoutineSource,
    annotations: RoutineAnnotations,
    session: SessionSettings,
    catalog_entry: RoutineCatalogEntry | None,
) -> str:
    """
    (Re)create a routine from its source.

    Args:
        data_layer:    Open data layer.
        source:        The routine source file.
        annotations:   Scanned annotations (name, type, placeholders).
        session:       Session settings to create the routine under.
        catalog_entry: Current catalog entry of the routine, or ``None``.

    Returns:
        The executed ``create`` statement.
    """
    logger.info("Loading %s %s", annotations.routine_type, annotations.routine_name)

    routine_sql = substitute(source, annotations.routine_name, annotations.placeholders, data_layer)

    if catalog_entry is not None:
        drop_routine(data_layer, catalog_entry.routine_type, annotations.routine_name)

    apply_session(data_layer, session)
    data_layer.execute_none(routine_sql)
    return routine_sql
