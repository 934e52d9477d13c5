"""
Consistency checks between a routine's DocBlock and its catalog parameters.

These checks are advisory: every mismatch is logged as a warning and
returned to the caller, and compilation carries on.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def validate_parameter_lists(
    catalog_names: list[str],
    doc_names: list[str],
    source_path: str | None = None,
) -> list[str]:
    """
    Compare the parameter names of the catalog with those in the DocBlock.

    Args:
        catalog_names: Parameter names reported by the database, in order.
        doc_names:     Names of the ``@param`` tags, in order.
        source_path:   Path of the routine source file, for the log.

    Returns:
        One warning per catalog parameter missing from the DocBlock, followed
        by one warning per ``@param`` tag naming an unknown parameter.
    """
    documented = set(doc_names)
    known = set(catalog_names)

    warnings = [
        f"parameter '{name}' is missing from doc block"
        for name in catalog_names if name not in documented
    ]
    warnings += [
        f"unknown parameter '{name}' found in doc block"
        for name in doc_names if name not in known
    ]

    for warning in warnings:
        logger.warning("%s (%s)", warning, source_path or "?")
    return warnings
