"""
Annotation scanner: the comment DSL of a routine source file.

A routine source file looks like::

    /**
     * Selects users by key.
     *
     * @param p_usr_id The ID of the user.
     */
    create procedure abc_user_get_rows(in p_usr_id int)
    reads sql data
    -- type: rows_with_key usr_id
    -- param: p_ids list_of_int , " \\
    begin
      select ... where usr_id = p_usr_id and status <= @ABC_MAX_STATUS@;
    end

Grammar (one annotation per line, every annotation before the ``begin`` line):

  ``-- type: <name> [<args>]``
      Exactly one.  ``bulk_insert`` takes ``<table> <col1,col2,...>``;
      ``rows_with_key`` and ``rows_with_index`` take ``<col1,col2,...>``;
      every other designation takes no arguments.

  ``-- param: <name> <list_type> [<delimiter> <enclosure> <escape>]``
      Zero or more, between the ``-- type:`` line and ``begin``.  The three
      codec characters default to ``,`` ``"`` ``\\``.  A bare ``-- param:``
      declares nothing.

Placeholders are ``@NAME@`` or ``@TABLE.COLUMN%type@`` tokens anywhere in
the text; each must have a value in the replace table (matched on the
upper-cased token).

All functions raise a ``ParseError`` subclass on failure rather than
returning a flag — callers let exceptions propagate to the per-routine
result in the pipeline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from stratum.configs.exceptions import (
    DesignationError,
    ParameterSyntaxError,
    ParseError,
    PlaceholderError,
)
from stratum.models.models import (
    BULK_INSERT,
    COLUMN_DESIGNATIONS,
    Designation,
    ExtendedParameter,
    RoutineSource,
)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_PLACEHOLDER_RE = re.compile(r"@[A-Za-z0-9_.]+(?:%type)?@")
_DESIGNATION_RE = re.compile(r"^\s*--\s+type:\s*(\w+)\s*(.+)?$")
_BULK_INSERT_ARGS_RE = re.compile(r"^([a-zA-Z0-9_]+)\s+([a-zA-Z0-9_,]+)$")
_COLUMN_LIST_RE = re.compile(r"^[a-zA-Z0-9_]+(?:\s*,\s*[a-zA-Z0-9_]+)*$")
_PARAM_LINE_RE = re.compile(r"^\s*--\s+param:(.*)$")
_PARAM_ARGS_RE = re.compile(
    r"^\s*(\w+)\s+(\w+)(?:\s+([^\s-])\s+([^\s-])\s+([^\s-]))?\s*$"
)
_HEADER_RE = re.compile(r"create\s+(procedure|function)\s+([a-zA-Z0-9_]+)", re.IGNORECASE)

BEGIN = "begin"


# ---------------------------------------------------------------------------
# Result object
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoutineAnnotations:
    """
    Everything the scanner extracts from one source file.

    Attributes:
        routine_name:        Name from the ``create`` header (equals the file name).
        routine_type:        ``'procedure'`` or ``'function'``.
        designation:         Parsed ``-- type:`` annotation.
        extended_parameters: Parsed ``-- param:`` annotations in source order.
        placeholders:        Placeholder tokens used by the source mapped to
                             their values, sorted by token.
    """
    routine_name: str
    routine_type: str
    designation: Designation
    extended_parameters: tuple[ExtendedParameter, ...] = ()
    placeholders: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def scan(source: RoutineSource, replace_pairs: dict[str, str]) -> RoutineAnnotations:
    """
    Parse every annotation of ``source``.

    Args:
        source:        The routine source file.
        replace_pairs: Placeholder values keyed by upper-cased placeholder token.

    Returns:
        ``RoutineAnnotations`` for the file.

    Raises:
        PlaceholderError:     If a placeholder has no value.
        DesignationError:     If the designation is missing or malformed.
        ParameterSyntaxError: If a ``-- param:`` line is malformed or duplicated.
        ParseError:           If the ``create`` header is missing or names
                              another routine than the file name.
    """
    placeholders = resolve_placeholders(source, replace_pairs)
    designation, designation_line = parse_designation(source)
    routine_type, routine_name = parse_routine_header(source)
    extended = parse_extended_parameters(source, designation_line)

    return RoutineAnnotations(
        routine_name=routine_name,
        routine_type=routine_type,
        designation=designation,
        extended_parameters=extended,
        placeholders=placeholders,
    )


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------

def find_placeholders(text: str) -> list[str]:
    """Return the distinct placeholder tokens in ``text`` in order of first appearance."""
    return list(dict.fromkeys(_PLACEHOLDER_RE.findall(text)))


def resolve_placeholders(source: RoutineSource, replace_pairs: dict[str, str]) -> dict[str, str]:
    """
    Map every placeholder in ``source`` to its value.

    Returns:
        Dict keyed by the token as written in the source, sorted by key.

    Raises:
        PlaceholderError: Listing every token without a value.
    """
    tokens = find_placeholders(source.text)
    unknown = [t for t in tokens if t.upper() not in replace_pairs]
    if unknown:
        raise PlaceholderError(
            f"Unknown placeholder(s) {', '.join(repr(t) for t in unknown)}.",
            source_path=str(source.path),
            placeholders=unknown,
        )
    return {t: str(replace_pairs[t.upper()]) for t in sorted(tokens)}


# ---------------------------------------------------------------------------
# Designation
# ---------------------------------------------------------------------------

def find_begin(source: RoutineSource) -> int:
    """
    Return the index of the first line that is exactly ``begin``.

    Raises:
        DesignationError: If there is no such line.
    """
    for i, line in enumerate(source.lines):
        if line.rstrip("\r") == BEGIN:
            return i
    raise DesignationError(
        "Unable to find the designation type of the stored routine: no 'begin' line.",
        source_path=str(source.path),
    )


def parse_designation(source: RoutineSource) -> tuple[Designation, int]:
    """
    Find and parse the single ``-- type:`` line before ``begin``.

    Returns:
        The ``Designation`` and the index of the line it was found on.

    Raises:
        DesignationError: If the line is missing, repeated, or malformed.
    """
    begin = find_begin(source)
    found: list[tuple[int, re.Match]] = []
    for i in range(begin - 1, -1, -1):
        match = _DESIGNATION_RE.match(source.lines[i].rstrip("\r"))
        if match:
            found.append((i, match))

    if not found:
        raise DesignationError(
            "Unable to find the designation type of the stored routine.",
            source_path=str(source.path),
        )
    if len(found) > 1:
        raise DesignationError(
            f"Found {len(found)} designation type comments, expected exactly one.",
            source_path=str(source.path),
        )

    line, match = found[0]
    return _designation_from_match(match, str(source.path)), line


def _designation_from_match(match: re.Match, source_path: str) -> Designation:
    kind = match.group(1)
    args = (match.group(2) or "").strip()

    if kind == BULK_INSERT:
        info = _BULK_INSERT_ARGS_RE.match(args)
        if not info:
            raise DesignationError(
                "Expected: -- type: bulk_insert <table_name> <columns>.",
                source_path=source_path,
            )
        return Designation(
            type=kind,
            table_name=info.group(1),
            columns=tuple(info.group(2).split(",")),
        )

    if kind in COLUMN_DESIGNATIONS:
        if not _COLUMN_LIST_RE.match(args):
            raise DesignationError(
                f"Expected: -- type: {kind} <columns>.",
                source_path=source_path,
            )
        return Designation(type=kind, columns=tuple(c.strip() for c in args.split(",")))

    if args:
        raise DesignationError(
            f"Designation type '{kind}' takes no arguments, found '{args}'.",
            source_path=source_path,
        )
    return Designation(type=kind)


# ---------------------------------------------------------------------------
# Extended parameters
# ---------------------------------------------------------------------------

def parse_extended_parameters(
    source: RoutineSource,
    designation_line: int,
) -> tuple[ExtendedParameter, ...]:
    """
    Parse the ``-- param:`` lines between the designation line and ``begin``.

    Raises:
        ParameterSyntaxError: If a line is malformed or a name is declared twice.
    """
    begin = find_begin(source)
    params: dict[str, ExtendedParameter] = {}

    for line in source.lines[designation_line + 1:begin]:
        match = _PARAM_LINE_RE.match(line.rstrip("\r"))
        if not match:
            continue
        rest = match.group(1)
        if not rest.strip():
            continue

        args = _PARAM_ARGS_RE.match(rest)
        if not args:
            raise ParameterSyntaxError(
                "Expected: -- param: <field_name> <type_of_list> [delimiter enclosure escape].",
                source_path=str(source.path),
            )

        name, data_type, delimiter, enclosure, escape = args.groups()
        if name in params:
            raise ParameterSyntaxError(
                f"Duplicate parameter '{name}'.",
                source_path=str(source.path),
                parameter_name=name,
            )

        if delimiter is None:
            params[name] = ExtendedParameter(name=name, data_type=data_type)
        else:
            params[name] = ExtendedParameter(
                name=name,
                data_type=data_type,
                delimiter=delimiter,
                enclosure=enclosure,
                escape=escape,
            )

    return tuple(params.values())


# ---------------------------------------------------------------------------
# Routine header
# ---------------------------------------------------------------------------

def parse_routine_header(source: RoutineSource) -> tuple[str, str]:
    """
    Extract the routine type and name from the ``create`` header.

    Returns:
        ``(routine_type, routine_name)`` with the type in lowercase.

    Raises:
        ParseError: If no header is found or its name differs from the file name.
    """
    # TODO: skip comments and string literals before matching the header.
    match = _HEADER_RE.search(source.text)
    if not match:
        raise ParseError(
            "Unable to find the stored routine name and type.",
            source_path=str(source.path),
        )

    routine_type = match.group(1).lower()
    routine_name = match.group(2)
    if routine_name != source.routine_name:
        raise ParseError(
            f"Stored routine name '{routine_name}' does not match filename.",
            source_path=str(source.path),
        )
    return routine_type, routine_name


def leading_comment(source: RoutineSource) -> str:
    """Text before the ``create`` header (the whole text if there is none)."""
    match = _HEADER_RE.search(source.text)
    return source.text[: match.start()] if match else source.text
