"""
Documentation reconciliation: DocBlock + catalog → wrapper documentation.

The DocBlock preceding the ``create`` header supplies the short and long
description and one ``@param <name> <description>`` tag per parameter.
Each catalog parameter is paired with its wrapper type, its full type
descriptor and the description of the tag with the same name (``None``
if there is no such tag).

Mismatches between documented and actual parameters only produce
warnings; see ``stratum.utils.validation``.
"""

from __future__ import annotations

from stratum.discovery.annotations import leading_comment
from stratum.discovery.docblock import DocBlock, parse_docblock
from stratum.models.models import CatalogParameter, RoutineDoc, RoutineSource, WrapperParameter
from stratum.transformers.type_mapper import semantic_type_of
from stratum.utils.validation import validate_parameter_lists


def parameter_descriptions(docblock: DocBlock) -> list[tuple[str, str]]:
    """
    Return ``(name, description)`` for every ``@param`` tag, in order.

    The name is the part of the tag content before its description; every
    line of the description is stripped.
    """
    pairs = []
    for tag in docblock.tags_named("param"):
        name = tag.content[: len(tag.content) - len(tag.description)].strip()
        description = "\n".join(line.strip() for line in tag.description.split("\n"))
        pairs.append((name, description))
    return pairs


def build_routine_doc(
    source: RoutineSource,
    parameters: tuple[CatalogParameter, ...],
) -> tuple[RoutineDoc, list[str]]:
    """
    Compose the documentation payload of a routine.

    Args:
        source:     The routine source file.
        parameters: Catalog parameters with extended parameters merged in.

    Returns:
        The ``RoutineDoc`` and the list of documentation warnings.

    Raises:
        UnsupportedTypeError: If a parameter's type has no wrapper type.
    """
    docblock = parse_docblock(leading_comment(source))
    described = parameter_descriptions(docblock)

    descriptions: dict[str, str] = {}
    for name, description in described:
        descriptions.setdefault(name, description)

    wrapper_params = tuple(
        WrapperParameter(
            name=p.name,
            semantic_type=semantic_type_of(p, str(source.path)),
            data_type_descriptor=p.data_type_descriptor,
            description=descriptions.get(p.name),
        )
        for p in parameters
    )

    warnings = validate_parameter_lists(
        [p.name for p in parameters],
        [name for name, _ in described],
        str(source.path),
    )

    doc = RoutineDoc(
        short_description=docblock.short_description,
        long_description=docblock.long_description,
        parameters=wrapper_params,
    )
    return doc, warnings
