"""
DocBlock tokenizer for routine source comments.

Splits a ``/** ... */`` comment block into a short description, a long
description and tagged fields::

    /**
     * Selects users by key.            <- short description
     *
     * Only active users are returned.  <- long description
     *
     * @param p_usr_id The ID of the     <- tag "param", continued on
     *                 user.               the next line
     */

Short description rules:
  - ends at the first blank line, or
  - ends at the first line whose text ends with a period.

Tag rules:
  - a tag starts on a line beginning with ``@name``;
  - following lines up to the next tag belong to it;
  - ``content`` is everything after the tag name;
  - ``description`` is ``content`` minus its first word for ``param`` tags
    (the parameter name) and equals ``content`` for every other tag.

Malformed input never raises: text without a ``/**`` block yields an empty
``DocBlock``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_BLOCK_RE = re.compile(r"/\*\*(.*?)\*/", re.DOTALL)
_LINE_PREFIX_RE = re.compile(r"^\s*\*? ?")
_TAG_RE = re.compile(r"^@([A-Za-z][\w-]*)\s*(.*)$")
_FIRST_WORD_RE = re.compile(r"^\S+\s*")

# Tags whose first word is a name rather than part of the description.
_NAMED_TAGS = frozenset({"param"})


@dataclass(frozen=True)
class DocTag:
    """One ``@tag`` of a DocBlock."""

    name: str
    content: str
    description: str


@dataclass(frozen=True)
class DocBlock:
    """A tokenized DocBlock."""

    short_description: str = ""
    long_description: str = ""
    tags: tuple[DocTag, ...] = ()

    def tags_named(self, name: str) -> list[DocTag]:
        return [t for t in self.tags if t.name == name]


def parse_docblock(text: str) -> DocBlock:
    """
    Tokenize the first ``/** ... */`` block in ``text``.

    Args:
        text: Source text that may contain a DocBlock.

    Returns:
        A ``DocBlock``; empty if ``text`` holds no ``/**`` block.
    """
    match = _BLOCK_RE.search(text)
    if not match:
        return DocBlock()

    lines = [_LINE_PREFIX_RE.sub("", line, count=1).rstrip() for line in match.group(1).split("\n")]

    text_lines: list[str] = []
    tag_lines: list[list[str]] = []
    for line in lines:
        if line.lstrip().startswith("@"):
            tag_lines.append([line.strip()])
        elif tag_lines:
            tag_lines[-1].append(line)
        else:
            text_lines.append(line)

    short, long = _split_description(text_lines)
    tags = tuple(t for t in (_parse_tag(block) for block in tag_lines) if t is not None)
    return DocBlock(short_description=short, long_description=long, tags=tags)


def _split_description(lines: list[str]) -> tuple[str, str]:
    # Drop leading blank lines.
    while lines and not lines[0].strip():
        lines = lines[1:]

    short: list[str] = []
    rest_start = len(lines)
    for i, line in enumerate(lines):
        if not line.strip():
            rest_start = i
            break
        short.append(line.strip())
        if line.rstrip().endswith("."):
            rest_start = i + 1
            break

    long = "\n".join(lines[rest_start:]).strip()
    return " ".join(short), long


def _parse_tag(block: list[str]) -> DocTag | None:
    match = _TAG_RE.match(block[0])
    if not match:
        return None

    name = match.group(1)
    content = "\n".join([match.group(2)] + block[1:]).strip()
    if name in _NAMED_TAGS:
        description = _FIRST_WORD_RE.sub("", content, count=1)
    else:
        description = content
    return DocTag(name=name, content=content, description=description)
