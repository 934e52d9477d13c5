"""
Persistence of routine metadata between builds.

The store is one JSON file: an object keyed by routine name whose values are
``BuildMetadata.to_dict()`` records.  The wrapper generator reads the same
file.

Writes go to a temporary sibling that is then renamed over the target, so a
crash never leaves a half-written store behind.

Usage::

    from stratum.loaders.metadata_store import read_metadata, write_metadata

    previous = read_metadata(config.metadata_path)
    ...
    write_metadata(config.metadata_path, current)
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from stratum.configs.exceptions import MetadataError
from stratum.models.models import BuildMetadata


def read_metadata(path: Path | str) -> dict[str, BuildMetadata]:
    """
    Read the metadata store.

    Returns:
        Metadata keyed by routine name; empty if the file does not exist.

    Raises:
        MetadataError: If the file can't be read or parsed.
    """
    path = Path(path)
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise MetadataError(f"Cannot read metadata store {path}: {e}") from e

    if not isinstance(raw, dict):
        raise MetadataError(f"Metadata store {path} does not hold a JSON object.")

    try:
        return {name: BuildMetadata.from_dict(record) for name, record in raw.items()}
    except (KeyError, TypeError, ValueError) as e:
        raise MetadataError(f"Malformed record in metadata store {path}: {e}") from e


def write_metadata(path: Path | str, metadata: dict[str, BuildMetadata]) -> Path:
    """
    Write the metadata store, sorted by routine name.

    Returns:
        The path written.

    Raises:
        MetadataError: If the file can't be written.
    """
    path = Path(path)
    payload = {name: metadata[name].to_dict() for name in sorted(metadata)}
    tmp_path = path.with_name(path.name + ".tmp")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_path, path)
    except OSError as e:
        raise MetadataError(f"Cannot write metadata store {path}: {e}") from e

    return path
