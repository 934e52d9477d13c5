"""
Loader configuration.

All tuneable settings live here. Import from this module everywhere —
never hardcode the source extension, session settings, or store paths
inline.

Usage:
    from stratum.configs.config import LoaderConfig
    cfg = LoaderConfig()                          # defaults / environment
    cfg = LoaderConfig(source_extension=".sql")

Environment overrides can be loaded via .env / os.environ before
constructing the config object; this module does not load .env itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from stratum.models.models import SessionSettings


DEFAULT_SQL_MODE: str = (
    "ONLY_FULL_GROUP_BY,STRICT_ALL_TABLES,NO_ZERO_IN_DATE,NO_ZERO_DATE,"
    "ERROR_FOR_DIVISION_BY_ZERO,NO_ENGINE_SUBSTITUTION"
)
"""SQL mode under which routines are created and will run."""


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).lower() == "true"


def _env_path(key: str) -> Path | None:
    raw = os.environ.get(key)
    return Path(raw) if raw else None


@dataclass(slots=True)
class LoaderConfig:
    """
    Runtime configuration for the routine loader.

    Attributes:
        source_dir: Directory searched (recursively) for routine source files.
        source_extension: File name suffix of routine source files. The file
            name minus this suffix must equal the routine name.
        metadata_path: JSON file holding the metadata of the previous build.
        constants_path: Optional ``NAME=value`` file with placeholder constants.
        sql_mode: SQL mode set on the session before creating a routine.
        character_set: Default character set for the session.
        collation: Default collation for the session.
        drop_obsolete: If True, a full load drops routines that have no source file.
        dry_run: If True, report which routines are stale but change nothing.
    """

    source_dir: Path = field(
        default_factory=lambda: Path(os.environ.get("SOURCE_DIR", "lib/psql"))
    )
    source_extension: str = field(
        default_factory=lambda: os.environ.get("SOURCE_EXTENSION", ".psql")
    )
    metadata_path: Path = field(
        default_factory=lambda: Path(os.environ.get("METADATA_PATH", "etc/routines.json"))
    )
    constants_path: Path | None = field(
        default_factory=lambda: _env_path("CONSTANTS_PATH")
    )
    sql_mode: str = field(
        default_factory=lambda: os.environ.get("SQL_MODE", DEFAULT_SQL_MODE)
    )
    character_set: str = field(
        default_factory=lambda: os.environ.get("CHARACTER_SET", "utf8mb4")
    )
    collation: str = field(
        default_factory=lambda: os.environ.get("COLLATION", "utf8mb4_general_ci")
    )
    drop_obsolete: bool = field(
        default_factory=lambda: _env_bool("DROP_OBSOLETE", "true")
    )
    dry_run: bool = field(
        default_factory=lambda: _env_bool("DRY_RUN", "false")
    )

    @property
    def session(self) -> SessionSettings:
        """The session settings every routine is loaded under."""
        return SessionSettings(
            sql_mode=self.sql_mode,
            character_set=self.character_set,
            collation=self.collation,
        )
