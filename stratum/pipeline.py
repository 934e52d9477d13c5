"""
Pipeline orchestrator for the stored routine loader.

Compiles one routine per call and wires the stages in order; every stage
takes the immutable output of the previous one.

Stage order (``compile_routine``):
  1. Read source      → ``RoutineSource``
  2. Staleness gate   → stop here, returning the previous metadata, if up to date
  3. Scan annotations → placeholders, designation, header, ``-- param:`` lines
  4. Load             → drop / session settings / create
  5. Reconcile        → catalog parameters, extended parameters, bulk insert table
  6. Document         → wrapper documentation plus advisory warnings
  7. Synthesize       → the new ``BuildMetadata``

Failure policy:
  - Any ``RoutineError`` or ``DataLayerError`` stops *this* routine.  It is
    logged and returned in the ``RoutineResult``; the previous metadata of
    the routine stays authoritative and the batch continues.
  - ``DataLayerConnectionError`` is re-raised: without a connection no
    further routine can be loaded, so ``load_all`` halts.
  - Documentation mismatches are warnings only.

``load_all`` is the batch entry point the CLI calls; ``check`` parses
sources without a database.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from stratum.configs.config import LoaderConfig
from stratum.configs.exceptions import (
    DataLayerConnectionError,
    DataLayerError,
    ParseError,
    PlaceholderError,
    RoutineError,
)
from stratum.discovery.annotations import (
    RoutineAnnotations,
    find_placeholders,
    parse_designation,
    parse_extended_parameters,
    parse_routine_header,
    scan,
)
from stratum.discovery.base import AbstractDataLayer
from stratum.discovery.catalog import (
    fetch_bulk_insert_columns,
    fetch_parameters,
    fetch_routine_catalog,
    merge_extended_parameters,
)
from stratum.discovery.replace_pairs import build_replace_pairs, read_constants
from stratum.discovery.source_reader import discover_sources, read_source
from stratum.loaders.metadata_store import read_metadata, write_metadata
from stratum.loaders.routine_loader import drop_routine, load_routine
from stratum.models.models import (
    BuildMetadata,
    CatalogParameter,
    RoutineCatalogEntry,
    RoutineDoc,
    RoutineSource,
    TableColumns,
)
from stratum.transformers.documentation import build_routine_doc
from stratum.utils.identifiers import routine_name_from_path
from stratum.utils.staleness import stale_reason

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result objects
# ---------------------------------------------------------------------------

@dataclass
class RoutineResult:
    """
    Outcome of compiling a single routine source file.

    Attributes:
        source_path:  Path of the routine source file.
        routine_name: Routine name implied by the file name.
        metadata:     The new metadata when reloaded, the previous metadata
                      when up to date, ``None`` on failure or in a dry run
                      of a stale routine.
        reloaded:     True if the routine was (re)created in the database.
        reason:       Why the routine was stale, ``None`` if it was up to date.
        error:        The exception that stopped compilation, if any.
        warnings:     Documentation mismatch warnings.
    """
    source_path: Path
    routine_name: str
    metadata: BuildMetadata | None = None
    reloaded: bool = False
    reason: str | None = None
    error: Exception | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """
    Summary of a ``load_all`` run.

    Attributes:
        results:  One ``RoutineResult`` per source file, in path order.
        dropped:  Names of obsolete routines dropped from the database.
        dry_run:  True if nothing was changed.
    """
    results: list[RoutineResult] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def failed(self) -> list[RoutineResult]:
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.failed


# ---------------------------------------------------------------------------
# Single routine
# ---------------------------------------------------------------------------

def compile_routine(
    source_path: Path | str,
    data_layer: AbstractDataLayer,
    config: LoaderConfig,
    previous: BuildMetadata | None = None,
    replace_pairs: dict[str, str] | None = None,
    catalog_entry: RoutineCatalogEntry | None = None,
) -> RoutineResult:
    """
    Compile one routine source file into the database and into metadata.

    Args:
        source_path:   Path of the routine source file.
        data_layer:    Open data layer.
        config:        Loader configuration.
        previous:      Metadata of the previous build of this routine, if any.
        replace_pairs: Placeholder values keyed by upper-cased token.
        catalog_entry: Current catalog entry of the routine, or ``None``.

    Returns:
        ``RoutineResult`` describing the outcome.

    Raises:
        DataLayerConnectionError: If the database connection is lost.
    """
    source_path = Path(source_path)
    replace_pairs = replace_pairs or {}
    result = RoutineResult(
        source_path=source_path,
        routine_name=routine_name_from_path(source_path, config.source_extension),
    )

    try:
        source = read_source(source_path, config.source_extension)

        result.reason = stale_reason(
            previous, source.mtime, replace_pairs, config.session, catalog_entry,
        )
        if result.reason is None:
            logger.debug("%s is up to date", result.routine_name)
            result.metadata = previous
            return result

        annotations = scan(source, replace_pairs)
        load_routine(data_layer, source, annotations, config.session, catalog_entry)
        result.reloaded = True

        parameters = merge_extended_parameters(
            fetch_parameters(data_layer, annotations.routine_name),
            annotations.extended_parameters,
            str(source_path),
        )

        columns = TableColumns()
        if annotations.designation.is_bulk_insert:
            columns = fetch_bulk_insert_columns(
                data_layer, annotations.routine_name, annotations.designation, str(source_path),
            )

        doc, result.warnings = build_routine_doc(source, parameters)
        result.metadata = synthesize_metadata(source, annotations, parameters, columns, doc)

    except DataLayerConnectionError:
        raise
    except (RoutineError, DataLayerError) as e:
        return _fail(result, e)
    except Exception as e:
        return _fail(result, RoutineError(str(e), source_path=str(source_path)))

    return result


def synthesize_metadata(
    source: RoutineSource,
    annotations: RoutineAnnotations,
    parameters: tuple[CatalogParameter, ...],
    columns: TableColumns,
    doc: RoutineDoc,
) -> BuildMetadata:
    """Assemble the metadata record of a freshly loaded routine."""
    return BuildMetadata(
        routine_name=annotations.routine_name,
        routine_type=annotations.routine_type,
        designation=annotations.designation,
        parameters=parameters,
        fields=columns.fields,
        column_types=columns.column_types,
        timestamp=source.mtime,
        replace=dict(sorted(annotations.placeholders.items())),
        doc=doc,
        spec_params={p.name: p for p in annotations.extended_parameters},
    )


def assess_routine(
    source_path: Path | str,
    config: LoaderConfig,
    previous: BuildMetadata | None = None,
    replace_pairs: dict[str, str] | None = None,
    catalog_entry: RoutineCatalogEntry | None = None,
) -> RoutineResult:
    """
    Report whether a routine is stale without changing anything.

    Used for dry runs: no statement is executed against the database.  A
    stale routine is scanned like a real load would scan it, so annotation
    and placeholder errors show up in the dry run.
    """
    source_path = Path(source_path)
    result = RoutineResult(
        source_path=source_path,
        routine_name=routine_name_from_path(source_path, config.source_extension),
    )
    try:
        source = read_source(source_path, config.source_extension)
    except ParseError as e:
        return _fail(result, e)

    result.reason = stale_reason(
        previous, source.mtime, replace_pairs or {}, config.session, catalog_entry,
    )
    if result.reason is None:
        result.metadata = previous
        logger.info("Up to date: %s", result.routine_name)
        return result

    try:
        scan(source, replace_pairs or {})
    except ParseError as e:
        return _fail(result, e)
    logger.info("Would load %s (%s)", result.routine_name, result.reason)
    return result


def _fail(result: RoutineResult, error: Exception) -> RoutineResult:
    logger.error("Failed to load %s: %s", result.source_path, error)
    result.error = error
    result.metadata = None
    return result


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def load_all(
    data_layer: AbstractDataLayer,
    config: LoaderConfig,
    only: list[Path | str] | None = None,
) -> BatchResult:
    """
    Load every stale routine and write the metadata store.

    Args:
        data_layer: Open data layer.
        config:     Loader configuration.
        only:       Restrict loading to these source files.  Obsolete routines
                    are then left alone and all other metadata is kept.

    Returns:
        ``BatchResult`` with one result per source file.

    Raises:
        DataLayerConnectionError: If the database connection is lost.
        MetadataError:            If the metadata store or the constants file
                                  can't be read, or the store can't be written.
    """
    if only is None:
        paths = discover_sources(config.source_dir, config.source_extension)
    else:
        paths = sorted(Path(p) for p in only)

    batch = BatchResult(dry_run=config.dry_run)
    sources, duplicates = _group_by_routine(paths, config.source_extension)
    batch.results.extend(duplicates)

    previous = read_metadata(config.metadata_path)
    catalog = fetch_routine_catalog(data_layer)
    replace_pairs = build_replace_pairs(data_layer, config.constants_path)
    current = dict(previous)

    for routine_name, path in sources.items():
        if config.dry_run:
            result = assess_routine(
                path, config, previous.get(routine_name), replace_pairs, catalog.get(routine_name),
            )
        else:
            result = compile_routine(
                path, data_layer, config,
                previous.get(routine_name), replace_pairs, catalog.get(routine_name),
            )
        batch.results.append(result)
        if result.success and result.metadata is not None:
            current[routine_name] = result.metadata

    batch.results.sort(key=lambda r: str(r.source_path))

    if only is None:
        known = {r.routine_name for r in batch.results}
        batch.dropped = _drop_obsolete(data_layer, config, catalog, known)
        for name in sorted(set(current) - known):
            logger.info("Removing metadata of %s: no source file", name)
            del current[name]

    if config.dry_run:
        logger.info("Dry-run: metadata store not written.")
    else:
        write_metadata(config.metadata_path, current)

    logger.info(
        "Loaded %d, failed %d, dropped %d of %d routine(s)",
        sum(1 for r in batch.results if r.reloaded and r.success),
        len(batch.failed),
        len(batch.dropped),
        len(batch.results),
    )
    return batch


def _group_by_routine(
    paths: list[Path],
    extension: str,
) -> tuple[dict[str, Path], list[RoutineResult]]:
    """Map routine names to paths; two files with one routine name both fail."""
    by_name: dict[str, list[Path]] = defaultdict(list)
    for path in paths:
        by_name[routine_name_from_path(path, extension)].append(path)

    sources = {}
    duplicates = []
    for name, group in by_name.items():
        if len(group) == 1:
            sources[name] = group[0]
            continue
        others = ", ".join(str(p) for p in group)
        for path in group:
            result = RoutineResult(source_path=path, routine_name=name)
            _fail(result, ParseError(f"Duplicate routine '{name}' in {others}.", source_path=str(path)))
            duplicates.append(result)
    return sources, duplicates


def _drop_obsolete(
    data_layer: AbstractDataLayer,
    config: LoaderConfig,
    catalog: dict[str, RoutineCatalogEntry],
    known: set[str],
) -> list[str]:
    """Drop catalog routines without a source file; returns the dropped names."""
    if not config.drop_obsolete:
        return []

    dropped = []
    for name in sorted(set(catalog) - known):
        entry = catalog[name]
        if config.dry_run:
            logger.info("Would drop obsolete %s %s", entry.routine_type, name)
            continue
        try:
            drop_routine(data_layer, entry.routine_type, name)
        except DataLayerConnectionError:
            raise
        except DataLayerError as e:
            logger.error("Could not drop obsolete %s %s: %s", entry.routine_type, name, e)
            continue
        logger.info("Dropped obsolete %s %s", entry.routine_type, name)
        dropped.append(name)
    return dropped


# ---------------------------------------------------------------------------
# Parse-only mode (no database)
# ---------------------------------------------------------------------------

def check(
    paths: list[Path | str],
    config: LoaderConfig,
) -> list[RoutineResult]:
    """
    Parse the annotations of each source file without a database.

    Column type placeholders (``@TABLE.COLUMN%type@``) need the catalog and
    are not checked.  ``@NAME@`` placeholders are checked against the
    constants file when one is configured.

    Returns:
        One ``RoutineResult`` per file; ``metadata`` is always ``None``.
    """
    constants = read_constants(config.constants_path) if config.constants_path else None

    results = []
    for path in sorted(Path(p) for p in paths):
        result = RoutineResult(
            source_path=path,
            routine_name=routine_name_from_path(path, config.source_extension),
        )
        try:
            source = read_source(path, config.source_extension)
            designation, designation_line = parse_designation(source)
            parse_routine_header(source)
            parse_extended_parameters(source, designation_line)
            if constants is not None:
                _check_constants(source, constants)
        except ParseError as e:
            _fail(result, e)
        else:
            logger.info("OK: %s (%s)", result.routine_name, designation.type)
        results.append(result)
    return results


def _check_constants(source: RoutineSource, constants: dict[str, str]) -> None:
    unknown = [
        t for t in find_placeholders(source.text)
        if not t.upper().endswith("%TYPE@") and t.upper() not in constants
    ]
    if unknown:
        raise PlaceholderError(
            f"Unknown placeholder(s) {', '.join(repr(t) for t in unknown)}.",
            source_path=str(source.path),
            placeholders=unknown,
        )
