"""End-to-end migration: places.sqlite in, datom store out."""

from __future__ import annotations

import logging
from contextlib import closing

from places_transact.catalog import DEFAULT_CATALOG, AttributeCatalog
from places_transact.config import MigrationConfig
from places_transact.exceptions import DestinationExistsError, SchemaError
from places_transact.places.reader import PlacesReader
from places_transact.store.sqlite import SQLiteDatomStore, load_default_schema
from places_transact.transact.driver import MigrationDriver, MigrationSummary, ProgressCallback

logger = logging.getLogger(__name__)


def migrate(
    config: MigrationConfig,
    on_progress: ProgressCallback | None = None,
    catalog: AttributeCatalog = DEFAULT_CATALOG,
) -> MigrationSummary:
    """Copy every place and visit from the source into a new store.

    A failure leaves the output in whatever state the last successful
    commit produced.
    """
    check_destination(config)
    schema = read_schema(config)

    reader = PlacesReader(config.source_path)
    place_count = reader.count_places()
    visit_count = reader.count_visits()
    logger.info("Querying %d places (%d visits)", place_count, visit_count)

    prepare_destination(config)
    with SQLiteDatomStore(config.output_path) as store:
        store.bootstrap_schema(schema)
        driver = MigrationDriver(store, catalog, buffer_size=config.buffer_size, on_progress=on_progress)
        with closing(reader.iter_rows()) as rows:
            summary = driver.run(rows, total=place_count)

    logger.info(
        "Done! %d places, %d visits, %d terms in %d transactions",
        summary.places,
        summary.visits,
        summary.total_terms,
        summary.commits,
    )
    return summary


def check_destination(config: MigrationConfig) -> None:
    """Refuse to reuse an existing output unless overwriting was requested."""
    if config.output_path.exists() and not config.overwrite:
        raise DestinationExistsError(
            f"{config.output_path} already exists. Pass overwrite to replace it."
        )


def prepare_destination(config: MigrationConfig) -> None:
    """Remove an existing output; only called once the source has been read."""
    check_destination(config)
    if not config.output_path.exists():
        return
    logger.warning("Removing existing store at %s", config.output_path)
    config.output_path.unlink()


def read_schema(config: MigrationConfig) -> str:
    if config.schema_path is None:
        return load_default_schema()
    try:
        return config.schema_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaError(f"Failed to read schema from {config.schema_path}: {e}") from e
