"""Main entry point for the archiver CLI."""

import asyncio
import sys
import uuid
from pathlib import Path
from typing import Optional

import click

from org_archiver.archiver import Archiver
from org_archiver.config import MAX_BATCH_SIZE, ProjectConfig, load_config
from org_archiver.exceptions import ConfigurationError
from org_archiver.firestore_client import FirestoreManager
from utils.logging import configure_logging
from utils.output import print_summary


@click.command()
@click.option(
    "--org",
    "-o",
    "organization_id",
    required=True,
    help="Organization ID to filter documents",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    default=False,
    help="Run without performing any write/delete operations",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option(
    "--source-credentials",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Service account JSON for the live project (default: serviceAccountKey.json)",
)
@click.option(
    "--archive-credentials",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Service account JSON for the archive project (default: archiveServiceAccountKey.json)",
)
@click.option(
    "--collection",
    help="Process only the specified live collection",
)
@click.option(
    "--batch-size",
    type=click.IntRange(1, MAX_BATCH_SIZE),
    help=f"Documents per write batch (max {MAX_BATCH_SIZE})",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default="console",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Log format: 'console' for human-readable output, 'json' for structured logs",
)
@click.option(
    "--log-file",
    default="archive.log",
    type=click.Path(dir_okay=False, path_type=Path),
    show_default=True,
    help="Log file appended to in addition to the console",
)
def main(
    organization_id: str,
    dry_run: bool,
    config: Optional[Path],
    source_credentials: Optional[Path],
    archive_credentials: Optional[Path],
    collection: Optional[str],
    batch_size: Optional[int],
    log_level: str,
    log_format: str,
    log_file: Path,
) -> None:
    """Archive an organization's Firestore documents into the archive project.

    Matching documents are copied to the archive collection and then deleted
    from the live collection, one write batch at a time. Exits non-zero on a
    configuration error or when any collection was not fully archived.
    """
    logger = configure_logging(
        log_level=log_level,
        log_format=log_format,
        correlation_id=uuid.uuid4().hex[:12],
        log_file=log_file,
    )
    logger = logger.bind(component="main", organization_id=organization_id)

    if not organization_id.strip():
        logger.error("Organization ID must not be empty")
        sys.exit(1)

    try:
        archiver_config = load_config(config)

        if source_credentials:
            archiver_config.source = ProjectConfig(service_account_path=source_credentials)
        if archive_credentials:
            archiver_config.archive = ProjectConfig(service_account_path=archive_credentials)
        if batch_size:
            archiver_config.defaults.batch_size = batch_size

        if collection:
            archiver_config.collections = [
                c for c in archiver_config.collections if c.name == collection
            ]
            if not archiver_config.collections:
                raise ConfigurationError(
                    f"Collection not configured: {collection}",
                    context={"collection": collection},
                )

        # Both keys must be valid before anything is read or written
        source = FirestoreManager(archiver_config.source, "source", logger=logger)
        archive = FirestoreManager(archiver_config.archive, "archive", logger=logger)
        source.connect()
        archive.connect()

    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        sys.exit(1)

    archiver = Archiver(
        archiver_config,
        organization_id,
        dry_run=dry_run,
        source=source,
        archive=archive,
        logger=logger,
    )

    try:
        stats = asyncio.run(archiver.archive())
    except Exception as e:
        logger.exception("Archival failed", error=str(e))
        sys.exit(1)

    if log_format == "console":
        print_summary(stats)

    if stats["status"] != "success":
        sys.exit(1)


if __name__ == "__main__":
    main()
