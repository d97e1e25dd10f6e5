"""Main archiver orchestrator that coordinates all components."""

import math
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from org_archiver.checkpoint import Checkpoint, CheckpointManager
from org_archiver.commit_coordinator import DualSinkCommitCoordinator
from org_archiver.config import ArchiverConfig, RunConfig
from org_archiver.exceptions import CommitError, QueryError
from org_archiver.firestore_client import TRANSIENT_ERRORS, FirestoreManager
from org_archiver.metrics import ArchiverMetrics
from org_archiver.models import ArchiveResult, ArchiveStatus, Record, ResumeCursor
from org_archiver.partitioner import BatchPartitioner
from org_archiver.preflight import PreflightProber
from utils.logging import get_logger
from utils.retry import RetryConfig


class Archiver:
    """Moves one organization's documents from the live project to the archive project."""

    def __init__(
        self,
        config: ArchiverConfig,
        organization_id: str,
        dry_run: bool = False,
        source: Optional[FirestoreManager] = None,
        archive: Optional[FirestoreManager] = None,
        metrics: Optional[ArchiverMetrics] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize archiver.

        Args:
            config: Archiver configuration
            organization_id: Organization whose documents are archived
            dry_run: If True, query and log but don't write or delete anything
            source: Live project handle (built from config if omitted)
            archive: Archive project handle (built from config if omitted)
            metrics: Optional metrics collector
            logger: Optional logger instance
        """
        self.config = config
        self.organization_id = organization_id
        self.dry_run = dry_run
        self.logger = logger or get_logger("archiver")
        defaults = config.defaults

        self.source = source or FirestoreManager(config.source, "source", logger=self.logger)
        self.archive_db = archive or FirestoreManager(config.archive, "archive", logger=self.logger)
        self.metrics = metrics or ArchiverMetrics(logger=self.logger)
        self.prober = PreflightProber(
            self.source, sample_size=defaults.sample_size, logger=self.logger
        )
        self.retry_config = RetryConfig(
            max_attempts=defaults.retry_attempts,
            initial_delay=defaults.retry_initial_delay,
            max_delay=defaults.retry_max_delay,
            retryable_exceptions=TRANSIENT_ERRORS,
        )
        self.checkpoint_manager = (
            CheckpointManager(defaults.checkpoint_dir, logger=self.logger)
            if defaults.checkpoint_dir is not None
            else None
        )

    def verify_projects(self) -> None:
        """Log the project IDs both handles are bound to."""
        self.logger.info("Main project", project_id=self.source.project_id)
        self.logger.info("Archive project", project_id=self.archive_db.project_id)

    async def archive(self) -> dict[str, Any]:
        """Run the archival procedure for every configured collection.

        Returns:
            Dictionary with archival statistics and per-collection results
        """
        self.logger.info(
            "Starting archival run",
            organization_id=self.organization_id,
            dry_run=self.dry_run,
            collections=len(self.config.collections),
        )
        self.verify_projects()

        if self.dry_run:
            self.logger.info("Dry run mode enabled. No documents will be archived or deleted.")

        stats: dict[str, Any] = {
            "organization_id": self.organization_id,
            "dry_run": self.dry_run,
            "collections_processed": 0,
            "collections_failed": 0,
            "collections_skipped": 0,
            "records_matched": 0,
            "records_archived": 0,
            "batches_processed": 0,
            "start_time": datetime.now(timezone.utc).isoformat(),
            "results": [],
        }

        for collection in self.config.collections:
            run_config = RunConfig.for_collection(
                self.organization_id, collection, self.config.defaults, dry_run=self.dry_run
            )

            if not await self.prober.probe(run_config):
                self.logger.info(
                    "No documents found. Skipping archival",
                    collection=run_config.live_collection,
                )
                result = ArchiveResult(
                    organization_id=run_config.organization_id,
                    live_collection=run_config.live_collection,
                    archive_collection=run_config.archive_collection,
                    dry_run=run_config.dry_run,
                )
                stats["collections_skipped"] += 1
            else:
                result = await self.archive_collection(run_config)
                if result.succeeded:
                    stats["collections_processed"] += 1
                else:
                    stats["collections_failed"] += 1

            stats["records_matched"] += result.records_matched
            stats["records_archived"] += result.records_archived
            stats["batches_processed"] += result.batches_committed
            stats["results"].append(result.to_dict())

        stats["end_time"] = datetime.now(timezone.utc).isoformat()

        if stats["collections_failed"] == 0:
            stats["status"] = ArchiveStatus.SUCCESS.value
        elif any(r["status"] == ArchiveStatus.PARTIAL.value for r in stats["results"]):
            stats["status"] = ArchiveStatus.PARTIAL.value
        else:
            stats["status"] = ArchiveStatus.FATAL.value

        self._write_metrics()
        self.logger.info(
            "Archival run finished",
            **{k: v for k, v in stats.items() if k != "results"},
        )
        return stats

    async def archive_collection(self, run_config: RunConfig) -> ArchiveResult:
        """Archive every matching document of one collection, batch by batch.

        Errors never propagate: a query failure ends the run as ``fatal`` and a
        commit failure as ``partial`` with the cursor of the last committed
        batch. Batches committed before a failure stay committed.

        Args:
            run_config: Run configuration

        Returns:
            Typed result of the run
        """
        log = self.logger.bind(
            organization_id=run_config.organization_id,
            collection=run_config.live_collection,
        )
        result = ArchiveResult(
            organization_id=run_config.organization_id,
            live_collection=run_config.live_collection,
            archive_collection=run_config.archive_collection,
            dry_run=run_config.dry_run,
        )
        cursor = ResumeCursor()

        try:
            log.info(
                "Starting archival process",
                archive_collection=run_config.archive_collection,
                batch_size=run_config.batch_size,
            )

            if not run_config.dry_run:
                checkpoint = await self._load_checkpoint(run_config, log)
                if checkpoint:
                    cursor.batch_number = checkpoint.batch_number
                    cursor.records_archived = checkpoint.records_archived
                    log.info(
                        "Resuming after interrupted run",
                        previous_batches=checkpoint.batch_number,
                        previous_last_document_id=checkpoint.last_document_id,
                        previously_archived=checkpoint.records_archived,
                    )

            # Snapshot: documents changed after this query are not picked up
            records = await self.source.query_documents(
                run_config.live_collection,
                run_config.filter_field,
                run_config.organization_id,
            )
            result.records_matched = len(records)

            if not records:
                log.info("No documents match the archival criteria")
                await self._clear_checkpoint(run_config, log)
                return result

            result.batches_total = math.ceil(len(records) / run_config.batch_size)
            log.info(
                "Found documents to archive",
                count=len(records),
                batches=result.batches_total,
            )
            for record in records[: self.config.defaults.sample_size]:
                log.info(
                    "Document to archive",
                    document_id=record.doc_id,
                    filter_field=run_config.filter_field,
                    filter_value=record.data.get(run_config.filter_field),
                )

            coordinator = DualSinkCommitCoordinator(
                self.source,
                self.archive_db,
                run_config,
                retry_config=self.retry_config,
                metrics=self.metrics,
                logger=log,
            )
            partitioner = BatchPartitioner(run_config.batch_size)

            for record in records:
                batch = partitioner.add(record)
                if batch:
                    await self._commit_batch(coordinator, batch, run_config, result, cursor, log)

            remainder = partitioner.flush()
            if remainder:
                log.info("Committing final partial batch", records=len(remainder))
                await self._commit_batch(coordinator, remainder, run_config, result, cursor, log)

            if run_config.dry_run:
                log.info(
                    "Dry run completed",
                    would_archive=result.records_archived,
                    batches=result.batches_committed,
                )
            else:
                log.info(
                    "Archival process completed successfully",
                    records_archived=result.records_archived,
                    batches=result.batches_committed,
                )
                await self._clear_checkpoint(run_config, log)

        except CommitError as e:
            result.status = ArchiveStatus.PARTIAL
            result.error = str(e)
            result.resume_cursor = cursor
            log.error(
                "Archival stopped after commit failure",
                sink=e.sink,
                batch=e.batch_number,
                batches_committed=result.batches_committed,
                batches_remaining=result.batches_total - result.batches_committed,
                resume_cursor=cursor.to_dict(),
                error=str(e),
            )
        except QueryError as e:
            result.status = ArchiveStatus.FATAL
            result.error = str(e)
            log.error("Error fetching documents for archival", error=str(e))
        except Exception as e:
            result.status = ArchiveStatus.FATAL
            result.error = str(e)
            result.resume_cursor = cursor
            log.error("Error during archival process", error=str(e), exc_info=True)
        finally:
            self.metrics.record_run_status(run_config.live_collection, result.status.value)

        return result

    async def _commit_batch(
        self,
        coordinator: DualSinkCommitCoordinator,
        batch: list[Record],
        run_config: RunConfig,
        result: ArchiveResult,
        cursor: ResumeCursor,
        log: structlog.BoundLogger,
    ) -> None:
        """Commit one batch and advance the counters and resume cursor."""
        batch_number = result.batches_committed + 1
        commit_result = await coordinator.commit(batch, batch_number)

        result.batches_committed += 1
        result.records_archived += commit_result.records_committed

        if commit_result.dry_run:
            return

        cursor.batch_number += 1
        cursor.last_document_id = commit_result.last_document_id
        cursor.records_archived += commit_result.records_committed

        if self.checkpoint_manager:
            try:
                await self.checkpoint_manager.save_checkpoint(
                    Checkpoint.from_cursor(
                        run_config.organization_id, run_config.live_collection, cursor
                    )
                )
            except Exception as e:
                log.warning(
                    "Failed to save checkpoint (non-critical)",
                    batch=batch_number,
                    error=str(e),
                )

    async def _load_checkpoint(
        self, run_config: RunConfig, log: structlog.BoundLogger
    ) -> Optional[Checkpoint]:
        if not self.checkpoint_manager:
            return None
        try:
            return await self.checkpoint_manager.load_checkpoint(
                run_config.organization_id, run_config.live_collection
            )
        except Exception as e:
            log.warning("Failed to load checkpoint (non-critical)", error=str(e))
            return None

    async def _clear_checkpoint(self, run_config: RunConfig, log: structlog.BoundLogger) -> None:
        if not self.checkpoint_manager or run_config.dry_run:
            return
        try:
            await self.checkpoint_manager.delete_checkpoint(
                run_config.organization_id, run_config.live_collection
            )
        except Exception as e:
            log.warning("Failed to delete checkpoint (non-critical)", error=str(e))

    def _write_metrics(self) -> None:
        path = self.config.monitoring.metrics_textfile
        if path is None:
            return
        try:
            self.metrics.write_textfile(path)
        except Exception as e:
            self.logger.warning(
                "Failed to write metrics file (non-critical)",
                path=str(path),
                error=str(e),
            )
