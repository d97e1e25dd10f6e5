"""Committing a batch to the archive project and deleting it from the source."""

import time
from collections.abc import Awaitable
from typing import Callable, Optional

import structlog

from org_archiver.config import RunConfig
from org_archiver.exceptions import CommitError
from org_archiver.firestore_client import TRANSIENT_ERRORS, FirestoreManager
from org_archiver.metrics import ArchiverMetrics
from org_archiver.models import CommitResult, Record
from utils.logging import get_logger
from utils.retry import RetryConfig, retry_async


class DualSinkCommitCoordinator:
    """Writes a batch to the archive collection, then deletes it from the live one.

    The two commits are independent atomic operations: each sink's batch
    either fully applies or fully fails, but nothing ties the two together.
    With ``fail_closed`` set, the delete is only attempted after the archive
    write committed, so a document is never removed without a confirmed copy.
    """

    def __init__(
        self,
        source: FirestoreManager,
        archive: FirestoreManager,
        run_config: RunConfig,
        retry_config: Optional[RetryConfig] = None,
        metrics: Optional[ArchiverMetrics] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        """Initialize commit coordinator.

        Args:
            source: Live project handle (documents are deleted here)
            archive: Archive project handle (documents are written here)
            run_config: Run configuration
            retry_config: Retry policy for each sink commit
            metrics: Optional metrics collector
            logger: Optional logger instance
        """
        self.source = source
        self.archive = archive
        self.run_config = run_config
        self.retry_config = retry_config or RetryConfig(retryable_exceptions=TRANSIENT_ERRORS)
        self.metrics = metrics
        self.logger = logger or get_logger("commit_coordinator")

    async def commit(
        self, batch: list[Record], batch_number: int, dry_run: Optional[bool] = None
    ) -> CommitResult:
        """Archive and delete one batch, or log what would happen in dry-run mode.

        Args:
            batch: Records to move (1 to batch_size)
            batch_number: 1-based batch number, for logs and errors
            dry_run: Override the run configuration's dry-run flag

        Returns:
            Commit result

        Raises:
            CommitError: If either sink commit fails after retries
        """
        if not batch:
            raise ValueError("Cannot commit an empty batch")
        if len(batch) > self.run_config.batch_size:
            raise ValueError(
                f"Batch of {len(batch)} exceeds batch_size {self.run_config.batch_size}"
            )

        if self.run_config.dry_run if dry_run is None else dry_run:
            return self._simulate(batch, batch_number)

        started = time.monotonic()
        archive_error: Optional[CommitError] = None

        try:
            await self._commit_sink("archive", self._stage_archive_writes, batch, batch_number)
        except CommitError as e:
            if self.run_config.fail_closed:
                self.logger.error(
                    "Archive write failed, skipping delete for this batch",
                    batch=batch_number,
                    records=len(batch),
                )
                raise
            # Without fail_closed the delete runs regardless of the archive write
            self.logger.warning(
                "Archive write failed, deleting anyway (fail_closed disabled)",
                batch=batch_number,
                records=len(batch),
            )
            archive_error = e

        try:
            await self._commit_sink("source", self._stage_source_deletes, batch, batch_number)
        except CommitError as e:
            if archive_error is not None:
                raise archive_error from e
            raise

        if archive_error is not None:
            raise archive_error

        duration = time.monotonic() - started
        if self.metrics:
            self.metrics.record_batch_committed(
                collection=self.run_config.live_collection,
                record_count=len(batch),
                duration_seconds=duration,
            )

        self.logger.info(
            "Archived and deleted batch",
            batch=batch_number,
            records=len(batch),
            duration_seconds=round(duration, 3),
        )
        return CommitResult(
            batch_number=batch_number,
            records_committed=len(batch),
            archived=True,
            deleted=True,
            last_document_id=batch[-1].doc_id,
        )

    def _simulate(self, batch: list[Record], batch_number: int) -> CommitResult:
        for record in batch:
            self.logger.info(
                "Dry run: would archive and delete document",
                document_id=record.doc_id,
                batch=batch_number,
            )
        self.logger.info(
            "Dry run: would archive and delete batch",
            batch=batch_number,
            records=len(batch),
        )
        return CommitResult(
            batch_number=batch_number,
            records_committed=len(batch),
            dry_run=True,
            last_document_id=batch[-1].doc_id,
        )

    async def _stage_archive_writes(self, batch: list[Record]) -> None:
        staged = self.archive.batch()
        for record in batch:
            staged.set(self.run_config.archive_collection, record.doc_id, record.data)
        await staged.commit()

    async def _stage_source_deletes(self, batch: list[Record]) -> None:
        staged = self.source.batch()
        for record in batch:
            staged.delete(self.run_config.live_collection, record.doc_id)
        await staged.commit()

    async def _commit_sink(
        self,
        sink: str,
        stage_and_commit: Callable[[list[Record]], Awaitable[None]],
        batch: list[Record],
        batch_number: int,
    ) -> None:
        """Stage and commit one sink with retries; a fresh batch is staged per attempt."""
        try:
            await retry_async(
                stage_and_commit,
                batch,
                config=self.retry_config,
                logger=self.logger,
                operation=f"{sink}_commit",
            )
        except Exception as e:
            if self.metrics:
                self.metrics.record_commit_failure(
                    collection=self.run_config.live_collection, sink=sink
                )
            raise CommitError(
                f"Failed to commit {sink} batch {batch_number}: {e}",
                sink=sink,
                batch_number=batch_number,
                context={
                    "collection": (
                        self.run_config.archive_collection
                        if sink == "archive"
                        else self.run_config.live_collection
                    ),
                    "records": len(batch),
                    "first_document_id": batch[0].doc_id,
                },
            ) from e
