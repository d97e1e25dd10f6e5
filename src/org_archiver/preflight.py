"""Cheap existence check run before the destructive archival pass."""

from typing import Optional

import structlog

from org_archiver.config import RunConfig
from org_archiver.firestore_client import FirestoreManager
from utils.logging import get_logger


class PreflightProber:
    """Checks that the live collection holds documents for the organization."""

    def __init__(
        self,
        source: FirestoreManager,
        sample_size: int = 5,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.source = source
        self.sample_size = sample_size
        self.logger = logger or get_logger("preflight")

    async def probe(self, run_config: RunConfig) -> bool:
        """Return True if at least one document matches the filter.

        Query errors are logged and reported as False, so a failing query can
        never lead into an archival pass.

        Args:
            run_config: Run configuration

        Returns:
            Whether any matching document exists
        """
        self.logger.info(
            "Testing fetch before archival",
            organization_id=run_config.organization_id,
            collection=run_config.live_collection,
        )

        try:
            sample = await self.source.query_documents(
                run_config.live_collection,
                run_config.filter_field,
                run_config.organization_id,
                limit=self.sample_size,
            )
        except Exception as e:
            self.logger.error(
                "Error during test fetch",
                organization_id=run_config.organization_id,
                collection=run_config.live_collection,
                error=str(e),
            )
            return False

        if not sample:
            self.logger.info(
                "No documents found for testing",
                organization_id=run_config.organization_id,
                collection=run_config.live_collection,
            )
            return False

        self.logger.info("Found documents for testing", sample_count=len(sample))
        for record in sample:
            self.logger.info(
                "Sample document",
                document_id=record.doc_id,
                filter_field=run_config.filter_field,
                filter_value=record.data.get(run_config.filter_field),
            )
        return True
