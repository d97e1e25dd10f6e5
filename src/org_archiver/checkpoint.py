"""Checkpoint management for resuming interrupted archival runs."""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from org_archiver.exceptions import CheckpointError
from org_archiver.models import ResumeCursor
from utils.logging import get_logger

CHECKPOINT_VERSION = "1.0"


class Checkpoint:
    """Represents the last batch committed for one organization and collection."""

    def __init__(
        self,
        organization_id: str,
        collection: str,
        batch_number: int,
        last_document_id: Optional[str],
        records_archived: int,
        checkpoint_time: datetime,
    ) -> None:
        """Initialize checkpoint.

        Args:
            organization_id: Organization being archived
            collection: Live collection name
            batch_number: Last committed batch number (across resumed runs)
            last_document_id: ID of the last document in that batch
            records_archived: Total records archived so far (across resumed runs)
            checkpoint_time: When checkpoint was created
        """
        self.organization_id = organization_id
        self.collection = collection
        self.batch_number = batch_number
        self.last_document_id = last_document_id
        self.records_archived = records_archived
        self.checkpoint_time = checkpoint_time

    @classmethod
    def from_cursor(
        cls, organization_id: str, collection: str, cursor: ResumeCursor
    ) -> "Checkpoint":
        return cls(
            organization_id=organization_id,
            collection=collection,
            batch_number=cursor.batch_number,
            last_document_id=cursor.last_document_id,
            records_archived=cursor.records_archived,
            checkpoint_time=datetime.now(timezone.utc),
        )

    def to_cursor(self) -> ResumeCursor:
        return ResumeCursor(
            batch_number=self.batch_number,
            last_document_id=self.last_document_id,
            records_archived=self.records_archived,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert checkpoint to dictionary."""
        return {
            "version": CHECKPOINT_VERSION,
            "organization_id": self.organization_id,
            "collection": self.collection,
            "batch_number": self.batch_number,
            "last_document_id": self.last_document_id,
            "records_archived": self.records_archived,
            "checkpoint_time": self.checkpoint_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Checkpoint":
        """Create checkpoint from dictionary.

        Raises:
            CheckpointError: If data is invalid
        """
        try:
            return cls(
                organization_id=data["organization_id"],
                collection=data["collection"],
                batch_number=int(data["batch_number"]),
                last_document_id=data.get("last_document_id"),
                records_archived=int(data["records_archived"]),
                checkpoint_time=datetime.fromisoformat(
                    data["checkpoint_time"].replace("Z", "+00:00")
                ),
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise CheckpointError(
                f"Invalid checkpoint data: {e}",
                context={"data": data},
            ) from e


class CheckpointManager:
    """Stores checkpoints as JSON files in a local directory."""

    def __init__(
        self,
        checkpoint_dir: Path,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.checkpoint_dir = Path(checkpoint_dir)
        self.logger = logger or get_logger("checkpoint_manager")

    def checkpoint_path(self, organization_id: str, collection: str) -> Path:
        """Checkpoint file for an organization and collection."""
        # Organization IDs are free-form; keep the file name portable
        safe_org = re.sub(r"[^A-Za-z0-9_.-]", "_", organization_id)
        return self.checkpoint_dir / f"{collection}_{safe_org}.checkpoint.json"

    async def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        """Save checkpoint, replacing any previous one.

        Raises:
            CheckpointError: If the file cannot be written
        """
        path = self.checkpoint_path(checkpoint.organization_id, checkpoint.collection)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(checkpoint.to_dict(), indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise CheckpointError(
                f"Failed to save checkpoint: {e}",
                context={"file": str(path)},
            ) from e

        self.logger.debug(
            "Checkpoint saved",
            organization_id=checkpoint.organization_id,
            collection=checkpoint.collection,
            batch_number=checkpoint.batch_number,
            file=str(path),
        )

    async def load_checkpoint(self, organization_id: str, collection: str) -> Optional[Checkpoint]:
        """Load checkpoint, or None if there is none.

        Raises:
            CheckpointError: If the checkpoint file is corrupt
        """
        path = self.checkpoint_path(organization_id, collection)
        if not path.exists():
            self.logger.debug(
                "Checkpoint file not found (first run or previous run completed)",
                organization_id=organization_id,
                collection=collection,
                file=str(path),
            )
            return None

        try:
            checkpoint = Checkpoint.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(
                f"Failed to load checkpoint: {e}",
                context={"file": str(path)},
            ) from e

        self.logger.info(
            "Checkpoint loaded",
            organization_id=organization_id,
            collection=collection,
            batch_number=checkpoint.batch_number,
            records_archived=checkpoint.records_archived,
            file=str(path),
        )
        return checkpoint

    async def delete_checkpoint(self, organization_id: str, collection: str) -> None:
        """Delete checkpoint after successful completion.

        Raises:
            CheckpointError: If the file exists but cannot be removed
        """
        path = self.checkpoint_path(organization_id, collection)
        try:
            if path.exists():
                path.unlink()
                self.logger.info(
                    "Checkpoint deleted",
                    organization_id=organization_id,
                    collection=collection,
                    file=str(path),
                )
        except OSError as e:
            raise CheckpointError(
                f"Failed to delete checkpoint: {e}",
                context={"file": str(path)},
            ) from e
