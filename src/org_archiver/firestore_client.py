"""Firestore connection, query and write batch management."""

from typing import Any, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account
from structlog import BoundLogger

from org_archiver.config import MAX_BATCH_SIZE, ProjectConfig
from org_archiver.exceptions import ConfigurationError, QueryError
from org_archiver.models import Record
from utils.logging import get_logger

# Errors worth retrying a commit on; everything else fails the batch at once
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.Aborted,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.TooManyRequests,
)


class StagedBatch:
    """Write operations staged against one Firestore project, applied by one commit."""

    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client
        self._batch = client.batch()
        self._operations = 0

    def __len__(self) -> int:
        return self._operations

    def _check_capacity(self) -> None:
        if self._operations >= MAX_BATCH_SIZE:
            raise ValueError(f"A write batch holds at most {MAX_BATCH_SIZE} operations")

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Stage an upsert of the full field map at ``collection/doc_id``."""
        self._check_capacity()
        self._batch.set(self._client.collection(collection).document(doc_id), data)
        self._operations += 1

    def delete(self, collection: str, doc_id: str) -> None:
        """Stage a delete of ``collection/doc_id`` (no-op if already gone)."""
        self._check_capacity()
        self._batch.delete(self._client.collection(collection).document(doc_id))
        self._operations += 1

    async def commit(self) -> None:
        """Atomically apply every staged operation."""
        await self._batch.commit()


class FirestoreManager:
    """Manages the Firestore client for one project."""

    def __init__(
        self,
        config: ProjectConfig,
        name: str,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize Firestore manager.

        Args:
            config: Project credential configuration
            name: Role of this project in the run ("source" or "archive")
            logger: Optional logger instance
        """
        self.config = config
        self.name = name
        self.logger = logger or get_logger("firestore")
        self._client: Optional[firestore.AsyncClient] = None
        self._project_id: Optional[str] = None

    @property
    def project_id(self) -> str:
        """Project ID taken from the service account key."""
        if self._project_id is None:
            self.connect()
        assert self._project_id is not None
        return self._project_id

    @property
    def client(self) -> firestore.AsyncClient:
        """Get the Firestore client, connecting on first use."""
        if self._client is None:
            self.connect()
        assert self._client is not None
        return self._client

    def connect(self) -> None:
        """Create the Firestore client from the service account key.

        Raises:
            ConfigurationError: If the service account key is missing or invalid
        """
        info = self.config.load_service_account()
        try:
            credentials = service_account.Credentials.from_service_account_info(info)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid service account credentials: {e}",
                context={"project": self.name, "path": str(self.config.service_account_path)},
            ) from e

        self._project_id = info["project_id"]
        self._client = firestore.AsyncClient(project=self._project_id, credentials=credentials)
        self.logger.debug(
            "Firestore client created",
            project=self.name,
            project_id=self._project_id,
        )

    async def query_documents(
        self,
        collection: str,
        field: str,
        value: Any,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """Fetch documents where ``field == value``, in server order.

        Args:
            collection: Collection name
            field: Field to filter on
            value: Value the field must equal
            limit: Optional maximum number of documents

        Returns:
            List of records (snapshot of the matching documents)

        Raises:
            QueryError: If the query fails
        """
        query = self.client.collection(collection).where(filter=FieldFilter(field, "==", value))
        if limit is not None:
            query = query.limit(limit)

        try:
            records = [
                Record(doc_id=snapshot.id, data=snapshot.to_dict() or {})
                async for snapshot in query.stream()
            ]
        except Exception as e:
            raise QueryError(
                f"Failed to query documents: {e}",
                context={
                    "project": self.name,
                    "collection": collection,
                    "field": field,
                },
            ) from e

        self.logger.debug(
            "Documents queried",
            project=self.name,
            collection=collection,
            count=len(records),
            limit=limit,
        )
        return records

    def batch(self) -> StagedBatch:
        """Start a new write batch against this project."""
        return StagedBatch(self.client)
