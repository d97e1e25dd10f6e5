"""Splitting matched documents into commit-sized batches."""

from collections.abc import Iterable, Iterator
from typing import Optional

from org_archiver.models import Record


class BatchPartitioner:
    """Accumulates records and hands out full batches.

    Every record passed to :meth:`add` ends up in exactly one batch returned
    by :meth:`add` or :meth:`flush`, in input order.
    """

    def __init__(self, batch_size: int) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size
        self._current: list[Record] = []
        self.batches_emitted = 0
        self.records_seen = 0

    def __len__(self) -> int:
        return len(self._current)

    def add(self, record: Record) -> Optional[list[Record]]:
        """Append a record; return the batch once it reaches ``batch_size``."""
        self._current.append(record)
        self.records_seen += 1
        if len(self._current) < self.batch_size:
            return None
        return self._emit()

    def flush(self) -> Optional[list[Record]]:
        """Return the non-empty remainder, or None if nothing is pending."""
        if not self._current:
            return None
        return self._emit()

    def _emit(self) -> list[Record]:
        batch, self._current = self._current, []
        self.batches_emitted += 1
        return batch


def partition(records: Iterable[Record], batch_size: int) -> Iterator[list[Record]]:
    """Yield consecutive batches of at most ``batch_size`` records."""
    partitioner = BatchPartitioner(batch_size)
    for record in records:
        batch = partitioner.add(record)
        if batch:
            yield batch
    remainder = partitioner.flush()
    if remainder:
        yield remainder
