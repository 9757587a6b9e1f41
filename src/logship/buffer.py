"""In-memory pending-record buffer with a bounded retention policy."""

from __future__ import annotations

from typing import Any, List


def is_empty_record(record: Any) -> bool:
    if record is None:
        return True
    if isinstance(record, (str, bytes, dict, list, tuple)):
        return len(record) == 0
    return False


class RecordBuffer:
    """Ordered batch of records waiting to be flushed.

    Not synchronized: the owning shipper guards every call with its buffer
    lock. ``detach`` hands out the current list and starts a new one, so a
    detached batch can be sent while new records keep accumulating.
    """

    def __init__(self, retention_limit: int) -> None:
        self._retention_limit = retention_limit
        self._records: List[Any] = []

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: Any) -> int:
        self._records.append(record)
        return len(self._records)

    def detach(self) -> List[Any]:
        batch = self._records
        self._records = []
        return batch

    def restore(self, batch: List[Any]) -> int:
        """Put a failed batch back in front of newer records.

        Returns the number of oldest records dropped to keep the buffer
        within the retention limit.
        """
        if batch:
            self._records = list(batch) + self._records
        overflow = len(self._records) - self._retention_limit
        if overflow <= 0:
            return 0
        del self._records[:overflow]
        return overflow

    @property
    def retention_limit(self) -> int:
        return self._retention_limit


__all__ = ["RecordBuffer", "is_empty_record"]
