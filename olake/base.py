"""Shared driver building blocks: constants, data types, chunks, stream cache and retries."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

PARQUET_FILE_EXT = "parquet"
MONGO_PRIMARY_ID = "_id"
MONGO_PRIMARY_ID_PREFIX = 'ObjectID("'
MONGO_PRIMARY_ID_SUFFIX = '")'
OLAKE_ID = "_olake_id"
OLAKE_TIMESTAMP = "_olake_insert_time"
CDC_TIMESTAMP = "_cdc_timestamp"
OP_TYPE = "_op_type"

DEFAULT_RETRY_COUNT = 3
DEFAULT_THREAD_COUNT = 3

T = TypeVar("T")


class DataType(str, Enum):
    """Column data types understood by the writers."""

    NULL = "null"
    INT32 = "integer_small"
    INT64 = "integer"
    FLOAT32 = "number_small"
    FLOAT64 = "number"
    STRING = "string"
    BOOL = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    TIMESTAMP = "timestamp"
    UNKNOWN = "unknown"


DEFAULT_COLUMNS: dict[str, DataType] = {
    CDC_TIMESTAMP: DataType.TIMESTAMP,
    OLAKE_ID: DataType.STRING,
    OLAKE_TIMESTAMP: DataType.INT64,
}


@dataclass(frozen=True)
class Chunk:
    """A half-open range of a table's split key; ``None`` means unbounded."""

    min: Any = None
    max: Any = None


class Driver:
    """State shared by all source drivers: a cache of discovered streams."""

    def __init__(self, cdc_support: bool = False, state: Any = None) -> None:
        self._streams: dict[str, Any] = {}
        self._lock = threading.Lock()
        self.cdc_support = cdc_support
        self.state = state

    def change_stream_supported(self) -> bool:
        return self.cdc_support

    def get_streams(self) -> list:
        """Return every cached stream."""
        with self._lock:
            return list(self._streams.values())

    def add_stream(self, stream: Any) -> None:
        """Cache a stream under its identifier."""
        with self._lock:
            self._streams[stream.id] = stream

    def get_stream(self, stream_id: str) -> Optional[Any]:
        """Return the cached stream with this identifier, or ``None``."""
        with self._lock:
            return self._streams.get(stream_id)


def retry_on_backoff(attempts: int, sleep: float, func: Callable[[], T]) -> Optional[T]:
    """Call ``func`` up to ``attempts`` times, doubling the pause between retries.

    The first retry happens immediately; later ones wait ``sleep`` seconds,
    then twice as long, and so on. The last error is re-raised.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:  # noqa: BLE001 - any failure is retried
            last_error = exc
            if attempt != 0:
                logger.info(
                    "retry attempt[%d], retrying after %.2f seconds due to err: %s",
                    attempt,
                    sleep,
                    exc,
                )
                time.sleep(sleep)
                sleep *= 2
    if last_error is not None:
        raise last_error
    return None