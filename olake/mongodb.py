"""MongoDB connection settings and chunk planning for backfills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from bson import ObjectId

from olake.base import MONGO_PRIMARY_ID, Chunk

logger = logging.getLogger(__name__)

DISCOVER_TIME = timedelta(minutes=5)
CDC_CURSOR_FIELD = "_data"
DEFAULT_BACKOFF_COUNT = 3
DEFAULT_MAX_THREADS = 10


@dataclass
class MongoConfig:
    """Settings for connecting to a MongoDB deployment."""

    hosts: list[str] = field(default_factory=list)
    username: str = ""
    password: str = ""
    authdb: str = ""
    replica_set: str = ""
    read_preference: str = ""
    srv: bool = False
    server_ram: int = 0
    max_threads: int = 0
    database: str = ""
    default_mode: str = ""
    retry_count: int = 0
    partition_strategy: str = ""

    def uri(self) -> str:
        """Build the connection URI, filling in defaults on the way."""
        prefix = "mongodb+srv" if self.srv else "mongodb"
        options = f"?authSource={self.authdb}"
        if self.max_threads == 0:
            logger.info("setting max threads to default[%d]", DEFAULT_MAX_THREADS)
            self.max_threads = DEFAULT_MAX_THREADS
        if self.replica_set:
            if not self.read_preference:
                self.read_preference = "secondaryPreferred"
            options = (
                f"{options}&replicaSet={self.replica_set}"
                f"&readPreference={self.read_preference}"
            )
        auth = ""
        if self.username:
            auth = (
                f"{self.username}:{self.password}@" if self.password else f"{self.username}@"
            )
        return f"{prefix}://{auth}{','.join(self.hosts)}/{options}"

    def normalize_retry_count(self) -> int:
        """Turn the configured retry count into a total attempt count."""
        if self.retry_count < 0:
            logger.info("setting backoff retry count to default value %d", DEFAULT_BACKOFF_COUNT)
            self.retry_count = DEFAULT_BACKOFF_COUNT
        else:
            self.retry_count += 1
        return self.retry_count


def generate_pipeline(start: Any, end: Any) -> list[dict]:
    """Aggregation pipeline selecting ObjectId keys in ``[start, end)``, sorted."""
    conditions: list[dict] = [
        {
            "$and": [
                {"_id": {"$type": 7}},
                {"_id": {"$gte": start}},
            ]
        }
    ]
    if end is not None:
        conditions.append({"_id": {"$lt": end}})
    return [
        {"$match": {"$and": conditions}},
        {"$sort": {"_id": 1}},
    ]


def generate_min_object_id(moment: datetime) -> ObjectId:
    """Smallest ObjectId for the second of ``moment``."""
    return ObjectId.from_datetime(moment)


def handle_object_id(doc: dict) -> dict:
    """Replace an ObjectId primary key with its hex string, in place."""
    value = doc.get(MONGO_PRIMARY_ID)
    if isinstance(value, ObjectId):
        doc[MONGO_PRIMARY_ID] = str(value)
    return doc


def chunks_from_boundaries(boundaries: Iterable[Any]) -> list[Chunk]:
    """Chunks between consecutive split points, plus an open-ended last one."""
    points = list(boundaries)
    chunks = [Chunk(low, high) for low, high in zip(points, points[1:])]
    if points:
        chunks.append(Chunk(points[-1], None))
    return chunks


def chunks_from_buckets(buckets: Iterable[dict]) -> list[Chunk]:
    """Chunks from ``$bucketAuto`` results, plus an open-ended last one."""
    items = list(buckets)
    chunks = [Chunk(bucket["_id"]["min"], bucket["_id"]["max"]) for bucket in items]
    if items:
        chunks.append(Chunk(items[-1]["_id"]["max"], None))
    return chunks


def widen_extremes(first: datetime, last: datetime) -> tuple[datetime, datetime]:
    """Pad the time span of a collection by ten minutes on each side."""
    gap = timedelta(minutes=10)
    return first - gap, last + gap


def timestamp_chunks(first: datetime, last: datetime) -> list[Chunk]:
    """Split ``[first, last]`` into ObjectId ranges by creation time."""
    hours = (last - first).total_seconds() / 3600 / 6
    if hours < 1:
        hours = 1
    density = int(hours) * timedelta(seconds=10)
    chunks: list[Chunk] = []
    start = first
    while start < last:
        end = start + density
        low = generate_min_object_id(start)
        high = generate_min_object_id(end)
        if end > last:
            high = generate_min_object_id(last + timedelta(seconds=1))
        start = end
        chunks.append(Chunk(low, high))
    chunks.append(Chunk(generate_min_object_id(last), None))
    return chunks


def is_authorization_error(error: Optional[BaseException]) -> bool:
    """Whether a splitVector failure stems from missing privileges."""
    if error is None:
        return False
    message = str(error)
    return "not authorized" in message or "CMD_NOT_ALLOWED" in message