"""MySQL connection settings, type mapping and chunk planning for backfills."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import quote_plus

from olake.base import DEFAULT_RETRY_COUNT, DEFAULT_THREAD_COUNT, Chunk, DataType

logger = logging.getLogger(__name__)

DISCOVER_TIME = timedelta(minutes=5)
DEFAULT_PORT = 3306
DEFAULT_HOST = "localhost"
DEFAULT_DATABASE = "mysql"
DEFAULT_INITIAL_WAIT_TIME = 10
CDC_CONFIG_KEY = "intial_wait_time"

MYSQL_TYPE_TO_DATA_TYPE: dict[str, DataType] = {
    # integer types
    "tinyint": DataType.INT64,
    "smallint": DataType.INT64,
    "mediumint": DataType.INT64,
    "int": DataType.INT64,
    "integer": DataType.INT64,
    "bigint": DataType.INT64,
    # floating point types
    "float": DataType.FLOAT64,
    "double": DataType.FLOAT64,
    "real": DataType.FLOAT64,
    "decimal": DataType.FLOAT64,
    "numeric": DataType.FLOAT64,
    # string types
    "char": DataType.STRING,
    "varchar": DataType.STRING,
    "tinytext": DataType.STRING,
    "text": DataType.STRING,
    "mediumtext": DataType.STRING,
    "longtext": DataType.STRING,
    # binary types
    "binary": DataType.STRING,
    "varbinary": DataType.STRING,
    "tinyblob": DataType.STRING,
    "blob": DataType.STRING,
    "mediumblob": DataType.STRING,
    "longblob": DataType.STRING,
    # date and time types
    "date": DataType.TIMESTAMP,
    "time": DataType.TIMESTAMP,
    "datetime": DataType.TIMESTAMP,
    "timestamp": DataType.TIMESTAMP,
    "year": DataType.INT64,
    # json
    "json": DataType.STRING,
    # enum and set
    "enum": DataType.STRING,
    "set": DataType.STRING,
    # geometry types
    "geometry": DataType.STRING,
    "point": DataType.STRING,
    "linestring": DataType.STRING,
    "polygon": DataType.STRING,
    "multipoint": DataType.STRING,
    "multilinestring": DataType.STRING,
    "multipolygon": DataType.STRING,
    "geometrycollection": DataType.STRING,
}


@dataclass
class MySQLCDC:
    """Binlog change-capture settings."""

    initial_wait_time: int = 0

    def __post_init__(self) -> None:
        if self.initial_wait_time == 0:
            self.initial_wait_time = DEFAULT_INITIAL_WAIT_TIME

    @classmethod
    def from_update_method(cls, update_method: Any) -> Optional["MySQLCDC"]:
        """Read CDC settings from an ``update_method`` mapping, if it holds any."""
        if not isinstance(update_method, Mapping) or CDC_CONFIG_KEY not in update_method:
            return None
        logger.info("Found CDC Configuration")
        return cls(initial_wait_time=int(update_method[CDC_CONFIG_KEY] or 0))


@dataclass
class MySQLConfig:
    """Settings for connecting to a MySQL server."""

    host: str = ""
    username: str = ""
    password: str = ""
    database: str = ""
    port: int = 0
    tls_skip_verify: bool = False
    update_method: Any = None
    default_mode: str = ""
    max_threads: int = 0
    retry_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MySQLConfig":
        """Build a configuration from its JSON form."""
        return cls(
            host=data.get("hosts", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            database=data.get("database", ""),
            port=int(data.get("port", 0)),
            tls_skip_verify=bool(data.get("tls_skip_verify", False)),
            update_method=data.get("update_method"),
            default_mode=data.get("default_mode", ""),
            max_threads=int(data.get("max_threads", 0)),
            retry_count=int(data.get("backoff_retry_count", 0)),
        )

    def uri(self) -> str:
        """Build the driver connection string, defaulting the port."""
        if self.port == 0:
            self.port = DEFAULT_PORT
        host = self.host or DEFAULT_HOST
        return (
            f"{quote_plus(self.username, safe='')}:{quote_plus(self.password, safe='')}"
            f"@tcp({host}:{self.port})/{quote_plus(self.database, safe='')}"
        )

    def validate(self) -> None:
        """Check required fields and fill in defaults; raise ValueError if invalid."""
        if not self.host:
            raise ValueError("empty host name")
        if "http" in self.host:
            raise ValueError(f"host should not contain http or https: {self.host}")
        if self.port <= 0 or self.port > 65535:
            raise ValueError("invalid port number: must be between 1 and 65535")
        if not self.username:
            raise ValueError("username is required")
        if not self.password:
            raise ValueError("password is required")
        if not self.database:
            self.database = DEFAULT_DATABASE
        if self.max_threads <= 0:
            self.max_threads = DEFAULT_THREAD_COUNT
        if self.retry_count <= 0:
            self.retry_count = DEFAULT_RETRY_COUNT


def mysql_data_type(data_type: str) -> DataType:
    """Map a MySQL column type to a data type, falling back to string."""
    mapped = MYSQL_TYPE_TO_DATA_TYPE.get(data_type)
    if mapped is None:
        logger.warning("Unsupported MySQL type '%s', defaulting to String", data_type)
        return DataType.STRING
    return mapped


def calculate_chunk_size(total_records: int, max_threads: int) -> int:
    """Rows per chunk so that there are about eight chunks per thread."""
    divisor = max_threads * 8
    if divisor == 0:
        raise ZeroDivisionError("max_threads must not be zero")
    return int(total_records / divisor)


def _compare(left: Any, right: Any) -> int:
    if left is None and right is None:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1
    try:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0
    except TypeError:
        left_text, right_text = str(left), str(right)
        return (left_text > right_text) - (left_text < right_text)


def sort_chunks(chunks: Iterable[Chunk]) -> list[Chunk]:
    """Order chunks by their lower bound; an unbounded start comes first."""
    return sorted(chunks, key=functools.cmp_to_key(lambda a, b: _compare(a.min, b.min)))