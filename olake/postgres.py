"""PostgreSQL connection settings, type mapping and chunk planning for backfills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional
from urllib.parse import quote_plus, urlencode

from olake.base import Chunk, DataType

logger = logging.getLogger(__name__)

DISCOVER_TIME = timedelta(minutes=5)
DEFAULT_BATCH_SIZE = 10000
DEFAULT_MAX_THREADS = 2
DEFAULT_INITIAL_WAIT_TIME = 10
DEFAULT_SSL_MODE = "disable"
CDC_CONFIG_KEY = "replication_slot"
DEFAULT_SPLIT_COLUMN = "ctid"
_MAX_CTID_PAGE = 2**32 - 1
_MAX_DISTRIBUTION_FACTOR = float(2**63 - 1)

SSL_MODES = frozenset({"disable", "allow", "prefer", "require", "verify-ca", "verify-full"})

PRIVILEGED_TABLES_QUERY = """SELECT nspname as table_schema,
\t\trelname as table_name
\t\tFROM pg_class c
\t\tJOIN pg_namespace n ON c.relnamespace = n.oid
\t\tWHERE has_table_privilege(c.oid, 'SELECT')
\t\tAND has_schema_privilege(current_user, nspname, 'USAGE')
\t\tAND relkind IN ('r', 'm', 't', 'f', 'p')
\t\tAND nspname NOT LIKE 'pg_%'  -- Exclude default system schemas
\t\tAND nspname != 'information_schema';  -- Exclude information_schema"""
TABLE_SCHEMA_QUERY = (
    "SELECT column_name, data_type, is_nullable FROM information_schema.columns "
    "WHERE table_schema = $1 AND table_name = $2 ORDER BY ordinal_position"
)
TABLE_PRIMARY_KEY_QUERY = (
    "SELECT column_name FROM information_schema.key_column_usage "
    "WHERE table_schema = $1 AND table_name = $2 ORDER BY ordinal_position"
)
REPLICATION_SLOT_EXISTS_QUERY = (
    "SELECT EXISTS(Select 1 from pg_replication_slots where slot_name = $1)"
)

PG_TYPE_TO_DATA_TYPE: dict[str, DataType] = {
    "bigint": DataType.INT64,
    "tinyint": DataType.INT32,
    "integer": DataType.INT32,
    "smallint": DataType.INT32,
    "smallserial": DataType.INT32,
    "int": DataType.INT32,
    "int2": DataType.INT32,
    "int4": DataType.INT32,
    "serial": DataType.INT32,
    "serial2": DataType.INT32,
    "serial4": DataType.INT32,
    "serial8": DataType.INT64,
    "bigserial": DataType.INT64,
    # numbers
    "decimal": DataType.FLOAT32,
    "numeric": DataType.FLOAT32,
    "double precision": DataType.FLOAT64,
    "float": DataType.FLOAT32,
    "float4": DataType.FLOAT32,
    "float8": DataType.FLOAT64,
    "real": DataType.FLOAT32,
    # boolean
    "bool": DataType.BOOL,
    "boolean": DataType.BOOL,
    # strings
    "bit varying": DataType.STRING,
    "box": DataType.STRING,
    "bytea": DataType.STRING,
    "character": DataType.STRING,
    "char": DataType.STRING,
    "varbit": DataType.STRING,
    "bit": DataType.STRING,
    "bit(n)": DataType.STRING,
    "varying(n)": DataType.STRING,
    "cidr": DataType.STRING,
    "inet": DataType.STRING,
    "macaddr": DataType.STRING,
    "macaddr8": DataType.STRING,
    "character varying": DataType.STRING,
    "text": DataType.STRING,
    "varchar": DataType.STRING,
    "longvarchar": DataType.STRING,
    "circle": DataType.STRING,
    "hstore": DataType.STRING,
    "name": DataType.STRING,
    "uuid": DataType.STRING,
    "json": DataType.STRING,
    "jsonb": DataType.STRING,
    "line": DataType.STRING,
    "lseg": DataType.STRING,
    "money": DataType.STRING,
    "path": DataType.STRING,
    "pg_lsn": DataType.STRING,
    "point": DataType.STRING,
    "polygon": DataType.STRING,
    "tsquery": DataType.STRING,
    "tsvector": DataType.STRING,
    "xml": DataType.STRING,
    "enum": DataType.STRING,
    "tsrange": DataType.STRING,
    # date/time
    "time": DataType.STRING,
    "timez": DataType.STRING,
    "interval": DataType.STRING,
    "date": DataType.TIMESTAMP,
    "timestamp": DataType.TIMESTAMP,
    "timestampz": DataType.TIMESTAMP,
    "timestamp with time zone": DataType.TIMESTAMP,
    "timestamp without time zone": DataType.TIMESTAMP,
    # arrays
    "ARRAY": DataType.ARRAY,
    "array": DataType.ARRAY,
}


@dataclass
class SSLConfig:
    """TLS settings for the server connection."""

    mode: str = DEFAULT_SSL_MODE
    server_ca: str = ""
    client_cert: str = ""
    client_key: str = ""

    def validate(self) -> None:
        """Raise ValueError for an unknown SSL mode."""
        if self.mode and self.mode not in SSL_MODES:
            raise ValueError(f"invalid ssl mode: {self.mode}")


@dataclass
class PostgresCDC:
    """Logical replication (write-ahead log) capture settings."""

    replication_slot: str = ""
    initial_wait_time: int = 0

    def __post_init__(self) -> None:
        if self.initial_wait_time == 0:
            self.initial_wait_time = DEFAULT_INITIAL_WAIT_TIME

    @classmethod
    def from_update_method(cls, update_method: Any) -> Optional["PostgresCDC"]:
        """Read CDC settings from an ``update_method`` mapping, if it holds any."""
        if not isinstance(update_method, Mapping) or CDC_CONFIG_KEY not in update_method:
            return None
        logger.info("Found CDC Configuration")
        return cls(
            replication_slot=str(update_method[CDC_CONFIG_KEY]),
            initial_wait_time=int(update_method.get("intial_wait_time") or 0),
        )


@dataclass
class PostgresConfig:
    """Settings for connecting to a PostgreSQL server."""

    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    password: str = ""
    jdbc_url_params: dict[str, str] = field(default_factory=dict)
    ssl: Optional[SSLConfig] = None
    update_method: Any = None
    default_sync_mode: str = ""
    batch_size: int = 0
    max_threads: int = 0
    connection: Optional[str] = None

    def validate(self) -> None:
        """Check fields, fill in defaults and build ``connection``; raise ValueError if invalid."""
        if not self.host:
            raise ValueError("empty host name")
        if "http" in self.host:
            raise ValueError("host should not contain http or https")
        if self.port <= 0 or self.port > 65535:
            raise ValueError("invalid port number: must be between 1 and 65535")
        if self.batch_size <= 0:
            self.batch_size = DEFAULT_BATCH_SIZE
        if self.max_threads <= 0:
            self.max_threads = DEFAULT_MAX_THREADS

        base = (
            f"postgres://{quote_plus(self.username)}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{quote_plus(self.database)}"
        )
        query: dict[str, str] = {}
        if self.jdbc_url_params:
            query["options"] = "".join(
                f"{quote_identifier(key)}={quote_literal(value)} "
                for key, value in self.jdbc_url_params.items()
            )
        if self.ssl is None:
            self.ssl = SSLConfig(mode=DEFAULT_SSL_MODE)
        if self.ssl.mode:
            query["sslmode"] = self.ssl.mode
        try:
            self.ssl.validate()
        except ValueError as exc:
            raise ValueError(f"failed to validate ssl config: {exc}") from exc
        if self.ssl.server_ca:
            query["sslrootcert"] = self.ssl.server_ca
        if self.ssl.client_cert:
            query["sslcert"] = self.ssl.client_cert
        if self.ssl.client_key:
            query["sslkey"] = self.ssl.client_key

        encoded = urlencode(sorted(query.items()))
        self.connection = f"{base}?{encoded}" if encoded else base


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, doubling embedded quotes and cutting at NUL."""
    name = name.split("\x00", 1)[0]
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote an SQL string literal; backslashes switch to the escape-string form."""
    value = value.replace("'", "''")
    if "\\" in value:
        return " E'" + value.replace("\\", "\\\\") + "'"
    return "'" + value + "'"


def base_column_type(column_type: str) -> str:
    """Drop any type modifier and normalise case, e.g. ``VARCHAR(50)`` -> ``varchar``."""
    return column_type.split("(", 1)[0].strip().lower()


def postgres_data_type(column_type: str) -> DataType:
    """Map a PostgreSQL column type to a data type, falling back to string."""
    mapped = PG_TYPE_TO_DATA_TYPE.get(base_column_type(column_type))
    if mapped is None:
        logger.warning("failed to get respective type in datatypes for type: %s", column_type)
        return DataType.STRING
    return mapped


def ctid_ranges(rel_pages: int, batch_size: int) -> list[Chunk]:
    """Split a table's pages into ctid ranges of ``batch_size`` pages each."""
    if batch_size <= 0:
        raise ValueError("batch size must be positive")
    rel_pages = rel_pages or 1
    chunks = []
    for start in range(0, rel_pages, batch_size):
        end = start + batch_size
        if end >= rel_pages:
            end = _MAX_CTID_PAGE
        chunks.append(Chunk(f"'({start},0)'", f"'({end},0)'"))
    return chunks


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def split_via_batch_size(minimum: Any, maximum: Any, chunk_size: int) -> list[Chunk]:
    """Split a numeric key range into fixed-width chunks, the last one open-ended."""
    if not _is_number(minimum) or not _is_number(maximum):
        raise ValueError(
            f"failed to split batch size chunks: unsupported types "
            f"{type(minimum).__name__}, {type(maximum).__name__}"
        )
    if chunk_size <= 0:
        raise ValueError("failed to split batch size chunks: chunk size must be positive")
    chunks = []
    chunk_start = minimum
    chunk_end = minimum + chunk_size
    while chunk_end <= maximum:
        chunks.append(Chunk(chunk_start, chunk_end))
        chunk_start = chunk_end
        chunk_end = chunk_end + chunk_size
    chunks.append(Chunk(chunk_start, None))
    return chunks


def calculate_distribution_factor(
    minimum: Any, maximum: Any, approximate_row_count: int
) -> float:
    """Key-space width per row: ``(max - min + 1) / rows``."""
    if approximate_row_count == 0:
        return _MAX_DISTRIBUTION_FACTOR
    if not _is_number(minimum) or not _is_number(maximum):
        raise ValueError("failed to convert min or max value to float")
    return (float(maximum) - float(minimum) + 1.0) / float(approximate_row_count)