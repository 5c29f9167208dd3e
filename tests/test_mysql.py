import pytest

from olake.base import DEFAULT_RETRY_COUNT, DEFAULT_THREAD_COUNT, Chunk, DataType
from olake.mysql import (
    MySQLCDC,
    MySQLConfig,
    calculate_chunk_size,
    mysql_data_type,
    sort_chunks,
)


def _valid_config(**overrides):
    password = "password"
    values = dict(host="db.example.com", port=3306, username="user", password=password)
    values.update(overrides)
    return MySQLConfig(**values)


def test_uri_defaults_port_and_host():
    password = "password"
    config = MySQLConfig(username="user", password=password, database="shop")
    assert config.uri() == "user:password@tcp(localhost:3306)/shop"
    assert config.port == 3306


def test_uri_uses_given_host_and_port():
    config = _valid_config(port=3307, database="shop")
    assert config.uri() == "user:password@tcp(db.example.com:3307)/shop"


def test_uri_escapes_credentials():
    password = "password"
    config = MySQLConfig(username="a b", password=password, database="x/y")
    assert config.uri() == "a+b:password@tcp(localhost:3306)/x%2Fy"


def test_validate_fills_defaults():
    config = _valid_config()
    config.validate()
    assert config.database == "mysql"
    assert config.max_threads == DEFAULT_THREAD_COUNT
    assert config.retry_count == DEFAULT_RETRY_COUNT


def test_validate_keeps_given_values():
    config = _valid_config(database="shop", max_threads=7, retry_count=5)
    config.validate()
    assert (config.database, config.max_threads, config.retry_count) == ("shop", 7, 5)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"host": ""}, "empty host name"),
        ({"host": "https://db.example.com"}, "host should not contain http or https"),
        ({"host": "http://db.example.com"}, "host should not contain http or https"),
        ({"port": 0}, "invalid port number"),
        ({"port": 65536}, "invalid port number"),
        ({"username": ""}, "username is required"),
        ({"password": ""}, "password is required"),
    ],
)
def test_validate_rejects_bad_config(overrides, message):
    with pytest.raises(ValueError, match=message):
        _valid_config(**overrides).validate()


def test_from_dict_reads_json_names():
    config = MySQLConfig.from_dict(
        {"hosts": "db.example.com", "port": 3306, "backoff_retry_count": 4, "max_threads": 2}
    )
    assert (config.host, config.port, config.retry_count, config.max_threads) == (
        "db.example.com",
        3306,
        4,
        2,
    )


def test_cdc_defaults_wait_time():
    assert MySQLCDC().initial_wait_time == 10
    assert MySQLCDC(initial_wait_time=30).initial_wait_time == 30


def test_cdc_from_update_method():
    cdc = MySQLCDC.from_update_method({"intial_wait_time": 0})
    assert cdc is not None and cdc.initial_wait_time == 10
    assert MySQLCDC.from_update_method({"other": 1}) is None
    assert MySQLCDC.from_update_method(None) is None


@pytest.mark.parametrize(
    "name, expected",
    [
        ("bigint", DataType.INT64),
        ("year", DataType.INT64),
        ("decimal", DataType.FLOAT64),
        ("varchar", DataType.STRING),
        ("json", DataType.STRING),
        ("datetime", DataType.TIMESTAMP),
        ("geometrycollection", DataType.STRING),
    ],
)
def test_mysql_data_type_known(name, expected):
    assert mysql_data_type(name) is expected


def test_mysql_data_type_unknown_falls_back_to_string():
    assert mysql_data_type("no_such_type") is DataType.STRING


@pytest.mark.parametrize("total, threads", [(0, 1), (7, 1), (1000, 3), (123456, 10)])
def test_calculate_chunk_size_bounds(total, threads):
    size = calculate_chunk_size(total, threads)
    assert size * threads * 8 <= total < (size + 1) * threads * 8


def test_calculate_chunk_size_zero_threads():
    with pytest.raises(ZeroDivisionError):
        calculate_chunk_size(100, 0)


def test_sort_chunks_unbounded_first_then_ascending():
    chunks = [Chunk(5, None), Chunk(None, 1), Chunk(1, 5)]
    ordered = sort_chunks(chunks)
    assert [chunk.min for chunk in ordered] == [None, 1, 5]


def test_sort_chunks_is_permutation():
    chunks = [Chunk("b", "c"), Chunk("a", "b"), Chunk(None, "a"), Chunk("c", None)]
    ordered = sort_chunks(chunks)
    assert sorted(ordered, key=repr) == sorted(chunks, key=repr)
    assert [chunk.min for chunk in ordered] == [None, "a", "b", "c"]