from datetime import datetime, timezone

import pyarrow as pa
import pytest

from conftest import T0, make_log
from poolwatch.core.errors import MalformedRow
from poolwatch.core.models import LOG_ARROW_SCHEMA, Log, logs_to_arrow_table


def test_from_row_parses_store_json() -> None:
    log = Log.from_row(
        {
            "id": 1,
            "network": "ethereum",
            "block_number": "19000000",
            "transaction_hash": "0xabc",
            "removed": None,
            "created_at": "2024-05-01T14:00:00+02:00",
        }
    )

    assert log.block_number == 19_000_000
    assert log.removed is None
    assert log.strategy is None
    assert log.created_at == T0
    assert log.created_at.tzinfo == timezone.utc


def test_naive_timestamps_are_utc() -> None:
    log = Log.from_row({"created_at": datetime(2024, 5, 1, 12, 0)})
    assert log.created_at == T0


def test_invalid_row_is_malformed() -> None:
    with pytest.raises(MalformedRow):
        Log.from_row({"block_number": "not-a-block"})


def test_arrow_table_uses_log_schema() -> None:
    table = logs_to_arrow_table([make_log(), make_log(removed=None, created_at=None)])

    assert table.schema == LOG_ARROW_SCHEMA
    assert table.num_rows == 2
    assert table.column("created_at").type == pa.timestamp("us")
    assert table.column("removed").to_pylist() == [False, None]
