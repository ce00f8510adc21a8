"""Unit tests for result value normalization and CSV rendering."""
import csv
import io
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from querydesk.utils.formatting import normalize_row, normalize_value, rows_to_csv


class TestNormalizeValue:
    def test_scalars_pass_through(self):
        assert normalize_value(None) is None
        assert normalize_value(True) is True
        assert normalize_value(3) == 3
        assert normalize_value(1.5) == 1.5
        assert normalize_value("x") == "x"

    def test_decimal_keeps_precision(self):
        assert normalize_value(Decimal("12345678901234567890.01")) == "12345678901234567890.01"

    def test_temporal_values(self):
        moment = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert normalize_value(moment) == "2024-05-01T12:30:00+00:00"
        assert normalize_value(date(2024, 5, 1)) == "2024-05-01"
        assert normalize_value(timedelta(hours=1)) == "1:00:00"

    def test_uuid(self):
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert normalize_value(value) == "12345678-1234-5678-1234-567812345678"

    def test_bytes(self):
        assert normalize_value(b"abc") == "abc"
        assert normalize_value(b"\xff\x00") == "0xff00"

    def test_nested_json(self):
        assert normalize_value({"a": [Decimal("1.0"), None]}) == {"a": ["1.0", None]}

    def test_row(self):
        assert normalize_row({"n": Decimal("2"), "s": "x"}) == {"n": "2", "s": "x"}


class TestRowsToCsv:
    def test_header_and_rows(self, sample_rows):
        text = rows_to_csv(sample_rows[:2], ["id", "name"])
        assert text == "id,name\n1,user1\n2,user2\n"

    def test_quotes_and_nulls(self):
        text = rows_to_csv([{"a": 'say "hi", ok', "b": None}], ["a", "b"])
        parsed = list(csv.reader(io.StringIO(text)))
        assert parsed == [["a", "b"], ['say "hi", ok', ""]]

    def test_json_cells(self):
        text = rows_to_csv([{"doc": {"k": 1}}], ["doc"])
        assert list(csv.reader(io.StringIO(text)))[1] == ['{"k": 1}']

    def test_missing_columns_are_blank(self):
        assert rows_to_csv([{"a": 1}], ["a", "b"]) == "a,b\n1,\n"
