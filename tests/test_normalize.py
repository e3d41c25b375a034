"""
Header normalization and value coercion tests.
"""
import datetime as dt

import pytest

from ipdr.data.errors import AliasCollision, UnparseableValue
from ipdr.data.normalize import (
    alias_key, build_alias_table, canonicalize, clean_text, map_headers, normalize_header,
    parse_number, parse_numbers, parse_timestamp, parse_timestamps,
)
from ipdr.data.schemas import CanonicalField


class TestNormalizeHeader:

    @pytest.mark.parametrize("header", [
        "Calling Number", "calling_number", "CALLING-NUMBER", "  calling number ", "CallingNumber",
    ])
    def test_variants_map_to_same_field(self, header):
        assert normalize_header(header) == CanonicalField.MSISDN

    @pytest.mark.parametrize("header, expected", [
        ("caller_msisdn", CanonicalField.MSISDN),
        ("src_ip", CanonicalField.SOURCE_IP),
        ("Timestamp", CanonicalField.START_TIME),
        ("Record Opening Time", CanonicalField.START_TIME),
        ("b_number", CanonicalField.CALLED_MSISDN),
        ("Dst Port", CanonicalField.DESTINATION_PORT),
        ("location", CanonicalField.CELL_ID),
        ("Downlink Volume", CanonicalField.DATA_DOWN),
    ])
    def test_known_aliases(self, header, expected):
        assert normalize_header(header) == expected

    def test_canonical_name_is_its_own_alias(self):
        for fld in CanonicalField:
            assert normalize_header(fld.value) == fld

    def test_unknown_header_passes_through_unchanged(self):
        assert normalize_header("Operator Note") == "Operator Note"

    def test_idempotent(self):
        once = normalize_header("Source IP")
        assert normalize_header(once) == once

    def test_map_headers_keeps_each_distinct_header(self):
        mapping = map_headers(["IMEI", "Operator Note", "IMEI"])
        assert mapping == {"IMEI": CanonicalField.IMEI, "Operator Note": "Operator Note"}

    def test_alias_key_strips_separators(self):
        assert alias_key("Cell - Tower_ID") == "celltowerid"


class TestAliasTable:

    def test_collision_rejected(self):
        with pytest.raises(AliasCollision):
            build_alias_table({"msisdn": ["number"], "imei": ["Number"]})

    def test_same_alias_for_same_field_is_fine(self):
        table = build_alias_table({"msisdn": ["msisdn", "MSISDN"]})
        assert table["msisdn"] == CanonicalField.MSISDN


class TestValueCoercion:

    def test_timestamps_iso_and_naive_are_utc(self):
        parsed = parse_timestamps(["2024-01-01T10:00:00Z", "2024-01-01 10:00:00", "2024-01-01T15:30:00+05:30"])
        expected = dt.datetime(2024, 1, 1, 10, 0, tzinfo=dt.timezone.utc)
        assert parsed == [expected, expected, expected]

    def test_timestamps_mixed_formats_fall_back(self):
        parsed = parse_timestamps(["2024-01-01T10:00:00Z", "01 Jan 2024 11:00"])
        assert parsed[1] == dt.datetime(2024, 1, 1, 11, 0, tzinfo=dt.timezone.utc)

    def test_unparseable_and_blank_timestamps_are_none(self):
        assert parse_timestamps(["garbage", "", None]) == [None, None, None]

    def test_partial_dates_are_not_timestamps(self):
        assert parse_timestamps(["2024", "2024-01", "1704103200"]) == [None, None, None]
        with pytest.raises(UnparseableValue):
            parse_timestamp("2024")

    def test_partial_date_kept_as_raw_text(self):
        records, report = canonicalize([{"start_time": "2024"}, {"start_time": "2024-03-05"}])
        assert records[0].fields[CanonicalField.START_TIME] == "2024"
        assert CanonicalField.START_TIME in records[0].unparsed
        assert records[1].fields[CanonicalField.START_TIME] == dt.datetime(2024, 3, 5, tzinfo=dt.timezone.utc)
        assert report.unparseable == {"start_time": 1}

    def test_parse_timestamp_raises(self):
        with pytest.raises(UnparseableValue):
            parse_timestamp("yesterday-ish")

    def test_numbers_with_thousands_separator(self):
        assert parse_numbers(["1,200", "3.5", "7", "x", ""]) == [1200, 3.5, 7, None, None]

    def test_parse_number_raises(self):
        with pytest.raises(UnparseableValue):
            parse_number("lots")

    def test_clean_text_drops_float_suffix(self):
        assert clean_text(919800000001.0) == "919800000001"
        assert clean_text("  10.0.0.5 ") == "10.0.0.5"
