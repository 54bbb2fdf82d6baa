"""Tests for utils/naming.py and utils/timestamps.py."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from utils.naming import MAX_COLLECTION_NAME_LENGTH, collection_name, escape_key_part, join_key_parts
from utils.timestamps import is_newer, parse_instant, to_iso


class TestNaming:
    def test_safe_characters_verbatim(self):
        assert escape_key_part("Year-10.v2") == "Year-10.v2"

    def test_separator_and_spaces_escaped(self):
        assert escape_key_part("a_b c") == "a%5Fb%20c"

    def test_unicode_escaped_per_byte(self):
        assert escape_key_part("é") == "%C3%A9"

    def test_none_is_null(self):
        assert join_key_parts("a", None) == "a_null"

    def test_collection_name_prefix(self):
        assert collection_name("assign_full", join_key_parts("c1", "a1")) == "assign_full_c1_a1"

    def test_long_names_truncated_with_hash(self):
        key = join_key_parts("x" * 200, "y")
        name = collection_name("assdef_full", key)
        assert len(name) == MAX_COLLECTION_NAME_LENGTH
        assert name.startswith("assdef_full_xxx")
        assert name != collection_name("assdef_full", join_key_parts("x" * 200, "z"))


class TestParseInstant:
    def test_zulu_suffix(self):
        assert parse_instant("2025-01-01T10:00:00Z") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_instant("2025-01-01T10:00:00") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)

    def test_offset_converted(self):
        assert parse_instant("2025-01-01T12:00:00+02:00") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparsable_is_none(self, value):
        assert parse_instant(value) is None

    def test_to_iso_from_datetime(self):
        assert to_iso(datetime(2025, 1, 1, 10)) == "2025-01-01T10:00:00Z"


class TestIsNewer:
    def test_strictly_later(self):
        assert is_newer("2025-01-02T00:00:00Z", "2025-01-01T00:00:00Z") is True

    def test_equal_is_not_newer(self):
        assert is_newer("2025-01-01T00:00:00Z", "2025-01-01T00:00:00.000Z") is False

    def test_mixed_representations(self):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert is_newer(base + timedelta(seconds=1), "2025-01-01T00:00:00Z") is True

    def test_missing_value_is_not_newer(self):
        assert is_newer(None, "2025-01-01T00:00:00Z") is False

    def test_unparsable_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="assessment_records"):
            assert is_newer("garbage", "2025-01-01T00:00:00Z") is False
        assert "Unparsable timestamp" in caplog.text
