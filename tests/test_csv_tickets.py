"""Tests for the CSV ticket parsing helpers."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from alignzo.core.errors import MissingHeadersError, ValidationError
from alignzo.services.csv_tickets import (
    REQUIRED_HEADERS,
    build_sample_csv,
    iter_data_rows,
    map_row,
    parse_itsm_datetime,
    split_csv_line,
    to_bool,
    to_int,
    to_minutes,
    validate_headers,
)


class TestTokenizer:
    """Tests for the quote-aware line splitter."""

    def test_plain_fields(self):
        assert split_csv_line("a,b,c") == ["a", "b", "c"]

    def test_escaped_quote_and_embedded_comma(self):
        """A doubled quote inside quotes is a literal quote; the comma does not split."""
        assert split_csv_line('"a,b""c"') == ['a,b"c']

    def test_empty_fields_kept(self):
        assert split_csv_line("a,,c,") == ["a", "", "c", ""]

    def test_blank_rows_skipped(self):
        text = "H1,H2\nx,y\n\n   \nz,w\n"
        assert list(iter_data_rows(text)) == [["x", "y"], ["z", "w"]]

    def test_comma_only_row_kept(self):
        text = "H1,H2\nx,y\n,\nz,w\n"
        assert list(iter_data_rows(text)) == [["x", "y"], ["", ""], ["z", "w"]]

    def test_quoted_field_spans_lines(self):
        text = 'H1,H2\n"line one\nline two",b\n'
        assert list(iter_data_rows(text)) == [["line one\nline two", "b"]]


class TestHeaderValidation:
    """Tests for required header checks."""

    def test_all_headers_present(self):
        line = ",".join(REQUIRED_HEADERS)
        assert validate_headers(line) == REQUIRED_HEADERS

    def test_order_does_not_matter(self):
        line = ",".join(reversed(REQUIRED_HEADERS))
        assert validate_headers(line) == list(reversed(REQUIRED_HEADERS))

    def test_bom_and_quotes_stripped(self):
        line = "\ufeff" + ",".join(f'"{h}"' for h in REQUIRED_HEADERS)
        assert validate_headers(line)[0] == REQUIRED_HEADERS[0]

    def test_missing_headers_listed_in_required_order(self):
        dropped = [REQUIRED_HEADERS[5], REQUIRED_HEADERS[1]]
        line = ",".join(h for h in REQUIRED_HEADERS if h not in dropped)
        with pytest.raises(MissingHeadersError) as exc:
            validate_headers(line)
        assert exc.value.missing == [REQUIRED_HEADERS[1], REQUIRED_HEADERS[5]]
        assert isinstance(exc.value, ValidationError)

    def test_match_is_case_sensitive(self):
        line = ",".join(h.lower() if h == "Incident ID" else h for h in REQUIRED_HEADERS)
        with pytest.raises(MissingHeadersError) as exc:
            validate_headers(line)
        assert exc.value.missing == ["Incident ID"]


class TestValueConversion:
    """Tests for date and number normalisation."""

    def test_itsm_date_with_seconds(self):
        assert parse_itsm_datetime("08/18/2025, 07:11:50 PM") == datetime(2025, 8, 18, 19, 11, 50, tzinfo=ZoneInfo("UTC"))

    def test_itsm_date_without_seconds(self):
        assert parse_itsm_datetime("01/02/2025, 12:05 AM") == datetime(2025, 1, 2, 0, 5, tzinfo=ZoneInfo("UTC"))

    def test_naive_date_localised_to_zone(self):
        dt = parse_itsm_datetime("08/18/2025, 07:11:50 PM", "Asia/Kolkata")
        assert dt == datetime(2025, 8, 18, 13, 41, 50, tzinfo=timezone.utc)
        assert dt.utcoffset().total_seconds() == 0

    def test_iso_date(self):
        assert parse_itsm_datetime("2025-08-18T19:11:50Z") == datetime(2025, 8, 18, 19, 11, 50, tzinfo=timezone.utc)

    def test_plain_date(self):
        assert parse_itsm_datetime("08/18/2025") == datetime(2025, 8, 18, tzinfo=ZoneInfo("UTC"))

    @pytest.mark.parametrize("value", ["", "   ", None, "not a date", "13/45/2025, 99:00:00 PM"])
    def test_empty_or_garbage_is_none(self, value):
        assert parse_itsm_datetime(value) is None

    def test_minutes_from_clock(self):
        assert to_minutes("14:53:10") == 893.17
        assert to_minutes("08:12") == 8.2

    def test_minutes_plain_number(self):
        assert to_minutes("42.5") == 42.5

    def test_minutes_garbage(self):
        assert to_minutes("soon") is None
        assert to_minutes("1:75:00") is None

    def test_int_and_bool(self):
        assert to_int("1,200") == 1200
        assert to_int("x") is None
        assert to_bool("Yes") is True
        assert to_bool("n") is False
        assert to_bool("maybe") is None


class TestRowMapping:
    """Tests for map_row."""

    def test_known_headers_typed(self):
        headers = ["Incident ID", "Closed_Date", "Reopen count", "VIP", "MTTR"]
        values = [" INC1 ", "08/18/2025, 07:11:50 PM", "2", "Yes", "01:30:00"]
        row = map_row(headers, values)
        assert row["incident_id"] == "INC1"
        assert row["closed_date"] == datetime(2025, 8, 18, 19, 11, 50, tzinfo=ZoneInfo("UTC"))
        assert row["reopen_count"] == 2
        assert row["vip"] is True
        assert row["mttr"] == 90.0

    def test_empty_closed_date_is_none(self):
        row = map_row(["Incident ID", "Closed_Date"], ["INC1", ""])
        assert row["closed_date"] is None

    def test_missing_trailing_values_are_none(self):
        row = map_row(["Incident ID", "Summary", "Assignee"], ["INC1"])
        assert row["summary"] is None
        assert row["assignee"] is None

    def test_unknown_header_slugified(self):
        row = map_row(["Custom Field (x)"], ["v"])
        assert row == {"custom_field_x": "v"}


class TestSampleCsv:
    """Tests for the downloadable sample file."""

    def test_sample_has_headers_and_one_row(self):
        text = build_sample_csv()
        lines = text.splitlines()
        assert validate_headers(lines[0]) == REQUIRED_HEADERS
        rows = list(iter_data_rows(text))
        assert len(rows) == 1
        assert len(rows[0]) == len(REQUIRED_HEADERS)
