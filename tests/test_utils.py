"""Tests for form decoding and formatting helpers."""
import time

import pytest

from personal_cloud.errors import ProcessingFailure
from personal_cloud.utils import (
    format_file_size,
    format_timestamp,
    parse_form_payload,
    require_field,
    require_int_field,
)


class TestParseFormPayload:

    def test_decodes_percent_encoded_values(self):
        form = parse_form_payload("filename=docs%2Freport.txt&content=SGVsbG8%3D")
        assert form == {"filename": "docs/report.txt", "content": "SGVsbG8="}

    def test_plus_is_a_space(self):
        assert parse_form_payload("path=my+folder") == {"path": "my folder"}

    def test_last_duplicate_wins(self):
        assert parse_form_payload("a=1&a=2") == {"a": "2"}

    def test_pair_without_equals_is_blank(self):
        assert parse_form_payload("flag&x=1") == {"flag": "", "x": "1"}

    def test_empty_body(self):
        assert parse_form_payload("") == {}

    def test_encoded_keys(self):
        assert parse_form_payload("upload%49d=abc") == {"uploadId": "abc"}


class TestRequiredFields:

    def test_require_field_present(self):
        assert require_field({"path": "x"}, "path", "No path") == "x"

    def test_require_field_missing(self):
        with pytest.raises(ProcessingFailure, match="No path"):
            require_field({}, "path", "No path")

    def test_require_int_field(self):
        assert require_int_field({"chunkIndex": "7"}, "chunkIndex", "No chunk index") == 7

    @pytest.mark.parametrize("form", [{}, {"chunkIndex": "seven"}, {"chunkIndex": ""}])
    def test_require_int_field_invalid(self, form):
        with pytest.raises(ProcessingFailure, match="No chunk index"):
            require_int_field(form, "chunkIndex", "No chunk index")


class TestFormatFileSize:

    @pytest.mark.parametrize("size, expected", [
        (0, "0 bytes"),
        (1023, "1023 bytes"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (5 * 1024 * 1024, "5.00 MB"),
        (3 * 1024 ** 3 + 512 * 1024 ** 2, "3.50 GB"),
    ])
    def test_units(self, size, expected):
        assert format_file_size(size) == expected


class TestFormatTimestamp:

    def test_local_minute_precision(self):
        timestamp = time.mktime((2024, 1, 2, 3, 4, 59, 0, 0, -1))
        assert format_timestamp(timestamp) == "2024-01-02 03:04"
