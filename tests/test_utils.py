"""Unit tests for utility functions."""

import pytest

from objsync.utils import (
    EMPTY_MD5,
    decode_content_md5,
    format_duration,
    format_size,
    join_remote,
    normalize_remote_root,
    parse_header,
)


class TestFormatSize:
    """Tests for format_size function."""

    def test_bytes(self):
        assert format_size(0) == "0 B"
        assert format_size(1023) == "1023 B"

    def test_larger_units(self):
        """Test KB, MB and GB formatting."""
        assert format_size(1536) == "1.5 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"
        assert format_size(3 * 1024**3) == "3.0 GB"


class TestFormatDuration:
    """Tests for format_duration function."""

    def test_seconds(self):
        assert format_duration(0.25) == "0.25s"
        assert format_duration(59.5) == "59.50s"

    def test_minutes(self):
        assert format_duration(75) == "1m15.0s"
        assert format_duration(3600) == "60m0.0s"


class TestDecodeContentMd5:
    """Tests for decode_content_md5 function."""

    def test_known_digest(self):
        """Test decoding the base64 digest of b'hello'."""
        assert (
            decode_content_md5("XUFAKrxLKna5cZ2REBfFkg==")
            == "5d41402abc4b2a76b9719d911017c592"
        )

    def test_missing_digest_is_empty_md5(self):
        assert decode_content_md5(None) == EMPTY_MD5
        assert decode_content_md5("") == EMPTY_MD5

    def test_invalid_digest_raises_error(self):
        with pytest.raises(ValueError, match="Invalid Content-MD5"):
            decode_content_md5("not base64!")


class TestRemotePaths:
    """Tests for remote path helpers."""

    def test_normalize_remote_root(self):
        assert normalize_remote_root("stor/backup/") == "/stor/backup"
        assert normalize_remote_root("/stor/backup") == "/stor/backup"
        assert normalize_remote_root("/") == "/"
        assert normalize_remote_root("") == "/"

    def test_join_remote(self):
        assert join_remote("/stor/backup", "a.txt") == "/stor/backup/a.txt"
        assert join_remote("/", "a.txt") == "/a.txt"
        assert join_remote("/stor/", "dir/b") == "/stor/dir/b"


class TestParseHeader:
    """Tests for parse_header function."""

    def test_name_and_value(self):
        assert parse_header("m-color: blue") == ("m-color", "blue")

    def test_value_with_colons(self):
        assert parse_header("X-Time: 12:30:00") == ("X-Time", "12:30:00")

    def test_empty_value_allowed(self):
        assert parse_header("X-Empty:") == ("X-Empty", "")

    @pytest.mark.parametrize("value", ["no-colon", ": value", "   : x"])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError, match="Invalid header"):
            parse_header(value)
