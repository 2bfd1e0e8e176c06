"""Tests for session identifier helpers."""

import pytest

from dndtracker.core.modules.session.utils import extract_session_id, generate_session_id, is_valid_session_id


class TestSessionIdFormat:
    """Tests for the cheap format check done before store access."""

    def test_generated_id_is_64_hex_chars(self):
        session_id = generate_session_id()
        assert len(session_id) == 64
        assert all(c in "0123456789abcdef" for c in session_id)
        assert is_valid_session_id(session_id)

    def test_generated_ids_are_unique(self):
        assert len({generate_session_id() for _ in range(100)}) == 100

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "a" * 31,
            "a" * 31 + "-",
            "a" * 40 + " ",
            "a" * 20 + "/" + "b" * 20,
            None,
            12345678901234567890123456789012345,
        ],
    )
    def test_invalid_values_rejected(self, value):
        assert not is_valid_session_id(value)

    def test_minimum_length_accepted(self):
        assert is_valid_session_id("A1" * 16)


class TestExtractSessionId:
    """Tests for reading the session cookie from a raw Cookie header."""

    def test_single_cookie(self):
        assert extract_session_id("session=abc123") == "abc123"

    def test_among_other_cookies(self):
        assert extract_session_id("theme=dark; session=abc123; lang=en") == "abc123"

    def test_similar_name_not_matched(self):
        assert extract_session_id("oldsession=abc123") is None

    def test_missing_header(self):
        assert extract_session_id(None) is None
        assert extract_session_id("") is None
