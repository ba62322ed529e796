"""
Tests for helper and validator utilities.
"""
import pytest
from fastapi import HTTPException

from ephemera.utils.helpers import safe_json_loads, parse_waveform
from ephemera.utils.validators import (
    validate_passcode,
    validate_session_name,
    validate_file_type,
    validate_file_size,
)


class TestParseWaveform:

    def test_numbers_become_floats(self):
        assert parse_waveform("[0, 0.5, 1]") == [0.0, 0.5, 1.0]

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', '[0.1, "loud"]', "[true, 0.2]"])
    def test_anything_else_is_empty(self, raw):
        assert parse_waveform(raw) == []


def test_safe_json_loads_default():
    assert safe_json_loads("{broken", default={}) == {}
    assert safe_json_loads('{"ok": true}') == {"ok": True}


class TestValidatePasscode:

    @pytest.mark.parametrize("passcode", ["1234", "00000000", "987654"])
    def test_valid(self, passcode):
        assert validate_passcode(passcode) == passcode

    @pytest.mark.parametrize("passcode", [None, "", "123", "123456789", "12 34", "abcd"])
    def test_invalid(self, passcode):
        with pytest.raises(HTTPException) as exc_info:
            validate_passcode(passcode)

        assert exc_info.value.status_code == 400


class TestValidateSessionName:

    def test_trims(self):
        assert validate_session_name("  Desk  ") == "Desk"

    def test_fifty_characters_allowed(self):
        assert validate_session_name("a" * 50) == "a" * 50

    @pytest.mark.parametrize("name", [None, "", "  ", "a" * 51])
    def test_invalid(self, name):
        with pytest.raises(HTTPException):
            validate_session_name(name)


def test_validate_file_type_ignores_parameters():
    allowed = ["audio/webm", "audio/ogg"]

    assert validate_file_type("audio/webm;codecs=opus", allowed)
    assert validate_file_type("AUDIO/OGG", allowed)
    assert not validate_file_type("video/webm", allowed)
    assert not validate_file_type(None, allowed)


def test_validate_file_size_bounds():
    assert validate_file_size(1, 10)
    assert validate_file_size(10, 10)
    assert not validate_file_size(0, 10)
    assert not validate_file_size(11, 10)
