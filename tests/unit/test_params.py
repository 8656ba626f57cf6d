"""Tests for request parameter parsing."""

import pytest

from bird_db.api.params import parse_bool, parse_int, require
from bird_db.errors import ValidationError


def test_parse_int_defaults():
    assert parse_int("page", None, default=1) == 1
    assert parse_int("page", "", default=1) == 1


def test_parse_int_values():
    assert parse_int("page", "3", default=1) == 3
    assert parse_int("page", " 7 ", default=1) == 7
    assert parse_int("limit", 20, default=50) == 20


def test_parse_int_clamps_to_maximum():
    assert parse_int("limit", "5000", default=50, maximum=1000) == 1000


@pytest.mark.parametrize("raw", ["abc", "1.5", "2e3", "ten", True])
def test_parse_int_rejects_non_integers(raw):
    with pytest.raises(ValidationError, match="must be an integer"):
        parse_int("page", raw, default=1)


@pytest.mark.parametrize("raw", ["0", "-1", -4])
def test_parse_int_rejects_below_minimum(raw):
    with pytest.raises(ValidationError, match="at least 1"):
        parse_int("page", raw, default=1)


def test_parse_int_custom_minimum():
    assert parse_int("count", "0", default=10, minimum=0) == 0


def test_parse_bool():
    assert parse_bool("true") is True
    assert parse_bool("TRUE") is True
    assert parse_bool("false") is False
    assert parse_bool("1") is False
    assert parse_bool(None) is False


def test_require():
    assert require("q", "eagle") == "eagle"
    with pytest.raises(ValidationError, match='"q" is required'):
        require("q", None)
    with pytest.raises(ValidationError):
        require("q", "   ")
