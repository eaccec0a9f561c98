"""Tests for the text log formatter."""

import pytest

from wrbt_api.config.logger import _text_formatter

pytestmark = pytest.mark.unit


def test_plain_record_has_no_extra_section():
    fmt = _text_formatter({"extra": {}})

    assert "{extra}" not in fmt
    assert "bot=" not in fmt


def test_bot_scoped_record_is_tagged():
    fmt = _text_formatter({"extra": {"bot_id": "V1StGXR8_Z5jdHi6B-myT"}})

    assert "bot={extra[bot_id]}" in fmt
    assert fmt.endswith("\n{exception}")


def test_other_extras_are_appended_without_bot_tag():
    fmt = _text_formatter({"extra": {"extra": {"entry_id": "abc"}}})

    assert "| {extra}" in fmt
    assert "bot=" not in fmt
