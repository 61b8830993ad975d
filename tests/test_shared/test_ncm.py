"""
tests/test_shared/test_ncm.py — Tests for NCM code normalization.
"""

from __future__ import annotations

import pytest

from comex_shared.ncm import format_ncm, is_valid_ncm, normalize_ncm


class TestNormalizeNcm:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("84713012", "84713012"),
            ("8471.30.12", "84713012"),
            (" 8471.30.12 ", "84713012"),
            (84713012, "84713012"),
            (84713012.0, "84713012"),
            ("84713012.0", "84713012"),
            ("2011000", "02011000"),
            (2011000, "02011000"),
        ],
    )
    def test_shapes(self, raw, expected):
        assert normalize_ncm(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", float("nan"), "123456789"])
    def test_unusable(self, raw):
        assert normalize_ncm(raw) is None


class TestFormatNcm:
    def test_dotted(self):
        assert format_ncm("84713012") == "8471.30.12"

    def test_pads_before_formatting(self):
        assert format_ncm("2011000") == "0201.10.00"

    def test_unformattable_returned_as_is(self):
        assert format_ncm("abc") == "abc"


class TestIsValidNcm:
    def test_valid(self):
        assert is_valid_ncm("84713012")

    @pytest.mark.parametrize("raw", [None, "", "8471.30.12", "8471301", "847130120"])
    def test_invalid(self, raw):
        assert not is_valid_ncm(raw)
