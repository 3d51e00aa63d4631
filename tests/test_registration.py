"""Tests for registration normalization and validation."""

import pytest

from autodata.errors import InvalidRegistrationIdentifier
from autodata.registration import (
    is_valid_registration,
    normalize_registration,
    validate_registration,
)


class TestNormalize:
    """Whitespace and case handling."""

    @pytest.mark.parametrize("raw", ["ab12 cde", "AB12CDE", " AB12CDE ", "Ab12\tcDe"])
    def test_variants_collapse_to_one_key(self, raw):
        assert normalize_registration(raw) == "AB12CDE"

    def test_idempotent(self):
        once = normalize_registration("bg22 ucp")
        assert normalize_registration(once) == once


class TestValidate:
    """UK format recognition."""

    @pytest.mark.parametrize(
        "raw",
        [
            "AB12CDE",   # current
            "A123BCD",   # prefix
            "ABC123D",   # suffix
            "ABC123",    # dateless
            "123ABC",    # reverse dateless
            "bg22 ucp",
        ],
    )
    def test_accepts_uk_formats(self, raw):
        assert is_valid_registration(raw)

    @pytest.mark.parametrize("raw", ["", "   ", "AB12CDEF", "12345678", "AB-12-CDE", "ÄB12CDE"])
    def test_rejects_malformed(self, raw):
        assert not is_valid_registration(raw)

    @pytest.mark.parametrize("raw", [None, 123, ["AB12CDE"]])
    def test_rejects_non_strings(self, raw):
        with pytest.raises(InvalidRegistrationIdentifier):
            validate_registration(raw)

    def test_returns_normalized_form(self):
        assert validate_registration("ab12 cde") == "AB12CDE"

    def test_error_is_value_error_and_keeps_input(self):
        with pytest.raises(ValueError) as exc_info:
            validate_registration("not a reg")
        assert exc_info.value.raw == "not a reg"
