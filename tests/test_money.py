"""Tests for exact NTMPI / uneutaro amount conversion."""

import sys
from decimal import Decimal

import pytest

from clawpurse.errors import InvalidAmount
from clawpurse.money import (
    display_number_to_base_units,
    format_amount,
    format_base_units,
    parse_display_amount,
)


class TestParseDisplayAmount:
    def test_decimal_is_display_units(self):
        assert parse_display_amount("1.5") == 1_500_000
        assert parse_display_amount("0.000001") == 1
        assert parse_display_amount(".25") == 250_000
        assert parse_display_amount("3.") == 3_000_000

    def test_excess_fraction_digits_are_truncated(self):
        assert parse_display_amount("1.2345679") == 1_234_567
        assert parse_display_amount("0.0000009") == 0

    def test_integer_defaults_to_display_units(self):
        assert parse_display_amount("51") == 51_000_000
        assert parse_display_amount("5000000") == 5_000_000_000_000

    def test_base_unit_flag(self):
        assert parse_display_amount("1500000", unit="base") == 1_500_000
        with pytest.raises(InvalidAmount, match="fractional"):
            parse_display_amount("1.5", unit="base")

    def test_auto_unit_threshold(self):
        assert parse_display_amount("999999", unit="auto") == 999_999_000_000
        assert parse_display_amount("1000000", unit="auto") == 1_000_000
        assert parse_display_amount("2.5", unit="auto") == 2_500_000

    def test_whitespace_is_trimmed(self):
        assert parse_display_amount("  10.1 ") == 10_100_000

    @pytest.mark.parametrize("bad", ["", "   ", "abc", "1.2.3", "-1", "1e6", "1,5", "1.x", ".", "١٢"])
    def test_rejects_non_digits(self, bad):
        with pytest.raises(InvalidAmount):
            parse_display_amount(bad)

    def test_unknown_unit(self):
        with pytest.raises(ValueError, match="Unknown amount unit"):
            parse_display_amount("1", unit="wei")


class TestFormatBaseUnits:
    def test_exact_formatting(self):
        assert format_base_units(1_234_567_890) == "1234.567890"
        assert format_base_units(0) == "0.000000"
        assert format_base_units(1) == "0.000001"

    def test_beyond_float_precision(self):
        big = 2 ** 64 + 7
        assert format_base_units(big) == "18446744073709.551623"
        assert parse_display_amount(format_base_units(big)) == big

    def test_round_trip(self):
        for n in (0, 1, 999_999, 1_000_000, 123_456_789_012, 10 ** 30 + 1):
            assert parse_display_amount(format_base_units(n)) == n

    @pytest.mark.parametrize("bad", [-1, 1.5, "100", True])
    def test_rejects_non_integers(self, bad):
        with pytest.raises(InvalidAmount):
            format_base_units(bad)

    def test_format_amount_has_denom(self):
        assert format_amount(2_500_000) == "2.500000 NTMPI"

    def test_thousands_of_digits_round_trip(self):
        big = 10 ** 4000 + 42
        assert parse_display_amount(format_base_units(big)) == big

    @pytest.mark.skipif(
        not getattr(sys, "get_int_max_str_digits", lambda: 0)(),
        reason="interpreter has no int/str digit limit",
    )
    def test_past_digit_limit_is_invalid_amount(self):
        with pytest.raises(InvalidAmount, match="too many digits"):
            format_base_units(10 ** 5000)
        with pytest.raises(InvalidAmount, match="too many digits"):
            parse_display_amount("9" * 5000)
        with pytest.raises(InvalidAmount, match="too many digits"):
            parse_display_amount("9" * 5000 + ".5")


class TestDisplayNumberConversion:
    def test_int_and_float(self):
        assert display_number_to_base_units(50) == 50_000_000
        assert display_number_to_base_units(0.1) == 100_000
        assert display_number_to_base_units(Decimal("12.3456789")) == 12_345_678

    def test_rejects_negative_and_bool(self):
        with pytest.raises(InvalidAmount):
            display_number_to_base_units(-1)
        with pytest.raises(InvalidAmount):
            display_number_to_base_units(True)
        with pytest.raises(InvalidAmount):
            display_number_to_base_units(float("nan"))
