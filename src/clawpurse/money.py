"""Exact amount conversion between NTMPI display units and uneutaro base units.

Everything here is string and integer manipulation; balances routinely exceed
the 2**53 range where floats stop being exact.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Literal, Union

from .config import NEUTARO
from .errors import InvalidAmount


DECIMALS = NEUTARO.decimals
BASE_UNITS_PER_DISPLAY = 10 ** DECIMALS

# Legacy rule for undecorated integers: anything below this many units is
# read as NTMPI, anything at or above it as uneutaro.
AUTO_UNIT_THRESHOLD = 1_000_000

AmountUnit = Literal["display", "base", "auto"]
AMOUNT_UNITS = ("display", "base", "auto")


def _digits(part: str, label: str, original: str) -> str:
    if not part.isdigit() or not part.isascii():
        raise InvalidAmount(f"Invalid amount '{original}': {label} must contain only digits")
    return part


def _to_int(digits: str) -> int:
    try:
        return int(digits)
    except ValueError:
        # int/str conversion limit (sys.get_int_max_str_digits)
        raise InvalidAmount(f"Amount has too many digits ({len(digits)})") from None


def parse_display_amount(value: str, unit: AmountUnit = "display") -> int:
    """Parse a user-supplied amount into integer base units.

    A value with a decimal point is always in display units; its fraction is
    padded to six digits and any extra digits are truncated, never rounded.
    A bare integer is interpreted according to ``unit``: ``"display"`` (the
    default) multiplies by 10**6, ``"base"`` takes it as base units, and
    ``"auto"`` applies the legacy threshold heuristic.

    Values are unbounded up to Python's int/str conversion limit
    (4300 digits by default); longer inputs raise ``InvalidAmount``.
    """
    if unit not in AMOUNT_UNITS:
        raise ValueError(f"Unknown amount unit: {unit}")
    if not isinstance(value, str):
        raise InvalidAmount(f"Amount must be a string, got {type(value).__name__}")

    raw = value.strip()
    if not raw:
        raise InvalidAmount("Amount cannot be empty")

    if "." in raw:
        if unit == "base":
            raise InvalidAmount(f"Invalid amount '{raw}': base units cannot have a fractional part")
        whole, _, fraction = raw.partition(".")
        if not whole and not fraction:
            raise InvalidAmount(f"Invalid amount '{raw}'")
        whole_units = _to_int(_digits(whole, "integer part", raw)) if whole else 0
        fraction = _digits(fraction, "fractional part", raw) if fraction else ""
        padded = fraction.ljust(DECIMALS, "0")[:DECIMALS]
        return whole_units * BASE_UNITS_PER_DISPLAY + int(padded)

    number = _to_int(_digits(raw, "amount", raw))
    if unit == "base":
        return number
    if unit == "auto" and number >= AUTO_UNIT_THRESHOLD:
        return number
    return number * BASE_UNITS_PER_DISPLAY


def format_base_units(amount: int) -> str:
    """Render base units as ``<whole>.<6-digit fraction>``.

    Raises ``InvalidAmount`` past the int/str conversion limit.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Base units must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidAmount("Base units cannot be negative")
    whole, fraction = divmod(amount, BASE_UNITS_PER_DISPLAY)
    try:
        whole_text = str(whole)
    except ValueError:
        raise InvalidAmount("Amount has too many digits to format") from None
    return f"{whole_text}.{fraction:0{DECIMALS}d}"


def format_amount(amount: int, denom: str = NEUTARO.display_denom) -> str:
    """Format base units with the display denomination, e.g. ``1.500000 NTMPI``."""
    return f"{format_base_units(amount)} {denom}"


def display_number_to_base_units(value: Union[Decimal, int, float, str]) -> int:
    """Convert a display-unit number from a config file into base units.

    Floats are read through their shortest ``str`` form so ``0.1`` means
    exactly 0.1 NTMPI; precision beyond six places is truncated.
    """
    if isinstance(value, bool):
        raise InvalidAmount("Amount must be a number, not a boolean")
    if isinstance(value, int):
        if value < 0:
            raise InvalidAmount("Amount cannot be negative")
        return value * BASE_UNITS_PER_DISPLAY
    try:
        dec = Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidAmount(f"Invalid amount '{value}'") from exc
    if not dec.is_finite():
        raise InvalidAmount(f"Invalid amount '{value}'")
    if dec < 0:
        raise InvalidAmount("Amount cannot be negative")
    return parse_display_amount(format(dec, "f"))
