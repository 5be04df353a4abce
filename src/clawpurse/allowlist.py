"""
Destination allowlist: persisted config plus a pure policy evaluator.

File format (JSON)::

    {
      "defaultPolicy": {"maxAmount": 100, "requireMemo": false, "blockUnknown": true},
      "destinations": [
        {"address": "neutaro1...", "name": "Exchange", "maxAmount": 50,
         "needsMemo": true, "notes": "deposit account"}
      ]
    }

``maxAmount`` values are display units (NTMPI). They are read as exact
``Decimal`` values, never floats, and anything past six decimal places is
truncated. A missing ``defaultPolicy`` allows every destination that is not
listed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_DOWN, Decimal
from pathlib import Path
from typing import Any, Literal, Optional, Union

from .config import NEUTARO, default_allowlist_path
from .errors import AllowlistError, CorruptAllowlist, InvalidAmount
from .money import DECIMALS, display_number_to_base_units, format_amount, format_base_units
from .storage import atomic_write_json, ensure_private_dir

logger = logging.getLogger(__name__)

DisplayNumber = Union[Decimal, int, float]
AllowlistMode = Literal["enforce", "allow"]
ALLOWLIST_MODES = ("enforce", "allow")

CAP_QUANTUM = Decimal(1).scaleb(-DECIMALS)

UNKNOWN_BLOCKED_REASON = "Destination is not in the allowlist and unknown destinations are blocked"


@dataclass
class DefaultPolicy:
    """Rules applied to destinations without an entry."""

    max_amount: Optional[Decimal] = None
    require_memo: bool = False
    block_unknown: bool = False

    def __post_init__(self):
        if self.max_amount is not None:
            self.max_amount = normalize_cap(self.max_amount)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "requireMemo": self.require_memo,
            "blockUnknown": self.block_unknown,
        }
        if self.max_amount is not None:
            d["maxAmount"] = _json_number(self.max_amount)
        return d

    @classmethod
    def from_dict(cls, raw: Any) -> "DefaultPolicy":
        if not isinstance(raw, dict):
            raise CorruptAllowlist("defaultPolicy must be an object")
        return cls(
            max_amount=_parse_max_amount(raw.get("maxAmount"), "defaultPolicy.maxAmount"),
            require_memo=_parse_flag(raw.get("requireMemo"), "defaultPolicy.requireMemo"),
            block_unknown=_parse_flag(raw.get("blockUnknown"), "defaultPolicy.blockUnknown"),
        )


@dataclass
class Destination:
    """A trusted destination with optional per-address rules."""

    address: str
    name: Optional[str] = None
    max_amount: Optional[Decimal] = None
    needs_memo: bool = False
    notes: Optional[str] = None

    def __post_init__(self):
        if self.max_amount is not None:
            self.max_amount = normalize_cap(self.max_amount)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"address": self.address}
        if self.name:
            d["name"] = self.name
        if self.max_amount is not None:
            d["maxAmount"] = _json_number(self.max_amount)
        if self.needs_memo:
            d["needsMemo"] = True
        if self.notes:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, raw: Any, index: int = 0) -> "Destination":
        label = f"destinations[{index}]"
        if not isinstance(raw, dict):
            raise CorruptAllowlist(f"{label} must be an object")
        address = raw.get("address")
        if not isinstance(address, str) or not address.strip():
            raise CorruptAllowlist(f"{label}.address must be a non-empty string")
        return cls(
            address=address.strip(),
            name=_parse_optional_str(raw.get("name"), f"{label}.name"),
            max_amount=_parse_max_amount(raw.get("maxAmount"), f"{label}.maxAmount"),
            needs_memo=_parse_flag(raw.get("needsMemo"), f"{label}.needsMemo"),
            notes=_parse_optional_str(raw.get("notes"), f"{label}.notes"),
        )


@dataclass
class AllowlistConfig:
    default_policy: Optional[DefaultPolicy] = None
    destinations: list[Destination] = field(default_factory=list)

    def find(self, address: str) -> Optional[Destination]:
        target = address.strip()
        for dest in self.destinations:
            if dest.address == target:
                return dest
        return None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        if self.default_policy is not None:
            d["defaultPolicy"] = self.default_policy.to_dict()
        d["destinations"] = [dest.to_dict() for dest in self.destinations]
        return d

    @classmethod
    def from_dict(cls, raw: Any) -> "AllowlistConfig":
        if not isinstance(raw, dict):
            raise CorruptAllowlist("Allowlist must be a JSON object")
        policy_raw = raw.get("defaultPolicy")
        policy = DefaultPolicy.from_dict(policy_raw) if policy_raw is not None else None

        entries = raw.get("destinations", [])
        if not isinstance(entries, list):
            raise CorruptAllowlist("destinations must be a list")

        # One entry per address; a later entry replaces an earlier one in place.
        by_address: dict[str, Destination] = {}
        for index, entry in enumerate(entries):
            dest = Destination.from_dict(entry, index)
            by_address[dest.address] = dest
        return cls(default_policy=policy, destinations=list(by_address.values()))


@dataclass(frozen=True)
class AllowlistDecision:
    """Outcome of evaluating one send against the allowlist."""

    allowed: bool
    require_memo: bool = False
    reason: Optional[str] = None
    destination: Optional[Destination] = None


def _parse_flag(value: Any, label: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise CorruptAllowlist(f"{label} must be true or false")
    return value


def _parse_optional_str(value: Any, label: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CorruptAllowlist(f"{label} must be a string")
    return value


def normalize_cap(value: DisplayNumber) -> Decimal:
    """Turn a display-unit cap into an exact ``Decimal`` truncated to six places.

    Floats are read through their shortest ``str`` form. A fractional cap
    must survive a JSON number round trip unchanged, so values with more
    significant digits than a double holds are refused.
    """
    if isinstance(value, bool) or not isinstance(value, (Decimal, int, float)):
        raise InvalidAmount(f"Cap must be a number, got {type(value).__name__}")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
        if not dec.is_finite() or dec < 0:
            raise InvalidAmount(f"Invalid cap '{value}': provide a non-negative number")
        if dec.as_tuple().exponent < -DECIMALS:
            dec = dec.quantize(CAP_QUANTUM, rounding=ROUND_DOWN)
    except (ArithmeticError, ValueError):
        raise InvalidAmount("Invalid cap: not a representable decimal") from None
    display_number_to_base_units(dec)
    if dec != dec.to_integral_value() and Decimal(repr(float(dec))) != dec:
        raise InvalidAmount(f"Cap '{format(dec, 'f')}' has too many significant digits")
    return dec


def _json_number(cap: Decimal) -> Union[int, float]:
    if cap == cap.to_integral_value():
        return int(cap)
    return float(cap)


def format_cap(cap: Decimal) -> str:
    return format(cap, "f")


def _parse_max_amount(value: Any, label: str) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (Decimal, int, float)):
        raise CorruptAllowlist(f"{label} must be a number")
    try:
        return normalize_cap(value)
    except InvalidAmount as exc:
        raise CorruptAllowlist(f"{label}: {exc.reason}") from exc


def parse_max_amount(text: str) -> Decimal:
    """Parse a ``--max`` style display amount into an exact cap."""
    try:
        dec = Decimal(text.strip())
    except ArithmeticError:
        raise InvalidAmount(f"Invalid max amount '{text}'") from None
    return normalize_cap(dec)


def _memo_supplied(memo: Optional[str]) -> bool:
    return bool(memo and memo.strip())


def _apply_rules(
    amount_base_units: int,
    max_amount: Optional[Decimal],
    require_memo: bool,
    memo: Optional[str],
    subject: str,
    destination: Optional[Destination] = None,
) -> AllowlistDecision:
    if max_amount is not None:
        cap = display_number_to_base_units(max_amount)
        if amount_base_units > cap:
            return AllowlistDecision(
                allowed=False,
                require_memo=require_memo,
                reason=(
                    f"Amount {format_amount(amount_base_units)} exceeds the "
                    f"{format_base_units(cap)} {NEUTARO.display_denom} cap for {subject}"
                ),
                destination=destination,
            )
    if require_memo and not _memo_supplied(memo):
        return AllowlistDecision(
            allowed=False,
            require_memo=True,
            reason=f"A memo is required for {subject}",
            destination=destination,
        )
    return AllowlistDecision(allowed=True, require_memo=require_memo, destination=destination)


def evaluate(
    config: AllowlistConfig,
    destination_address: str,
    amount_base_units: int,
    memo: Optional[str] = None,
) -> AllowlistDecision:
    """Decide whether a send is permitted. Has no side effects.

    A listed destination's own rules always win over the default policy,
    even when they are more generous.
    """
    address = destination_address.strip()
    dest = config.find(address)
    if dest is not None:
        label = f"{dest.name} ({dest.address})" if dest.name else dest.address
        return _apply_rules(
            amount_base_units, dest.max_amount, dest.needs_memo, memo, label, destination=dest,
        )

    policy = config.default_policy
    if policy is None:
        return AllowlistDecision(allowed=True)
    if policy.block_unknown:
        return AllowlistDecision(allowed=False, reason=UNKNOWN_BLOCKED_REASON)
    return _apply_rules(
        amount_base_units, policy.max_amount, policy.require_memo, memo, "unlisted destinations",
    )


def default_config(mode: AllowlistMode = "enforce") -> AllowlistConfig:
    if mode not in ALLOWLIST_MODES:
        raise ValueError(f"Unknown allowlist mode: {mode}")
    return AllowlistConfig(
        default_policy=DefaultPolicy(block_unknown=mode == "enforce"),
        destinations=[],
    )


def with_destination(config: AllowlistConfig, destination: Destination) -> AllowlistConfig:
    """Return a copy of ``config`` with ``destination`` added or replaced."""
    dest = replace(destination, address=destination.address.strip())
    kept = [d for d in config.destinations if d.address != dest.address]
    return AllowlistConfig(default_policy=config.default_policy, destinations=kept + [dest])


def without_destination(config: AllowlistConfig, address: str) -> AllowlistConfig:
    target = address.strip()
    kept = [d for d in config.destinations if d.address != target]
    return AllowlistConfig(default_policy=config.default_policy, destinations=kept)


class AllowlistStore:
    """Reads and writes the allowlist file. Writes are whole-file replacements."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path).expanduser() if path is not None else default_allowlist_path()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[AllowlistConfig]:
        """Return the config, or None when no allowlist has been created."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f, parse_float=Decimal)
        except json.JSONDecodeError as exc:
            raise CorruptAllowlist(f"Allowlist {self.path} is not valid JSON: {exc.msg}") from exc
        except UnicodeDecodeError as exc:
            raise CorruptAllowlist(f"Allowlist {self.path} is not valid UTF-8") from exc
        except OSError as exc:
            raise AllowlistError(f"Cannot read allowlist {self.path}: {exc}") from exc
        return AllowlistConfig.from_dict(raw)

    def save(self, config: AllowlistConfig) -> None:
        ensure_private_dir(self.path.parent)
        atomic_write_json(self.path, config.to_dict())
        logger.info("Allowlist saved to %s (%d destinations)", self.path, len(config.destinations))

    def init(self, mode: AllowlistMode = "enforce", overwrite: bool = False) -> AllowlistConfig:
        if self.exists() and not overwrite:
            raise FileExistsError(f"Allowlist already exists at {self.path}")
        config = default_config(mode)
        self.save(config)
        return config

    def add(self, destination: Destination) -> AllowlistConfig:
        """Add or replace a destination, creating a permissive file if none exists."""
        current = self.load() or AllowlistConfig(default_policy=DefaultPolicy())
        updated = with_destination(current, destination)
        self.save(updated)
        return updated

    def remove(self, address: str) -> bool:
        current = self.load()
        if current is None:
            return False
        updated = without_destination(current, address)
        if len(updated.destinations) == len(current.destinations):
            return False
        self.save(updated)
        return True
