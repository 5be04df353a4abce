"""
Credential and input validation.

One shared set of predicates for every entry point (keystore creation,
allowlist editing, sending). Each ``validate_*`` returns ``(valid, reason)``
and never touches persisted state; each ``ensure_*`` raises the typed error
instead.
"""

from __future__ import annotations

import re
from typing import Optional

from .config import NEUTARO
from .errors import InvalidAddress, InvalidMemo, InvalidSeedPhrase, WeakPassword


MIN_PASSWORD_LENGTH = 12
WEAK_PASSWORD_FRAGMENTS = ("password123456", "123456789012", "qwertyuiopas")

SEED_PHRASE_LENGTHS = (12, 15, 18, 21, 24)
MAX_MEMO_BYTES = 256

ADDRESS_LENGTH_RANGE = (39, 90)
VALIDATOR_ADDRESS_LENGTH_RANGE = (47, 95)

_WORD_RE = re.compile(r"^[a-z]+$")
_BECH32_BODY_RE = re.compile(r"^[a-z0-9]+$")
_MEMO_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

Verdict = tuple[bool, Optional[str]]


def validate_password(password: str) -> Verdict:
    if not password:
        return False, "Password cannot be empty"
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    lowered = password.lower()
    if any(fragment in lowered for fragment in WEAK_PASSWORD_FRAGMENTS):
        return False, "Password is too common - please choose a stronger password"
    return True, None


def validate_seed_phrase(seed_phrase: str) -> Verdict:
    if not seed_phrase or not isinstance(seed_phrase, str):
        return False, "Seed phrase must be a non-empty string"
    words = seed_phrase.split()
    if len(words) not in SEED_PHRASE_LENGTHS:
        return False, f"Seed phrase must be 12, 15, 18, 21, or 24 words (got {len(words)})"
    for position, word in enumerate(words, start=1):
        # Report the position only; the word itself is secret material.
        if not _WORD_RE.match(word):
            return False, f"Invalid word at position {position}: words must be lowercase letters"
    return True, None


def _validate_bech32_shape(
    address: str,
    prefix: str,
    length_range: tuple[int, int],
    label: str,
) -> Verdict:
    if not address or not isinstance(address, str):
        return False, f"{label} must be a non-empty string"
    if not address.startswith(prefix):
        return False, f"{label} must start with '{prefix}', got '{address[:8]}...'"
    low, high = length_range
    if not low <= len(address) <= high:
        return False, f"Invalid {label.lower()} length: {len(address)}"
    body = address[len(prefix):]
    if not body.startswith("1"):
        return False, f"{label} is missing the bech32 separator after '{prefix}'"
    if not _BECH32_BODY_RE.match(body[1:]):
        return False, f"{label} contains invalid characters"
    return True, None


def validate_address(address: str, prefix: str = NEUTARO.bech32_prefix) -> Verdict:
    return _validate_bech32_shape(address, prefix, ADDRESS_LENGTH_RANGE, "Address")


def validate_validator_address(address: str, prefix: str = NEUTARO.bech32_prefix) -> Verdict:
    return _validate_bech32_shape(
        address, f"{prefix}valoper", VALIDATOR_ADDRESS_LENGTH_RANGE, "Validator address",
    )


def validate_memo(memo: str) -> Verdict:
    if not isinstance(memo, str):
        return False, "Memo must be a string"
    if len(memo.encode("utf-8")) > MAX_MEMO_BYTES:
        return False, f"Memo exceeds maximum length of {MAX_MEMO_BYTES} bytes"
    if _MEMO_CONTROL_RE.search(memo):
        return False, "Memo contains invalid control characters"
    return True, None


def sanitize_input(value: str) -> str:
    """Strip control characters from free-form labels (names, notes)."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_RE.sub("", value)


def ensure_password(password: str) -> None:
    valid, reason = validate_password(password)
    if not valid:
        raise WeakPassword(reason or "Weak password")


def ensure_seed_phrase(seed_phrase: str) -> None:
    valid, reason = validate_seed_phrase(seed_phrase)
    if not valid:
        raise InvalidSeedPhrase(reason or "Invalid seed phrase")


def ensure_address(address: str, prefix: str = NEUTARO.bech32_prefix) -> None:
    valid, reason = validate_address(address, prefix)
    if not valid:
        raise InvalidAddress(reason or "Invalid address")


def ensure_validator_address(address: str, prefix: str = NEUTARO.bech32_prefix) -> None:
    valid, reason = validate_validator_address(address, prefix)
    if not valid:
        raise InvalidAddress(reason or "Invalid validator address")


def ensure_memo(memo: str) -> None:
    valid, reason = validate_memo(memo)
    if not valid:
        raise InvalidMemo(reason or "Invalid memo")
