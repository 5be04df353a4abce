"""
ClawPurse error types.

Specific exceptions for different failure modes, enabling callers
to handle each case appropriately (re-prompt, abort, override, etc.).
Messages never carry passwords, derived keys or seed phrases.
"""

from __future__ import annotations

from typing import Iterable, Optional


class ClawPurseError(Exception):
    """Base error for all ClawPurse operations."""
    pass


# Input validation errors (recoverable, no state was changed)
class ValidationError(ClawPurseError):
    """Base error for rejected user input."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidAmount(ValidationError):
    """Amount string is not an exact non-negative decimal."""
    pass


class WeakPassword(ValidationError):
    """Password is empty, too short, or too common."""
    pass


class InvalidSeedPhrase(ValidationError):
    """Seed phrase has the wrong shape or fails derivation."""
    pass


class InvalidAddress(ValidationError):
    """Address does not look like a bech32 address for this chain."""
    pass


class InvalidMemo(ValidationError):
    """Memo is too long or contains control characters."""
    pass


# Keystore errors (fatal for the operation, retrying cannot help)
class KeystoreError(ClawPurseError):
    """Base error for keystore failures."""
    pass


class KeystoreIOError(KeystoreError):
    """Keystore file could not be read or written."""
    pass


class KeystoreExistsError(KeystoreError):
    """Refusing to replace an existing keystore."""
    pass


class CorruptKeystore(KeystoreError):
    """Keystore file is not a well-formed record."""
    pass


class UnsupportedVersion(KeystoreError):
    """Keystore record version is not understood by this reader."""
    def __init__(self, version: object):
        self.version = version
        super().__init__(f"Unsupported keystore version: {version}")


class DecryptionFailed(KeystoreError):
    """Wrong password or tampered ciphertext (deliberately indistinguishable)."""
    def __init__(self):
        super().__init__("Unable to decrypt keystore: wrong password or corrupted file")


# Allowlist errors
class AllowlistError(ClawPurseError):
    """Base error for allowlist configuration issues."""
    pass


class CorruptAllowlist(AllowlistError):
    """Allowlist file does not match the expected schema."""
    pass


# Send guardrails
class SendError(ClawPurseError):
    """Base error for send guardrail violations."""
    pass


class SafetyLimitError(SendError):
    """Amount exceeds the hard per-send safety limit."""
    def __init__(self, amount: str, limit: str):
        self.amount = amount
        self.limit = limit
        super().__init__(f"Amount {amount} exceeds safety limit of {limit}")


class ConfirmationRequiredError(SendError):
    """Amount is large enough to need explicit confirmation."""
    def __init__(self, amount: str, threshold: str):
        self.amount = amount
        self.threshold = threshold
        super().__init__(
            f"Amount {amount} exceeds {threshold} - confirmation required"
        )


# Chain errors
class ChainError(ClawPurseError):
    """Base error for chain client failures."""
    pass


class NetworkError(ChainError):
    """Network-level failures (DNS, connection refused, timeouts, etc.)."""
    pass


def redact(message: str, sensitive: Iterable[Optional[str]]) -> str:
    """Replace every occurrence of a sensitive value with [REDACTED]."""
    safe = message
    for value in sensitive:
        if value:
            safe = safe.replace(value, "[REDACTED]")
    return safe
