"""
ClawPurse — local non-custodial wallet for NTMPI on the Neutaro chain.

Encrypted seed storage, exact amount handling and a destination allowlist
that every send passes through before anything reaches the chain.
"""

__version__ = "0.1.0"

from .money import format_amount, format_base_units, parse_display_amount
from .validation import (
    validate_address,
    validate_memo,
    validate_password,
    validate_seed_phrase,
    validate_validator_address,
)
from .keystore import KeystoreRecord, UnlockedWallet, create, exists, peek_address, unlock
from .accounts import LocalSigner, derive_signer, generate_seed_phrase
from .allowlist import (
    AllowlistConfig,
    AllowlistDecision,
    AllowlistStore,
    DefaultPolicy,
    Destination,
    evaluate,
)
from .chain import BroadcastResult, RestChainClient
from .receipts import Receipt, ReceiptLog, format_receipt
from .send import SendExecutor, SendRequest, SendResult

__all__ = [
    "parse_display_amount", "format_base_units", "format_amount",
    "validate_password", "validate_seed_phrase", "validate_address",
    "validate_validator_address", "validate_memo",
    "KeystoreRecord", "UnlockedWallet", "create", "unlock", "exists", "peek_address",
    "LocalSigner", "derive_signer", "generate_seed_phrase",
    "AllowlistConfig", "AllowlistDecision", "AllowlistStore", "DefaultPolicy", "Destination", "evaluate",
    "BroadcastResult", "RestChainClient",
    "Receipt", "ReceiptLog", "format_receipt",
    "SendExecutor", "SendRequest", "SendResult",
]
