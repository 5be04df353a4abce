"""Chain and wallet configuration for the Neutaro (Timpi) network."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


CLAWPURSE_HOME_ENV = "CLAWPURSE_HOME"
CLAWPURSE_PASSWORD_ENV = "CLAWPURSE_PASSWORD"
CLAWPURSE_MNEMONIC_ENV = "CLAWPURSE_MNEMONIC"
CLAWPURSE_REST_ENDPOINT_ENV = "CLAWPURSE_REST_ENDPOINT"
CLAWPURSE_RECEIPTS_KEY_ENV = "CLAWPURSE_RECEIPTS_HMAC_KEY"


@dataclass(frozen=True)
class ChainConfig:
    chain_id: str = "Neutaro-1"
    rpc_endpoint: str = "https://rpc2.neutaro.io"
    rest_endpoint: str = "https://api2.neutaro.io"
    denom: str = "uneutaro"
    display_denom: str = "NTMPI"
    decimals: int = 6
    gas_price: str = "0.025uneutaro"
    default_gas_limit: int = 200_000
    bech32_prefix: str = "neutaro"

    @property
    def validator_prefix(self) -> str:
        return f"{self.bech32_prefix}valoper"


@dataclass(frozen=True)
class KeystoreConfig:
    """Key derivation and send guardrail defaults.

    The scrypt parameters here are what version-1 records were written with
    before they carried their own ``kdf`` block; changing them only affects
    newly created keystores.
    """

    scrypt_n: int = 2 ** 14
    scrypt_r: int = 8
    scrypt_p: int = 1
    key_length: int = 32
    salt_length: int = 32
    nonce_length: int = 16

    max_send_amount: int = 1000_000000       # 1000 NTMPI in base units
    require_confirm_above: int = 100_000000  # 100 NTMPI


NEUTARO = ChainConfig()
KEYSTORE = KeystoreConfig()


def clawpurse_home() -> Path:
    override = os.getenv(CLAWPURSE_HOME_ENV)
    return Path(override) if override else Path.home() / ".clawpurse"


def default_keystore_path() -> Path:
    return clawpurse_home() / "keystore.enc"


def default_allowlist_path() -> Path:
    return clawpurse_home() / "allowlist.json"


def default_receipts_path() -> Path:
    return clawpurse_home() / "receipts.jsonl"


def default_receipts_key_path() -> Path:
    return clawpurse_home() / "receipts.key"


def chain_config_from_env() -> ChainConfig:
    """Return the default chain config, honouring endpoint overrides."""
    rest = os.getenv(CLAWPURSE_REST_ENDPOINT_ENV)
    if rest:
        return ChainConfig(rest_endpoint=rest.rstrip("/"))
    return NEUTARO
