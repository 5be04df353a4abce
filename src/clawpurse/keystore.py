"""
Encrypted local keystore.

One file holds one wallet identity: the seed phrase encrypted with
AES-256-GCM under a key derived from the user's password with scrypt.

File format (JSON, mode 0600)::

    {
      "version": 1,
      "address": "neutaro1...",
      "encryptedSeed": "<hex ciphertext>:<hex auth tag>",
      "salt": "<hex>",
      "iv": "<hex>",
      "createdAt": "<ISO-8601>",
      "kdf": {"name": "scrypt", "n": 16384, "r": 8, "p": 1, "dklen": 32}
    }

``kdf`` records the cost parameters a keystore was written with. Records
without it predate the field and are read with the original hard-coded
parameters (``LEGACY_KDF``).

Secrets in Python: the derived key lives in a ``bytearray`` that is zeroed
after use, but the password and the decrypted seed phrase are immutable
``str`` objects that cannot be wiped in place. Callers should drop their
references promptly; no stronger guarantee is claimed.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .accounts import LocalSigner, derive_signer
from .config import KEYSTORE, NEUTARO, KeystoreConfig, default_keystore_path
from .errors import (
    CorruptKeystore,
    DecryptionFailed,
    InvalidAddress,
    InvalidSeedPhrase,
    KeystoreExistsError,
    KeystoreIOError,
    UnsupportedVersion,
)
from .storage import atomic_write_json, ensure_private_dir
from .validation import ensure_address, ensure_password, ensure_seed_phrase

logger = logging.getLogger(__name__)


KEYSTORE_VERSION = 1
AUTH_TAG_LENGTH = 16


@dataclass(frozen=True)
class KdfParams:
    """scrypt cost parameters."""

    n: int = KEYSTORE.scrypt_n
    r: int = KEYSTORE.scrypt_r
    p: int = KEYSTORE.scrypt_p
    dklen: int = KEYSTORE.key_length
    name: str = "scrypt"

    @classmethod
    def from_config(cls, config: KeystoreConfig) -> "KdfParams":
        return cls(n=config.scrypt_n, r=config.scrypt_r, p=config.scrypt_p, dklen=config.key_length)

    def to_dict(self) -> dict:
        return {"name": self.name, "n": self.n, "r": self.r, "p": self.p, "dklen": self.dklen}

    @classmethod
    def from_dict(cls, raw: Any) -> "KdfParams":
        if not isinstance(raw, dict):
            raise CorruptKeystore("Keystore kdf parameters must be an object")
        if raw.get("name", "scrypt") != "scrypt":
            raise CorruptKeystore(f"Unsupported key derivation function: {raw.get('name')}")
        try:
            params = cls(n=int(raw["n"]), r=int(raw["r"]), p=int(raw["p"]), dklen=int(raw["dklen"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptKeystore(f"Malformed kdf parameters: {exc}") from exc
        if params.dklen != 32 or params.n < 2 or params.n & (params.n - 1) or params.r < 1 or params.p < 1:
            raise CorruptKeystore("Keystore kdf parameters are out of range")
        return params


LEGACY_KDF = KdfParams(n=2 ** 14, r=8, p=1, dklen=32)


@dataclass
class KeystoreRecord:
    """The persisted keystore entity."""

    version: int
    address: str
    encrypted_seed: bytes
    tag: bytes
    salt: bytes
    iv: bytes
    created_at: str
    kdf: KdfParams = field(default_factory=lambda: LEGACY_KDF)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "address": self.address,
            "encryptedSeed": f"{self.encrypted_seed.hex()}:{self.tag.hex()}",
            "salt": self.salt.hex(),
            "iv": self.iv.hex(),
            "createdAt": self.created_at,
            "kdf": self.kdf.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "KeystoreRecord":
        if not isinstance(raw, dict):
            raise CorruptKeystore("Keystore must be a JSON object")

        version = raw.get("version")
        if version != KEYSTORE_VERSION or isinstance(version, bool):
            raise UnsupportedVersion(version)

        address = raw.get("address")
        if not isinstance(address, str) or not address:
            raise CorruptKeystore("Keystore is missing the address field")

        sealed = raw.get("encryptedSeed", raw.get("encryptedMnemonic"))
        if not isinstance(sealed, str) or sealed.count(":") != 1:
            raise CorruptKeystore("Keystore ciphertext must be '<hex ciphertext>:<hex tag>'")
        ciphertext_hex, tag_hex = sealed.split(":")

        try:
            encrypted_seed = bytes.fromhex(ciphertext_hex)
            tag = bytes.fromhex(tag_hex)
            salt = bytes.fromhex(_require_str(raw, "salt"))
            iv = bytes.fromhex(_require_str(raw, "iv"))
        except ValueError as exc:
            raise CorruptKeystore(f"Keystore contains invalid hex: {exc}") from exc

        if not encrypted_seed:
            raise CorruptKeystore("Keystore ciphertext is empty")
        if len(tag) != AUTH_TAG_LENGTH:
            raise CorruptKeystore("Keystore authentication tag has the wrong length")
        if not salt or not iv:
            raise CorruptKeystore("Keystore salt and iv must not be empty")

        kdf = KdfParams.from_dict(raw["kdf"]) if "kdf" in raw else LEGACY_KDF

        return cls(
            version=version,
            address=address,
            encrypted_seed=encrypted_seed,
            tag=tag,
            salt=salt,
            iv=iv,
            created_at=str(raw.get("createdAt", "")),
            kdf=kdf,
        )


@dataclass
class UnlockedWallet:
    """Result of a successful unlock."""

    seed_phrase: str = field(repr=False)
    address: str
    signer: LocalSigner


def _require_str(raw: dict, key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise CorruptKeystore(f"Keystore is missing the {key} field")
    return value


def derive_key(password: str, salt: bytes, params: KdfParams = LEGACY_KDF) -> bytearray:
    """Derive the symmetric key from a password. Callers must zero the result."""
    kdf = Scrypt(salt=salt, length=params.dklen, n=params.n, r=params.r, p=params.p)
    return bytearray(kdf.derive(password.encode("utf-8")))


def _wipe(buf: bytearray) -> None:
    buf[:] = b"\x00" * len(buf)


def encrypt_seed(
    seed_phrase: str,
    password: str,
    params: KdfParams,
    config: KeystoreConfig = KEYSTORE,
) -> tuple[bytes, bytes, bytes, bytes]:
    """Encrypt a seed phrase. Returns ``(ciphertext, tag, salt, iv)``.

    Salt and nonce are fresh random values on every call.
    """
    salt = os.urandom(config.salt_length)
    iv = os.urandom(config.nonce_length)
    key = derive_key(password, salt, params)
    try:
        sealed = AESGCM(bytes(key)).encrypt(iv, seed_phrase.encode("utf-8"), None)
    finally:
        _wipe(key)
    return sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:], salt, iv


def decrypt_seed(record: KeystoreRecord, password: str) -> str:
    key = derive_key(password, record.salt, record.kdf)
    try:
        plaintext = AESGCM(bytes(key)).decrypt(record.iv, record.encrypted_seed + record.tag, None)
    except InvalidTag:
        raise DecryptionFailed() from None
    finally:
        _wipe(key)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptKeystore("Decrypted seed phrase is not valid UTF-8") from exc


def _resolve(path: Optional[Path | str]) -> Path:
    return Path(path).expanduser() if path is not None else default_keystore_path()


def exists(path: Optional[Path | str] = None) -> bool:
    return _resolve(path).exists()


def read_record(path: Optional[Path | str] = None) -> KeystoreRecord:
    """Read and parse the record without decrypting it."""
    file_path = _resolve(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise KeystoreIOError(f"No keystore found at {file_path}") from exc
    except UnicodeDecodeError as exc:
        raise CorruptKeystore(f"Keystore {file_path} is not valid UTF-8") from exc
    except OSError as exc:
        raise KeystoreIOError(f"Cannot read keystore {file_path}: {exc}") from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptKeystore(f"Keystore {file_path} is not valid JSON: {exc.msg}") from exc
    return KeystoreRecord.from_dict(raw)


def peek_address(path: Optional[Path | str] = None) -> Optional[str]:
    """Return the plaintext address, or None if the file is absent or unreadable."""
    file_path = _resolve(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(raw, dict):
        return None
    address = raw.get("address")
    return address if isinstance(address, str) and address else None


def create(
    seed_phrase: str,
    address: str,
    password: str,
    path: Optional[Path | str] = None,
    *,
    overwrite: bool = False,
    prefix: str = NEUTARO.bech32_prefix,
    config: KeystoreConfig = KEYSTORE,
) -> Path:
    """Encrypt ``seed_phrase`` under ``password`` and persist it at ``path``."""
    ensure_password(password)
    ensure_seed_phrase(seed_phrase)
    ensure_address(address, prefix)
    signer = derive_signer(seed_phrase, prefix)
    if signer.address != address:
        raise InvalidAddress(f"Address {address} does not belong to this seed phrase")

    file_path = _resolve(path)
    if file_path.exists() and not overwrite:
        raise KeystoreExistsError(f"Keystore already exists at {file_path}")

    params = KdfParams.from_config(config)
    normalized = " ".join(seed_phrase.split())
    ciphertext, tag, salt, iv = encrypt_seed(normalized, password, params, config)
    record = KeystoreRecord(
        version=KEYSTORE_VERSION,
        address=address,
        encrypted_seed=ciphertext,
        tag=tag,
        salt=salt,
        iv=iv,
        created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        kdf=params,
    )

    try:
        ensure_private_dir(file_path.parent)
        atomic_write_json(file_path, record.to_dict())
    except OSError as exc:
        raise KeystoreIOError(f"Cannot write keystore {file_path}: {exc}") from exc

    logger.info("Keystore created at %s for %s", file_path, address)
    return file_path


def unlock(
    password: str,
    path: Optional[Path | str] = None,
    *,
    prefix: str = NEUTARO.bech32_prefix,
) -> UnlockedWallet:
    """Decrypt the keystore and rebuild the signing account."""
    record = read_record(path)
    seed_phrase = decrypt_seed(record, password)

    try:
        signer = derive_signer(seed_phrase, prefix)
    except InvalidSeedPhrase as exc:
        raise CorruptKeystore(f"Recovered seed phrase is unusable: {exc.reason}") from None
    if signer.address != record.address:
        raise CorruptKeystore(
            f"Keystore address {record.address} does not match the encrypted seed phrase"
        )

    logger.info("Keystore unlocked for %s", record.address)
    return UnlockedWallet(seed_phrase=seed_phrase, address=record.address, signer=signer)
