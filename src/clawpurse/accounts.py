"""
Seed phrase to signing key derivation for a single Cosmos-SDK account.

The wallet holds exactly one account, derived at the standard Cosmos path
``m/44'/118'/0'/0/0``. The address is the bech32 encoding of
RIPEMD160(SHA256(compressed public key)) under the chain prefix.
"""

from __future__ import annotations

import hashlib

import bech32
from Crypto.Hash import RIPEMD160
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from eth_account.hdaccount import generate_mnemonic, key_from_seed, seed_from_mnemonic

from .config import NEUTARO
from .errors import InvalidSeedPhrase
from .validation import ensure_seed_phrase


COSMOS_HD_PATH = "m/44'/118'/0'/0/0"
SECP256K1_ORDER = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)


def generate_seed_phrase(num_words: int = 24) -> str:
    """Generate a fresh BIP39 English seed phrase."""
    return generate_mnemonic(num_words, "english")


def pubkey_to_address(public_key: bytes, prefix: str = NEUTARO.bech32_prefix) -> str:
    sha = hashlib.sha256(public_key).digest()
    ripemd = RIPEMD160.new(sha).digest()
    words = bech32.convertbits(ripemd, 8, 5)
    return bech32.bech32_encode(prefix, words)


class LocalSigner:
    """In-memory secp256k1 signer for one account.

    Exposes the address, the compressed public key and signing; the private
    key itself is not reachable through any public attribute.
    """

    __slots__ = ("_private_key", "_public_key", "_address")

    def __init__(self, private_key: ec.EllipticCurvePrivateKey, prefix: str = NEUTARO.bech32_prefix):
        self._private_key = private_key
        self._public_key = private_key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        )
        self._address = pubkey_to_address(self._public_key, prefix)

    @classmethod
    def from_key_bytes(cls, key: bytes, prefix: str = NEUTARO.bech32_prefix) -> "LocalSigner":
        private_key = ec.derive_private_key(int.from_bytes(key, "big"), ec.SECP256K1())
        return cls(private_key, prefix)

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte SHA-256 digest, returning 64-byte ``r || s`` with low S."""
        if len(digest) != 32:
            raise ValueError("Digest must be 32 bytes")
        der = self._private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der)
        if s > SECP256K1_ORDER // 2:
            s = SECP256K1_ORDER - s
        return r.to_bytes(32, "big") + s.to_bytes(32, "big")

    def sign(self, message: bytes) -> bytes:
        return self.sign_digest(hashlib.sha256(message).digest())

    def __repr__(self) -> str:
        return f"LocalSigner(address={self._address})"


def derive_signer(seed_phrase: str, prefix: str = NEUTARO.bech32_prefix) -> LocalSigner:
    """Derive the wallet's single signing account from a seed phrase."""
    ensure_seed_phrase(seed_phrase)
    normalized = " ".join(seed_phrase.split())
    try:
        seed = seed_from_mnemonic(normalized, "")
    except Exception:
        # The library's message echoes the phrase, so it is not chained.
        raise InvalidSeedPhrase("Seed phrase is not a valid BIP39 mnemonic") from None
    key = bytearray(key_from_seed(seed, COSMOS_HD_PATH))
    try:
        return LocalSigner.from_key_bytes(bytes(key), prefix)
    finally:
        key[:] = b"\x00" * len(key)
