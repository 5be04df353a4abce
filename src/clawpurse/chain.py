"""
Neutaro chain access over the Cosmos SDK REST (LCD) API.

The client is an explicit handle: build one, pass it to whatever needs the
chain, close it when done. Nothing is cached at module level, so several
wallets can share a process without sharing connection state.

Building and signing the protobuf transaction body is delegated to a
``TxEncoder``; this module only broadcasts the resulting bytes.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from .accounts import LocalSigner
from .config import NEUTARO, ChainConfig
from .errors import ChainError, NetworkError
from .money import format_amount

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """Chain response to a broadcast. A non-zero ``status_code`` is a rejection."""

    status_code: int
    transaction_hash: str
    height: int = 0
    gas_used: int = 0
    raw_log: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status_code == 0

    def to_dict(self) -> dict:
        return {
            "status_code": self.status_code,
            "transaction_hash": self.transaction_hash,
            "height": self.height,
            "gas_used": self.gas_used,
            "raw_log": self.raw_log,
        }


@dataclass
class Balance:
    amount: int
    denom: str

    @property
    def display_amount(self) -> str:
        return format_amount(self.amount)


@dataclass
class ChainInfo:
    chain_id: str
    height: int
    connected: bool
    error: Optional[str] = None


class ChainClient(Protocol):
    def send_tokens(
        self,
        signer: LocalSigner,
        from_address: str,
        to_address: str,
        amount_base_units: int,
        memo: str,
    ) -> BroadcastResult:
        ...


class TxEncoder(Protocol):
    """Builds signed ``TxRaw`` bytes for a bank send."""

    def __call__(
        self,
        client: "RestChainClient",
        signer: LocalSigner,
        from_address: str,
        to_address: str,
        amount_base_units: int,
        memo: str,
    ) -> bytes:
        ...


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class RestChainClient:
    """Talks to a Cosmos SDK REST endpoint with httpx."""

    def __init__(
        self,
        config: ChainConfig = NEUTARO,
        encoder: Optional[TxEncoder] = None,
        http: Optional[httpx.Client] = None,
        timeout_seconds: float = 30.0,
    ):
        self.config = config
        self.encoder = encoder
        self._http = http or httpx.Client(base_url=config.rest_endpoint, timeout=timeout_seconds)

    def _get(self, path: str, **params: Any) -> dict:
        try:
            response = self._http.get(path, params=params or None)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Connection failed: {e}") from e
        if response.status_code != 200:
            raise ChainError(f"GET {path} returned HTTP {response.status_code}")
        return response.json()

    def get_balance(self, address: str) -> Balance:
        data = self._get(
            f"/cosmos/bank/v1beta1/balances/{address}/by_denom", denom=self.config.denom,
        )
        balance = data.get("balance") or {}
        return Balance(amount=_int(balance.get("amount")), denom=balance.get("denom") or self.config.denom)

    def get_chain_info(self) -> ChainInfo:
        """Latest block summary. Failures are reported, not raised."""
        try:
            data = self._get("/cosmos/base/tendermint/v1beta1/blocks/latest")
        except (ChainError, ValueError) as e:
            logger.warning("Chain status check failed: %s", e)
            return ChainInfo(chain_id=self.config.chain_id, height=0, connected=False, error=str(e))
        header = (data.get("block") or {}).get("header") or {}
        return ChainInfo(
            chain_id=header.get("chain_id") or self.config.chain_id,
            height=_int(header.get("height")),
            connected=True,
        )

    def broadcast_tx(self, tx_bytes: bytes) -> BroadcastResult:
        body = {
            "tx_bytes": base64.b64encode(tx_bytes).decode("ascii"),
            "mode": "BROADCAST_MODE_SYNC",
        }
        try:
            response = self._http.post("/cosmos/tx/v1beta1/txs", json=body)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Broadcast timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Connection failed: {e}") from e
        if response.status_code != 200:
            raise ChainError(f"Broadcast returned HTTP {response.status_code}: {response.text[:200]}")

        tx = response.json().get("tx_response") or {}
        result = BroadcastResult(
            status_code=_int(tx.get("code")),
            transaction_hash=tx.get("txhash", ""),
            height=_int(tx.get("height")),
            gas_used=_int(tx.get("gas_used")),
            raw_log=tx.get("raw_log", ""),
        )
        logger.info("Broadcast %s code=%d", result.transaction_hash, result.status_code)
        return result

    def send_tokens(
        self,
        signer: LocalSigner,
        from_address: str,
        to_address: str,
        amount_base_units: int,
        memo: str = "",
    ) -> BroadcastResult:
        if self.encoder is None:
            raise ChainError(
                "Live sending needs a transaction encoder; none is configured (use --dry-run to simulate)"
            )
        tx_bytes = self.encoder(self, signer, from_address, to_address, amount_base_units, memo)
        return self.broadcast_tx(tx_bytes)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
