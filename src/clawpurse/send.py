"""
Send orchestration.

Flow:
1. Validate destination address and memo
2. Unlock the keystore
3. Parse the amount and apply the hard safety limits
4. Evaluate the destination allowlist (unless explicitly overridden)
5. Hand off to the chain client (or simulate on dry run)
6. Record a receipt for successful sends
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import keystore
from .allowlist import AllowlistStore, evaluate
from .chain import BroadcastResult, ChainClient
from .config import KEYSTORE, NEUTARO, ChainConfig, KeystoreConfig
from .errors import ChainError, ConfirmationRequiredError, InvalidAmount, SafetyLimitError
from .money import AmountUnit, format_amount, parse_display_amount
from .receipts import ReceiptLog
from .validation import ensure_address, ensure_memo

logger = logging.getLogger(__name__)


@dataclass
class SendRequest:
    """A request to send tokens from the local wallet."""

    to_address: str
    amount: str
    memo: Optional[str] = None
    unit: AmountUnit = "display"
    confirmed: bool = False
    override_allowlist: bool = False


@dataclass
class SendResult:
    """Result of a send attempt."""

    success: bool
    tx_hash: Optional[str] = None
    height: int = 0
    gas_used: int = 0
    amount_base_units: int = 0
    reason: Optional[str] = None
    require_memo: bool = False
    dry_run: bool = False
    allowlist_denied: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "tx_hash": self.tx_hash,
            "height": self.height,
            "gas_used": self.gas_used,
            "amount_base_units": self.amount_base_units,
            "reason": self.reason,
            "require_memo": self.require_memo,
            "dry_run": self.dry_run,
            "allowlist_denied": self.allowlist_denied,
        }


class SendExecutor:
    """Orchestrates one send from validation to receipt."""

    def __init__(
        self,
        chain: Optional[ChainClient],
        keystore_path: Optional[Path] = None,
        allowlist_store: Optional[AllowlistStore] = None,
        receipts: Optional[ReceiptLog] = None,
        dry_run: bool = False,
        keystore_config: KeystoreConfig = KEYSTORE,
        chain_config: ChainConfig = NEUTARO,
    ):
        self.chain = chain
        self.keystore_path = keystore_path
        self.allowlist_store = allowlist_store or AllowlistStore()
        self.receipts = receipts
        self.dry_run = dry_run
        self.keystore_config = keystore_config
        self.chain_config = chain_config

    def execute(self, request: SendRequest, password: str) -> SendResult:
        to_address = request.to_address.strip()
        memo = request.memo or ""
        ensure_address(to_address, self.chain_config.bech32_prefix)
        ensure_memo(memo)

        wallet = keystore.unlock(password, self.keystore_path, prefix=self.chain_config.bech32_prefix)

        amount = parse_display_amount(request.amount, request.unit)
        self._check_limits(amount, request.confirmed)

        require_memo = False
        if request.override_allowlist:
            logger.warning("Allowlist bypassed for send to %s (%s)", to_address, format_amount(amount))
        else:
            config = self.allowlist_store.load()
            if config is not None:
                decision = evaluate(config, to_address, amount, memo)
                require_memo = decision.require_memo
                if not decision.allowed:
                    logger.info("Send to %s denied by allowlist: %s", to_address, decision.reason)
                    return SendResult(
                        success=False,
                        reason=decision.reason or "Destination blocked by allowlist",
                        amount_base_units=amount,
                        require_memo=decision.require_memo,
                        allowlist_denied=True,
                    )

        logger.info(
            "Sending %s from %s to %s%s",
            format_amount(amount), wallet.address, to_address, " (dry run)" if self.dry_run else "",
        )

        if self.dry_run:
            broadcast = _simulated_broadcast(wallet.address, to_address, amount, memo)
        elif self.chain is None:
            return SendResult(success=False, reason="No chain client configured", amount_base_units=amount)
        else:
            try:
                broadcast = self.chain.send_tokens(wallet.signer, wallet.address, to_address, amount, memo)
            except ChainError as e:
                logger.error("Send to %s failed: %s", to_address, e)
                return SendResult(
                    success=False,
                    reason=f"Chain error: {e}",
                    amount_base_units=amount,
                    require_memo=require_memo,
                )

        if not broadcast.succeeded:
            reason = f"Transaction rejected with code {broadcast.status_code}"
            if broadcast.raw_log:
                reason += f": {broadcast.raw_log}"
            return SendResult(
                success=False,
                tx_hash=broadcast.transaction_hash or None,
                height=broadcast.height,
                gas_used=broadcast.gas_used,
                reason=reason,
                amount_base_units=amount,
                require_memo=require_memo,
            )

        if self.receipts is not None and not self.dry_run:
            self.receipts.record_send(broadcast, wallet.address, to_address, amount, memo or None)

        return SendResult(
            success=True,
            tx_hash=broadcast.transaction_hash,
            height=broadcast.height,
            gas_used=broadcast.gas_used,
            amount_base_units=amount,
            require_memo=require_memo,
            dry_run=self.dry_run,
        )

    def _check_limits(self, amount: int, confirmed: bool) -> None:
        if amount <= 0:
            raise InvalidAmount("Amount must be positive")
        if amount > self.keystore_config.max_send_amount:
            raise SafetyLimitError(
                format_amount(amount), format_amount(self.keystore_config.max_send_amount),
            )
        if amount > self.keystore_config.require_confirm_above and not confirmed:
            raise ConfirmationRequiredError(
                format_amount(amount), format_amount(self.keystore_config.require_confirm_above),
            )


def _simulated_broadcast(from_address: str, to_address: str, amount: int, memo: str) -> BroadcastResult:
    seed = f"{from_address}:{to_address}:{amount}:{memo}:{time.time()}"
    return BroadcastResult(
        status_code=0,
        transaction_hash=f"DRYRUN{hashlib.sha256(seed.encode()).hexdigest()[:58].upper()}",
    )
