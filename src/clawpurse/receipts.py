"""
Transaction receipts.

Receipts are append-only JSONL entries with an HMAC hash chain so that
edits, deletions or reordering are detected when the log is read back.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import os
import secrets
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from .chain import BroadcastResult
from .config import (
    CLAWPURSE_RECEIPTS_KEY_ENV,
    NEUTARO,
    default_receipts_key_path,
    default_receipts_path,
)
from .money import format_amount
from .storage import ensure_private_dir, ensure_private_file


ReceiptType = Literal["send", "receive"]
ReceiptStatus = Literal["confirmed", "pending", "failed"]

_HASH_FIELDS = {"prev_hash", "entry_hash"}


@dataclass
class Receipt:
    """One recorded transfer. ``amount`` is a base-unit integer string."""

    id: str
    type: str
    tx_hash: str
    from_address: str
    to_address: str
    amount: str
    display_amount: str
    denom: str
    height: int
    gas_used: int
    timestamp: str
    status: str
    memo: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


class ReceiptLog:
    """Tamper-evident append-only receipt log."""

    def __init__(
        self,
        path: Optional[Path] = None,
        key_path: Optional[Path] = None,
    ):
        self.path = path or default_receipts_path()
        self.key_path = key_path or default_receipts_key_path()

        ensure_private_dir(self.path.parent)
        ensure_private_dir(self.key_path.parent)
        ensure_private_file(self.path)
        ensure_private_file(self.key_path)

        self._hmac_key = self._load_or_create_key()
        self._last_hash = self._scan_last_hash()

    def _load_or_create_key(self) -> bytes:
        env_key = os.getenv(CLAWPURSE_RECEIPTS_KEY_ENV)
        if env_key:
            return env_key.encode()
        if self.key_path.exists() and self.key_path.stat().st_size > 0:
            return self.key_path.read_bytes().strip()
        key = secrets.token_hex(32).encode()
        self.key_path.write_bytes(key)
        ensure_private_file(self.key_path)
        return key

    def _scan_last_hash(self) -> str:
        last = ""
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                last = json.loads(line).get("entry_hash", "")
        return last

    def _entry_hash(self, payload: dict, prev_hash: str) -> str:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        digest = hmac.new(self._hmac_key, f"{prev_hash}|{canonical}".encode(), hashlib.sha256)
        return digest.hexdigest()

    def append(self, receipt: Receipt) -> Receipt:
        payload = receipt.to_dict()
        prev_hash = self._last_hash
        current_hash = self._entry_hash(payload, prev_hash)
        line = dict(payload, prev_hash=prev_hash or None, entry_hash=current_hash)
        line = {k: v for k, v in line.items() if v is not None}

        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(line, separators=(",", ":")) + "\n")
            f.flush()
            os.fsync(f.fileno())
        ensure_private_file(self.path)

        self._last_hash = current_hash
        return receipt

    def record_send(
        self,
        result: BroadcastResult,
        from_address: str,
        to_address: str,
        amount_base_units: int,
        memo: Optional[str] = None,
        status: ReceiptStatus = "confirmed",
    ) -> Receipt:
        receipt = Receipt(
            id=f"send-{result.transaction_hash[:8]}-{int(time.time() * 1000)}",
            type="send",
            tx_hash=result.transaction_hash,
            from_address=from_address,
            to_address=to_address,
            amount=str(amount_base_units),
            display_amount=format_amount(amount_base_units),
            denom=NEUTARO.denom,
            height=result.height,
            gas_used=result.gas_used,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            status=status,
            memo=memo or None,
        )
        return self.append(receipt)

    def read_all(self) -> list[Receipt]:
        """Every receipt in append order, after verifying the whole chain."""
        receipts: list[Receipt] = []
        expected_prev = ""
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                raw = json.loads(line)

                payload = {k: v for k, v in raw.items() if k not in _HASH_FIELDS}
                prev_hash = raw.get("prev_hash", "") or ""
                entry_hash = raw.get("entry_hash", "") or ""
                if prev_hash != expected_prev:
                    raise RuntimeError("Receipt chain broken: previous hash mismatch")
                expected_hash = self._entry_hash(payload, prev_hash)
                if not hmac.compare_digest(expected_hash, entry_hash):
                    raise RuntimeError("Receipt chain broken: entry hash mismatch")
                expected_prev = entry_hash

                receipts.append(
                    Receipt(**{k: v for k, v in payload.items() if k in Receipt.__dataclass_fields__})
                )

        self._last_hash = expected_prev
        return receipts

    def recent(self, limit: int = 10) -> list[Receipt]:
        """Most recent receipts, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self.read_all()[-limit:]))

    def find(self, tx_hash: str) -> Optional[Receipt]:
        for receipt in self.read_all():
            if receipt.tx_hash == tx_hash:
                return receipt
        return None


_BOX_WIDTH = 62


def _row(label: str, value: str) -> str:
    text = f" {label}{' '.join(value.split())}"
    return f"║{text[:_BOX_WIDTH].ljust(_BOX_WIDTH)}║"


def format_receipt(receipt: Receipt) -> str:
    """Render a receipt as a fixed-width box for the terminal."""
    rule = "═" * _BOX_WIDTH
    lines = [
        f"╔{rule}╗",
        f"║{'CLAWPURSE RECEIPT'.center(_BOX_WIDTH)}║",
        f"╠{rule}╣",
        _row("Type: ", receipt.type.upper()),
        _row("Status: ", receipt.status.upper()),
        _row("Amount: ", receipt.display_amount),
        f"╠{rule}╣",
        _row("From: ", receipt.from_address),
        _row("To:   ", receipt.to_address),
        f"╠{rule}╣",
        _row("Tx Hash: ", receipt.tx_hash),
        _row("Block: ", str(receipt.height)),
        _row("Gas Used: ", str(receipt.gas_used)),
        _row("Time: ", receipt.timestamp),
    ]
    if receipt.memo:
        lines.append(_row("Memo: ", receipt.memo))
    lines.append(f"╚{rule}╝")
    return "\n".join(lines)
