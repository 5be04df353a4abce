"""Tests for the tamper-evident receipt log."""

import json

import pytest

from clawpurse.chain import BroadcastResult
from clawpurse.receipts import ReceiptLog, format_receipt


SENDER = "neutaro1" + "s" * 38
RECIPIENT = "neutaro1" + "r" * 38


@pytest.fixture
def log(tmp_path):
    return ReceiptLog(path=tmp_path / "receipts.jsonl", key_path=tmp_path / "secret" / "receipts.key")


def _record(log, tx_hash, amount, memo=None):
    result = BroadcastResult(status_code=0, transaction_hash=tx_hash, height=10, gas_used=70000)
    return log.record_send(result, SENDER, RECIPIENT, amount, memo)


def test_record_and_read_back(log):
    receipt = _record(log, "A1B2C3D4E5", 1_500_000, memo="rent")
    assert receipt.id.startswith("send-A1B2C3D4-")
    assert receipt.amount == "1500000"
    assert receipt.display_amount == "1.500000 NTMPI"
    assert receipt.denom == "uneutaro"
    assert receipt.status == "confirmed"
    assert log.find("A1B2C3D4E5") == receipt
    assert log.find("missing") is None


def test_recent_is_newest_first(log):
    for i in range(3):
        _record(log, f"TX{i}", (i + 1) * 1_000_000)
    assert [r.tx_hash for r in log.recent(2)] == ["TX2", "TX1"]
    assert log.recent(0) == []


def test_chain_survives_reopen(tmp_path, log):
    _record(log, "TX0", 1)
    reopened = ReceiptLog(path=log.path, key_path=log.key_path)
    _record(reopened, "TX1", 2)
    assert [r.tx_hash for r in reopened.recent(10)] == ["TX1", "TX0"]


def test_hash_chain_detects_tampering(log):
    _record(log, "TX0", 1_000_000)
    _record(log, "TX1", 2_000_000)

    lines = log.path.read_text().splitlines()
    first = json.loads(lines[0])
    first["to_address"] = "neutaro1" + "x" * 38
    lines[0] = json.dumps(first, separators=(",", ":"))
    log.path.write_text("\n".join(lines) + "\n")

    with pytest.raises(RuntimeError, match="Receipt chain broken"):
        log.recent()


def test_deleted_entry_is_detected(log):
    for i in range(3):
        _record(log, f"TX{i}", 1)
    lines = log.path.read_text().splitlines()
    log.path.write_text("\n".join([lines[0], lines[2]]) + "\n")
    with pytest.raises(RuntimeError, match="previous hash mismatch"):
        log.find("TX2")


def test_format_receipt(log):
    receipt = _record(log, "F" * 64, 42_000_000, memo="invoice\n42")
    text = format_receipt(receipt)
    lines = text.splitlines()
    assert "CLAWPURSE RECEIPT" in text
    assert "42.000000 NTMPI" in text
    assert "Memo: invoice 42" in text
    assert len({len(line) for line in lines}) == 1
