"""CLI tests, including argv secret hardening."""

import json

import httpx
import pytest
from click.testing import CliRunner

from clawpurse import cli
from clawpurse.accounts import derive_signer
from clawpurse.chain import RestChainClient
from clawpurse.cli import main
from clawpurse.config import NEUTARO


PHRASE = " ".join(["abandon"] * 11 + ["about"])
PASSWORD = "correct horse battery staple"
TRUSTED = "neutaro1" + "t" * 38


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("CLAWPURSE_HOME", str(tmp_path))
    monkeypatch.setenv("CLAWPURSE_PASSWORD", PASSWORD)
    monkeypatch.delenv("CLAWPURSE_MNEMONIC", raising=False)
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def imported(home, runner, monkeypatch):
    monkeypatch.setenv("CLAWPURSE_MNEMONIC", PHRASE)
    result = runner.invoke(main, ["import"])
    assert result.exit_code == 0, result.output
    return derive_signer(PHRASE).address


def _mock_chain(monkeypatch, handler):
    def factory():
        http = httpx.Client(transport=httpx.MockTransport(handler), base_url=NEUTARO.rest_endpoint)
        return RestChainClient(http=http)

    monkeypatch.setattr(cli, "_chain_client", factory)


class TestWalletCommands:
    def test_init_creates_keystore_and_enforcing_allowlist(self, home, runner):
        result = runner.invoke(main, ["init", "--words", "12"])
        assert result.exit_code == 0, result.output
        assert (home / "keystore.enc").exists()
        allowlist = json.loads((home / "allowlist.json").read_text())
        assert allowlist["defaultPolicy"]["blockUnknown"] is True
        assert "Write down your seed phrase" in result.output

    def test_init_refuses_existing_keystore(self, imported, runner):
        result = runner.invoke(main, ["init"])
        assert result.exit_code == 1
        assert "Init failed: Keystore already exists" in result.output

    def test_import_and_address(self, imported, runner):
        result = runner.invoke(main, ["address"])
        assert result.exit_code == 0
        assert result.output.strip() == imported

    def test_import_invalid_phrase(self, home, runner, monkeypatch):
        monkeypatch.setenv("CLAWPURSE_MNEMONIC", " ".join(["abandon"] * 12))
        result = runner.invoke(main, ["import"])
        assert result.exit_code == 1
        assert "Import failed" in result.output
        assert not (home / "keystore.enc").exists()

    def test_address_without_wallet(self, home, runner):
        result = runner.invoke(main, ["address"])
        assert result.exit_code == 1
        assert "No wallet found" in result.output

    def test_receive_shows_address(self, imported, runner):
        result = runner.invoke(main, ["receive"])
        assert result.exit_code == 0
        assert imported in result.output
        assert "RECEIVE NTMPI" in result.output

    def test_export_requires_yes(self, imported, runner):
        result = runner.invoke(main, ["export"])
        assert result.exit_code == 1
        assert "requires --yes" in result.output
        assert PHRASE not in result.output

        result = runner.invoke(main, ["export", "--yes"])
        assert result.exit_code == 0
        assert PHRASE in result.output

    def test_export_wrong_password(self, imported, runner, monkeypatch):
        monkeypatch.setenv("CLAWPURSE_PASSWORD", "definitely wrong pw")
        result = runner.invoke(main, ["export", "--yes"])
        assert result.exit_code == 1
        assert "wrong password or corrupted file" in result.output
        assert "definitely wrong pw" not in result.output


class TestArgvSecrets:
    def test_send_rejects_password_on_argv(self, imported, runner):
        result = runner.invoke(main, ["send", TRUSTED, "1", "--password", PASSWORD, "--dry-run"])
        assert result.exit_code != 0
        assert "Refusing --password from argv" in result.output

    def test_unsafe_flag_allows_password_on_argv(self, imported, runner):
        result = runner.invoke(main, [
            "send", TRUSTED, "1", "--password", PASSWORD, "--unsafe-allow-password-arg",
            "--dry-run", "--override-allowlist",
        ])
        assert result.exit_code == 0, result.output

    def test_import_rejects_mnemonic_on_argv(self, home, runner):
        result = runner.invoke(main, ["import", "--mnemonic", PHRASE])
        assert result.exit_code != 0
        assert "Refusing --mnemonic from argv" in result.output
        assert not (home / "keystore.enc").exists()


class TestSendCommand:
    def test_unknown_destination_blocked_by_default(self, imported, runner):
        result = runner.invoke(main, ["send", TRUSTED, "1", "--dry-run"])
        assert result.exit_code == 1
        assert "Send failed" in result.output
        assert "--override-allowlist" in result.output

    def test_allowlisted_dry_run(self, imported, runner):
        assert runner.invoke(main, ["allowlist", "add", TRUSTED, "--max", "10"]).exit_code == 0
        result = runner.invoke(main, ["send", TRUSTED, "2.5", "--dry-run", "--memo", "tip"])
        assert result.exit_code == 0, result.output
        assert "Send simulated" in result.output
        assert "2.500000 NTMPI" in result.output

    def test_large_send_needs_yes(self, imported, runner):
        result = runner.invoke(main, ["send", TRUSTED, "150", "--dry-run", "--override-allowlist"])
        assert result.exit_code == 1
        assert "--yes" in result.output

        result = runner.invoke(main, ["send", TRUSTED, "150", "--dry-run", "--override-allowlist", "--yes"])
        assert result.exit_code == 0, result.output

    def test_cap_from_flag_is_truncated(self, imported, home, runner):
        added = runner.invoke(main, ["allowlist", "add", TRUSTED, "--max", "1.0000009999999999999"])
        assert added.exit_code == 0, added.output
        on_disk = json.loads((home / "allowlist.json").read_text())
        assert on_disk["destinations"][0]["maxAmount"] == 1

        over = runner.invoke(main, ["send", TRUSTED, "1.000001", "--dry-run"])
        assert over.exit_code == 1
        assert "exceeds the 1.000000 NTMPI cap" in over.output
        assert runner.invoke(main, ["send", TRUSTED, "1", "--dry-run"]).exit_code == 0

    def test_invalid_amount(self, imported, runner):
        result = runner.invoke(main, ["send", TRUSTED, "1.2.3", "--dry-run"])
        assert result.exit_code == 1
        assert "Send failed: Invalid amount" in result.output

    def test_live_send_without_encoder_fails_cleanly(self, imported, runner, monkeypatch):
        _mock_chain(monkeypatch, lambda request: httpx.Response(500))
        result = runner.invoke(main, ["send", TRUSTED, "1", "--override-allowlist"])
        assert result.exit_code == 1
        assert "encoder" in result.output


class TestChainCommands:
    def test_balance(self, imported, runner, monkeypatch):
        body = {"balance": {"denom": "uneutaro", "amount": "2500000"}}
        _mock_chain(monkeypatch, lambda request: httpx.Response(200, json=body))
        result = runner.invoke(main, ["balance"])
        assert result.exit_code == 0, result.output
        assert "2.500000 NTMPI" in result.output

    def test_status_when_chain_is_down(self, imported, runner, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        _mock_chain(monkeypatch, handler)
        result = runner.invoke(main, ["status"])
        assert result.exit_code == 0, result.output
        assert imported in result.output
        assert "unreachable" in result.output
        assert "unknown destinations blocked" in result.output


class TestAllowlistCommands:
    def test_add_list_remove(self, home, runner):
        assert runner.invoke(main, ["allowlist", "init", "--mode", "allow"]).exit_code == 0
        result = runner.invoke(main, [
            "allowlist", "add", TRUSTED, "--name", "Exchange", "--max", "50", "--memo-required",
        ])
        assert result.exit_code == 0, result.output

        listing = runner.invoke(main, ["allowlist", "list"])
        assert "Exchange" in listing.output
        assert "Max amount: 50 NTMPI" in listing.output
        assert "Memo required: yes" in listing.output
        assert "blockUnknown: false" in listing.output

        assert runner.invoke(main, ["allowlist", "remove", TRUSTED]).exit_code == 0
        missing = runner.invoke(main, ["allowlist", "remove", TRUSTED])
        assert missing.exit_code == 1
        assert "not in the allowlist" in missing.output

    def test_add_rejects_bad_input(self, home, runner):
        result = runner.invoke(main, ["allowlist", "add", "cosmos1abc"])
        assert result.exit_code == 1
        assert "Allowlist add failed" in result.output

        result = runner.invoke(main, ["allowlist", "add", TRUSTED, "--max", "-5"])
        assert result.exit_code == 1

    def test_init_twice_needs_force(self, home, runner):
        assert runner.invoke(main, ["allowlist", "init"]).exit_code == 0
        assert runner.invoke(main, ["allowlist", "init"]).exit_code == 1
        assert runner.invoke(main, ["allowlist", "init", "--force", "--mode", "allow"]).exit_code == 0

    def test_unreadable_allowlist_fails_cleanly(self, home, runner, monkeypatch):
        (home / "allowlist.json").write_bytes(b"\xff\xfe")
        result = runner.invoke(main, ["allowlist", "list"])
        assert result.exit_code == 1
        assert "Allowlist list failed" in result.output
        assert "UTF-8" in result.output

        _mock_chain(monkeypatch, lambda request: httpx.Response(500))
        status = runner.invoke(main, ["status"])
        assert status.exit_code == 1
        assert "Status failed" in status.output

    def test_list_without_file(self, home, runner):
        result = runner.invoke(main, ["allowlist", "list"])
        assert result.exit_code == 0
        assert "No allowlist configured" in result.output


def test_history_empty_then_version(home, runner):
    result = runner.invoke(main, ["history"])
    assert result.exit_code == 0
    assert "No transaction history yet." in result.output
    assert "0.1.0" in runner.invoke(main, ["--version"]).output
