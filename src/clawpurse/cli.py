"""
ClawPurse CLI — local wallet for the Neutaro chain.

Commands:
    clawpurse init        Create a new wallet and its allowlist
    clawpurse import      Import a wallet from an existing seed phrase
    clawpurse address     Show the wallet address
    clawpurse receive     Show receive instructions
    clawpurse balance     Query the on-chain balance
    clawpurse status      Show wallet and chain status
    clawpurse send        Send NTMPI to an address
    clawpurse history     Show recent receipts
    clawpurse export      Reveal the seed phrase
    clawpurse allowlist   Manage trusted destinations
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, NoReturn, Optional

import click
from click.core import ParameterSource

from . import __version__, keystore
from .accounts import derive_signer, generate_seed_phrase
from .allowlist import ALLOWLIST_MODES, AllowlistStore, Destination, format_cap, parse_max_amount
from .chain import RestChainClient
from .config import (
    CLAWPURSE_MNEMONIC_ENV,
    CLAWPURSE_PASSWORD_ENV,
    KEYSTORE,
    NEUTARO,
    chain_config_from_env,
    default_keystore_path,
)
from .errors import ClawPurseError, ConfirmationRequiredError, redact
from .money import AMOUNT_UNITS, format_amount, parse_display_amount
from .receipts import ReceiptLog, format_receipt
from .send import SendExecutor, SendRequest
from .validation import ensure_address, sanitize_input


# ── Helpers ───────────────────────────────────────────────────────

def _fail(operation: str, error: object, sensitive: Iterable[Optional[str]] = ()) -> NoReturn:
    click.echo(f"❌ {operation} failed: {redact(str(error), sensitive)}", err=True)
    sys.exit(1)


def _from_argv(name: str) -> bool:
    ctx = click.get_current_context(silent=True)
    return ctx is not None and ctx.get_parameter_source(name) == ParameterSource.COMMANDLINE


def _resolve_password(password: Optional[str], unsafe_allow_password_arg: bool, confirm: bool = False) -> str:
    if password is not None and _from_argv("password") and not unsafe_allow_password_arg:
        click.echo(
            "❌ Refusing --password from argv. Re-run with prompt input, set "
            f"{CLAWPURSE_PASSWORD_ENV}, or pass --unsafe-allow-password-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)
    if password:
        return password
    return click.prompt("Password", hide_input=True, confirmation_prompt=confirm)


def _chain_client() -> RestChainClient:
    return RestChainClient(chain_config_from_env())


def _keystore_path(path: Optional[Path]) -> Path:
    return path or default_keystore_path()


def keystore_option(f):
    return click.option(
        "--keystore", "keystore_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
        help="Keystore file (default: ~/.clawpurse/keystore.enc)",
    )(f)


def allowlist_option(f):
    return click.option(
        "--allowlist", "allowlist_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
        help="Allowlist file (default: ~/.clawpurse/allowlist.json)",
    )(f)


def password_options(f):
    f = click.option(
        "--unsafe-allow-password-arg",
        is_flag=True,
        default=False,
        help="Allow passing --password via argv (unsafe; can leak in shell/process history).",
    )(f)
    return click.option(
        "--password", envvar=CLAWPURSE_PASSWORD_ENV, default=None,
        help=f"Keystore password (prefer the prompt or {CLAWPURSE_PASSWORD_ENV})",
    )(f)


def _require_address(path: Optional[Path], operation: str) -> str:
    address = keystore.peek_address(path)
    if address is None:
        _fail(operation, f"No wallet found at {_keystore_path(path)}. Run 'clawpurse init' first")
    return address


def _create_wallet(
    seed_phrase: str,
    password: str,
    keystore_path: Optional[Path],
    allowlist_path: Optional[Path],
    allowlist_mode: str,
    force: bool,
    operation: str,
) -> str:
    try:
        signer = derive_signer(seed_phrase)
        path = keystore.create(seed_phrase, signer.address, password, keystore_path, overwrite=force)
    except ClawPurseError as e:
        _fail(operation, e, [password, seed_phrase])

    click.echo(f"✅ Wallet saved to {path}")
    click.echo(f"   Address: {signer.address}")

    store = AllowlistStore(allowlist_path)
    if store.exists():
        click.echo(f"   Allowlist: keeping existing {store.path}")
    else:
        store.init(allowlist_mode)
        state = "blocking" if allowlist_mode == "enforce" else "allowing"
        click.echo(f"   Allowlist: created {store.path} ({state} unknown destinations)")
    return signer.address


# ── CLI ───────────────────────────────────────────────────────────

@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr")
def main(verbose: bool):
    """ClawPurse — local non-custodial wallet for NTMPI on Neutaro."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@keystore_option
@allowlist_option
@password_options
@click.option("--allowlist-mode", type=click.Choice(ALLOWLIST_MODES), default="enforce", show_default=True,
              help="How unknown destinations are treated")
@click.option("--words", type=click.Choice(["12", "24"]), default="24", show_default=True,
              help="Seed phrase length")
@click.option("--force", is_flag=True, help="Overwrite an existing keystore")
def init(
    keystore_path: Optional[Path],
    allowlist_path: Optional[Path],
    password: Optional[str],
    unsafe_allow_password_arg: bool,
    allowlist_mode: str,
    words: str,
    force: bool,
):
    """Create a new wallet."""
    if keystore.exists(keystore_path) and not force:
        _fail("Init", f"Keystore already exists at {_keystore_path(keystore_path)} (use --force to replace it)")

    password = _resolve_password(password, unsafe_allow_password_arg, confirm=True)
    seed_phrase = generate_seed_phrase(int(words))
    _create_wallet(seed_phrase, password, keystore_path, allowlist_path, allowlist_mode, force, "Init")

    click.echo("\n⚠️  Write down your seed phrase and keep it offline. It will not be shown again:\n")
    click.echo(f"   {seed_phrase}\n")


@main.command("import")
@keystore_option
@allowlist_option
@password_options
@click.option("--mnemonic", envvar=CLAWPURSE_MNEMONIC_ENV, default=None,
              help=f"Seed phrase (prefer the prompt or {CLAWPURSE_MNEMONIC_ENV})")
@click.option(
    "--unsafe-allow-mnemonic-arg",
    is_flag=True,
    default=False,
    help="Allow passing --mnemonic via argv (unsafe; can leak in shell/process history).",
)
@click.option("--allowlist-mode", type=click.Choice(ALLOWLIST_MODES), default="enforce", show_default=True,
              help="How unknown destinations are treated")
@click.option("--force", is_flag=True, help="Overwrite an existing keystore")
def import_wallet(
    keystore_path: Optional[Path],
    allowlist_path: Optional[Path],
    password: Optional[str],
    unsafe_allow_password_arg: bool,
    mnemonic: Optional[str],
    unsafe_allow_mnemonic_arg: bool,
    allowlist_mode: str,
    force: bool,
):
    """Import a wallet from an existing seed phrase."""
    if mnemonic is not None and _from_argv("mnemonic") and not unsafe_allow_mnemonic_arg:
        click.echo(
            "❌ Refusing --mnemonic from argv. Re-run with prompt input, set "
            f"{CLAWPURSE_MNEMONIC_ENV}, or pass --unsafe-allow-mnemonic-arg to acknowledge the risk.",
            err=True,
        )
        sys.exit(1)
    if keystore.exists(keystore_path) and not force:
        _fail("Import", f"Keystore already exists at {_keystore_path(keystore_path)} (use --force to replace it)")

    seed_phrase = mnemonic or click.prompt("Seed phrase", hide_input=True)
    password = _resolve_password(password, unsafe_allow_password_arg, confirm=True)
    _create_wallet(seed_phrase, password, keystore_path, allowlist_path, allowlist_mode, force, "Import")


@main.command()
@keystore_option
def address(keystore_path: Optional[Path]):
    """Show the wallet address (no password needed)."""
    click.echo(_require_address(keystore_path, "Address lookup"))


@main.command()
@keystore_option
def receive(keystore_path: Optional[Path]):
    """Show the address to receive NTMPI."""
    wallet_address = _require_address(keystore_path, "Receive")
    rule = "═" * 62
    click.echo(f"╔{rule}╗")
    click.echo(f"║{f'RECEIVE {NEUTARO.display_denom}'.center(62)}║")
    click.echo(f"╠{rule}╣")
    click.echo(f"║ {'Send ' + NEUTARO.display_denom + ' on ' + NEUTARO.chain_id + ' to:':<61}║")
    click.echo(f"║ {wallet_address:<61}║")
    click.echo(f"╚{rule}╝")


@main.command()
@keystore_option
def balance(keystore_path: Optional[Path]):
    """Query the on-chain balance."""
    wallet_address = _require_address(keystore_path, "Balance")
    try:
        with _chain_client() as client:
            result = client.get_balance(wallet_address)
    except ClawPurseError as e:
        _fail("Balance", e)

    click.echo(f"💰 {result.display_amount}")
    click.echo(f"   {result.amount} {result.denom}")
    click.echo(f"   Address: {wallet_address}")


@main.command()
@keystore_option
@allowlist_option
def status(keystore_path: Optional[Path], allowlist_path: Optional[Path]):
    """Show wallet and chain status."""
    path = _keystore_path(keystore_path)
    wallet_address = keystore.peek_address(path)
    click.echo(f"Keystore:  {path} ({'found' if wallet_address else 'missing'})")
    if wallet_address:
        click.echo(f"Address:   {wallet_address}")

    store = AllowlistStore(allowlist_path)
    try:
        config = store.load()
    except ClawPurseError as e:
        _fail("Status", e)
    if config is None:
        click.echo(f"Allowlist: not configured ({store.path})")
    else:
        blocking = bool(config.default_policy and config.default_policy.block_unknown)
        click.echo(
            f"Allowlist: {len(config.destinations)} destinations, "
            f"unknown destinations {'blocked' if blocking else 'allowed'}"
        )

    with _chain_client() as client:
        info = client.get_chain_info()
    if info.connected:
        click.echo(f"Chain:     {info.chain_id} at height {info.height} ✅")
    else:
        click.echo(f"Chain:     {info.chain_id} unreachable ❌ ({info.error})")
    click.echo(f"Limits:    max {format_amount(KEYSTORE.max_send_amount)} per send, "
               f"confirmation above {format_amount(KEYSTORE.require_confirm_above)}")


@main.command()
@click.argument("to_address")
@click.argument("amount")
@keystore_option
@allowlist_option
@password_options
@click.option("--memo", default=None, help="Transaction memo")
@click.option("--unit", type=click.Choice(AMOUNT_UNITS), default="display", show_default=True,
              help="How to read an amount without a decimal point")
@click.option("--yes", is_flag=True, help="Confirm large sends without prompting")
@click.option("--override-allowlist", is_flag=True, help="Skip the allowlist check for this send")
@click.option("--dry-run", is_flag=True, help="Simulate without broadcasting")
def send(
    to_address: str,
    amount: str,
    keystore_path: Optional[Path],
    allowlist_path: Optional[Path],
    password: Optional[str],
    unsafe_allow_password_arg: bool,
    memo: Optional[str],
    unit: str,
    yes: bool,
    override_allowlist: bool,
    dry_run: bool,
):
    """Send NTMPI to TO_ADDRESS."""
    try:
        amount_base_units = parse_display_amount(amount, unit)
    except ClawPurseError as e:
        _fail("Send", e)

    confirmed = yes
    if not confirmed and amount_base_units > KEYSTORE.require_confirm_above and sys.stdin.isatty():
        confirmed = click.confirm(f"Send {format_amount(amount_base_units)} to {to_address}?", default=False)
        if not confirmed:
            _fail("Send", "Cancelled")

    password = _resolve_password(password, unsafe_allow_password_arg)

    if dry_run:
        click.echo("🔍 DRY RUN — nothing will be broadcast")

    client = None if dry_run else _chain_client()
    executor = SendExecutor(
        chain=client,
        keystore_path=keystore_path,
        allowlist_store=AllowlistStore(allowlist_path),
        receipts=None if dry_run else ReceiptLog(),
        dry_run=dry_run,
    )
    request = SendRequest(
        to_address=to_address,
        amount=amount,
        memo=memo,
        unit=unit,
        confirmed=confirmed,
        override_allowlist=override_allowlist,
    )
    try:
        result = executor.execute(request, password)
    except ConfirmationRequiredError as e:
        _fail("Send", f"{e}; re-run with --yes")
    except ClawPurseError as e:
        _fail("Send", e, [password])
    finally:
        if client is not None:
            client.close()

    if not result.success:
        hint = " (use --override-allowlist to bypass)" if result.allowlist_denied else ""
        _fail("Send", f"{result.reason}{hint}")

    click.echo(f"✅ Send {'simulated' if dry_run else 'completed'}!")
    click.echo(f"   Amount:  {format_amount(result.amount_base_units)}")
    click.echo(f"   To:      {to_address.strip()}")
    click.echo(f"   Tx hash: {result.tx_hash}")
    if not dry_run:
        click.echo(f"   Block:   {result.height}")


@main.command()
@click.option("--limit", type=int, default=10, show_default=True, help="Number of receipts")
@click.option("--tx", "tx_hash", default=None, help="Show the full receipt for one transaction")
def history(limit: int, tx_hash: Optional[str]):
    """Show recent receipts."""
    try:
        log = ReceiptLog()
        if tx_hash:
            receipt = log.find(tx_hash)
            if receipt is None:
                _fail("History", f"No receipt for transaction {tx_hash}")
            click.echo(format_receipt(receipt))
            return
        receipts = log.recent(limit)
    except (RuntimeError, OSError, ValueError) as e:
        _fail("History", e)

    if not receipts:
        click.echo("No transaction history yet.")
        return

    click.echo(f"Recent transactions ({len(receipts)}):\n")
    for receipt in receipts:
        direction = "→" if receipt.type == "send" else "←"
        target = receipt.to_address if receipt.type == "send" else receipt.from_address
        click.echo(
            f"{receipt.timestamp[:10]} {direction} {receipt.display_amount:<20} "
            f"{target[:20]}... [{receipt.status}]"
        )


@main.command()
@keystore_option
@password_options
@click.option("--yes", is_flag=True, help="Acknowledge that the seed phrase will be printed")
def export(
    keystore_path: Optional[Path],
    password: Optional[str],
    unsafe_allow_password_arg: bool,
    yes: bool,
):
    """Reveal the seed phrase (requires --yes)."""
    if not yes:
        _fail("Export", "Printing the seed phrase requires --yes")
    password = _resolve_password(password, unsafe_allow_password_arg)
    try:
        wallet = keystore.unlock(password, keystore_path)
    except ClawPurseError as e:
        _fail("Export", e, [password])

    click.echo("⚠️  Anyone with this seed phrase controls the wallet:\n")
    click.echo(f"   {wallet.seed_phrase}\n")
    click.echo(f"   Address: {wallet.address}")


@main.group("allowlist")
def allowlist_group():
    """Manage trusted destinations."""
    pass


@allowlist_group.command("init")
@allowlist_option
@click.option("--mode", type=click.Choice(ALLOWLIST_MODES), default="enforce", show_default=True,
              help="enforce blocks unknown destinations, allow permits them")
@click.option("--force", is_flag=True, help="Replace an existing allowlist")
def allowlist_init(allowlist_path: Optional[Path], mode: str, force: bool):
    """Create an allowlist file."""
    store = AllowlistStore(allowlist_path)
    try:
        store.init(mode, overwrite=force)
    except FileExistsError as e:
        _fail("Allowlist init", f"{e} (use --force to replace it)")
    click.echo(f"✓ Allowlist saved to {store.path} ({'enforcing' if mode == 'enforce' else 'allowing'} unknown destinations)")


@allowlist_group.command("list")
@allowlist_option
def allowlist_list(allowlist_path: Optional[Path]):
    """List the default policy and destinations."""
    store = AllowlistStore(allowlist_path)
    try:
        config = store.load()
    except ClawPurseError as e:
        _fail("Allowlist list", e)
    if config is None:
        click.echo("No allowlist configured yet. Run 'clawpurse allowlist init' to create one.")
        return

    policy = config.default_policy
    click.echo("Default policy:")
    if policy is None:
        click.echo("  none (all unlisted destinations allowed)")
    else:
        click.echo(f"  blockUnknown: {str(policy.block_unknown).lower()}")
        if policy.max_amount is not None:
            click.echo(f"  maxAmount: {format_cap(policy.max_amount)} {NEUTARO.display_denom}")
        if policy.require_memo:
            click.echo("  requireMemo: true")

    if not config.destinations:
        click.echo("\nNo specific destinations yet. Use 'clawpurse allowlist add' to add one.")
        return

    click.echo("\nDestinations:")
    for idx, dest in enumerate(config.destinations, start=1):
        click.echo(f" {idx}. {dest.name or dest.address}")
        click.echo(f"    Address: {dest.address}")
        if dest.max_amount is not None:
            click.echo(f"    Max amount: {format_cap(dest.max_amount)} {NEUTARO.display_denom}")
        if dest.needs_memo:
            click.echo("    Memo required: yes")
        if dest.notes:
            click.echo(f"    Notes: {dest.notes}")


@allowlist_group.command("add")
@click.argument("destination_address")
@allowlist_option
@click.option("--name", default=None, help="Human-readable label")
@click.option("--max", "max_amount", default=None, help=f"Per-send cap in {NEUTARO.display_denom}")
@click.option("--memo-required", is_flag=True, help="Require a memo for sends to this address")
@click.option("--notes", default=None, help="Free-form notes")
def allowlist_add(
    destination_address: str,
    allowlist_path: Optional[Path],
    name: Optional[str],
    max_amount: Optional[str],
    memo_required: bool,
    notes: Optional[str],
):
    """Add or replace a trusted destination."""
    destination_address = destination_address.strip()
    try:
        ensure_address(destination_address)
        cap = parse_max_amount(max_amount) if max_amount is not None else None
        AllowlistStore(allowlist_path).add(
            Destination(
                address=destination_address,
                name=sanitize_input(name) or None,
                max_amount=cap,
                needs_memo=memo_required,
                notes=sanitize_input(notes) or None,
            )
        )
    except ClawPurseError as e:
        _fail("Allowlist add", e)
    click.echo(f"✓ Destination {destination_address} saved{f' ({name})' if name else ''}.")


@allowlist_group.command("remove")
@click.argument("destination_address")
@allowlist_option
def allowlist_remove(destination_address: str, allowlist_path: Optional[Path]):
    """Remove a destination."""
    store = AllowlistStore(allowlist_path)
    try:
        if not store.exists():
            _fail("Allowlist remove", "No allowlist found. Nothing to remove")
        removed = store.remove(destination_address)
    except ClawPurseError as e:
        _fail("Allowlist remove", e)
    if not removed:
        _fail("Allowlist remove", f"{destination_address} is not in the allowlist")
    click.echo(f"✓ Destination {destination_address.strip()} removed.")


if __name__ == "__main__":
    main()
