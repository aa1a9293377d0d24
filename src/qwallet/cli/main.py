#!/usr/bin/env python3
"""
qwallet CLI - offline developer tooling

Provides:
- Key generation
- User operation hashing and signing
- Signature bundle encoding and decoding
- Counterfactual wallet address prediction
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

import click
from eth_utils import decode_hex, encode_hex
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from qwallet import __version__
from qwallet.core.config import ConfigurationError, get_config
from qwallet.core.constants import ZERO_ADDRESS
from qwallet.core.contracts.entry_point import UserOperation
from qwallet.core.contracts.factory import WalletInitParams, predict_wallet_address, salt_bytes
from qwallet.core.contracts.signature_bundle import decode_bundle, encode_bundle
from qwallet.core.crypto_utils import (
    address_from_private_key,
    generate_keypair,
    normalize_address,
    sign_operation_hash,
)
from qwallet.core.exceptions import WalletExecutionError
from qwallet.core.logging_config import setup_from_config

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler."""
    logger.error(
        "CLI error: %s",
        exc,
        exc_info=True,
        extra={"event": "cli.error", "error_type": type(exc).__name__},
    )
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_hex(value: str, label: str, length: Optional[int] = None) -> bytes:
    try:
        raw = decode_hex(value)
    except (ValueError, TypeError) as exc:
        raise click.BadParameter(f"{label} must be hex: {exc}") from exc
    if length is not None and len(raw) != length:
        raise click.BadParameter(f"{label} must be {length} bytes, got {len(raw)}")
    return raw


def _parse_salt(value: str) -> bytes:
    """A 32-byte hex salt is taken as-is, anything else as an integer."""
    if value.startswith("0x") and len(value) == 66:
        return _parse_hex(value, "salt", 32)
    try:
        return salt_bytes(int(value, 0))
    except ValueError as exc:
        raise click.BadParameter(f"salt: {exc}") from exc


def _emit(ctx: click.Context, payload: Dict[str, Any], title: str) -> None:
    if ctx.obj["json_output"]:
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


# ============================================================================
# CLI Group
# ============================================================================

@click.group()
@click.option("--json", "json_output", is_flag=True, help="Output raw JSON")
@click.version_option(__version__, prog_name="qwallet")
@click.pass_context
def cli(ctx: click.Context, json_output: bool):
    """
    qwallet - threshold-signature smart account tooling

    Everything runs offline: no node connection is made.
    """
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    setup_from_config()


@cli.command("keygen")
@click.pass_context
def keygen(ctx: click.Context):
    """Generate a new secp256k1 signer key."""
    private_key, address = generate_keypair()
    _emit(ctx, {"address": address, "private_key": private_key}, "New Signer Key")
    if not ctx.obj["json_output"]:
        console.print("[yellow]⚠[/] Private key shown once. Store it securely.")


@cli.command("op-hash")
@click.option("--sender", required=True, help="Wallet address")
@click.option("--nonce", required=True, type=click.IntRange(min=0), help="Operation nonce")
@click.option("--call-data", default="0x", show_default=True, help="Hex calldata")
@click.option("--prefund", default=0, type=click.IntRange(min=0), show_default=True)
@click.option("--entry-point", default=None, help="Dispatcher address (defaults to config)")
@click.option("--chain-id", default=None, type=int, help="Chain id (defaults to config)")
@click.pass_context
def op_hash(
    ctx: click.Context,
    sender: str,
    nonce: int,
    call_data: str,
    prefund: int,
    entry_point: Optional[str],
    chain_id: Optional[int],
):
    """Compute the hash a user operation's signers must sign."""
    try:
        config = get_config()
        entry_point = normalize_address(entry_point or config.ENTRY_POINT)
        chain_id = chain_id if chain_id is not None else config.CHAIN_ID
        op = UserOperation(
            sender=normalize_address(sender),
            nonce=nonce,
            call_data=_parse_hex(call_data, "call data"),
            prefund=prefund,
        )
        digest = op.hash(entry_point, chain_id)
    except (ConfigurationError, ValueError) as exc:
        _handle_cli_error(exc)
        return

    _emit(
        ctx,
        {
            "hash": encode_hex(digest),
            "sender": op.sender,
            "nonce": nonce,
            "entry_point": entry_point,
            "chain_id": chain_id,
        },
        "User Operation Hash",
    )


@cli.command("sign")
@click.option("--key", "private_key", required=True, envvar="QWALLET_SIGNER_KEY",
              help="Signer private key (hex)")
@click.option("--hash", "operation_hash", required=True, help="32-byte operation hash (hex)")
@click.pass_context
def sign(ctx: click.Context, private_key: str, operation_hash: str):
    """Sign an operation hash with the personal-message prefix."""
    try:
        digest = _parse_hex(operation_hash, "hash", 32)
        signature = sign_operation_hash(private_key, digest)
        signer = address_from_private_key(private_key)
    except (click.BadParameter, ValueError) as exc:
        _handle_cli_error(exc)
        return

    _emit(ctx, {"signer": signer, "signature": encode_hex(signature)}, "Signature")


# ============================================================================
# Bundles
# ============================================================================

@cli.group()
def bundle():
    """Signature bundle encoding."""
    pass


@bundle.command("encode")
@click.option("--entry", "-e", "entries", multiple=True, required=True,
              help="INDEX:SIGNATURE_HEX (repeat for each signer)")
@click.pass_context
def bundle_encode(ctx: click.Context, entries: tuple[str, ...]):
    """
    Encode signer entries into a bundle.

    Example:
        qwallet bundle encode -e 0:0xabc... -e 1:0xdef...
    """
    try:
        pairs = []
        for raw in entries:
            index, _, signature = raw.partition(":")
            if not signature:
                raise click.BadParameter(f"Entry {raw!r} must look like INDEX:SIGNATURE")
            pairs.append((int(index, 0), _parse_hex(signature, "signature")))
        encoded = encode_bundle(pairs)
    except (click.BadParameter, ValueError, WalletExecutionError) as exc:
        _handle_cli_error(exc)
        return

    if ctx.obj["json_output"]:
        click.echo(json.dumps({"bundle": encode_hex(encoded), "entries": len(pairs)}, indent=2))
        return
    click.echo(encode_hex(encoded))


@bundle.command("decode")
@click.argument("data")
@click.pass_context
def bundle_decode(ctx: click.Context, data: str):
    """Decode and list the entries of a bundle."""
    try:
        entries = decode_bundle(_parse_hex(data, "bundle"))
    except (click.BadParameter, WalletExecutionError) as exc:
        _handle_cli_error(exc)
        return

    rows = [
        {"index": entry.signer_index, "signature": encode_hex(entry.signature)}
        for entry in entries
    ]
    if ctx.obj["json_output"]:
        click.echo(json.dumps({"entries": rows}, indent=2))
        return

    table = Table(title="Signature Bundle", box=box.ROUNDED)
    table.add_column("Index", style="cyan", justify="right")
    table.add_column("Signature", style="green")
    for row in rows:
        table.add_row(str(row["index"]), row["signature"])
    console.print(table)


# ============================================================================
# Factory
# ============================================================================

@cli.command("predict-address")
@click.option("--factory", required=True, help="Factory address")
@click.option("--owner", required=True, help="Wallet owner")
@click.option("--signer", "-s", "signers", multiple=True, required=True,
              help="Signer address, in slot order (repeat)")
@click.option("--threshold", required=True, type=click.IntRange(1, 255))
@click.option("--guardian", default=ZERO_ADDRESS, show_default=True)
@click.option("--daily-limit", default=0, type=click.IntRange(min=0), show_default=True)
@click.option("--salt", default="0", show_default=True, help="Integer or 32-byte hex salt")
@click.option("--entry-point", default=None, help="Dispatcher address (defaults to config)")
@click.pass_context
def predict_address(
    ctx: click.Context,
    factory: str,
    owner: str,
    signers: tuple[str, ...],
    threshold: int,
    guardian: str,
    daily_limit: int,
    salt: str,
    entry_point: Optional[str],
):
    """Predict the CREATE2 address a factory will deploy a wallet to."""
    try:
        entry_point = normalize_address(entry_point or get_config().ENTRY_POINT)
        salt_value = _parse_salt(salt)
        params = WalletInitParams(
            owner=owner,
            signers=tuple(signers),
            threshold=threshold,
            guardian=guardian,
            daily_limit=daily_limit,
        )
        address = predict_wallet_address(factory, entry_point, params, salt_value)
    except (click.BadParameter, ConfigurationError, ValueError) as exc:
        _handle_cli_error(exc)
        return

    _emit(
        ctx,
        {"address": address, "factory": normalize_address(factory), "salt": encode_hex(salt_value)},
        "Predicted Wallet Address",
    )


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
