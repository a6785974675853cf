"""Sigguard CLI — Typer app for keys, signing, verification, and a dev server."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey
from rich.console import Console

from sigguard import __version__
from sigguard._canonical import build_message
from sigguard.codec import decode_hex, decode_signature
from sigguard.config import builder_from_env
from sigguard.exceptions import ConfigError, DecodeError
from sigguard.models import DEFAULT_SIGNATURE_HEADER, DEFAULT_TIMESTAMP_HEADER
from sigguard.signing import sign_request, signing_key_to_public_hex, verify, verify_key_from_hex

console = Console()
app = typer.Typer(
    name="sigguard",
    help="Sigguard — Ed25519 request signature gate",
    no_args_is_help=True,
)


def _read_body(body: Optional[str], file: Optional[Path]) -> bytes:
    """Body from --body or --file, exactly one of them."""
    if (body is None) == (file is None):
        console.print("[red]Provide exactly one of --body or --file.[/red]")
        raise typer.Exit(1)
    if file is not None:
        return file.read_bytes()
    return body.encode("utf-8")


def _load_signing_key(seed_hex: str) -> SigningKey:
    try:
        seed = decode_hex(seed_hex)
    except DecodeError as exc:
        console.print(f"[red]Invalid private key: {exc}[/red]")
        raise typer.Exit(1)
    if len(seed) != 32:
        console.print("[red]Private key seed must be 32 bytes (64 hex characters).[/red]")
        raise typer.Exit(1)
    return SigningKey(seed)


# --- Version ---

def _version_callback(value: bool):
    if value:
        console.print(f"sigguard {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", "-v", callback=_version_callback, is_eager=True),
):
    pass


# --- Key Commands ---

@app.command("keygen")
def keygen():
    """Generate a new Ed25519 keypair (hex)."""
    signing_key = SigningKey.generate()
    seed_hex = signing_key.encode(encoder=HexEncoder).decode("ascii")
    console.print(f"private_key: {seed_hex}")
    console.print(f"public_key:  {signing_key_to_public_hex(signing_key)}")
    console.print("[yellow]Keep the private key secret. Configure the gate with the public key.[/yellow]")


# --- Signing ---

@app.command("sign")
def sign(
    key: str = typer.Option(..., "--key", help="Hex private key seed (32 bytes)"),
    timestamp: str = typer.Option(..., "--timestamp", help="Timestamp header value"),
    body: Optional[str] = typer.Option(None, "--body", help="Request body as text"),
    file: Optional[Path] = typer.Option(None, "--file", help="Read request body from file"),
    signature_header: str = typer.Option(DEFAULT_SIGNATURE_HEADER, "--signature-header"),
    timestamp_header: str = typer.Option(DEFAULT_TIMESTAMP_HEADER, "--timestamp-header"),
):
    """Sign a request body and print the headers to send with it."""
    payload = _read_body(body, file)
    signing_key = _load_signing_key(key)
    signature = sign_request(signing_key, timestamp, payload)
    typer.echo(f"{signature_header}: {signature}")
    typer.echo(f"{timestamp_header}: {timestamp}")


@app.command("verify")
def verify_cmd(
    public_key: str = typer.Option(..., "--public-key", help="Hex public key (32 bytes)"),
    signature: str = typer.Option(..., "--signature", help="Hex signature (64 bytes)"),
    timestamp: Optional[str] = typer.Option(None, "--timestamp", help="Timestamp header value"),
    body: Optional[str] = typer.Option(None, "--body", help="Request body as text"),
    file: Optional[Path] = typer.Option(None, "--file", help="Read request body from file"),
):
    """Check a signature offline, exactly as the gate would."""
    payload = _read_body(body, file)
    try:
        verify_key = verify_key_from_hex(public_key)
    except DecodeError as exc:
        console.print(f"[red]Invalid public key: {exc}[/red]")
        raise typer.Exit(1)

    try:
        sig = decode_signature(signature)
    except DecodeError as exc:
        console.print(f"[red]INVALID[/red]: {exc}")
        raise typer.Exit(1)

    result = verify(build_message(timestamp, payload), sig, verify_key)
    if result.valid:
        console.print("[green]VALID[/green]")
    else:
        console.print(f"[red]INVALID[/red]: {result.reason}")
        raise typer.Exit(1)


# --- Development server ---

@app.command("serve")
def serve(
    public_key: Optional[str] = typer.Option(
        None, "--public-key", help="Hex public key (default: SIGGUARD_PUBLIC_KEY / PUBLIC_KEY)",
    ),
    annotate: bool = typer.Option(False, "--annotate", help="Forward unverified requests, flagged"),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(3000, "--port"),
):
    """Run a gated development endpoint (POST /) under uvicorn."""
    import uvicorn

    from sigguard.api.app import create_app

    try:
        # Header names and policy still come from the environment
        builder = builder_from_env()
        if public_key:
            builder = builder.public_key(public_key)
        if annotate:
            builder = builder.annotate()
        config = builder.build_config()
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Gate ready[/green] policy={config.policy.value} on http://{host}:{port}/")
    uvicorn.run(create_app(config), host=host, port=port)


# --- Entry point for typer ---

def _cli():
    app()


if __name__ == "__main__":
    _cli()
