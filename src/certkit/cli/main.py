"""CLI entry point for certkit.

Invoked as::

    certkit [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m certkit.cli.main

Commands
--------
keys generate     Generate a key pair into a filesystem key store
keys export       Export a stored key pair as a PKCS#12 archive
keys import       Import a PKCS#12 archive into a key store
keys delete       Delete a stored key pair
keys match        Check whether a key pair matches a certificate
cert self-signed  Issue a self-signed certificate for a stored key pair
cert inspect      Print a certificate's fields and extensions
"""
from __future__ import annotations

import datetime
import functools
import ipaddress
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from certkit.errors import CertKitError

console = Console()


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report certkit errors in red and exit 1 instead of a traceback."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CertKitError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            sys.exit(1)

    return wrapper


def _store_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--passphrase",
        envvar="CERTKIT_STORE_PASSPHRASE",
        prompt="Key store passphrase",
        hide_input=True,
        help="Passphrase protecting the key store (env: CERTKIT_STORE_PASSPHRASE).",
    )(func)
    func = click.option(
        "--store",
        "store_dir",
        type=click.Path(file_okay=False),
        required=True,
        help="Directory of the filesystem key store.",
    )(func)
    return func


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="certkit")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """X.509 certificate building and key pair lifecycle management"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from certkit import __version__

    console.print(f"[bold]certkit[/bold] v{__version__}")


# ------------------------------------------------------------------
# keys command group
# ------------------------------------------------------------------


@cli.group(name="keys")
def keys_group() -> None:
    """Manage key pairs in a filesystem key store."""


@keys_group.command(name="generate")
@click.argument("label")
@click.option(
    "--type",
    "key_type",
    type=click.Choice(["rsa", "ec"]),
    default="ec",
    show_default=True,
    help="Key family.",
)
@click.option("--size", "key_size", type=int, default=None, help="Key size in bits.")
@click.option("--tag", default=None, help="Application tag (defaults to the label).")
@click.option(
    "--out",
    type=click.Path(dir_okay=False),
    required=True,
    help="File the key pair's store references are written to (JSON).",
)
@_store_options
@_handle_errors
def generate_command(
    label: str,
    key_type: str,
    key_size: int | None,
    tag: str | None,
    out: str,
    store_dir: str,
    passphrase: str,
) -> None:
    """Generate a key pair stored under LABEL."""
    from certkit.algorithms import KeyType
    from certkit.keys import KeyPair

    kind = KeyType(key_type)
    size = key_size or (2048 if kind is KeyType.RSA else 256)
    store = _open_store(store_dir, passphrase)
    pair = KeyPair.Builder(kind, size, store=store).generate(
        label, tag=tag.encode("utf-8") if tag else None
    )
    _write_refs(pair, out)

    console.print(f"[green]Generated[/green] {kind.value.upper()}-{size} key pair [bold]{label}[/bold]")
    console.print(f"  Fingerprint: {pair.public_key.fingerprint()}")
    console.print(f"  References:  {out}")


@keys_group.command(name="export")
@click.argument("refs_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--password",
    prompt="Archive password",
    hide_input=True,
    confirmation_prompt=True,
    help="Password protecting the archive.",
)
@click.option(
    "--cert-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Certificate (PEM or DER) to bundle with the key.",
)
@click.option("--out", type=click.Path(dir_okay=False), required=True, help="Archive output path.")
@_store_options
@_handle_errors
def export_command(
    refs_file: str,
    password: str,
    cert_file: str | None,
    out: str,
    store_dir: str,
    passphrase: str,
) -> None:
    """Export the key pair referenced by REFS_FILE as a PKCS#12 archive."""
    pair = _read_refs(refs_file, _open_store(store_dir, passphrase))
    certificate = Path(cert_file).read_bytes() if cert_file else None
    Path(out).write_bytes(pair.export(password, certificate=certificate))
    console.print(f"[green]Exported[/green] key pair [bold]{pair.label}[/bold] to {out}")


@keys_group.command(name="import")
@click.argument("archive_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--label", required=True, help="Label to store the imported key pair under.")
@click.option("--password", prompt="Archive password", hide_input=True, help="Archive password.")
@click.option(
    "--out",
    type=click.Path(dir_okay=False),
    required=True,
    help="File the key pair's store references are written to (JSON).",
)
@_store_options
@_handle_errors
def import_command(
    archive_file: str,
    label: str,
    password: str,
    out: str,
    store_dir: str,
    passphrase: str,
) -> None:
    """Import a PKCS#12 ARCHIVE_FILE into the key store."""
    from certkit.keys import KeyPair

    imported = KeyPair.import_archive(Path(archive_file).read_bytes(), password)
    pair = imported.persist(label, store=_open_store(store_dir, passphrase))
    _write_refs(pair, out)
    console.print(f"[green]Imported[/green] key pair [bold]{label}[/bold]")
    console.print(f"  Fingerprint: {pair.public_key.fingerprint()}")


@keys_group.command(name="delete")
@click.argument("refs_file", type=click.Path(exists=True, dir_okay=False))
@_store_options
@_handle_errors
def delete_command(refs_file: str, store_dir: str, passphrase: str) -> None:
    """Delete the key pair referenced by REFS_FILE from the key store."""
    pair = _read_refs(refs_file, _open_store(store_dir, passphrase))
    pair.delete()
    console.print(f"[green]Deleted[/green] key pair [bold]{pair.label}[/bold]")


@keys_group.command(name="match")
@click.argument("refs_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("cert_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--trust",
    "trust_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Trusted anchor certificate (repeatable).",
)
@_store_options
@_handle_errors
def match_command(
    refs_file: str,
    cert_file: str,
    trust_files: tuple[str, ...],
    store_dir: str,
    passphrase: str,
) -> None:
    """Check whether the key pair in REFS_FILE is certified by CERT_FILE."""
    pair = _read_refs(refs_file, _open_store(store_dir, passphrase))
    anchors = [Path(path).read_bytes() for path in trust_files]
    if pair.matches_certificate(Path(cert_file).read_bytes(), trusted_certificates=anchors):
        console.print(f"  [green]PASS[/green]  Certificate matches key pair {pair.label!r}.")
        return
    console.print(f"  [red]FAIL[/red]  Certificate does not match key pair {pair.label!r}.")
    sys.exit(1)


# ------------------------------------------------------------------
# cert command group
# ------------------------------------------------------------------


@cli.group(name="cert")
def cert_group() -> None:
    """Issue and inspect X.509 certificates."""


@cert_group.command(name="self-signed")
@click.argument("refs_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--common-name", "-n", required=True, help="Subject common name (CN).")
@click.option("--organization", "-o", default=None, help="Subject organization (O).")
@click.option("--dns", multiple=True, help="DNS subject alternative name (repeatable).")
@click.option("--email", multiple=True, help="Email subject alternative name (repeatable).")
@click.option("--ip", multiple=True, help="IP address subject alternative name (repeatable).")
@click.option("--days", type=int, default=None, help="Validity in days (default from policy).")
@click.option("--ca", is_flag=True, default=False, help="Mark the certificate as a CA.")
@click.option(
    "--digest",
    type=click.Choice(["sha256", "sha384", "sha512"]),
    default="sha256",
    show_default=True,
)
@click.option("--out", type=click.Path(dir_okay=False), required=True, help="PEM output path.")
@_store_options
@_handle_errors
def self_signed_command(
    refs_file: str,
    common_name: str,
    organization: str | None,
    dns: tuple[str, ...],
    email: tuple[str, ...],
    ip: tuple[str, ...],
    days: int | None,
    ca: bool,
    digest: str,
    out: str,
    store_dir: str,
    passphrase: str,
) -> None:
    """Issue a self-signed certificate for the key pair in REFS_FILE."""
    from certkit.algorithms import DigestAlgorithm, KeyType
    from certkit.certificates import CertificateBuilder
    from certkit.extensions import (
        BasicConstraints,
        DNSName,
        IPAddress,
        KeyUsageFlags,
        RFC822Name,
        SubjectAltName,
    )
    from certkit.names import NameBuilder
    from certkit.policy import DEFAULT_POLICY

    pair = _read_refs(refs_file, _open_store(store_dir, passphrase))

    name_builder = NameBuilder().add(common_name, "CN")
    if organization:
        name_builder.add(organization, "O")
    name = name_builder.name

    if ca:
        usage = KeyUsageFlags.KEY_CERT_SIGN | KeyUsageFlags.CRL_SIGN | KeyUsageFlags.DIGITAL_SIGNATURE
    elif pair.key_type is KeyType.RSA:
        usage = KeyUsageFlags.DIGITAL_SIGNATURE | KeyUsageFlags.KEY_ENCIPHERMENT
    else:
        usage = KeyUsageFlags.DIGITAL_SIGNATURE | KeyUsageFlags.KEY_AGREEMENT

    try:
        addresses = [IPAddress(ipaddress.ip_address(value)) for value in ip]
    except ValueError as exc:
        console.print(f"[red]Error:[/red] --ip is not an IP address: {exc}")
        sys.exit(1)

    builder = (
        CertificateBuilder()
        .subject(name)
        .issuer(name)
        .public_key(pair, usage=usage)
        .valid(datetime.timedelta(days=days or DEFAULT_POLICY.default_validity_days))
    )
    alt_names = [DNSName(value) for value in dns] + [RFC822Name(value) for value in email] + addresses
    if alt_names:
        builder.add_extension(SubjectAltName.of(*alt_names))
    if ca:
        builder.add_extension(BasicConstraints(ca=True))
    certificate = builder.build(pair.private_key, DigestAlgorithm(digest))

    Path(out).write_text(certificate.pem(), encoding="utf-8")
    console.print(f"[green]Issued[/green] certificate for [bold]{common_name}[/bold]")
    console.print(f"  Serial:      {certificate.serial_number:#x}")
    console.print(f"  Not after:   {certificate.not_after.isoformat()}")
    console.print(f"  Written to:  {out}")


@cert_group.command(name="inspect")
@click.argument("cert_file", type=click.Path(exists=True, dir_okay=False))
@_handle_errors
def inspect_command(cert_file: str) -> None:
    """Print the fields and extensions of CERT_FILE (PEM or DER)."""
    from certkit.certificates import Certificate
    from certkit.extensions import UnrecognizedExtension

    certificate = Certificate.load(Path(cert_file).read_bytes())

    table = Table(title="Certificate", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Subject", certificate.subject.rfc4514_string())
    table.add_row("Issuer", certificate.issuer.rfc4514_string())
    table.add_row("Serial", f"{certificate.serial_number:#x}")
    table.add_row("Version", str(certificate.version))
    table.add_row("Not before", certificate.not_before.isoformat())
    table.add_row("Not after", certificate.not_after.isoformat())
    table.add_row("Signature", certificate.signature_algorithm)
    table.add_row("SHA-256", certificate.fingerprint())
    console.print(table)

    extensions = Table(title="Extensions", show_header=True)
    extensions.add_column("OID", style="cyan")
    extensions.add_column("Critical", justify="center")
    extensions.add_column("Value")
    for extension in certificate.extensions():
        critical = "[red]Yes[/red]" if extension.critical else "No"
        if isinstance(extension, UnrecognizedExtension):
            value = f"(unrecognized) {extension.value.hex()}"
        else:
            value = _describe_extension(extension)
        extensions.add_row(extension.extension_id, critical, value)
    console.print(extensions)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _open_store(store_dir: str, passphrase: str):  # type: ignore[no-untyped-def]
    from certkit.keys import FilesystemSecureStore

    return FilesystemSecureStore(Path(store_dir), passphrase)


def _write_refs(pair, out: str) -> None:  # type: ignore[no-untyped-def]
    """Persist a key pair's store references (never key material) as JSON."""
    Path(out).write_text(json.dumps(pair.to_dict(), indent=2), encoding="utf-8")


def _read_refs(refs_file: str, store):  # type: ignore[no-untyped-def]
    from certkit.keys import KeyHandle, KeyPair

    try:
        data = json.loads(Path(refs_file).read_text(encoding="utf-8"))
        private_handle = KeyHandle.from_string(data["private_key"])
        public_handle = KeyHandle.from_string(data["public_key"])
    except (ValueError, KeyError, TypeError) as exc:
        console.print(f"[red]Error:[/red] {refs_file} is not a key reference file: {exc}")
        sys.exit(1)
    return KeyPair.from_references(private_handle, public_handle, store=store)


def _describe_extension(extension) -> str:  # type: ignore[no-untyped-def]
    from certkit.extensions import BasicConstraints, KeyUsage, SubjectAltName

    if isinstance(extension, SubjectAltName):
        return ", ".join(repr(name) for name in extension) or "(empty)"
    if isinstance(extension, KeyUsage):
        return ", ".join(
            flag.name.lower() for flag in type(extension.flags) if flag and flag in extension.flags
        )
    if isinstance(extension, BasicConstraints):
        text = f"ca={extension.ca}"
        if extension.path_length is not None:
            text += f", path_length={extension.path_length}"
        return text
    return repr(extension)


if __name__ == "__main__":
    cli()
