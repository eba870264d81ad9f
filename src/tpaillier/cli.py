"""
CLI application for threshold Paillier encryption.

Commands:
    demo           Encrypt a message and threshold-decrypt it with chosen servers
    sum            Homomorphically add (and scale) integers, then decrypt
    verify         Generate a key pair and check its consistency
    keygen-info    Print the public fields of a fresh key pair

Every command generates a fresh key pair in-process; keys are never
written to disk.
"""

import logging
from typing import List, Optional

import typer

from .core.shares import ShareSet, combine
from .crypto.entropy import RandomSource
from .crypto.keys import DEFAULT_BITS, generate_key_pair, verify_key_pair
from .crypto.shamir import Polynomial
from .errors import PaillierError


logger = logging.getLogger(__name__)

app = typer.Typer(
    name="tpaillier", help="Threshold Paillier encryption with l-of-w decryption"
)


def _parse_indices(value: str) -> list[int]:
    """Parse a comma-separated list of server indices."""
    try:
        return [int(v.strip()) for v in value.split(",") if v.strip()]
    except ValueError:
        raise typer.BadParameter(f"Invalid server list: {value}")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log key generation and combining"
    ),
) -> None:
    """Threshold Paillier encryption with l-of-w decryption."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def demo(
    message: int = typer.Option(42, "--message", "-m", help="Plaintext to encrypt"),
    bits: int = typer.Option(DEFAULT_BITS, "--bits", "-b", help="Modulus bit length"),
    threshold: int = typer.Option(
        3, "--threshold", "-l", help="Servers required to decrypt (l)"
    ),
    servers: int = typer.Option(5, "--servers", "-w", help="Total servers (w)"),
    use: str = typer.Option(
        "0,2,4", "--use", "-u", help="Comma-separated server indices that respond"
    ),
) -> None:
    """
    Encrypt a message, partially decrypt it on the chosen servers, combine.

    Example:
        tpaillier demo -m 42 -b 512 -l 3 -w 5 -u 0,2,4
    """
    indices = _parse_indices(use)
    logger.debug("Demo requested with servers %s", indices)
    random = RandomSource()

    try:
        public_key, private_key = generate_key_pair(bits, threshold, servers, random)
        auth_servers = Polynomial.derive(private_key, random).servers(servers)

        ciphertext = public_key.encrypt(message, random)
        typer.echo(f"Key: {bits}-bit modulus, l={threshold}, w={servers}")
        typer.echo(f"Encrypted {message}")

        share_set = ShareSet(servers)
        for index in indices:
            if not 0 <= index < servers:
                typer.echo(f"Error: No server {index} (w={servers})", err=True)
                raise typer.Exit(1)
            share_set.add(auth_servers[index].partial_decrypt(public_key, ciphertext))
            typer.echo(f"  Server {index}: partial decryption collected")

        plaintext = combine(public_key, share_set)
        typer.echo(f"Decrypted: {plaintext}")
    except PaillierError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("sum")
def sum_values(
    values: List[int] = typer.Argument(..., help="Integers to add"),
    scale: int = typer.Option(1, "--scale", "-k", help="Multiply the sum by k"),
    bits: int = typer.Option(DEFAULT_BITS, "--bits", "-b", help="Modulus bit length"),
    threshold: int = typer.Option(2, "--threshold", "-l"),
    servers: int = typer.Option(3, "--servers", "-w"),
) -> None:
    """
    Add encrypted integers and scale the sum without decrypting them.

    Example:
        tpaillier sum 10 20 12 -k 3 -b 512
    """
    random = RandomSource()

    try:
        public_key, private_key = generate_key_pair(bits, threshold, servers, random)
        auth_servers = Polynomial.derive(private_key, random).servers(servers)

        total = public_key.encrypt(values[0], random)
        for value in values[1:]:
            total = public_key.ee_add(total, public_key.encrypt(value, random))
        total = public_key.ep_mul(total, scale)

        share_set = ShareSet(servers)
        for server in auth_servers[:threshold]:
            share_set.add(server.partial_decrypt(public_key, total))

        logger.debug("Summed %d values, scale %d", len(values), scale)
        result = combine(public_key, share_set)
        typer.echo(f"{scale} * ({' + '.join(str(v) for v in values)}) = {result}")
    except PaillierError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def verify(
    bits: int = typer.Option(DEFAULT_BITS, "--bits", "-b", help="Modulus bit length"),
    threshold: int = typer.Option(1, "--threshold", "-l"),
    servers: int = typer.Option(1, "--servers", "-w"),
) -> None:
    """Generate a key pair and check that it is consistent."""
    try:
        public_key, private_key = generate_key_pair(bits, threshold, servers)
    except PaillierError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if verify_key_pair(public_key, private_key):
        typer.echo("Key pair OK")
    else:
        typer.echo("Key pair inconsistent", err=True)
        raise typer.Exit(1)


@app.command("keygen-info")
def keygen_info(
    bits: int = typer.Option(DEFAULT_BITS, "--bits", "-b", help="Modulus bit length"),
    threshold: int = typer.Option(1, "--threshold", "-l"),
    servers: int = typer.Option(1, "--servers", "-w"),
    check_value: Optional[int] = typer.Option(
        None, "--check", help="Also encrypt this value as a smoke test"
    ),
) -> None:
    """
    Print the public fields of a fresh key pair.

    Shares and the private exponent are never printed.
    """
    try:
        public_key, _ = generate_key_pair(bits, threshold, servers)
        typer.echo(f"n     = {public_key.n}")
        typer.echo(f"g     = {public_key.g}")
        typer.echo(f"bits  = {public_key.bits}")
        typer.echo(f"l     = {public_key.l}")
        typer.echo(f"w     = {public_key.w}")
        typer.echo(f"delta = {public_key.delta}")

        if check_value is not None:
            ciphertext = public_key.encrypt(check_value)
            typer.echo(f"E({check_value}) = {ciphertext}")
    except PaillierError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
