# ownables/cli/main.py
"""
CLI for fingerprinting, inspecting and transferring ownable packages.
"""

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ownables.archive import Package, locate_single_archive, read_package
from ownables.chain.event_chain import EventChain
from ownables.cid import compute_cid
from ownables.config import Settings, get_network
from ownables.core.errors import ChainError, OwnablesError, TransferAborted
from ownables.crypto.keys import Account
from ownables.logs import setup_logging
from ownables.transfer.orchestrator import TransferOrchestrator, TransferReport, TransferRequest
from ownables.verify.verifier import ChainVerifier

app = typer.Typer(
    name="ownables",
    help="Fingerprint, inspect and transfer ownable packages",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def resolve_archive(archive: Optional[Path]) -> Path:
    """Explicit archive path, or the single *.zip in the current directory."""
    if archive is not None:
        return archive
    return locate_single_archive(Path.cwd())


def open_package(archive: Optional[Path]) -> Package:
    try:
        return read_package(resolve_archive(archive))
    except OwnablesError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


def print_report(report: TransferReport) -> None:
    table = Table(title=f"Transfers of {report.package_path.name}")
    table.add_column("#")
    table.add_column("Message hash")
    table.add_column("CID")
    table.add_column("Anchor transaction")

    for r in report.results:
        table.add_row(str(r.iteration), r.message_hash, r.cid, r.transaction_reference or "—")

    console.print(table)


@app.command()
def transfer(
    recipient: str = typer.Option(..., "--recipient", "-r", help="Recipient address"),
    seed: str = typer.Option(
        ..., "--seed", envvar="OWNABLES_SEED", show_default=False,
        help="Seed phrase of the sending account (or OWNABLES_SEED)",
    ),
    network: Optional[str] = typer.Option(None, "--network", help="mainnet or testnet (or OWNABLES_NETWORK)"),
    relay: Optional[str] = typer.Option(None, "--relay", help="Relay URL (or OWNABLES_RELAY_URL)"),
    count: int = typer.Option(1, "--count", "-n", help="Number of transfers to send (1-50)"),
    directory: Path = typer.Option(Path("."), "--dir", help="Directory holding the package ZIP"),
    archive: Optional[Path] = typer.Option(None, "--archive", help="Package ZIP (overrides --dir lookup)"),
    delay: Optional[float] = typer.Option(None, "--delay", help="Seconds to wait between transfers"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Transfer an ownable package to a recipient via the relay."""
    setup_logging(verbose, console)

    try:
        settings = Settings.resolve(network=network, relay_url=relay, iteration_delay=delay)
        identity = Account.from_seed(seed)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)

    request = TransferRequest(
        recipient_address=recipient.strip(),
        network=settings.network,
        relay_endpoint=settings.relay_url,
        transfer_count=count,
        identity=identity,
    )
    orchestrator = TransferOrchestrator(settings)

    try:
        report = asyncio.run(orchestrator.run(request, directory=directory, archive=archive))
    except TransferAborted as e:
        console.print(f"[red]✗ Transfer failed at iteration {e.iteration}: {e.cause}[/]")
        console.print(f"  Completed transfers: {e.completed}/{count}")
        raise typer.Exit(1)
    except OwnablesError as e:
        console.print(f"[red]✗ Transfer failed: {e}[/]")
        raise typer.Exit(1)

    print_report(report)
    console.print(f"[green]✓ {report.completed} transfer(s) sent successfully[/]")


@app.command()
def cid(
    archive: Optional[Path] = typer.Argument(None, help="Package ZIP (default: the only *.zip in cwd)"),
    exclude: List[str] = typer.Option([], "--exclude", "-x", help="Extra glob patterns to leave out"),
):
    """Print the content identifier of a package."""
    package = open_package(archive)
    try:
        value = compute_cid(package, exclude=exclude)
    except OwnablesError as e:
        console.print(f"[red]CID calculation failed: {e}[/]")
        raise typer.Exit(1)
    console.print(str(value))


def _load_chain(package: Package) -> Optional[EventChain]:
    if package.chain_state is None:
        console.print("[yellow]Package has no chain.json (never transferred)[/]")
        return None
    try:
        return EventChain.parse(package.chain_state)
    except ChainError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


@app.command()
def chain(
    archive: Optional[Path] = typer.Argument(None, help="Package ZIP (default: the only *.zip in cwd)"),
):
    """List the events recorded in a package's chain."""
    event_chain = _load_chain(open_package(archive))
    if event_chain is None:
        raise typer.Exit(0)

    table = Table(title=f"Event chain {event_chain.id}")
    table.add_column("#")
    table.add_column("Context")
    table.add_column("Recipient")
    table.add_column("Timestamp")
    table.add_column("Hash")

    for i, ev in enumerate(event_chain.events):
        table.add_row(str(i), ev.context, str(ev.payload.get("recipient", "—")), ev.timestamp or "—", ev.hash[:16])

    console.print(table)


@app.command()
def verify(
    archive: Optional[Path] = typer.Argument(None, help="Package ZIP (default: the only *.zip in cwd)"),
):
    """Verify the integrity of a package's chain (hash links + signatures)."""
    event_chain = _load_chain(open_package(archive))
    if event_chain is None:
        raise typer.Exit(0)

    result = ChainVerifier().verify(event_chain)
    if result.is_valid:
        console.print(f"[green]✓ Chain '{event_chain.id}' is valid[/]")
        console.print(f"  {result.message} ({event_chain.length} events)")
    else:
        console.print(f"[red]✗ Verification failed for chain '{event_chain.id}'[/]")
        for failure in result.failures:
            console.print(f"  • [{failure.index}] {failure.category}: {failure.message}")
        raise typer.Exit(1)


@app.command()
def address(
    seed: str = typer.Option(..., "--seed", envvar="OWNABLES_SEED", show_default=False),
    network: str = typer.Option("mainnet", "--network"),
):
    """Print the ledger address belonging to a seed phrase."""
    try:
        profile = get_network(network)
        console.print(Account.from_seed(seed).address(profile.network_id))
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
