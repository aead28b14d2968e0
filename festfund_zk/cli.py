"""
Command-Line Interface for festfund-zk

Commands for circuit setup, the reference proof service, and the donation
operations: commit, reveal, privacy preferences, milestones and rankings.
"""

import inspect
import json
import logging
import secrets
import sys

import click
import trio
from rich.console import Console
from rich.table import Table

from festfund_zk import __version__
from festfund_zk.campaign.milestones import EventAggregate, parse_milestones
from festfund_zk.privacy_protocol.codec import parse_amount
from festfund_zk.privacy_protocol.exceptions import BackendUnavailableError, PrivacyProtocolError
from festfund_zk.service import DonationService
from festfund_zk.settings import load_settings

console = Console()


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _build_service(ctx: click.Context) -> DonationService:
    opts = ctx.obj
    settings = load_settings(
        opts["settings"],
        database_url=opts["database_url"],
        proof_backend=opts["backend"],
    )
    return DonationService.from_settings(settings)


def _run_with_service(ctx: click.Context, operation, *, initialize: bool = True):
    """Build the service, optionally initialize its backend, run operation."""

    async def _main():
        service = _build_service(ctx)
        try:
            if initialize:
                await service.initialize()
            result = operation(service)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            service.close()

    try:
        return trio.run(_main)
    except PrivacyProtocolError as e:
        _fail(str(e))


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--settings',
    type=click.Path(dir_okay=False),
    default=None,
    help='YAML settings file (default: $FESTFUND_SETTINGS_FILE)'
)
@click.option(
    '--database-url',
    type=str,
    default=None,
    help='SQLAlchemy database URL (default: sqlite:///festfund.db)'
)
@click.option(
    '--backend',
    type=click.Choice(['local', 'remote'], case_sensitive=False),
    default=None,
    help='Proof backend (default: $FESTFUND_PROOF_BACKEND or local)'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose output'
)
@click.pass_context
def main(ctx, settings, database_url, backend, verbose):
    """
    festfund-zk - private donation commitments and rankings

    Donors commit to amounts with zero-knowledge proofs; campaigns rank
    donors and track milestones from revealed amounts only.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj.update(
        settings=settings,
        database_url=database_url,
        backend=backend,
        verbose=verbose,
    )


@main.command('setup-circuit')
@click.option(
    '--output',
    type=click.Path(file_okay=False),
    default='circuits/donation',
    help='Directory for circuit artifacts (default: circuits/donation)'
)
@click.option(
    '--range-bits',
    type=int,
    default=64,
    help='Bit width of amount - minAmount (default: 64)'
)
@click.option(
    '--overwrite',
    is_flag=True,
    help='Replace existing artifacts'
)
def setup_circuit_cmd(output, range_bits, overwrite):
    """
    Generate circuit description, proving key and verification key.

    Examples:

        festfund-zk setup-circuit --output circuits/donation
    """
    from festfund_zk.privacy_protocol.pedersen.circuit import setup_circuit

    try:
        artifacts = setup_circuit(output, range_bits, overwrite=overwrite)
    except PrivacyProtocolError as e:
        _fail(str(e))
    click.echo(click.style(f"✓ Circuit {artifacts.name} written to {output}", fg="green"))
    click.echo(f"  range bits:     {artifacts.range_bits}")
    click.echo(f"  circuit digest: {artifacts.digest.hex()}")


@main.command('serve-prover')
@click.option('--host', type=str, default='127.0.0.1', help='Listen host')
@click.option('--port', type=int, default=7460, help='Listen port (default: 7460)')
@click.option(
    '--network',
    type=str,
    default='festfund-testnet',
    help='Network tag of issued attestations'
)
@click.option(
    '--service-key',
    type=str,
    envvar='FESTFUND_SERVICE_KEY',
    default=None,
    help='Hex attestation key, at least 16 bytes (default: random per run)'
)
def serve_prover(host, port, network, service_key):
    """
    Run the reference remote proof service.

    Attestations are kept in memory; restarting the service with a random
    key invalidates confirmations of earlier attestations.
    """
    from festfund_zk.network.proofservice import (
        DigestProofProvider,
        ProviderConfig,
        serve_proof_service,
    )

    try:
        key = bytes.fromhex(service_key) if service_key else secrets.token_bytes(32)
        provider = DigestProofProvider(ProviderConfig(service_key=key, network=network))
    except ValueError as e:
        _fail(f"invalid service configuration: {e}")

    click.echo(click.style(f"✓ Proof service on {host}:{port} ({network})", fg="green"))
    try:
        trio.run(serve_proof_service, provider, host, port)
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@main.command()
@click.option('--amount', required=True, type=str, help='Amount in base units')
@click.option('--secret', required=True, type=str, help='Donor secret')
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option('--min-amount', type=str, default='0', help='Minimum amount proven (default: 0)')
@click.option('--donor', type=str, default=None, help='Donor address (omit for anonymous)')
@click.option(
    '--format',
    type=click.Choice(['console', 'json'], case_sensitive=False),
    default='console',
    help='Output format'
)
@click.pass_context
def commit(ctx, amount, secret, event_id, min_amount, donor, format):
    """
    Create a donation commitment with a proof and store it.

    Examples:

        festfund-zk commit --amount 1000 --secret s3cret --event fest-1 --donor 0xabc
    """
    receipt = _run_with_service(
        ctx, lambda service: service.create_commitment(amount, secret, event_id, min_amount, donor)
    )
    if format == 'json':
        click.echo(json.dumps(receipt.to_dict(), indent=2))
        return
    color = "green" if receipt.verified else "yellow"
    click.echo(click.style(f"Commitment: {receipt.commitment_hash}", fg=color))
    click.echo(f"Nullifier:  {receipt.nullifier_hash}")
    click.echo(f"Verified:   {receipt.verified} ({receipt.level.value})")
    click.echo(f"Stored:     {receipt.stored}")
    if receipt.reason:
        click.echo(f"Note:       {receipt.reason}")
    if not receipt.stored:
        sys.exit(2)


@main.command()
@click.option('--commitment', required=True, type=str, help='Commitment hash')
@click.pass_context
def reverify(ctx, commitment):
    """Re-run verification of a stored commitment."""
    result = _run_with_service(ctx, lambda service: service.reverify(commitment))
    if result.verified:
        click.echo(click.style(f"✓ Verified ({result.level.value})", fg="green"))
    else:
        click.echo(click.style(f"✗ Not verified: {result.reason}", fg="red"))
        sys.exit(2)


@main.command()
@click.option('--commitment', required=True, type=str, help='Commitment hash')
@click.option('--donor', required=True, type=str, help='Owning donor address')
@click.option('--amount', required=True, type=str, help='Amount in base units')
@click.option('--secret', type=str, default=None, help='Donor secret, to prove the amount')
@click.pass_context
def reveal(ctx, commitment, donor, amount, secret):
    """Reveal the amount of a commitment (once)."""
    record = _run_with_service(
        ctx,
        lambda service: service.reveal_amount(commitment, donor, amount, secret),
        initialize=secret is not None,
    )
    proven = "proof-backed" if record.amount_proven else "unproven"
    click.echo(click.style(f"✓ Revealed {record.revealed_amount} ({proven})", fg="green"))


@main.command('verify-milestone')
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option('--target', required=True, type=str, help='Milestone target in base units')
@click.pass_context
def verify_milestone(ctx, event_id, target):
    """Check whether revealed donations reach a target."""
    status = _run_with_service(
        ctx, lambda service: service.verify_milestone(event_id, target), initialize=False
    )
    mark = click.style("✓ achieved", fg="green") if status.achieved else click.style(
        "✗ not achieved", fg="yellow"
    )
    click.echo(f"Milestone {status.target}: {mark}")
    click.echo(f"  revealed total: {status.current_amount}")
    click.echo(f"  commitments:    {status.commitment_count} ({status.revealed_count} revealed)")


@main.command()
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option(
    '--milestones',
    type=str,
    default='',
    help='Comma-separated ascending milestone amounts'
)
@click.option('--target', type=str, default='0', help='Campaign target in base units')
@click.pass_context
def stats(ctx, event_id, milestones, target):
    """Recompute event statistics from revealed amounts."""
    try:
        aggregate = EventAggregate(
            event_id=event_id,
            milestones=parse_milestones([m for m in milestones.split(',') if m.strip()]),
            target_amount=parse_amount(target, "target"),
        )
    except PrivacyProtocolError as e:
        _fail(str(e))
    result = _run_with_service(
        ctx, lambda service: service.refresh_event_stats(aggregate), initialize=False
    )

    table = Table(title=f"Event {event_id}: {result.total_amount} revealed")
    table.add_column("Milestone", justify="right")
    table.add_column("Achieved")
    table.add_column("Progress", justify="right")
    for progress in result.milestone_progress:
        label = f"{progress.amount}" + (" (next)" if progress.is_next else "")
        table.add_row(label, "yes" if progress.achieved else "no", f"{progress.percentage:.1f}%")
    console.print(table)
    console.print(
        f"Donors: {result.unique_donors}  Commitments: {result.total_commitments} "
        f"({result.revealed_commitments} revealed)  Target: {result.target_progress:.1f}%"
    )


@main.command()
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option(
    '--format',
    type=click.Choice(['console', 'json'], case_sensitive=False),
    default='console',
    help='Output format'
)
@click.pass_context
def ranking(ctx, event_id, format):
    """Show the donor leaderboard of an event."""
    entries = _run_with_service(
        ctx, lambda service: service.get_event_ranking(event_id), initialize=False
    )
    if format == 'json':
        click.echo(json.dumps([entry.to_public_dict() for entry in entries], indent=2))
        return
    if not entries:
        click.echo("No ranked donors yet.")
        return

    table = Table(title=f"Leaderboard: {event_id}")
    table.add_column("Rank", justify="right")
    table.add_column("Donor")
    table.add_column("Donated", justify="right")
    table.add_column("Commitments", justify="right")
    table.add_column("Privacy", justify="right")
    for entry in entries:
        donated = str(entry.total_donated) if entry.total_donated is not None else "hidden"
        if entry.total_donated is not None and not entry.proof_backed:
            donated += " *"
        table.add_row(
            str(entry.rank),
            entry.display_name,
            donated,
            str(entry.commitment_count),
            str(entry.privacy_score),
        )
    console.print(table)
    if any(entry.total_donated is not None and not entry.proof_backed for entry in entries):
        console.print("* includes revealed amounts without an amount proof")


@main.command('user-rank')
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option('--donor', required=True, type=str, help='Donor address')
@click.pass_context
def user_rank(ctx, event_id, donor):
    """Show the rank of one donor."""
    rank, total = _run_with_service(
        ctx, lambda service: service.get_user_rank(event_id, donor), initialize=False
    )
    if rank is None:
        click.echo(f"Not ranked ({total} participants)")
    else:
        click.echo(f"Rank {rank} of {total}")


@main.group()
def privacy():
    """Manage donor privacy preferences."""


@privacy.command('set')
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option('--donor', required=True, type=str, help='Donor address')
@click.option('--reveal-amount/--hide-amount', default=False, help='Show donated total')
@click.option('--reveal-name/--hide-name', default=False, help='Show donor name')
@click.option('--display-name', type=str, default=None, help='Custom display name')
@click.pass_context
def privacy_set(ctx, event_id, donor, reveal_amount, reveal_name, display_name):
    """Update privacy preferences for an event."""
    prefs = _run_with_service(
        ctx,
        lambda service: service.update_privacy(
            donor,
            event_id,
            reveal_amount=reveal_amount,
            reveal_name=reveal_name,
            custom_display_name=display_name,
        ),
        initialize=False,
    )
    click.echo(click.style("✓ Privacy preferences updated", fg="green"))
    _echo_privacy(prefs)


@privacy.command('get')
@click.option('--event', 'event_id', required=True, type=str, help='Event identifier')
@click.option('--donor', required=True, type=str, help='Donor address')
@click.pass_context
def privacy_get(ctx, event_id, donor):
    """Show privacy preferences for an event."""
    prefs = _run_with_service(
        ctx, lambda service: service.get_privacy(donor, event_id), initialize=False
    )
    _echo_privacy(prefs)


def _echo_privacy(prefs) -> None:
    click.echo(f"  reveal amount: {prefs.reveal_amount}")
    click.echo(f"  reveal name:   {prefs.reveal_name}")
    click.echo(f"  display name:  {prefs.custom_display_name or '-'}")
    click.echo(f"  commitments:   {prefs.commitment_count}")


@main.command()
@click.pass_context
def status(ctx):
    """Show proof backend status."""
    async def _probe(service):
        try:
            await service.initialize()
        except BackendUnavailableError as e:
            click.echo(click.style(f"✗ Backend failed to initialize: {e}", fg="red"), err=True)
        return service.backend_status()

    backend_status = _run_with_service(ctx, _probe, initialize=False)
    color = "green" if backend_status.available else "red"
    click.echo(click.style(f"{backend_status.name} ({backend_status.kind})", fg=color, bold=True))
    click.echo(f"  available: {backend_status.available}")
    for key, value in sorted(backend_status.details.items()):
        click.echo(f"  {key}: {value}")


if __name__ == '__main__':
    main()
