#!/usr/bin/env python3
"""
DAO Treasury CLI

Runs governance scenarios against an in-memory ledger and inspects exported
event histories.

Usage:
    dao-treasury run <scenario.toml> [--export FILE]
    dao-treasury replay <events.json>
    dao-treasury config [<dao.toml>]

A scenario file is a dao.toml with two extra arrays:

    [[deposits]]
    from = "0x…"
    amount = "100"

    [[steps]]
    action = "propose"            # propose | vote | finalize | cancel
    caller = "0x…"
    name = "Grant"
    description = "…"
    amount = "10"
    recipient = "0x…"

    [[steps]]
    action = "vote"
    caller = "0x…"
    proposal = 1
    choice = "for"                # for | against | abstain
    expect_error = "AlreadyVoted" # optional
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from ..config import DAOConfig, load_config, read_toml
from ..crypto import short_address
from ..exceptions import ConfigurationError, GovernanceError
from ..governance import EventLog, GovernanceLedger, Proposal, VoteChoice, replay

CHOICES = {
    "for": VoteChoice.FOR,
    "against": VoteChoice.AGAINST,
    "abstain": VoteChoice.ABSTAIN,
}


def format_proposal(p: Proposal) -> str:
    status_colors = {"OPEN": "cyan", "FINALIZED": "green", "CANCELLED": "red"}
    status = click.style(p.status.name, fg=status_colors[p.status.name], bold=True)
    return (
        f"#{p.id:<3} {status:<20} {p.name[:32]:<32} amount={p.amount} "
        f"→ {short_address(p.recipient)}  "
        f"for={p.positive_weight} against={p.negative_weight} "
        f"abstain={p.abstain_weight} net={p.net_votes}"
    )


def print_proposals(proposals: List[Proposal]) -> None:
    if not proposals:
        click.echo("No proposals.")
        return
    for p in proposals:
        click.echo(format_proposal(p))


# ---------------------------------------------------------------------------
# Scenario execution
# ---------------------------------------------------------------------------

async def execute_step(ledger: GovernanceLedger, step: Dict[str, Any]) -> str:
    """Run one scenario step and return a one-line summary."""
    action = step.get("action")
    caller = step.get("caller", "")

    if action == "propose":
        pid = await ledger.propose(
            step.get("name", ""),
            step.get("description", ""),
            str(step.get("amount", "")),
            step.get("recipient", ""),
            caller,
            deadline=step.get("deadline"),
        )
        return f"proposal #{pid} created"
    if action == "vote":
        choice_name = str(step.get("choice", "for")).lower()
        if choice_name not in CHOICES:
            raise click.ClickException(f"Unknown vote choice: {choice_name}")
        ballot = await ledger.cast_vote(step.get("proposal"), CHOICES[choice_name], caller)
        return f"{short_address(ballot.voter)} voted {ballot.choice.name} on #{ballot.proposal_id} (weight={ballot.weight})"
    if action == "finalize":
        payout = await ledger.finalize(step.get("proposal"), caller)
        return f"proposal #{step.get('proposal')} finalized, {payout.amount} sent to {short_address(payout.recipient)}"
    if action == "cancel":
        await ledger.cancel(step.get("proposal"), caller)
        return f"proposal #{step.get('proposal')} cancelled"
    raise click.ClickException(f"Unknown scenario action: {action!r}")


async def run_scenario(ledger: GovernanceLedger, data: Dict[str, Any]) -> int:
    """Apply deposits and steps; returns the number of unexpected failures."""
    for deposit in data.get("deposits", []):
        try:
            ledger.deposit(deposit.get("from", ""), str(deposit.get("amount", "")))
        except GovernanceError as e:
            raise click.ClickException(f"Deposit rejected [{e.kind}]: {e}")

    failures = 0
    for index, step in enumerate(data.get("steps", []), start=1):
        expected = step.get("expect_error")
        try:
            summary = await execute_step(ledger, step)
        except GovernanceError as e:
            if expected == e.kind:
                click.echo(click.style(f"  {index:>2}. ✓ rejected as expected [{e.kind}] {e}", fg="yellow"))
            else:
                failures += 1
                click.echo(click.style(f"  {index:>2}. ✗ [{e.kind}] {e}", fg="red"))
            continue
        if expected:
            failures += 1
            click.echo(click.style(f"  {index:>2}. ✗ expected {expected}, but {summary}", fg="red"))
        else:
            click.echo(click.style(f"  {index:>2}. ✓ {summary}", fg="green"))
    return failures


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version="1.0.0", prog_name="dao-treasury")
def cli():
    """DAO treasury governance tools."""


@cli.command("run")
@click.argument("scenario_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Write the event log as JSON")
def run_cmd(scenario_file: str, export_path: Optional[str]):
    """Execute a governance scenario and print the resulting ledger."""
    try:
        data = read_toml(scenario_file)
        config = DAOConfig.from_dict(data)
        config.apply_env()
        _, ledger = config.build()
    except (ConfigurationError, GovernanceError) as e:
        raise click.ClickException(str(e))

    click.echo(click.style(f"Running {scenario_file}", fg="cyan", bold=True))
    failures = asyncio.run(run_scenario(ledger, data))

    click.echo()
    click.echo(f"Quorum: {ledger.quorum}   Treasury: {ledger.treasury_balance}")
    print_proposals(ledger.proposals())

    if export_path:
        Path(export_path).write_text(ledger.event_log.to_json(), encoding="utf-8")
        click.echo(f"Events written to {export_path}")

    if failures:
        raise click.ClickException(f"{failures} step(s) did not behave as scripted")


@cli.command("replay")
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
def replay_cmd(events_file: str):
    """Rebuild proposal state from an exported event log."""
    try:
        log = EventLog.from_json(Path(events_file).read_text(encoding="utf-8"))
        snapshot = replay(log)
    except (ValueError, KeyError) as e:
        raise click.ClickException(f"Malformed event log: {e}")
    except GovernanceError as e:
        raise click.ClickException(f"{e.kind}: {e}")

    click.echo(f"Replayed {snapshot.events_applied} events")
    print_proposals(snapshot.ordered())


@cli.command("config")
@click.argument("config_file", required=False, type=click.Path(dir_okay=False))
def config_cmd(config_file: Optional[str]):
    """Show the resolved configuration."""
    try:
        config = load_config(config_file)
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(config.to_dict(), indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
