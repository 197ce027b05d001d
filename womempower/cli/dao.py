#!/usr/bin/env python3
"""
WomEmpower DAO CLI

Command-line interface for running the loan DAO against a snapshot file.
Every command loads the snapshot, performs one operation and, if the
operation changed anything, writes the snapshot back atomically.

The ledger identity and height are explicit on every mutating command;
the CLI never guesses them.

Usage:
    womempower-dao init [--force]
    womempower-dao params
    womempower-dao set-param <name> <value> --caller ID --height N
    womempower-dao propose <title> <description> --caller ID --height N [--loan-id ID] [--executor ID]
    womempower-dao vote <proposal_id> <yes|no> <amount> --caller ID --height N --balances FILE
    womempower-dao execute <proposal_id> --caller ID --height N
    womempower-dao show <proposal_id> [--height N] [--json]
    womempower-dao list [--height N]
    womempower-dao tally <proposal_id>
    womempower-dao events [--json]
    womempower-dao verify
"""

import json
from pathlib import Path
from typing import Optional

import click

from womempower import __version__
from womempower.config import load_config
from womempower.exceptions import ConfigurationError, DAOError, StorageError
from womempower.governance import (
    CallContext,
    LoanDAO,
    MappingBalanceOracle,
    RecordingSink,
)
from womempower.logger import set_log_level
from womempower.storage import load_snapshot, save_snapshot


PARAMETER_SETTERS = {
    "quorum-percent": ("set_quorum_percent", int),
    "proposal-duration": ("set_proposal_duration", int),
    "total-supply": ("set_total_supply", int),
    "admin-authority": ("set_admin_authority", str),
}

STATUS_COLORS = {"OPEN": "green", "CLOSED": "yellow", "EXECUTED": "cyan"}


def raise_click_error(e: Exception):
    """Report a library error as a ClickException (exit code 1)."""
    if isinstance(e, DAOError):
        raise click.ClickException(f"{e.kind} ({int(e.code)}): {e}") from e
    raise click.ClickException(str(e)) from e


def load_balances(path: Optional[str]) -> MappingBalanceOracle:
    """Read ``{"identity": balance, ...}`` from a JSON file."""
    if path is None:
        return MappingBalanceOracle()
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Could not read balances from {path}: {e}")
    if not isinstance(raw, dict) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in raw.values()
    ):
        raise click.ClickException("Balances file must map identities to integer balances")
    return MappingBalanceOracle(raw)


def make_context(caller: str, height: int) -> CallContext:
    try:
        return CallContext(caller, height)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--caller")


def open_dao(ctx: click.Context, balances: Optional[str] = None) -> LoanDAO:
    try:
        return load_snapshot(ctx.obj["state"], oracle=load_balances(balances))
    except StorageError as e:
        raise_click_error(e)


def commit(ctx: click.Context, dao: LoanDAO):
    try:
        save_snapshot(dao, ctx.obj["state"])
    except StorageError as e:
        raise_click_error(e)


def format_height_status(dao: LoanDAO, proposal_id: int, height: Optional[int]) -> str:
    proposal = dao.get_proposal(proposal_id)
    if height is None:
        return "EXECUTED" if proposal.executed else "-"
    return dao.status_of(proposal_id, height).name


caller_option = click.option("--caller", "-c", required=True, help="Identity performing the operation")
height_option = click.option(
    "--height", "height", required=True, type=click.IntRange(min=0),
    help="Current ledger height",
)


@click.group()
@click.version_option(version=__version__, prog_name="womempower-dao")
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="TOML config file (default: $WOMEMPOWER_CONFIG or ./womempower.toml)")
@click.option("--state", "-s", type=click.Path(), default=None,
              help="Snapshot file (default: [storage] state_file)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
              case_sensitive=False), default=None, help="Override [logging] level")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], state: Optional[str], log_level: Optional[str]):
    """WomEmpower loan DAO

    Propose, vote on and execute loan-approval proposals.
    """
    try:
        config = load_config(config_path)
        config.validate()
    except ConfigurationError as e:
        raise_click_error(e)

    set_log_level((log_level or config.logging.level).upper())
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["state"] = Path(state or config.storage.state_file)


# ── Setup ─────────────────────────────────────────────────────────────

@cli.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing snapshot")
@click.pass_context
def init_cmd(ctx: click.Context, force: bool):
    """Create a new, empty DAO from the configuration.

    Examples:

        womempower-dao --state dao.json init
    """
    state: Path = ctx.obj["state"]
    if state.exists() and not force:
        raise click.ClickException(f"{state} already exists (use --force to overwrite)")

    config = ctx.obj["config"]
    dao = LoanDAO(
        oracle=MappingBalanceOracle(),
        sink=RecordingSink(),
        parameters=config.to_parameters(),
        issuance_rate=config.issuance.rate,
        issuance_term=config.issuance.term,
    )
    commit(ctx, dao)
    click.echo(click.style("✓ DAO initialised", fg="green"))
    click.echo(f"Admin authority: {dao.get_admin_authority()}")
    click.echo(f"Saved to: {state}")


# ── Parameters ────────────────────────────────────────────────────────

@cli.command("params")
@click.pass_context
def params_cmd(ctx: click.Context):
    """Show the governance parameters."""
    dao = open_dao(ctx)
    current = dao.parameters.current
    click.echo(f"Quorum percent:    {current.quorum_percent}%")
    click.echo(f"Proposal duration: {current.proposal_duration}")
    click.echo(f"Total supply:      {current.total_supply}")
    click.echo(f"Quorum threshold:  {current.quorum_threshold}")
    click.echo(f"Admin authority:   {current.admin_authority}")


@cli.command("set-param")
@click.argument("name", type=click.Choice(sorted(PARAMETER_SETTERS)))
@click.argument("value")
@caller_option
@height_option
@click.pass_context
def set_param_cmd(ctx: click.Context, name: str, value: str, caller: str, height: int):
    """Change one governance parameter (admin only).

    Examples:

        womempower-dao set-param quorum-percent 60 --caller ADMIN --height 10
    """
    setter, convert = PARAMETER_SETTERS[name]
    try:
        converted = convert(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an integer", param_hint="VALUE")

    dao = open_dao(ctx)
    try:
        getattr(dao, setter)(make_context(caller, height), converted)
    except DAOError as e:
        raise_click_error(e)
    commit(ctx, dao)
    click.echo(click.style(f"✓ {name} set to {converted}", fg="green"))


# ── Proposals ─────────────────────────────────────────────────────────

@cli.command("propose")
@click.argument("title")
@click.argument("description")
@caller_option
@height_option
@click.option("--loan-id", type=int, default=None, help="Loan request the proposal funds")
@click.option("--executor", default=None, help="Identity that must not be the proposer")
@click.pass_context
def propose_cmd(ctx: click.Context, title: str, description: str, caller: str, height: int,
                loan_id: Optional[int], executor: Optional[str]):
    """Create a loan-approval proposal.

    Examples:

        womempower-dao propose "Loan for Amina" "Sewing co-op equipment" \\
            --loan-id 7 --caller alice --height 100
    """
    dao = open_dao(ctx)
    try:
        proposal_id = dao.propose(make_context(caller, height), title, description, loan_id, executor)
    except DAOError as e:
        raise_click_error(e)
    commit(ctx, dao)

    proposal = dao.get_proposal(proposal_id)
    click.echo(click.style(f"✓ Proposal #{proposal_id} created", fg="green"))
    click.echo(f"Voting open through height {proposal.end_height}")


@cli.command("show")
@click.argument("proposal_id", type=int)
@click.option("--height", type=click.IntRange(min=0), default=None,
              help="Ledger height at which to report the status")
@click.option("--json", "as_json", is_flag=True, help="Print the proposal as JSON")
@click.pass_context
def show_cmd(ctx: click.Context, proposal_id: int, height: Optional[int], as_json: bool):
    """Display one proposal."""
    dao = open_dao(ctx)
    proposal = dao.get_proposal(proposal_id)
    if proposal is None:
        raise click.ClickException(f"Proposal #{proposal_id} not found")

    if as_json:
        data = proposal.to_dict()
        data["votes"] = [v.to_dict() for v in dao.get_votes(proposal_id)]
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    status = format_height_status(dao, proposal_id, height)
    click.echo(click.style(f"Proposal #{proposal.id}: {proposal.title}", fg="cyan", bold=True))
    click.echo(f"Description: {proposal.description}")
    click.echo(f"Proposer:    {proposal.proposer}")
    click.echo(f"Loan:        {proposal.funding_ref if proposal.funding_ref is not None else '-'}")
    click.echo(f"Heights:     {proposal.start_height} → {proposal.end_height}")
    click.echo(f"Votes:       yes={proposal.yes_weight} no={proposal.no_weight} "
               f"({dao.voter_count(proposal_id)} voters)")
    click.echo(f"Status:      {click.style(status, fg=STATUS_COLORS.get(status))}")


@cli.command("list")
@click.option("--height", type=click.IntRange(min=0), default=None,
              help="Ledger height at which to report statuses")
@click.pass_context
def list_cmd(ctx: click.Context, height: Optional[int]):
    """List all proposals."""
    dao = open_dao(ctx)
    proposals = dao.list_proposals()
    if not proposals:
        click.echo("No proposals.")
        return
    for p in proposals:
        status = format_height_status(dao, p.id, height)
        click.echo(f"#{p.id:<4} {status:<9} yes={p.yes_weight:<6} no={p.no_weight:<6} {p.title}")


# ── Voting & execution ────────────────────────────────────────────────

@cli.command("vote")
@click.argument("proposal_id", type=int)
@click.argument("choice", type=click.Choice(["yes", "no"], case_sensitive=False))
@click.argument("amount", type=int)
@caller_option
@height_option
@click.option("--balances", "-b", type=click.Path(exists=True), required=True,
              help="JSON file mapping identities to token balances")
@click.pass_context
def vote_cmd(ctx: click.Context, proposal_id: int, choice: str, amount: int,
             caller: str, height: int, balances: str):
    """Cast a weighted vote.

    Examples:

        womempower-dao vote 1 yes 300 --caller bob --height 120 --balances balances.json
    """
    dao = open_dao(ctx, balances)
    try:
        dao.vote(make_context(caller, height), proposal_id, choice, amount)
    except DAOError as e:
        raise_click_error(e)
    commit(ctx, dao)
    click.echo(click.style(f"✓ {caller} voted {choice.upper()} with {amount} on proposal #{proposal_id}",
                           fg="green"))


@cli.command("execute")
@click.argument("proposal_id", type=int)
@caller_option
@height_option
@click.pass_context
def execute_cmd(ctx: click.Context, proposal_id: int, caller: str, height: int):
    """Execute a proposal whose voting period has ended."""
    dao = open_dao(ctx)
    try:
        dao.execute(make_context(caller, height), proposal_id)
    except DAOError as e:
        raise_click_error(e)
    commit(ctx, dao)

    proposal = dao.get_proposal(proposal_id)
    click.echo(click.style(f"✓ Proposal #{proposal_id} executed", fg="green"))
    if proposal.funding_ref is not None:
        click.echo(f"Loan {proposal.funding_ref} issued "
                   f"(rate={dao.engine.issuance_rate}, term={dao.engine.issuance_term})")


@cli.command("tally")
@click.argument("proposal_id", type=int)
@click.pass_context
def tally_cmd(ctx: click.Context, proposal_id: int):
    """Preview the quorum and majority arithmetic for a proposal."""
    dao = open_dao(ctx)
    try:
        tally = dao.tally(proposal_id)
    except DAOError as e:
        raise_click_error(e)

    def mark(ok: bool) -> str:
        return click.style("yes", fg="green") if ok else click.style("no", fg="red")

    click.echo(f"Yes:       {tally.yes_weight}")
    click.echo(f"No:        {tally.no_weight}")
    click.echo(f"Total:     {tally.total_votes} / threshold {tally.threshold}")
    click.echo(f"Quorum:    {mark(tally.quorum_reached)}")
    click.echo(f"Majority:  {mark(tally.majority_reached)}")
    click.echo(f"Passes:    {mark(tally.passes)}")


# ── Journal ───────────────────────────────────────────────────────────

@cli.command("events")
@click.option("--json", "as_json", is_flag=True, help="Print the journal as JSON")
@click.pass_context
def events_cmd(ctx: click.Context, as_json: bool):
    """Print the governance event journal."""
    dao = open_dao(ctx)
    entries = dao.journal_entries()
    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
        return
    for entry in entries:
        payload = entry.event.to_dict()
        details = " ".join(f"{k}={v}" for k, v in payload.items() if k != "event")
        click.echo(f"{entry.seq:>4}  {entry.entry_hash[:16]}  {entry.name:<18} {details}")


@cli.command("verify")
@click.pass_context
def verify_cmd(ctx: click.Context):
    """Verify the snapshot's event journal hash chain."""
    # load_snapshot already refuses a broken chain
    dao = open_dao(ctx)
    click.echo(click.style(
        f"✓ Journal intact ({len(dao.journal_entries())} events, "
        f"{dao.get_proposal_count()} proposals)", fg="green",
    ))


if __name__ == "__main__":
    cli()
