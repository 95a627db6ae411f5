#!/usr/bin/env python3
"""
HTLC escrow command line interface.

Runs engine operations against a JSON state file. Each invocation reads the
wall clock once (or takes `--now`), executes one request and writes the
state back only when the request succeeds.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

import click
import yaml

from .codec import (
    error_to_json,
    parse_coins,
    response_to_json,
    state_from_json,
    state_to_json,
    view_to_json,
)
from .config import DigestAlgorithm, EngineSettings
from .crypto.hash_algorithms import generate_secret, hashlock_for
from .engine import EscrowStateMachine
from .errors import EscrowError
from .msg import (
    Claim,
    CreateBatchEscrows,
    CreateEscrow,
    EscrowInput,
    Instantiate,
    Refund,
    Role,
    UpdateConfig,
)
from .storage import Storage
from .types import CallContext

logger = logging.getLogger(__name__)


class Session:
    """State file plus output format for one CLI invocation."""

    def __init__(self, state_path: Path, fmt: str):
        self.state_path = state_path
        self.fmt = fmt

    def engine(self) -> EscrowStateMachine:
        storage = Storage()
        if self.state_path.exists():
            storage.reset(state_from_json(json.loads(self.state_path.read_text())))
            logger.debug(f"Loaded state from {self.state_path}")
        return EscrowStateMachine(storage, settings=EngineSettings.from_env())

    def save(self, engine: EscrowStateMachine) -> None:
        self.state_path.write_text(json.dumps(state_to_json(engine.storage.state), indent=2))
        logger.debug(f"Saved state to {self.state_path}")

    def emit(self, data: Any) -> None:
        if self.fmt == "yaml":
            click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)
        else:
            click.echo(json.dumps(data, indent=2))

    def fail(self, error: EscrowError) -> None:
        self.emit({"success": False, "error": error_to_json(error)})
        raise click.exceptions.Exit(1)


def _execute(session: Session, sender: str, now: Optional[int], funds: str, msg: Any) -> None:
    engine = session.engine()
    try:
        coins = parse_coins(funds)
    except EscrowError as exc:
        session.fail(exc)
    ctx = CallContext(sender=sender, now=now if now is not None else int(time.time()), funds=coins)
    result = engine.execute(ctx, msg)
    if not result.ok:
        session.fail(result.error)
    session.save(engine)
    session.emit({"success": True, "response": response_to_json(result.response)})


def _query(session: Session, fn: Any, *args: Any) -> None:
    engine = session.engine()
    try:
        view = fn(engine, *args)
    except EscrowError as exc:
        session.fail(exc)
    session.emit({"success": True, "result": view_to_json(view)})


def call_options(fn: Any) -> Any:
    fn = click.option("--funds", default="", help="Attached coins, e.g. 1000native,5uatom")(fn)
    fn = click.option("--now", type=int, default=None, help="Override the current UNIX time")(fn)
    fn = click.option("--sender", required=True, help="Calling account")(fn)
    return fn


@click.group()
@click.option(
    "--state",
    "state_path",
    envvar="HTLC_STATE",
    default="htlc_state.json",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON state file",
)
@click.option("--format", "fmt", type=click.Choice(["json", "yaml"]), default="json")
@click.option("--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, state_path: Path, fmt: str, verbose: bool) -> None:
    """Hashlock/timelock escrow engine."""
    # stdout carries results only; diagnostics go to stderr
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    ctx.obj = Session(state_path, fmt)


@cli.command()
@call_options
@click.option("--admin", default=None, help="Admin account (defaults to sender)")
@click.pass_obj
def init(session: Session, sender: str, now: Optional[int], funds: str, admin: Optional[str]) -> None:
    """Instantiate the engine with default configuration."""
    _execute(session, sender, now, funds, Instantiate(admin=admin))


@cli.command()
@call_options
@click.option("--recipient", required=True)
@click.option("--hashlock", required=True, help="Hex digest of the secret")
@click.option("--timelock", type=int, required=True, help="Absolute expiry (UNIX seconds)")
@click.option("--token", default="native", show_default=True)
@click.option("--amount", type=int, required=True)
@click.pass_obj
def create(
    session: Session,
    sender: str,
    now: Optional[int],
    funds: str,
    recipient: str,
    hashlock: str,
    timelock: int,
    token: str,
    amount: int,
) -> None:
    """Lock funds under a hashlock and timelock."""
    msg = CreateEscrow(
        recipient=recipient, hashlock=hashlock, timelock=timelock, token=token, amount=amount
    )
    _execute(session, sender, now, funds, msg)


@cli.command("create-batch")
@call_options
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def create_batch(
    session: Session, sender: str, now: Optional[int], funds: str, items_file: Path
) -> None:
    """Create several escrows from a JSON list of items, all or nothing."""
    data = json.loads(items_file.read_text())
    if isinstance(data, dict):
        data = data.get("escrows", [])
    items = [
        EscrowInput(
            recipient=item["recipient"],
            hashlock=item["hashlock"],
            timelock=int(item["timelock"]),
            token=item.get("token", "native"),
            amount=int(item["amount"]),
        )
        for item in data
    ]
    _execute(session, sender, now, funds, CreateBatchEscrows(escrows=items))


@cli.command()
@call_options
@click.option("--hashlock", required=True)
@click.option("--secret", required=True, help="Preimage text")
@click.pass_obj
def claim(
    session: Session, sender: str, now: Optional[int], funds: str, hashlock: str, secret: str
) -> None:
    """Claim an escrow by revealing its secret."""
    _execute(session, sender, now, funds, Claim(hashlock=hashlock, secret=secret))


cli.add_command(claim, name="redeem")


@cli.command()
@call_options
@click.option("--hashlock", required=True)
@click.pass_obj
def refund(session: Session, sender: str, now: Optional[int], funds: str, hashlock: str) -> None:
    """Return an expired escrow to its creator."""
    _execute(session, sender, now, funds, Refund(hashlock=hashlock))


@cli.command("update-config")
@call_options
@click.option("--claim-fee", type=int, default=None)
@click.option("--refund-fee", type=int, default=None)
@click.option("--max-batch-size", type=int, default=None)
@click.option("--paused/--unpaused", default=None)
@click.pass_obj
def update_config(
    session: Session,
    sender: str,
    now: Optional[int],
    funds: str,
    claim_fee: Optional[int],
    refund_fee: Optional[int],
    max_batch_size: Optional[int],
    paused: Optional[bool],
) -> None:
    """Update fees, batch limit or pause switch (admin only)."""
    msg = UpdateConfig(
        claim_fee=claim_fee, refund_fee=refund_fee, max_batch_size=max_batch_size, paused=paused
    )
    _execute(session, sender, now, funds, msg)


@cli.group()
def query() -> None:
    """Read-only queries."""


@query.command("escrow")
@click.argument("hashlock")
@click.pass_obj
def query_escrow(session: Session, hashlock: str) -> None:
    _query(session, EscrowStateMachine.get_escrow, hashlock)


@query.command("batch")
@click.argument("hashlocks", nargs=-1)
@click.pass_obj
def query_batch(session: Session, hashlocks: tuple) -> None:
    _query(session, EscrowStateMachine.get_batch_escrows, list(hashlocks))


@query.command("by-account")
@click.argument("account")
@click.option("--role", type=click.Choice(["creator", "recipient"]), default="creator")
@click.pass_obj
def query_by_account(session: Session, account: str, role: str) -> None:
    _query(session, EscrowStateMachine.get_escrows_by_account, account, Role(role))


@query.command("user")
@click.argument("account")
@click.pass_obj
def query_user(session: Session, account: str) -> None:
    _query(session, EscrowStateMachine.get_user_escrows, account)


@query.command("config")
@click.pass_obj
def query_config(session: Session) -> None:
    _query(session, EscrowStateMachine.get_config)


@query.command("admin")
@click.pass_obj
def query_admin(session: Session) -> None:
    _query(session, EscrowStateMachine.get_admin)


_ALGORITHMS = click.Choice([a.value for a in DigestAlgorithm])


@cli.command()
@click.argument("secret")
@click.option("--algorithm", type=_ALGORITHMS, default=DigestAlgorithm.SHA256.value)
@click.pass_obj
def hashlock(session: Session, secret: str, algorithm: str) -> None:
    """Print the hashlock committing to SECRET."""
    session.emit({"hashlock": hashlock_for(secret, DigestAlgorithm(algorithm))})


@cli.command("new-secret")
@click.option("--algorithm", type=_ALGORITHMS, default=DigestAlgorithm.SHA256.value)
@click.pass_obj
def new_secret(session: Session, algorithm: str) -> None:
    """Generate a random secret and its hashlock."""
    secret, lock = generate_secret(DigestAlgorithm(algorithm))
    session.emit({"secret": secret, "hashlock": lock})


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
