"""
guardledger/cli/demo.py

guardledger demo — scripted walkthrough of every ledger operation.

Each step states whether it should succeed. The command exits 0 only if
every step behaved as expected.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import click

from guardledger.cli.output import _Color, banner, echo_error, row_fail, row_info, row_ok
from guardledger.core.exceptions import GuardedLedgerError, PausedError, UnauthorizedError
from guardledger.core.models import Receipt, format_amount, to_base_units
from guardledger.core.time import event_timestamp
from guardledger.runtime.config import HostConfig
from guardledger.runtime.host import ExecutionHost


logger = logging.getLogger(__name__)


@dataclass
class DemoStep:
    title:    str
    receipt:  Receipt
    expected: Optional[type] = None   # error type the step should revert with

    @property
    def as_expected(self) -> bool:
        if self.expected is None:
            return self.receipt.succeeded
        return isinstance(self.receipt.error, self.expected)

    @property
    def detail(self) -> str:
        if not self.receipt.succeeded:
            return f"reverted: {type(self.receipt.error).__name__}"
        if self.receipt.result is None:
            return "committed"
        return f"committed → {self.receipt.result}"


def run_demo(host: ExecutionHost, deposit: int) -> List[DemoStep]:
    """Deploy a ledger and drive it through every operation."""
    try:
        owner = host.account("deployer")
    except KeyError:
        owner = host.create_account(label="deployer")
    if host.balance_of(owner.address) < deposit:
        host.fund(owner.address, deposit - host.balance_of(owner.address))
    visitor = host.create_account(label="visitor")

    steps: List[DemoStep] = []
    deployed = host.deploy(owner).raise_for_error()
    ledger = deployed.result
    steps.append(DemoStep("Deploy ledger", deployed))

    def step(title, account, operation, *args, expected=None):
        steps.append(DemoStep(title, host.call(account, ledger, operation, *args), expected))

    step("Visitor increments counter", visitor, "increment_counter",
         expected=UnauthorizedError)
    step("Update message", owner, "update_message", f"Updated at {event_timestamp()}")
    step("Increment counter", owner, "increment_counter")
    step("Pause", owner, "pause_contract")
    step("Update message while paused", owner, "update_message", "This should fail",
         expected=PausedError)
    step("Unpause", owner, "unpause_contract")
    step("Reset counter", owner, "reset_counter")
    steps.append(DemoStep("Deposit", host.send(owner, ledger, deposit)))
    step("Emergency withdraw", owner, "emergency_withdraw")
    return steps


@click.command(name="demo")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Host configuration YAML.",
)
@click.option(
    "--events", "events_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Persist the event log to this directory.",
)
@click.option(
    "--deposit",
    type=str,
    default="0.01",
    show_default=True,
    help="Coins to deposit before the emergency withdrawal.",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def demo_command(
    config_path: Optional[str],
    events_dir:  Optional[str],
    deposit:     str,
    no_color:    bool,
) -> None:
    """
    Walk through every GuardedLedger operation on a fresh host.

    \b
    Examples:
      guardledger demo
      guardledger demo --events .guardledger/events --deposit 1.5
    """
    _Color.configure(not no_color)

    try:
        amount = to_base_units(deposit)
        config = HostConfig.load(Path(config_path) if config_path else None)
        if events_dir:
            config.event_log_path = Path(events_dir)
        host = ExecutionHost.from_config(config)
        steps = run_demo(host, amount)
    except (GuardedLedgerError, OSError, ValueError) as e:
        echo_error(str(e))
        sys.exit(2)

    banner("GuardLedger  ·  Demo")
    for s in steps:
        row = row_ok if s.as_expected else row_fail
        click.echo(row(s.title, s.detail))

    ledger = steps[0].receipt.result
    info = host.view(ledger, "get_info")
    click.echo()
    click.echo(row_info("Ledger", ledger))
    click.echo(row_info("Owner", info.owner))
    click.echo(row_info("Message", info.message))
    click.echo(row_info("Counter", str(info.counter)))
    click.echo(row_info("Paused", str(info.paused)))
    click.echo(row_info("Balance", format_amount(info.balance)))
    click.echo(row_info("Events", str(len(host.event_log))))
    if host.event_log.path:
        click.echo(row_info("Events file", str(host.event_log.path)))
    click.echo()

    failed = [s for s in steps if not s.as_expected]
    if failed:
        click.echo(_Color.red(_Color.bold(f"  ❌  {len(failed)} step(s) misbehaved")))
        sys.exit(1)
    click.echo(_Color.green(_Color.bold("  ✅  All steps behaved as expected")))
    click.echo()
