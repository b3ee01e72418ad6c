"""
guardledger/cli/__init__.py

GuardLedger CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    guardledger = "guardledger.cli:cli"

Adding a new command:
    1. Create guardledger/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from guardledger.cli.demo import demo_command
from guardledger.cli.deploy import deploy_command
from guardledger.cli.verify import verify_command


@click.group()
@click.version_option(package_name="guardledger")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log host activity.")
def cli(verbose: bool) -> None:
    """
    GuardLedger — owner-gated ledger on an atomic execution host.

    \b
    Commands:
      deploy    Deploy a ledger and write a deployment record.
      demo      Walk through every ledger operation.
      verify    Verify an event log — sequence, chain, signatures.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(deploy_command)
cli.add_command(demo_command)
cli.add_command(verify_command)
