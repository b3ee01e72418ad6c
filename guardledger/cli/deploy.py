"""
guardledger/cli/deploy.py

guardledger deploy — instantiate a GuardedLedger and record the deployment.

Writes <out>/guarded-ledger-deployment.json:

    {
      "contract_name":   "GuardedLedger",
      "ledger_address":  "0x…",
      "tx_id":           "0x…",
      "deployer":        "0x…",
      "host_id":         "local-host",
      "host_public_key": "…",
      "deployment_time": "YYYY-MM-DDTHH:MM:SS.mmmZ",
      "initial_state":   {owner, message, counter, paused, balance}
    }
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from guardledger.cli.output import _Color, banner, echo_error, row_fail, row_info, row_ok
from guardledger.core.exceptions import GuardedLedgerError
from guardledger.core.models import format_amount
from guardledger.core.time import event_timestamp
from guardledger.runtime.config import HostConfig
from guardledger.runtime.host import ExecutionHost


logger = logging.getLogger(__name__)

DEPLOYMENT_FILENAME = "guarded-ledger-deployment.json"
DEPLOYER_LABEL = "deployer"


def deploy_ledger(
    host:    ExecutionHost,
    message: str,
) -> Dict[str, Any]:
    """
    Deploy one ledger from the 'deployer' account (created if the config
    has none) and return the deployment record.
    Raises GuardedLedgerError if the deployment reverts.
    """
    try:
        deployer = host.account(DEPLOYER_LABEL)
    except KeyError:
        deployer = host.create_account(label=DEPLOYER_LABEL)

    receipt = host.deploy(deployer, initial_message=message).raise_for_error()
    address = receipt.result
    info = host.view(address, "get_info")

    if info.owner != deployer.address:
        raise GuardedLedgerError(
            "Deployed ledger has unexpected owner",
            {"expected": deployer.address, "got": info.owner},
        )

    return {
        "contract_name":    "GuardedLedger",
        "ledger_address":   address,
        "tx_id":            receipt.tx_id,
        "deployer":         deployer.address,
        "deployer_balance": format_amount(host.balance_of(deployer.address)),
        "host_id":          host.host_id,
        "host_public_key":  host.key_manager.public_key_hex,
        "deployment_time":  event_timestamp(),
        "initial_state":    info.to_dict(),
    }


def write_deployment(record: Dict[str, Any], out_dir: Path) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / DEPLOYMENT_FILENAME
    path.write_text(json.dumps(record, indent=2) + "\n", encoding="utf-8")
    logger.info("deployment record written to %s", path)
    return path


@click.command(name="deploy")
@click.option(
    "--config", "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Host configuration YAML.",
)
@click.option(
    "--out", "out_dir",
    type=click.Path(file_okay=False),
    default="deployments",
    show_default=True,
    help="Directory for the deployment record.",
)
@click.option(
    "--message",
    type=str,
    default=None,
    help="Initial message (overrides the configured one).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def deploy_command(
    config_path: Optional[str],
    out_dir:     str,
    message:     Optional[str],
    no_color:    bool,
) -> None:
    """
    Deploy a GuardedLedger and save the deployment record.

    \b
    Examples:
      guardledger deploy
      guardledger deploy --config host.yaml --out deployments/
    """
    _Color.configure(not no_color)

    try:
        config = HostConfig.load(Path(config_path) if config_path else None)
        host = ExecutionHost.from_config(config)
        record = deploy_ledger(host, message or config.initial_message)
        path = write_deployment(record, Path(out_dir))
    except (GuardedLedgerError, OSError, ValueError) as e:
        echo_error(str(e))
        sys.exit(2)

    banner("GuardLedger  ·  Deployment")
    click.echo(row_ok("Deployed", record["ledger_address"]))
    click.echo(row_info("Transaction", record["tx_id"]))
    click.echo(row_info("Deployer", record["deployer"]))
    click.echo()

    state = record["initial_state"]
    expected = {
        "owner":   record["deployer"],
        "message": message or config.initial_message,
        "counter": 0,
        "paused":  False,
        "balance": 0,
    }
    for key, want in expected.items():
        row = row_ok if state[key] == want else row_fail
        click.echo(row(key.capitalize(), str(state[key])))

    click.echo()
    click.echo(row_info("Record", str(path)))
    click.echo()
