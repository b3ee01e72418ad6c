"""
guardledger/cli/verify.py

guardledger verify — event log verification
============================================

Usage:
    guardledger verify <events>                     Human output (default)
    guardledger verify <events> --format json       Machine-readable JSON
    guardledger verify <events> --signer <hex>      Require a specific host key
    guardledger verify <events> --quiet             Exit code only

EVENTS is an events.jsonl file or the directory holding one.

Exit codes:
    0  Log fully valid  (schema + sequence + chain + signatures)
    1  Log has violations
    2  Error  (file missing, malformed JSON)
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from guardledger.cli.output import (
    BAR_LIGHT,
    _Color,
    banner,
    echo_error,
    row_fail,
    row_info,
    row_ok,
)
from guardledger.core.events import EventLogVerification, verify_event_log
from guardledger.core.exceptions import EventLogError


@click.command(name="verify")
@click.argument("events", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default) or json (CI/automation).",
)
@click.option(
    "--signer",
    type=str,
    default=None,
    metavar="PUBKEY_HEX",
    help="Treat events signed by any other host key as violations.",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def verify_command(
    events:   str,
    fmt:      str,
    signer:   Optional[str],
    quiet:    bool,
    no_color: bool,
) -> None:
    """
    Verify a GuardLedger event log: sequence, hash chain, signatures.

    \b
    Examples:
      guardledger verify .guardledger/events
      guardledger verify events.jsonl --format json
      guardledger verify events.jsonl --quiet && echo "clean"
    """
    _Color.configure(not no_color)
    path = Path(events)

    try:
        result = verify_event_log(path, expected_signer=signer)
    except EventLogError as e:
        if not quiet:
            if fmt == "json":
                click.echo(json.dumps({"error": str(e), "valid": False}))
            else:
                echo_error(str(e))
        sys.exit(2)

    if quiet:
        sys.exit(0 if result.valid else 1)

    if fmt == "json":
        out = result.to_dict()
        out["events"] = str(path)
        click.echo(json.dumps(out, indent=2))
    else:
        _output_human(result, path)

    sys.exit(0 if result.valid else 1)


def _output_human(result: EventLogVerification, path: Path) -> None:
    banner("GuardLedger  ·  Event Log Verification")

    click.echo(row_info("Events file", str(path)))
    click.echo(row_info("Events", f"{result.total_events:,}"))
    click.echo()

    if result.invalid_signatures == 0:
        click.echo(row_ok("Signatures", f"{result.valid_signatures:,} valid"))
    else:
        click.echo(row_fail("Signatures", f"{result.invalid_signatures:,} invalid"))

    if result.valid:
        click.echo(row_ok("Chain", "intact"))
    else:
        click.echo(row_fail("Chain", f"{len(result.violations)} violation(s)"))

    click.echo(row_info("Head hash", result.head_hash))
    if result.by_type:
        counts = "  ".join(
            f"{_Color.cyan(k)}: {v:,}" for k, v in sorted(result.by_type.items())
        )
        click.echo(row_info("Event types", counts))
    click.echo()

    if result.violations:
        click.echo(f"  {BAR_LIGHT}")
        for violation in result.violations:
            click.echo(f"  {_Color.yellow(violation)}")
        click.echo(f"  {BAR_LIGHT}")
        click.echo()

    if result.valid:
        click.echo(_Color.green(_Color.bold("  ✅  VALID  ·  0 violations")))
    else:
        click.echo(_Color.red(_Color.bold(
            f"  ❌  INVALID  ·  {len(result.violations)} violation(s)"
        )))
    click.echo()
