"""
Guard predicates for GuardedLedger operations.

Each guard is a pure function over the ledger state (and the call's
arguments) returning a GuardResult. Guards never mutate and never raise;
GuardedLedger decides when a failed result aborts an operation.

Check order inside an operation: owner → pause state → arguments.
"""

from dataclasses import dataclass
from typing import Optional

from guardledger.core.exceptions import (
    GuardedLedgerError,
    InvalidAddressError,
    NotPausedError,
    PausedError,
    UnauthorizedError,
)
from guardledger.core.models import (
    ZERO_ADDRESS,
    LedgerState,
    is_zero_address,
    normalize_address,
)


@dataclass(frozen=True)
class GuardResult:
    """Outcome of one guard. bool(result) is True iff the guard passed."""
    guard: str
    error: Optional[GuardedLedgerError] = None

    def __bool__(self) -> bool:
        return self.error is None

    @classmethod
    def passed(cls, guard: str) -> "GuardResult":
        return cls(guard=guard)

    @classmethod
    def failed(cls, guard: str, error: GuardedLedgerError) -> "GuardResult":
        return cls(guard=guard, error=error)


def require_owner(state: LedgerState, caller: str) -> GuardResult:
    # After renouncement owner is the zero address, which no caller can be.
    if is_zero_address(state.owner) or caller != state.owner:
        return GuardResult.failed(
            "owner",
            UnauthorizedError(
                "Caller is not the owner",
                {"caller": caller, "owner": state.owner},
            ),
        )
    return GuardResult.passed("owner")


def require_not_paused(state: LedgerState) -> GuardResult:
    if state.paused:
        return GuardResult.failed("not_paused", PausedError("Ledger is paused"))
    return GuardResult.passed("not_paused")


def require_paused(state: LedgerState) -> GuardResult:
    if not state.paused:
        return GuardResult.failed("paused", NotPausedError("Ledger is not paused"))
    return GuardResult.passed("paused")


def require_valid_address(address) -> GuardResult:
    """Passes for any well-formed address other than the zero address."""
    try:
        normalized = normalize_address(address)
    except InvalidAddressError as exc:
        return GuardResult.failed("valid_address", exc)
    if normalized == ZERO_ADDRESS:
        return GuardResult.failed(
            "valid_address",
            InvalidAddressError("Zero address is not a valid owner"),
        )
    return GuardResult.passed("valid_address")
