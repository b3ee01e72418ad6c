"""
GuardedLedger — the owner-gated state machine.

Holds one LedgerState and exposes:
    mutators  (run inside a host transaction, receive a CallContext)
    views     (pure reads, no context, no guard)
    receive_funds (credit hook the host calls on every inbound transfer)

Every mutator checks all of its guards before touching state. Anything
that can fail after a mutation (the transfer in emergency_withdraw) is
covered by the host's per-call rollback.
"""

import logging
from typing import Optional

from guardledger.core.exceptions import InvalidAddressError
from guardledger.core.guards import (
    GuardResult,
    require_not_paused,
    require_owner,
    require_paused,
    require_valid_address,
)
from guardledger.core.models import (
    DEFAULT_MESSAGE,
    PUBLIC_MESSAGE,
    ZERO_ADDRESS,
    EventType,
    LedgerInfo,
    LedgerState,
    normalize_address,
)


logger = logging.getLogger(__name__)


class GuardedLedger:
    """
    Single-owner guarded record with a global pause gate and funds custody.

    Pause-sensitive: update_message, increment_counter.
    Pause-exempt:    reset_counter, ownership operations, pause toggles,
                     emergency_withdraw.
    """

    MUTATORS = frozenset({
        "update_message",
        "increment_counter",
        "reset_counter",
        "pause_contract",
        "unpause_contract",
        "transfer_ownership",
        "renounce_ownership",
        "emergency_withdraw",
    })

    VIEWS = frozenset({
        "public_function",
        "get_info",
        "is_owner",
    })

    def __init__(self, creator: str, message: str = DEFAULT_MESSAGE):
        self.state = LedgerState.initial(creator, message)

    # ── Guard composition ─────────────────────────────────────

    def _enforce(self, *results: GuardResult) -> None:
        """Raise the error of the first failed guard."""
        for result in results:
            if not result:
                logger.debug("guard %s failed: %s", result.guard, result.error)
                raise result.error

    # ── Mutators ──────────────────────────────────────────────

    def update_message(self, ctx, text: str) -> None:
        self._enforce(
            require_owner(self.state, ctx.caller),
            require_not_paused(self.state),
        )
        self.state.message = str(text)
        ctx.emit(EventType.MESSAGE_UPDATED, {"message": self.state.message})

    def increment_counter(self, ctx) -> int:
        self._enforce(
            require_owner(self.state, ctx.caller),
            require_not_paused(self.state),
        )
        self.state.counter += 1
        ctx.emit(EventType.COUNTER_CHANGED, {"counter": self.state.counter})
        return self.state.counter

    def reset_counter(self, ctx) -> int:
        self._enforce(require_owner(self.state, ctx.caller))
        self.state.counter = 0
        ctx.emit(EventType.COUNTER_CHANGED, {"counter": 0})
        return 0

    def pause_contract(self, ctx) -> None:
        self._enforce(
            require_owner(self.state, ctx.caller),
            require_not_paused(self.state),
        )
        self.state.paused = True
        ctx.emit(EventType.PAUSED, {"account": ctx.caller})

    def unpause_contract(self, ctx) -> None:
        self._enforce(
            require_owner(self.state, ctx.caller),
            require_paused(self.state),
        )
        self.state.paused = False
        ctx.emit(EventType.UNPAUSED, {"account": ctx.caller})

    def transfer_ownership(self, ctx, new_owner: str) -> None:
        self._enforce(
            require_owner(self.state, ctx.caller),
            require_valid_address(new_owner),
        )
        self._set_owner(ctx, normalize_address(new_owner))

    def renounce_ownership(self, ctx) -> None:
        """Irreversible: no owner-gated operation can succeed afterwards."""
        self._enforce(require_owner(self.state, ctx.caller))
        self._set_owner(ctx, ZERO_ADDRESS)

    def emergency_withdraw(self, ctx) -> int:
        """
        Send the entire balance to the owner.

        Effects before interactions: balance is zeroed before ctx.transfer
        runs, so a re-entrant withdrawal from the recipient sees nothing
        left to take. A failed transfer raises TransferFailedError and the
        host restores the balance.
        """
        self._enforce(require_owner(self.state, ctx.caller))

        recipient = self.state.owner
        amount = self.state.balance
        self.state.balance = 0

        ctx.transfer(recipient, amount)

        ctx.emit(EventType.EMERGENCY_WITHDRAWAL, {"to": recipient, "amount": amount})
        logger.info("emergency withdrawal of %d to %s", amount, recipient)
        return amount

    def _set_owner(self, ctx, new_owner: str) -> None:
        previous = self.state.owner
        self.state.owner = new_owner
        ctx.emit(
            EventType.OWNERSHIP_TRANSFERRED,
            {"previous_owner": previous, "new_owner": new_owner},
        )

    # ── Inbound funds ─────────────────────────────────────────

    def receive_funds(self, ctx, amount: int, data: bytes = b"") -> None:
        """Credit an inbound transfer, with or without accompanying data."""
        if not isinstance(amount, int) or amount < 0:
            raise ValueError(f"amount must be non-negative int, got {amount!r}")
        self.state.balance += amount

    # ── Views ─────────────────────────────────────────────────

    def public_function(self) -> str:
        return PUBLIC_MESSAGE

    def get_info(self) -> LedgerInfo:
        return self.state.snapshot()

    def is_owner(self, address: Optional[str]) -> bool:
        try:
            return normalize_address(address) == self.state.owner
        except InvalidAddressError:
            return False

    def __repr__(self) -> str:
        return (
            f"GuardedLedger(owner={self.state.owner!r}, "
            f"counter={self.state.counter}, paused={self.state.paused}, "
            f"balance={self.state.balance})"
        )
