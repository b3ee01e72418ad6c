"""
Per-call context handed by the host to every ledger mutator.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from guardledger.runtime.host import ExecutionHost


@dataclass
class CallContext:
    """
    What a ledger operation may know about, and do to, the outside world.

    caller          authenticated address of the transaction sender
    ledger_address  address of the ledger being executed
    tx_id           id of the enclosing transaction
    depth           1 for a top-level call, >1 for re-entrant calls
    """

    caller:         str
    ledger_address: str
    tx_id:          str
    depth:          int
    _host:          "ExecutionHost" = field(repr=False)

    def transfer(self, to: str, amount: int) -> None:
        """
        Move native currency from this ledger to `to`.

        The recipient's receive hook runs before this returns and may call
        back into the host. Raises TransferFailedError on any failure.
        """
        self._host._transfer_out(self.ledger_address, to, amount)

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Queue a notification; it is logged only if the transaction commits."""
        self._host._queue_event(event_type, self.ledger_address, payload)

    def __repr__(self) -> str:
        return (
            f"CallContext(caller={self.caller!r}, "
            f"ledger={self.ledger_address!r}, depth={self.depth})"
        )
