"""
GuardLedger core - the owner-gated state machine.

The ledger owns its state and knows nothing about the host beyond the
CallContext handed to each mutator.
"""

from guardledger.ledger.ledger import GuardedLedger

__all__ = ["GuardedLedger"]
