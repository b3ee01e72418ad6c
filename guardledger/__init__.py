"""
guardledger/__init__.py

GuardLedger: an owner-gated, pausable record with funds custody,
run on an atomic, signature-authenticated execution host.
"""

__version__ = "0.1.0"

from guardledger.core.exceptions import (
    GuardedLedgerError,
    UnauthorizedError,
    PausedError,
    NotPausedError,
    InvalidAddressError,
    TransferFailedError,
    HostError,
)
from guardledger.core.models import (
    DEFAULT_MESSAGE,
    ZERO_ADDRESS,
    EventType,
    LedgerInfo,
    LedgerState,
    Receipt,
)
from guardledger.core.events import EventLog, verify_event_log
from guardledger.core.crypto import Ed25519KeyManager
from guardledger.ledger import GuardedLedger
from guardledger.runtime import Account, ExecutionHost, HostConfig

__all__ = [
    # Core types
    "GuardedLedger",
    "LedgerState",
    "LedgerInfo",
    "EventType",
    "Receipt",
    "EventLog",
    "Ed25519KeyManager",
    # Runtime
    "ExecutionHost",
    "Account",
    "HostConfig",
    # Errors
    "GuardedLedgerError",
    "UnauthorizedError",
    "PausedError",
    "NotPausedError",
    "InvalidAddressError",
    "TransferFailedError",
    "HostError",
    # Helpers
    "verify_event_log",
    # Constants
    "DEFAULT_MESSAGE",
    "ZERO_ADDRESS",
]
