"""
GuardLedger Exception Hierarchy

All exceptions inherit from GuardedLedgerError for easy catching.

Ledger errors (raised by GuardedLedger operations, captured by the host
into a reverted Receipt):
    UnauthorizedError, PausedError, NotPausedError,
    InvalidAddressError, TransferFailedError

Host errors (raised by ExecutionHost before or around execution):
    AuthenticationError, NonceError, UnknownOperationError,
    UnknownLedgerError, InsufficientFundsError
"""


class GuardedLedgerError(Exception):
    """Base exception for all GuardLedger errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class UnauthorizedError(GuardedLedgerError):
    """Raised when a non-owner invokes an owner-gated operation"""
    pass


class PausedError(GuardedLedgerError):
    """Raised when a pause-sensitive operation runs while paused"""
    pass


class NotPausedError(GuardedLedgerError):
    """Raised when unpausing a ledger that is not paused"""
    pass


class InvalidAddressError(GuardedLedgerError):
    """Raised for the zero address or a malformed address"""
    pass


class TransferFailedError(GuardedLedgerError):
    """Raised when a native-currency transfer does not go through"""
    pass


class HostError(GuardedLedgerError):
    """Raised when the execution host rejects a call"""
    pass


class AuthenticationError(HostError):
    """Raised when a transaction signature does not verify"""
    pass


class NonceError(HostError):
    """Raised when a transaction nonce is stale or out of order (replay)"""
    pass


class UnknownOperationError(HostError):
    """Raised when a transaction names an operation the ledger does not expose"""
    pass


class UnknownLedgerError(HostError):
    """Raised when a transaction targets an address with no ledger"""
    pass


class InsufficientFundsError(HostError):
    """Raised when a sender cannot cover a transfer"""
    pass


class EventLogError(GuardedLedgerError):
    """Raised when event log operations fail"""
    pass


class ConfigError(GuardedLedgerError):
    """Raised when host configuration is invalid"""
    pass
