"""
GuardLedger Runtime - the execution host around GuardedLedger.

The host is the single entry point for state changes: every mutation
arrives as a signed transaction and either commits in full or not at all.
"""

from guardledger.runtime.accounts import Account
from guardledger.runtime.config import HostConfig
from guardledger.runtime.context import CallContext
from guardledger.runtime.host import ExecutionHost

__all__ = [
    "Account",
    "CallContext",
    "ExecutionHost",
    "HostConfig",
]
