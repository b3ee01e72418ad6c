"""
Externally owned accounts known to an ExecutionHost.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from guardledger.core.crypto import Ed25519KeyManager
from guardledger.core.models import Transaction

if TYPE_CHECKING:
    from guardledger.runtime.host import ExecutionHost


# on_receive(host, sender_address, amount), run inside the transfer.
ReceiveHook = Callable[["ExecutionHost", str, int], None]


@dataclass
class Account:
    """
    A key pair plus an optional receive hook.

    Balances and nonces live in the host, not here. The hook models an
    account with code: it runs whenever currency arrives and may submit
    further transactions. If it raises, the transfer fails.
    """

    key_manager: Ed25519KeyManager = field(repr=False)
    label:       Optional[str] = None
    on_receive:  Optional[ReceiveHook] = field(default=None, repr=False)

    @classmethod
    def generate(
        cls,
        label:      Optional[str] = None,
        on_receive: Optional[ReceiveHook] = None,
    ) -> "Account":
        return cls(Ed25519KeyManager.generate(), label=label, on_receive=on_receive)

    @property
    def address(self) -> str:
        return self.key_manager.address

    @property
    def public_key_hex(self) -> str:
        return self.key_manager.public_key_hex

    def sign(self, tx: Transaction) -> Transaction:
        return tx.sign(self.key_manager)

    def __str__(self) -> str:
        if self.label:
            return f"{self.label} ({self.address})"
        return self.address
