"""
Execution Host — the transactional runtime around GuardedLedger.

Provides what the ledger assumes but does not implement:
    1. authenticated caller identity   (Ed25519-signed transactions)
    2. all-or-nothing execution        (per-frame snapshot and rollback)
    3. native currency                 (balances, transfers, receive hooks)
    4. a notification sink             (EventLog, committed per transaction)

Execution of one transaction:
    1. Verify signature        → AuthenticationError (nothing recorded)
    2. Check and consume nonce → NonceError
    3. Resolve target          → UnknownLedgerError / UnknownOperationError
    4. Snapshot ledger states, balances, nonces, accounts and the
       pending-event mark
    5. Run the body
         GuardedLedgerError → restore snapshot, return a reverted Receipt
         any other error    → restore snapshot, re-raise
    6. Outermost frame only: commit pending events to the EventLog

Calls made from inside a receive hook run as nested frames on the same
thread (the lock is re-entrant). A nested frame that fails rolls back only
its own effects; its caller sees a reverted Receipt. The nonce consumed in
step 2 is taken before the snapshot, so it stays consumed if that frame
reverts, but nonces consumed by nested calls roll back with their caller.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from guardledger.core.crypto import Ed25519KeyManager
from guardledger.core.events import EventLog, PendingEvent
from guardledger.core.exceptions import (
    AuthenticationError,
    EventLogError,
    GuardedLedgerError,
    InsufficientFundsError,
    NonceError,
    TransferFailedError,
    UnknownLedgerError,
    UnknownOperationError,
)
from guardledger.core.models import (
    DEFAULT_MESSAGE,
    LedgerState,
    Operation,
    Receipt,
    ReceiptStatus,
    Transaction,
    derive_ledger_address,
    normalize_address,
)
from guardledger.ledger.ledger import GuardedLedger
from guardledger.runtime.accounts import Account, ReceiveHook
from guardledger.runtime.config import HostConfig
from guardledger.runtime.context import CallContext


logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """Everything needed to undo one call frame."""
    states:        Dict[str, LedgerState]
    balances:      Dict[str, int]
    nonces:        Dict[str, int]
    accounts:      Dict[str, Account]
    labels:        Dict[str, str]
    pending_mark:  int


class ExecutionHost:
    """
    In-process execution host. One instance serializes every transaction
    against every ledger it holds.
    """

    def __init__(
        self,
        key_manager: Optional[Ed25519KeyManager] = None,
        event_log:   Optional[EventLog] = None,
        host_id:     str = "local-host",
    ) -> None:
        self.host_id     = host_id
        self.key_manager = key_manager or Ed25519KeyManager.generate()
        self.event_log   = event_log if event_log is not None else EventLog(self.key_manager)

        self._lock:     threading.RLock          = threading.RLock()
        self._accounts: Dict[str, Account]       = {}
        self._labels:   Dict[str, str]           = {}
        self._balances: Dict[str, int]           = {}
        self._nonces:   Dict[str, int]           = {}
        self._ledgers:  Dict[str, GuardedLedger] = {}
        self._pending:  List[PendingEvent]       = []
        self._depth:    int                      = 0

    @classmethod
    def from_config(cls, config: HostConfig) -> "ExecutionHost":
        """
        Build a host from configuration: load or generate (and save) the
        host key, open the event log, create and fund configured accounts.
        """
        key_path = config.key_path()
        if key_path and key_path.exists():
            key_manager = Ed25519KeyManager.from_file(key_path)
        else:
            key_manager = Ed25519KeyManager.generate()
            if key_path:
                key_manager.save(key_path)

        event_log = EventLog(
            key_manager,
            directory=str(config.event_log_path) if config.event_log_path else None,
        )
        host = cls(key_manager=key_manager, event_log=event_log, host_id=config.host_id)

        for label, balance in config.accounts.items():
            host.create_account(balance=balance, label=label)

        logger.info(
            "host %s ready with %d account(s)", config.host_id, len(config.accounts)
        )
        return host

    # ── Accounts & balances ───────────────────────────────────

    def create_account(
        self,
        balance:     int = 0,
        key_manager: Optional[Ed25519KeyManager] = None,
        on_receive:  Optional[ReceiveHook] = None,
        label:       Optional[str] = None,
    ) -> Account:
        account = Account(
            key_manager or Ed25519KeyManager.generate(),
            label=label,
            on_receive=on_receive,
        )
        with self._lock:
            self._accounts[account.address] = account
            if label:
                self._labels[label] = account.address
            self._nonces.setdefault(account.address, 0)
            self._balances.setdefault(account.address, 0)
            if balance:
                self.fund(account.address, balance)
        return account

    def fund(self, address: str, amount: int) -> None:
        """Credit native currency out of thin air. Setup only; not a transaction."""
        if not isinstance(amount, int) or amount < 0:
            raise ValueError(f"amount must be non-negative int, got {amount!r}")
        address = normalize_address(address)
        with self._lock:
            self._balances[address] = self._balances.get(address, 0) + amount

    def account(self, address_or_label: str) -> Account:
        with self._lock:
            address = self._labels.get(address_or_label, address_or_label)
            try:
                return self._accounts[address]
            except KeyError:
                raise KeyError(f"Unknown account: {address_or_label}") from None

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(normalize_address(address), 0)

    def nonce_of(self, address: str) -> int:
        with self._lock:
            return self._nonces.get(normalize_address(address), 0)

    # ── Ledgers ───────────────────────────────────────────────

    def ledger(self, address: str) -> GuardedLedger:
        with self._lock:
            try:
                return self._ledgers[normalize_address(address)]
            except KeyError:
                raise UnknownLedgerError(
                    "No ledger at address", {"address": address}
                ) from None

    def ledgers(self) -> List[str]:
        with self._lock:
            return list(self._ledgers)

    def view(self, ledger_address: str, operation: str, *args: Any) -> Any:
        """Invoke a read-only operation. No transaction, no guard, no events."""
        if operation not in GuardedLedger.VIEWS:
            raise UnknownOperationError(
                "Not a read operation", {"operation": operation}
            )
        with self._lock:
            return getattr(self.ledger(ledger_address), operation)(*args)

    # ── Transactions ──────────────────────────────────────────

    def transaction(
        self,
        account:   Account,
        target:    str,
        operation: str,
        args:      Sequence[Any] = (),
        value:     int = 0,
        data:      bytes = b"",
    ) -> Transaction:
        """Build and sign a transaction at the account's next nonce."""
        tx = Transaction.create(
            sender_public_key= account.public_key_hex,
            target=            target,
            operation=         operation,
            args=              list(args),
            nonce=             self.nonce_of(account.address),
            value=             value,
            data=              data,
        )
        return account.sign(tx)

    def deploy(self, creator: Account, initial_message: str = DEFAULT_MESSAGE) -> Receipt:
        """Instantiate a GuardedLedger owned by creator. receipt.result is its address."""
        return self.submit(
            self.transaction(creator, "", Operation.DEPLOY, [initial_message])
        )

    def call(self, account: Account, ledger_address: str, operation: str, *args: Any) -> Receipt:
        """Invoke a ledger mutator as account."""
        return self.submit(
            self.transaction(account, normalize_address(ledger_address), operation, args)
        )

    def send(self, account: Account, to: str, amount: int, data: bytes = b"") -> Receipt:
        """Transfer native currency. A ledger recipient is credited via receive_funds."""
        return self.submit(
            self.transaction(
                account, normalize_address(to), Operation.TRANSFER, value=amount, data=data
            )
        )

    def submit(self, tx: Transaction) -> Receipt:
        """Authenticate, then execute a signed transaction atomically."""
        if not tx.verify_signature():
            raise AuthenticationError(
                "Transaction signature does not verify",
                {"operation": tx.operation},
            )
        sender = tx.sender

        with self._lock:
            expected = self._nonces.get(sender, 0)
            if tx.nonce != expected:
                raise NonceError(
                    "Unexpected transaction nonce",
                    {"sender": sender, "expected": expected, "got": tx.nonce},
                )

            body = self._resolve(tx, sender)
            self._nonces[sender] = expected + 1
            return self._execute(tx, sender, body)

    # ── Internal: dispatch ────────────────────────────────────

    def _resolve(self, tx: Transaction, sender: str) -> Callable[[], Any]:
        if tx.operation == Operation.DEPLOY:
            message = tx.args[0] if tx.args else DEFAULT_MESSAGE
            return lambda: self._deploy_ledger(sender, tx.nonce, message)

        if tx.operation == Operation.TRANSFER:
            target = normalize_address(tx.target)
            return lambda: self._move(sender, target, tx.value, tx.data_bytes)

        if tx.operation not in GuardedLedger.MUTATORS:
            raise UnknownOperationError(
                "Operation is not exposed by the ledger",
                {"operation": tx.operation},
            )
        if tx.value:
            raise UnknownOperationError(
                "Ledger operations do not accept value; use a transfer",
                {"operation": tx.operation},
            )

        ledger_address = normalize_address(tx.target)
        ledger = self.ledger(ledger_address)
        method = getattr(ledger, tx.operation)

        def run_operation():
            ctx = CallContext(
                caller=         sender,
                ledger_address= ledger_address,
                tx_id=          tx.tx_id,
                depth=          self._depth,
                _host=          self,
            )
            return method(ctx, *tx.args)

        return run_operation

    def _deploy_ledger(self, creator: str, nonce: int, message: str) -> str:
        address = derive_ledger_address(creator, nonce)
        self._ledgers[address] = GuardedLedger(creator, message)
        self._balances.setdefault(address, 0)
        logger.info("deployed ledger %s owned by %s", address, creator)
        return address

    # ── Internal: execution frames ────────────────────────────

    def _execute(self, tx: Transaction, sender: str, body: Callable[[], Any]) -> Receipt:
        tx_id = tx.tx_id
        frame = self._snapshot()
        self._depth += 1
        try:
            result = body()
        except GuardedLedgerError as exc:
            self._restore(frame)
            logger.warning("tx %s (%s) reverted: %s", tx_id[:18], tx.operation, exc)
            return Receipt(
                tx_id=     tx_id,
                status=    ReceiptStatus.REVERTED,
                sender=    sender,
                target=    tx.target,
                operation= tx.operation,
                error=     exc,
            )
        except Exception:
            self._restore(frame)
            raise
        finally:
            self._depth -= 1

        events = []
        if self._depth == 0:
            try:
                events = self.event_log.commit(tx_id, self._pending)
            except EventLogError:
                self._restore(frame)
                raise
            self._pending = []

        logger.debug("tx %s (%s) committed", tx_id[:18], tx.operation)
        return Receipt(
            tx_id=     tx_id,
            status=    ReceiptStatus.SUCCESS,
            sender=    sender,
            target=    tx.target,
            operation= tx.operation,
            result=    result,
            events=    events,
        )

    def _snapshot(self) -> _Frame:
        return _Frame(
            states=       {addr: l.state.copy() for addr, l in self._ledgers.items()},
            balances=     dict(self._balances),
            nonces=       dict(self._nonces),
            accounts=     dict(self._accounts),
            labels=       dict(self._labels),
            pending_mark= len(self._pending),
        )

    def _restore(self, frame: _Frame) -> None:
        for address in list(self._ledgers):
            if address not in frame.states:
                del self._ledgers[address]
        for address, state in frame.states.items():
            self._ledgers[address].state = state
        self._balances = frame.balances
        self._nonces   = frame.nonces
        self._accounts = frame.accounts
        self._labels   = frame.labels
        del self._pending[frame.pending_mark:]

    # ── Internal: currency & events (used via CallContext) ────

    def _move(self, source: str, to: str, amount: int, data: bytes = b"") -> None:
        if self._balances.get(source, 0) < amount:
            raise InsufficientFundsError(
                "Insufficient funds",
                {"account": source, "balance": self._balances.get(source, 0),
                 "amount": amount},
            )
        self._balances[source] -= amount
        self._balances[to] = self._balances.get(to, 0) + amount

        if to in self._ledgers:
            ctx = CallContext(
                caller=         source,
                ledger_address= to,
                tx_id=          "",
                depth=          self._depth,
                _host=          self,
            )
            self._ledgers[to].receive_funds(ctx, amount, data)
            return

        recipient = self._accounts.get(to)
        if recipient is not None and recipient.on_receive is not None:
            recipient.on_receive(self, source, amount)

    def _transfer_out(self, ledger_address: str, to: str, amount: int) -> None:
        try:
            self._move(ledger_address, normalize_address(to), amount)
        except TransferFailedError:
            raise
        except Exception as exc:
            raise TransferFailedError(
                "Transfer failed",
                {"to": to, "amount": amount, "reason": exc},
            ) from exc

    def _queue_event(self, event_type: str, ledger_address: str, payload: Dict[str, Any]) -> None:
        self._pending.append((event_type, ledger_address, dict(payload)))

    def __repr__(self) -> str:
        return (
            f"ExecutionHost(host_id={self.host_id!r}, "
            f"ledgers={len(self._ledgers)}, accounts={len(self._accounts)})"
        )
