"""
guardledger/core/models.py

Data model for GuardLedger.

═══════════════════════════════════════════════════════════════════
CONTRACTS
═══════════════════════════════════════════════════════════════════

CONTRACT 1 — Addresses
    format       = "0x" + 40 lowercase hex characters
    zero address = "0x" + "0" * 40   (owner after renouncement, never a target)
    normalize_address() is the only parser; malformed → InvalidAddressError

CONTRACT 2 — Amounts
    int, base units, never negative. 1 coin = UNITS_PER_COIN base units.

CONTRACT 3 — Transaction signing
    bytes_signed = canonicalize(tx.to_signing_dict())
    tx_id        = "0x" + SHA-256(bytes_signed)
    caller       = address_from_public_key(tx.sender_public_key)

CONTRACT 4 — Event chain
    causal_hash  = SHA-256(canonicalize(prev.to_chain_dict()))
    first event  = GENESIS_HASH ("0" * 64)
    signature    = host key over canonicalize(event.to_signing_dict())

CONTRACT 5 — Event vocabulary
    event_type must be an EventType constant.
    enforced at create() → ValueError
    validated at from_dict() time via validate_schema()
═══════════════════════════════════════════════════════════════════
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set

from guardledger.core.canonical import canonicalize, canonical_hash
from guardledger.core.crypto import (
    PUBLIC_KEY_HEX_LENGTH,
    Ed25519KeyManager,
    address_from_public_key,
)
from guardledger.core.exceptions import GuardedLedgerError, InvalidAddressError
from guardledger.core.time import event_timestamp, is_valid_timestamp


# ─────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────

ZERO_ADDRESS    = "0x" + "0" * 40
GENESIS_HASH    = "0" * 64
DEFAULT_MESSAGE = "Initial secret message"
PUBLIC_MESSAGE  = "This function can be called by anyone"
UNITS_PER_COIN  = 10 ** 18

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


# ─────────────────────────────────────────────────────────────
# Addresses & amounts
# ─────────────────────────────────────────────────────────────

def normalize_address(value: Any) -> str:
    """
    Return value as a canonical lowercase address.
    Raises InvalidAddressError if it is not "0x" + 40 hex characters.
    The zero address is well-formed and is returned unchanged.
    """
    if not isinstance(value, str):
        raise InvalidAddressError(
            "Address must be a string",
            {"got": type(value).__name__},
        )
    candidate = value.strip().lower()
    if not _ADDRESS_RE.match(candidate):
        raise InvalidAddressError("Malformed address", {"address": value})
    return candidate


def is_zero_address(value: str) -> bool:
    return value == ZERO_ADDRESS


def derive_ledger_address(creator: str, nonce: int) -> str:
    """Address of the ledger deployed by creator at the given nonce."""
    digest = canonical_hash({"creator": creator, "nonce": nonce})
    return "0x" + digest[-40:]


def to_base_units(value: Any) -> int:
    """
    Convert a coin amount ("1.5", Decimal, int coins) to base units.
    Raises ValueError for negative, fractional-unit, or unparseable input.
    """
    try:
        coins = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {value!r}")
    if not coins.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    if coins < 0:
        raise ValueError(f"Amount must be non-negative, got {value!r}")
    units = coins * UNITS_PER_COIN
    if units != units.to_integral_value():
        raise ValueError(f"Amount {value!r} is finer than one base unit")
    return int(units)


def format_amount(units: int) -> str:
    """Format base units as a coin string, e.g. 10**18 → '1.0'."""
    coins = Decimal(units) / UNITS_PER_COIN
    text = format(coins.normalize(), "f")
    return text if "." in text else f"{text}.0"


# ─────────────────────────────────────────────────────────────
# Ledger state
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LedgerInfo:
    """Read-only snapshot returned by GuardedLedger.get_info()."""
    owner:   str
    message: str
    counter: int
    paused:  bool
    balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner":   self.owner,
            "message": self.message,
            "counter": self.counter,
            "paused":  self.paused,
            "balance": self.balance,
        }


@dataclass
class LedgerState:
    """
    The guarded record. Owned by exactly one GuardedLedger instance and
    mutated only by its operations.
    """
    owner:   str
    message: str = DEFAULT_MESSAGE
    counter: int = 0
    paused:  bool = False
    balance: int = 0

    @classmethod
    def initial(cls, creator: str, message: str = DEFAULT_MESSAGE) -> "LedgerState":
        return cls(owner=normalize_address(creator), message=message)

    def snapshot(self) -> LedgerInfo:
        return LedgerInfo(
            owner=self.owner,
            message=self.message,
            counter=self.counter,
            paused=self.paused,
            balance=self.balance,
        )

    def copy(self) -> "LedgerState":
        return replace(self)

    def fingerprint(self) -> str:
        """SHA-256 over the canonical form of every field."""
        return canonical_hash(self.snapshot().to_dict())


# ─────────────────────────────────────────────────────────────
# Event vocabulary
# ─────────────────────────────────────────────────────────────

class EventType:
    """
    event_type string constants.

    These are the ONLY valid values for LedgerEvent.event_type.
    """
    MESSAGE_UPDATED       = "message_updated"
    COUNTER_CHANGED       = "counter_changed"
    PAUSED                = "paused"
    UNPAUSED              = "unpaused"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    EMERGENCY_WITHDRAWAL  = "emergency_withdrawal"


VALID_EVENT_TYPES: Set[str] = {
    EventType.MESSAGE_UPDATED,
    EventType.COUNTER_CHANGED,
    EventType.PAUSED,
    EventType.UNPAUSED,
    EventType.OWNERSHIP_TRANSFERRED,
    EventType.EMERGENCY_WITHDRAWAL,
}


@dataclass
class ValidationResult:
    """
    Returned — not raised — so callers can choose hard fail vs report.
    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        if self.valid:
            return "ValidationResult(VALID)"
        return f"ValidationResult(INVALID, errors={self.errors})"


# ─────────────────────────────────────────────────────────────
# LedgerEvent: one notification in the host's event log
# ─────────────────────────────────────────────────────────────

@dataclass
class LedgerEvent:
    """A signed, hash-chained notification emitted by a committed transaction."""

    event_id:          str
    event_type:        str
    ledger:            str
    tx_id:             str
    sequence:          int
    timestamp:         str
    causal_hash:       str
    payload:           Dict[str, Any]
    signer_public_key: str
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        event_type:        str,
        ledger:            str,
        tx_id:             str,
        sequence:          int,
        payload:           Dict[str, Any],
        signer_public_key: str,
        prev:              Optional["LedgerEvent"] = None,
    ) -> "LedgerEvent":
        """
        Create an unsigned event with the correct causal_hash.
        Call .sign(key_manager) immediately after.
        """
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(
                f"Invalid event_type '{event_type}'. "
                f"Valid: {sorted(VALID_EVENT_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(
                f"payload must be dict, got {type(payload).__name__}"
            )
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(
                f"sequence must be non-negative int, got {sequence!r}"
            )

        return cls(
            event_id=          f"evt-{uuid.uuid4()}",
            event_type=        event_type,
            ledger=            ledger,
            tx_id=             tx_id,
            sequence=          sequence,
            timestamp=         event_timestamp(),
            causal_hash=       cls._compute_causal_hash(prev),
            payload=           payload,
            signer_public_key= signer_public_key,
            signature=         None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerEvent":
        """
        Deserialize from a JSONL line dict.
        Trusts persisted data; callers must call validate_schema().
        """
        return cls(
            event_id=          data["event_id"],
            event_type=        data["event_type"],
            ledger=            data["ledger"],
            tx_id=             data["tx_id"],
            sequence=          data["sequence"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            payload=           data.get("payload", {}),
            signer_public_key= data["signer_public_key"],
            signature=         data.get("signature"),
        )

    def validate_schema(self) -> ValidationResult:
        errors: List[str] = []

        if self.event_type not in VALID_EVENT_TYPES:
            errors.append(
                f"event_type '{self.event_type}' not in valid set: "
                f"{sorted(VALID_EVENT_TYPES)}"
            )
        if not isinstance(self.event_id, str) or not self.event_id.startswith("evt-"):
            errors.append(
                f"event_id must be a string starting with 'evt-', got {self.event_id!r}"
            )
        if not isinstance(self.ledger, str) or not _ADDRESS_RE.match(self.ledger):
            errors.append(f"ledger is not a valid address: {self.ledger!r}")
        if not isinstance(self.sequence, int) or self.sequence < 0:
            errors.append(
                f"sequence must be non-negative int, got {self.sequence!r}"
            )
        if not is_valid_timestamp(self.timestamp):
            errors.append(
                f"timestamp {self.timestamp!r} does not match "
                f"YYYY-MM-DDTHH:MM:SS.mmmZ"
            )
        if not _is_hex(self.causal_hash, 64):
            errors.append(f"causal_hash must be 64 hex chars, got {self.causal_hash!r}")
        if not _is_hex(self.signer_public_key, PUBLIC_KEY_HEX_LENGTH):
            errors.append(
                f"signer_public_key must be {PUBLIC_KEY_HEX_LENGTH} hex chars"
            )
        if not isinstance(self.payload, dict):
            errors.append(
                f"payload must be dict, got {type(self.payload).__name__}"
            )

        return ValidationResult(valid=len(errors) == 0, errors=errors)

    def to_signing_dict(self) -> Dict[str, Any]:
        """The exact dict signed by the host key. Everything but the signature."""
        return {
            "causal_hash":       self.causal_hash,
            "event_id":          self.event_id,
            "event_type":        self.event_type,
            "ledger":            self.ledger,
            "payload":           self.payload,
            "sequence":          self.sequence,
            "signer_public_key": self.signer_public_key,
            "timestamp":         self.timestamp,
            "tx_id":             self.tx_id,
        }

    def to_chain_dict(self) -> Dict[str, Any]:
        """The exact dict hashed into the NEXT event's causal_hash."""
        return self.to_signing_dict()

    def to_dict(self) -> Dict[str, Any]:
        """Full serialization including signature. Used for JSONL persistence."""
        d = self.to_signing_dict().copy()
        d["signature"] = self.signature
        return d

    def canonical_bytes_for_signing(self) -> bytes:
        return canonicalize(self.to_signing_dict())

    @staticmethod
    def _compute_causal_hash(prev: Optional["LedgerEvent"]) -> str:
        """Hash that an event following prev must carry; GENESIS_HASH for the first."""
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_chain_dict())

    def sign(self, key_manager: Ed25519KeyManager) -> "LedgerEvent":
        """Sign in place. Returns self for chaining."""
        self.signature = key_manager.sign(self.canonical_bytes_for_signing())
        return self

    def verify_signature(self) -> bool:
        """Signature check against the embedded signer key. Never raises."""
        return bool(self.signature) and Ed25519KeyManager.verify_detached(
            self.canonical_bytes_for_signing(), self.signature, self.signer_public_key
        )

    def verify_chain(self, prev: Optional["LedgerEvent"]) -> bool:
        return self.causal_hash == self._compute_causal_hash(prev)


# ─────────────────────────────────────────────────────────────
# Transaction: a signed request to the execution host
# ─────────────────────────────────────────────────────────────

class Operation:
    """Host-level operation names that are not ledger methods."""
    DEPLOY   = "deploy"
    TRANSFER = "transfer"


@dataclass
class Transaction:
    """
    A sender-signed call. The host recomputes the caller address from
    sender_public_key; nothing in the transaction claims an address.
    """

    sender_public_key: str
    target:            str
    operation:         str
    args:              List[Any]
    nonce:             int
    value:             int = 0
    data:              str = ""
    timestamp:         str = field(default_factory=event_timestamp)
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        sender_public_key: str,
        target:            str,
        operation:         str,
        args:              Optional[List[Any]] = None,
        nonce:             int = 0,
        value:             int = 0,
        data:              bytes = b"",
    ) -> "Transaction":
        if not isinstance(value, int) or value < 0:
            raise ValueError(f"value must be non-negative int, got {value!r}")
        if not isinstance(nonce, int) or nonce < 0:
            raise ValueError(f"nonce must be non-negative int, got {nonce!r}")
        return cls(
            sender_public_key= sender_public_key,
            target=            target,
            operation=         operation,
            args=              list(args or []),
            nonce=             nonce,
            value=             value,
            data=              data.hex(),
        )

    @property
    def sender(self) -> str:
        return address_from_public_key(self.sender_public_key)

    @property
    def tx_id(self) -> str:
        return "0x" + canonical_hash(self.to_signing_dict())

    @property
    def data_bytes(self) -> bytes:
        return bytes.fromhex(self.data)

    def to_signing_dict(self) -> Dict[str, Any]:
        return {
            "args":              self.args,
            "data":              self.data,
            "nonce":             self.nonce,
            "operation":         self.operation,
            "sender_public_key": self.sender_public_key,
            "target":            self.target,
            "timestamp":         self.timestamp,
            "value":             self.value,
        }

    def sign(self, key_manager) -> "Transaction":
        self.signature = key_manager.sign(canonicalize(self.to_signing_dict()))
        return self

    def verify_signature(self) -> bool:
        if not self.signature:
            return False

        return Ed25519KeyManager.verify_detached(
            canonicalize(self.to_signing_dict()),
            self.signature,
            self.sender_public_key,
        )


# ─────────────────────────────────────────────────────────────
# Receipt: outcome of one transaction
# ─────────────────────────────────────────────────────────────

class ReceiptStatus:
    SUCCESS  = "success"
    REVERTED = "reverted"


@dataclass
class Receipt:
    """Result of executing a transaction."""
    tx_id:     str
    status:    str
    sender:    str
    target:    str
    operation: str
    result:    Any = None
    error:     Optional[GuardedLedgerError] = None
    events:    List[LedgerEvent] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == ReceiptStatus.SUCCESS

    def raise_for_error(self) -> "Receipt":
        """Re-raise the captured error of a reverted transaction."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_id":     self.tx_id,
            "status":    self.status,
            "sender":    self.sender,
            "target":    self.target,
            "operation": self.operation,
            "result":    self.result,
            "error": (
                {"type": type(self.error).__name__, "message": str(self.error)}
                if self.error else None
            ),
            "events":    [e.to_dict() for e in self.events],
        }


def _is_hex(value: Any, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True
