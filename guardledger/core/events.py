"""
guardledger/core/events.py

Event Log — the host's notification sink.

commit() MUST, in this exact order:
  1. Acquire lock
  2. Build every LedgerEvent of the transaction via LedgerEvent.create(),
     chaining each to the one before it
  3. Sign each with the host key
  4. Append all of them to the JSONL file in a single write
  5. Advance internal state — only after a confirmed write
  6. Return the signed events

A transaction's events are committed together or not at all. Reverted
transactions never reach this module.
"""

import json
import logging
import threading
import warnings
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from guardledger.core.crypto import Ed25519KeyManager
from guardledger.core.exceptions import EventLogError
from guardledger.core.models import GENESIS_HASH, LedgerEvent


logger = logging.getLogger(__name__)

EVENTS_FILENAME = "events.jsonl"

# (event_type, ledger_address, payload)
PendingEvent = Tuple[str, str, Dict[str, Any]]


@dataclass
class EventLogVerification:
    """Result of verifying an event chain. bool(result) is True iff valid."""
    total_events:       int = 0
    valid_signatures:   int = 0
    invalid_signatures: int = 0
    violations:         List[str] = field(default_factory=list)
    by_type:            Dict[str, int] = field(default_factory=dict)
    signers:            List[str] = field(default_factory=list)
    head_hash:          str = GENESIS_HASH

    @property
    def valid(self) -> bool:
        return not self.violations

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid":              self.valid,
            "total_events":       self.total_events,
            "valid_signatures":   self.valid_signatures,
            "invalid_signatures": self.invalid_signatures,
            "violations":         list(self.violations),
            "by_type":            dict(self.by_type),
            "signers":            list(self.signers),
            "head_hash":          self.head_hash,
        }


class EventLog:
    """
    Signed, hash-chained event log.

    Maintains:
        _events  — every committed event, in order
        _last    — the chain head (or None at genesis)

    Thread-safe via internal lock. When a directory is given, events are
    appended to <directory>/events.jsonl and the chain is restored from
    that file on construction.
    """

    def __init__(
        self,
        key_manager: Ed25519KeyManager,
        directory:   Optional[str] = None,
    ) -> None:
        self.key_manager = key_manager

        self._lock:   threading.Lock        = threading.Lock()
        self._events: List[LedgerEvent]     = []
        self._last:   Optional[LedgerEvent] = None

        self._file: Optional[Path] = None
        if directory is not None:
            directory = Path(directory)
            directory.mkdir(parents=True, exist_ok=True)
            self._file = directory / EVENTS_FILENAME
            self._restore_state()

    # ── Public API ────────────────────────────────────────────

    @property
    def path(self) -> Optional[Path]:
        return self._file

    def commit(self, tx_id: str, pending: Iterable[PendingEvent]) -> List[LedgerEvent]:
        """
        Sign, chain and persist every event of one transaction.
        Raises EventLogError on write failure; state does not advance.
        """
        pending = list(pending)
        if not pending:
            return []

        with self._lock:
            built: List[LedgerEvent] = []
            prev = self._last
            for offset, (event_type, ledger, payload) in enumerate(pending):
                event = LedgerEvent.create(
                    event_type=        event_type,
                    ledger=            ledger,
                    tx_id=             tx_id,
                    sequence=          len(self._events) + offset,
                    payload=           payload,
                    signer_public_key= self.key_manager.public_key_hex,
                    prev=              prev,
                ).sign(self.key_manager)
                built.append(event)
                prev = event

            self._append_to_file(built)

            self._events.extend(built)
            self._last = built[-1]

        logger.debug("committed %d event(s) for %s", len(built), tx_id)
        return built

    def events(
        self,
        event_type: Optional[str] = None,
        ledger:     Optional[str] = None,
    ) -> List[LedgerEvent]:
        """Committed events, optionally filtered by type and ledger address."""
        with self._lock:
            selected = list(self._events)
        if event_type is not None:
            selected = [e for e in selected if e.event_type == event_type]
        if ledger is not None:
            selected = [e for e in selected if e.ledger == ledger]
        return selected

    def verify_chain(self) -> EventLogVerification:
        """Verify sequence, chain linkage and signatures of the in-memory log."""
        with self._lock:
            events = list(self._events)
        return verify_events(events, expected_signer=self.key_manager.public_key_hex)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_events":  len(self._events),
                "last_event_id": self._last.event_id if self._last else None,
                "head_hash":     LedgerEvent._compute_causal_hash(self._last),
                "signer":        self.key_manager.public_key_hex,
                "file":          str(self._file) if self._file else None,
            }

    def __len__(self) -> int:
        return len(self._events)

    # ── Internal ──────────────────────────────────────────────

    def _restore_state(self) -> None:
        """
        Reload committed events from an existing file.
        If the file cannot be parsed, or its events fail verification against
        this log's key, state stays at genesis and a RuntimeWarning is issued.
        """
        if not self._file.exists():
            return

        try:
            events = load_events(self._file)
            # verify before chaining new events onto the restored head
            result = verify_events(events, expected_signer=self.key_manager.public_key_hex)
            if not result:
                raise EventLogError(
                    "Restored events failed verification",
                    {"violations": "; ".join(result.violations[:3])},
                )
        except EventLogError as exc:
            warnings.warn(
                f"EventLog: could not restore state from {self._file}: {exc}. "
                "Run `guardledger verify` before committing new events.",
                RuntimeWarning,
                stacklevel=3,
            )
            return

        self._events = events
        self._last = events[-1] if events else None
        logger.info("restored %d event(s) from %s", len(events), self._file)

    def _append_to_file(self, events: List[LedgerEvent]) -> None:
        if self._file is None:
            return
        lines = "".join(json.dumps(e.to_dict()) + "\n" for e in events)
        try:
            with open(self._file, "a", encoding="utf-8") as f:
                f.write(lines)
        except OSError as exc:
            raise EventLogError(
                "Event log write failed", {"file": self._file, "error": exc}
            ) from exc


# ── File helpers ──────────────────────────────────────────────

def load_events(path: Path) -> List[LedgerEvent]:
    """
    Parse a JSONL event file.
    Raises EventLogError for a missing file, invalid JSON or a missing field.
    """
    path = Path(path)
    if path.is_dir():
        path = path / EVENTS_FILENAME
    if not path.exists():
        raise EventLogError("Event log not found", {"file": path})

    events: List[LedgerEvent] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(LedgerEvent.from_dict(json.loads(line)))
            except json.JSONDecodeError as exc:
                raise EventLogError(
                    f"Invalid JSON at line {line_num}", {"error": exc.msg}
                ) from exc
            except KeyError as exc:
                raise EventLogError(
                    f"Missing field at line {line_num}", {"field": exc.args[0]}
                ) from exc
    return events


def verify_events(
    events:          List[LedgerEvent],
    expected_signer: Optional[str] = None,
) -> EventLogVerification:
    """
    Check schema, sequence, chain linkage and signature of every event.
    If expected_signer is given, events signed by any other key are violations.
    """
    result = EventLogVerification(total_events=len(events))
    types: Counter = Counter()
    signers: List[str] = []

    prev: Optional[LedgerEvent] = None
    for i, event in enumerate(events):
        types[event.event_type] += 1
        if event.signer_public_key not in signers:
            signers.append(event.signer_public_key)

        schema = event.validate_schema()
        if not schema:
            result.violations.extend(f"[{i}] schema: {err}" for err in schema.errors)
        if event.sequence != i:
            result.violations.append(
                f"[{i}] sequence: expected {i}, got {event.sequence}"
            )
        if not event.verify_chain(prev):
            result.violations.append(f"[{i}] chain: causal_hash mismatch")
        if event.verify_signature():
            result.valid_signatures += 1
        else:
            result.invalid_signatures += 1
            result.violations.append(f"[{i}] signature: invalid")
        if expected_signer and event.signer_public_key != expected_signer:
            result.violations.append(f"[{i}] signer: unexpected key")
        prev = event

    result.by_type = dict(types)
    result.signers = signers
    result.head_hash = LedgerEvent._compute_causal_hash(prev)
    return result


def verify_event_log(
    path:            Path,
    expected_signer: Optional[str] = None,
) -> EventLogVerification:
    """Load and verify a JSONL event file. Raises EventLogError if unreadable."""
    return verify_events(load_events(path), expected_signer=expected_signer)
