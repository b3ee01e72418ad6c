"""
tests/test_event_log.py

EventLog: signing, hash chaining, JSONL persistence and verification.
"""

import json

import pytest

from guardledger.core.crypto import Ed25519KeyManager
from guardledger.core.events import (
    EVENTS_FILENAME,
    EventLog,
    load_events,
    verify_event_log,
    verify_events,
)
from guardledger.core.exceptions import EventLogError
from guardledger.core.models import GENESIS_HASH, EventType, LedgerEvent


LEDGER = "0x" + "ab" * 20


def _batch(*counters):
    return [(EventType.COUNTER_CHANGED, LEDGER, {"counter": c}) for c in counters]


@pytest.fixture
def key():
    return Ed25519KeyManager.generate()


@pytest.fixture
def log(key):
    return EventLog(key)


class TestCommit:

    def test_empty_commit_is_a_no_op(self, log):
        assert log.commit("0x01", []) == []
        assert len(log) == 0

    def test_events_are_sequenced_and_chained(self, log):
        first = log.commit("0x01", _batch(1, 2))
        second = log.commit("0x02", _batch(3))

        events = first + second
        assert [e.sequence for e in events] == [0, 1, 2]
        assert events[0].causal_hash == GENESIS_HASH
        assert events[1].verify_chain(events[0])
        assert events[2].verify_chain(events[1])
        assert [e.tx_id for e in events] == ["0x01", "0x01", "0x02"]

    def test_events_are_signed_by_host_key(self, log, key):
        event = log.commit("0x01", _batch(1))[0]
        assert event.signer_public_key == key.public_key_hex
        assert event.verify_signature()

    def test_unknown_event_type_is_rejected(self, log):
        with pytest.raises(ValueError):
            log.commit("0x01", [("not_a_type", LEDGER, {})])
        assert len(log) == 0

    def test_filtering(self, log):
        log.commit("0x01", _batch(1))
        log.commit("0x02", [(EventType.PAUSED, LEDGER, {"account": LEDGER})])
        log.commit("0x03", [(EventType.PAUSED, "0x" + "cd" * 20, {"account": LEDGER})])

        assert len(log.events(event_type=EventType.PAUSED)) == 2
        assert len(log.events(ledger=LEDGER)) == 2
        assert len(log.events(event_type=EventType.PAUSED, ledger=LEDGER)) == 1

    def test_stats(self, log, key):
        assert log.get_stats()["head_hash"] == GENESIS_HASH
        events = log.commit("0x01", _batch(1))
        stats = log.get_stats()
        assert stats["total_events"] == 1
        assert stats["last_event_id"] == events[0].event_id
        assert stats["head_hash"] != GENESIS_HASH
        assert stats["signer"] == key.public_key_hex
        assert stats["file"] is None


class TestVerification:

    def test_clean_log_verifies(self, log):
        log.commit("0x01", _batch(1, 2, 3))
        result = log.verify_chain()
        assert result
        assert result.total_events == 3
        assert result.valid_signatures == 3
        assert result.by_type == {EventType.COUNTER_CHANGED: 3}

    def test_tampered_payload_breaks_signature_and_chain(self, log):
        events = log.commit("0x01", _batch(1, 2, 3))
        events[1].payload["counter"] = 99

        result = verify_events(events)
        assert not result.valid
        assert result.invalid_signatures == 1
        assert any("[1] signature" in v for v in result.violations)
        assert any("[2] chain" in v for v in result.violations)

    def test_removed_event_breaks_sequence(self, log):
        events = log.commit("0x01", _batch(1, 2, 3))
        result = verify_events([events[0], events[2]])
        assert any("sequence" in v for v in result.violations)

    def test_unexpected_signer(self, log):
        events = log.commit("0x01", _batch(1))
        other = Ed25519KeyManager.generate()
        result = verify_events(events, expected_signer=other.public_key_hex)
        assert not result.valid
        assert any("signer" in v for v in result.violations)

    def test_empty_log_is_valid(self):
        result = verify_events([])
        assert result.valid
        assert result.head_hash == GENESIS_HASH


class TestPersistence:

    def test_events_are_appended_as_jsonl(self, key, tmp_path):
        log = EventLog(key, directory=str(tmp_path))
        log.commit("0x01", _batch(1, 2))

        lines = (tmp_path / EVENTS_FILENAME).read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["payload"] == {"counter": 1}
        assert log.path == tmp_path / EVENTS_FILENAME

    def test_restore_continues_the_chain(self, key, tmp_path):
        EventLog(key, directory=str(tmp_path)).commit("0x01", _batch(1, 2))

        reopened = EventLog(key, directory=str(tmp_path))
        assert len(reopened) == 2
        event = reopened.commit("0x02", _batch(3))[0]
        assert event.sequence == 2

        result = verify_event_log(tmp_path, expected_signer=key.public_key_hex)
        assert result.valid
        assert result.total_events == 3

    def test_corrupt_file_warns_and_starts_at_genesis(self, key, tmp_path):
        (tmp_path / EVENTS_FILENAME).write_text("{not json\n")
        with pytest.warns(RuntimeWarning):
            log = EventLog(key, directory=str(tmp_path))
        assert len(log) == 0

    def test_tampered_file_warns_and_starts_at_genesis(self, key, tmp_path):
        EventLog(key, directory=str(tmp_path)).commit("0x01", _batch(1, 2))
        path = tmp_path / EVENTS_FILENAME

        lines = path.read_text().splitlines()
        record = json.loads(lines[1])
        record["payload"] = {"counter": 999}
        lines[1] = json.dumps(record)
        path.write_text("\n".join(lines) + "\n")

        with pytest.warns(RuntimeWarning, match="failed verification"):
            reopened = EventLog(key, directory=str(tmp_path))
        assert len(reopened) == 0
        assert reopened.get_stats()["head_hash"] == GENESIS_HASH

    def test_foreign_signer_warns_and_starts_at_genesis(self, key, tmp_path):
        EventLog(key, directory=str(tmp_path)).commit("0x01", _batch(1))

        with pytest.warns(RuntimeWarning):
            reopened = EventLog(Ed25519KeyManager.generate(), directory=str(tmp_path))
        assert len(reopened) == 0

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(EventLogError):
            load_events(tmp_path / "missing.jsonl")

    def test_load_missing_field(self, tmp_path):
        path = tmp_path / EVENTS_FILENAME
        path.write_text(json.dumps({"event_id": "evt-1"}) + "\n")
        with pytest.raises(EventLogError):
            load_events(path)

    def test_round_trip_preserves_signature(self, key, tmp_path):
        log = EventLog(key, directory=str(tmp_path))
        original = log.commit("0x01", _batch(7))[0]

        loaded = load_events(tmp_path)[0]
        assert loaded == original
        assert loaded.verify_signature()

    def test_tampered_file_fails_verification(self, key, tmp_path):
        EventLog(key, directory=str(tmp_path)).commit("0x01", _batch(1, 2))
        path = tmp_path / EVENTS_FILENAME

        lines = path.read_text().splitlines()
        record = json.loads(lines[0])
        record["payload"]["counter"] = 1000
        lines[0] = json.dumps(record)
        path.write_text("\n".join(lines) + "\n")

        assert not verify_event_log(path).valid


class TestLedgerEventSchema:

    def test_created_event_passes_schema(self, key):
        event = LedgerEvent.create(
            event_type=        EventType.UNPAUSED,
            ledger=            LEDGER,
            tx_id=             "0x01",
            sequence=          0,
            payload=           {"account": LEDGER},
            signer_public_key= key.public_key_hex,
        ).sign(key)
        assert event.validate_schema()

    def test_bad_payload_type(self, key):
        with pytest.raises(TypeError):
            LedgerEvent.create(
                event_type=        EventType.PAUSED,
                ledger=            LEDGER,
                tx_id=             "0x01",
                sequence=          0,
                payload=           ["not", "a", "dict"],
                signer_public_key= key.public_key_hex,
            )

    def test_negative_sequence(self, key):
        with pytest.raises(ValueError):
            LedgerEvent.create(
                event_type=        EventType.PAUSED,
                ledger=            LEDGER,
                tx_id=             "0x01",
                sequence=          -1,
                payload=           {},
                signer_public_key= key.public_key_hex,
            )
