"""
tests/test_guarded_ledger.py

GuardedLedger in isolation, driven by a recording context instead of a host.

These tests pin down the state machine itself:
  - every gated operation rejects non-owners before touching state
  - the pause gate covers exactly update_message and increment_counter
  - pause toggles are valid only from the opposite state
  - ownership transfer and renouncement
  - emergency_withdraw zeroes the balance before the transfer runs
"""

import pytest

from guardledger.core.exceptions import (
    InvalidAddressError,
    NotPausedError,
    PausedError,
    TransferFailedError,
    UnauthorizedError,
)
from guardledger.core.guards import (
    require_not_paused,
    require_owner,
    require_paused,
    require_valid_address,
)
from guardledger.core.models import (
    DEFAULT_MESSAGE,
    PUBLIC_MESSAGE,
    ZERO_ADDRESS,
    EventType,
    LedgerState,
)
from guardledger.ledger import GuardedLedger


OWNER    = "0x" + "11" * 20
OTHER    = "0x" + "22" * 20
NEWCOMER = "0x" + "33" * 20
LEDGER   = "0x" + "ab" * 20


class RecordingContext:
    """Stands in for CallContext: records events and transfers."""

    def __init__(self, caller, on_transfer=None):
        self.caller = caller
        self.ledger_address = LEDGER
        self.tx_id = "0x" + "00" * 32
        self.depth = 1
        self.events = []
        self.transfers = []
        self._on_transfer = on_transfer

    def emit(self, event_type, payload):
        self.events.append((event_type, payload))

    def transfer(self, to, amount):
        if self._on_transfer is not None:
            self._on_transfer(to, amount)
        self.transfers.append((to, amount))


GATED_CALLS = [
    ("update_message",     ("hello",)),
    ("increment_counter",  ()),
    ("reset_counter",      ()),
    ("pause_contract",     ()),
    ("unpause_contract",   ()),
    ("transfer_ownership", (NEWCOMER,)),
    ("renounce_ownership", ()),
    ("emergency_withdraw", ()),
]


@pytest.fixture
def ledger():
    return GuardedLedger(OWNER)


@pytest.fixture
def as_owner():
    return RecordingContext(OWNER)


@pytest.fixture
def as_other():
    return RecordingContext(OTHER)


# ─────────────────────────────────────────────────────────────
# Initial state & read surface
# ─────────────────────────────────────────────────────────────

class TestInitialState:

    def test_initial_snapshot(self, ledger):
        info = ledger.get_info()
        assert info.owner == OWNER
        assert info.message == DEFAULT_MESSAGE
        assert info.counter == 0
        assert info.paused is False
        assert info.balance == 0

    def test_creator_address_is_normalized(self):
        ledger = GuardedLedger(OWNER.upper().replace("0X", "0x"))
        assert ledger.state.owner == OWNER

    def test_public_function(self, ledger):
        assert ledger.public_function() == PUBLIC_MESSAGE

    def test_is_owner(self, ledger):
        assert ledger.is_owner(OWNER)
        assert not ledger.is_owner(OTHER)
        assert not ledger.is_owner("not-an-address")
        assert not ledger.is_owner(None)

    def test_snapshot_is_detached_from_state(self, ledger, as_owner):
        info = ledger.get_info()
        ledger.increment_counter(as_owner)
        assert info.counter == 0
        assert ledger.get_info().counter == 1


# ─────────────────────────────────────────────────────────────
# Owner gate
# ─────────────────────────────────────────────────────────────

class TestOwnerGate:

    @pytest.mark.parametrize("operation,args", GATED_CALLS)
    def test_non_owner_is_rejected_without_side_effects(
        self, ledger, as_other, operation, args
    ):
        ledger.state.balance = 500
        before = ledger.state.fingerprint()

        with pytest.raises(UnauthorizedError):
            getattr(ledger, operation)(as_other, *args)

        assert ledger.state.fingerprint() == before
        assert as_other.events == []
        assert as_other.transfers == []

    def test_owner_check_precedes_pause_check(self, ledger, as_owner, as_other):
        ledger.pause_contract(as_owner)
        with pytest.raises(UnauthorizedError):
            ledger.update_message(as_other, "x")


# ─────────────────────────────────────────────────────────────
# Counter & message
# ─────────────────────────────────────────────────────────────

class TestCounterAndMessage:

    def test_update_message_emits_event(self, ledger, as_owner):
        ledger.update_message(as_owner, "New secret message")
        assert ledger.state.message == "New secret message"
        assert as_owner.events == [
            (EventType.MESSAGE_UPDATED, {"message": "New secret message"})
        ]

    @pytest.mark.parametrize("n", [1, 3, 17])
    def test_increment_n_times_then_reset(self, ledger, as_owner, n):
        for _ in range(n):
            ledger.increment_counter(as_owner)
        assert ledger.state.counter == n

        assert ledger.reset_counter(as_owner) == 0
        assert ledger.state.counter == 0

    def test_counter_events_carry_new_value(self, ledger, as_owner):
        ledger.increment_counter(as_owner)
        ledger.increment_counter(as_owner)
        ledger.reset_counter(as_owner)
        assert as_owner.events == [
            (EventType.COUNTER_CHANGED, {"counter": 1}),
            (EventType.COUNTER_CHANGED, {"counter": 2}),
            (EventType.COUNTER_CHANGED, {"counter": 0}),
        ]


# ─────────────────────────────────────────────────────────────
# Pause gate
# ─────────────────────────────────────────────────────────────

class TestPauseGate:

    def test_pause_and_unpause(self, ledger, as_owner):
        ledger.pause_contract(as_owner)
        assert ledger.state.paused is True
        ledger.unpause_contract(as_owner)
        assert ledger.state.paused is False
        assert [e[0] for e in as_owner.events] == [EventType.PAUSED, EventType.UNPAUSED]

    def test_pause_when_paused_fails(self, ledger, as_owner):
        ledger.pause_contract(as_owner)
        with pytest.raises(PausedError):
            ledger.pause_contract(as_owner)
        assert ledger.state.paused is True

    def test_unpause_when_active_fails(self, ledger, as_owner):
        with pytest.raises(NotPausedError):
            ledger.unpause_contract(as_owner)
        assert ledger.state.paused is False

    def test_pause_sensitive_operations_blocked(self, ledger, as_owner):
        ledger.pause_contract(as_owner)
        before = ledger.state.fingerprint()

        with pytest.raises(PausedError):
            ledger.update_message(as_owner, "Message when paused")
        with pytest.raises(PausedError):
            ledger.increment_counter(as_owner)

        assert ledger.state.fingerprint() == before

    def test_pause_exempt_operations_still_work(self, ledger, as_owner):
        ledger.increment_counter(as_owner)
        ledger.state.balance = 42
        ledger.pause_contract(as_owner)

        ledger.reset_counter(as_owner)
        assert ledger.state.counter == 0

        assert ledger.emergency_withdraw(as_owner) == 42
        assert ledger.state.balance == 0

        ledger.transfer_ownership(as_owner, NEWCOMER)
        assert ledger.state.owner == NEWCOMER

        as_newcomer = RecordingContext(NEWCOMER)
        ledger.renounce_ownership(as_newcomer)
        assert ledger.state.owner == ZERO_ADDRESS


# ─────────────────────────────────────────────────────────────
# Ownership
# ─────────────────────────────────────────────────────────────

class TestOwnership:

    def test_transfer_ownership(self, ledger, as_owner):
        ledger.transfer_ownership(as_owner, NEWCOMER)
        assert ledger.state.owner == NEWCOMER
        assert as_owner.events == [
            (
                EventType.OWNERSHIP_TRANSFERRED,
                {"previous_owner": OWNER, "new_owner": NEWCOMER},
            )
        ]

    def test_new_owner_is_the_only_authorized_caller(self, ledger, as_owner):
        ledger.transfer_ownership(as_owner, NEWCOMER)

        with pytest.raises(UnauthorizedError):
            ledger.increment_counter(as_owner)

        ledger.update_message(RecordingContext(NEWCOMER), "New owner message")
        assert ledger.state.message == "New owner message"

    @pytest.mark.parametrize("target", [ZERO_ADDRESS, "0x1234", "", None, 42])
    def test_transfer_to_invalid_address_fails(self, ledger, as_owner, target):
        with pytest.raises(InvalidAddressError):
            ledger.transfer_ownership(as_owner, target)
        assert ledger.state.owner == OWNER
        assert as_owner.events == []

    def test_transfer_normalizes_case(self, ledger, as_owner):
        ledger.transfer_ownership(as_owner, "0x" + "AB" * 20)
        assert ledger.state.owner == "0x" + "ab" * 20

    def test_renounce_is_terminal(self, ledger, as_owner):
        ledger.renounce_ownership(as_owner)
        assert ledger.state.owner == ZERO_ADDRESS
        assert as_owner.events[-1] == (
            EventType.OWNERSHIP_TRANSFERRED,
            {"previous_owner": OWNER, "new_owner": ZERO_ADDRESS},
        )

        for caller in (OWNER, OTHER, ZERO_ADDRESS):
            ctx = RecordingContext(caller)
            for operation, args in GATED_CALLS:
                with pytest.raises(UnauthorizedError):
                    getattr(ledger, operation)(ctx, *args)


# ─────────────────────────────────────────────────────────────
# Funds custody
# ─────────────────────────────────────────────────────────────

class TestFunds:

    def test_receive_funds_with_and_without_data(self, ledger, as_other):
        ledger.receive_funds(as_other, 100)
        ledger.receive_funds(as_other, 50, b"\x12\x34")
        assert ledger.state.balance == 150

    def test_receive_funds_rejects_negative(self, ledger, as_other):
        with pytest.raises(ValueError):
            ledger.receive_funds(as_other, -1)

    def test_withdraw_transfers_everything_to_owner(self, ledger, as_owner):
        ledger.state.balance = 1000
        assert ledger.emergency_withdraw(as_owner) == 1000
        assert ledger.state.balance == 0
        assert as_owner.transfers == [(OWNER, 1000)]
        assert as_owner.events == [
            (EventType.EMERGENCY_WITHDRAWAL, {"to": OWNER, "amount": 1000})
        ]

    def test_balance_is_zero_before_transfer_runs(self, ledger):
        seen = []
        ctx = RecordingContext(
            OWNER, on_transfer=lambda to, amount: seen.append(ledger.state.balance)
        )
        ledger.state.balance = 700
        ledger.emergency_withdraw(ctx)
        assert seen == [0]

    def test_failed_transfer_emits_nothing(self, ledger):
        def refuse(to, amount):
            raise TransferFailedError("refused")

        ctx = RecordingContext(OWNER, on_transfer=refuse)
        ledger.state.balance = 10
        with pytest.raises(TransferFailedError):
            ledger.emergency_withdraw(ctx)
        assert ctx.events == []

    def test_withdraw_empty_balance(self, ledger, as_owner):
        assert ledger.emergency_withdraw(as_owner) == 0
        assert as_owner.transfers == [(OWNER, 0)]


# ─────────────────────────────────────────────────────────────
# Guards as predicates
# ─────────────────────────────────────────────────────────────

class TestGuards:

    def test_guards_pass(self):
        state = LedgerState.initial(OWNER)
        assert require_owner(state, OWNER)
        assert require_not_paused(state)
        assert require_valid_address(NEWCOMER)

    def test_guards_fail_with_typed_errors(self):
        state = LedgerState.initial(OWNER)
        assert isinstance(require_owner(state, OTHER).error, UnauthorizedError)
        assert isinstance(require_paused(state).error, NotPausedError)
        assert isinstance(require_valid_address(ZERO_ADDRESS).error, InvalidAddressError)

        state.paused = True
        assert isinstance(require_not_paused(state).error, PausedError)
        assert require_paused(state)

    def test_guards_do_not_mutate(self):
        state = LedgerState.initial(OWNER)
        before = state.fingerprint()
        require_owner(state, OTHER)
        require_paused(state)
        require_not_paused(state)
        assert state.fingerprint() == before

    def test_renounced_owner_gate(self):
        state = LedgerState.initial(OWNER)
        state.owner = ZERO_ADDRESS
        assert not require_owner(state, ZERO_ADDRESS)
