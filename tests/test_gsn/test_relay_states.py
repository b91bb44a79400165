"""
Relay state machine tests.
"""

import pytest

from rally_protocol.engine.exceptions import InvalidTransition, RallyError
from rally_protocol.engine.states import RelayState, RelayStateMachine


HAPPY_PATH = [
    RelayState.FETCHING_SERVER_CONFIG,
    RelayState.ADJUSTING_FEES,
    RelayState.SIGNING,
    RelayState.SUBMITTING,
    RelayState.AWAITING_RECEIPT,
    RelayState.SETTLED,
]


class TestRelayStateMachine:

    def test_starts_idle(self):
        machine = RelayStateMachine()
        assert machine.state == RelayState.IDLE
        assert machine.history == [RelayState.IDLE]
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = RelayStateMachine()
        for state in HAPPY_PATH:
            machine.advance(state)

        assert machine.state == RelayState.SETTLED
        assert machine.history == [RelayState.IDLE] + HAPPY_PATH
        assert machine.is_terminal

    def test_skipping_a_step_is_rejected(self):
        machine = RelayStateMachine()
        machine.advance(RelayState.FETCHING_SERVER_CONFIG)

        with pytest.raises(InvalidTransition) as exc_info:
            machine.advance(RelayState.SUBMITTING)

        assert exc_info.value.current_state == RelayState.FETCHING_SERVER_CONFIG
        assert exc_info.value.requested_state == RelayState.SUBMITTING
        assert isinstance(exc_info.value, RallyError)
        assert machine.state == RelayState.FETCHING_SERVER_CONFIG

    @pytest.mark.parametrize("steps", range(1, len(HAPPY_PATH)))
    def test_fail_from_any_active_state(self, steps):
        machine = RelayStateMachine()
        for state in HAPPY_PATH[:steps]:
            machine.advance(state)

        assert machine.fail() == RelayState.FAILED
        assert machine.history[-1] == RelayState.FAILED

    def test_fail_after_settled_keeps_settled(self):
        machine = RelayStateMachine()
        for state in HAPPY_PATH:
            machine.advance(state)

        assert machine.fail() == RelayState.SETTLED
        assert RelayState.FAILED not in machine.history

    def test_terminal_states_reject_everything(self):
        machine = RelayStateMachine()
        machine.advance(RelayState.FETCHING_SERVER_CONFIG)
        machine.fail()

        with pytest.raises(InvalidTransition):
            machine.advance(RelayState.ADJUSTING_FEES)

    def test_history_is_a_copy(self):
        machine = RelayStateMachine()
        machine.history.append(RelayState.SETTLED)
        assert machine.history == [RelayState.IDLE]
