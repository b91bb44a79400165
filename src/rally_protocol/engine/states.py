"""
Relay state machine.

A single relay call walks a fixed path of states. The machine records the
path it took so callers and tests can see how far a failed relay got.
"""

from enum import Enum
from typing import Dict, FrozenSet, List

from .exceptions import InvalidTransition


class RelayState(str, Enum):
    """
    States of one relay call.

    Attributes:
        IDLE: Nothing has happened yet
        FETCHING_SERVER_CONFIG: GET /getaddr in flight
        ADJUSTING_FEES: Applying the relay server's fee suggestions
        SIGNING: Building and signing the relay request
        SUBMITTING: POST /relay in flight
        AWAITING_RECEIPT: Polling the chain for the relayed transaction
        SETTLED: Receipt found, hash returned
        FAILED: Any step raised
    """
    IDLE = "idle"
    FETCHING_SERVER_CONFIG = "fetching_server_config"
    ADJUSTING_FEES = "adjusting_fees"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    AWAITING_RECEIPT = "awaiting_receipt"
    SETTLED = "settled"
    FAILED = "failed"


_TRANSITIONS: Dict[RelayState, FrozenSet[RelayState]] = {
    RelayState.IDLE: frozenset({RelayState.FETCHING_SERVER_CONFIG}),
    RelayState.FETCHING_SERVER_CONFIG: frozenset({RelayState.ADJUSTING_FEES, RelayState.FAILED}),
    RelayState.ADJUSTING_FEES: frozenset({RelayState.SIGNING, RelayState.FAILED}),
    RelayState.SIGNING: frozenset({RelayState.SUBMITTING, RelayState.FAILED}),
    RelayState.SUBMITTING: frozenset({RelayState.AWAITING_RECEIPT, RelayState.FAILED}),
    RelayState.AWAITING_RECEIPT: frozenset({RelayState.SETTLED, RelayState.FAILED}),
    RelayState.SETTLED: frozenset(),
    RelayState.FAILED: frozenset(),
}


class RelayStateMachine:
    """Tracks the state of one relay call and rejects illegal moves."""

    def __init__(self) -> None:
        self._state = RelayState.IDLE
        self._history: List[RelayState] = [RelayState.IDLE]

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def history(self) -> List[RelayState]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self._state]

    def advance(self, new_state: RelayState) -> RelayState:
        """
        Move to ``new_state``.

        Raises:
            InvalidTransition: If ``new_state`` is not reachable from the
                current state.
        """
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidTransition(self._state, new_state)
        self._state = new_state
        self._history.append(new_state)
        return new_state

    def fail(self) -> RelayState:
        """Move to FAILED unless the call already finished."""
        if self.is_terminal:
            return self._state
        return self.advance(RelayState.FAILED)
