"""
Submission state machine.

One instance per checkout session. It is the single owner of "is a
submission in flight?", so both the one-submission-at-a-time rule and the
payment-success guard are plain transition checks:

    idle ──► validating ──► placing_order ──► awaiting_payment
               │                 │                  │
               ▼                 ▼                  ▼
             failed ◄────────────┘          processing_success ──► succeeded ──► idle
               │                                    │
               └──► validating                      └──► awaiting_payment (rollback)

Transitions are synchronous, so on a single event loop a check-and-set can
never interleave with another coroutine.
"""

import enum
import logging
from typing import Callable, List, Optional

from storefront.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class SubmissionState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PLACING_ORDER = "placing_order"
    AWAITING_PAYMENT = "awaiting_payment"
    PROCESSING_SUCCESS = "processing_success"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    SubmissionState.IDLE: {SubmissionState.VALIDATING},
    SubmissionState.FAILED: {SubmissionState.VALIDATING},
    SubmissionState.VALIDATING: {SubmissionState.FAILED, SubmissionState.PLACING_ORDER},
    SubmissionState.PLACING_ORDER: {SubmissionState.FAILED, SubmissionState.AWAITING_PAYMENT},
    SubmissionState.AWAITING_PAYMENT: {SubmissionState.PROCESSING_SUCCESS},
    SubmissionState.PROCESSING_SUCCESS: {SubmissionState.SUCCEEDED, SubmissionState.AWAITING_PAYMENT},
    SubmissionState.SUCCEEDED: {SubmissionState.IDLE},
}

# States in which checkout is editable and live updates make sense
QUIESCENT_STATES = frozenset({
    SubmissionState.IDLE,
    SubmissionState.VALIDATING,
    SubmissionState.FAILED,
})

StateListener = Callable[[SubmissionState, SubmissionState], None]


class SubmissionStateMachine:
    """Owned state of a single checkout session."""

    def __init__(self, initial: SubmissionState = SubmissionState.IDLE):
        self._state = initial
        self.failure_reason: Optional[str] = None
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def is_quiescent(self) -> bool:
        return self._state in QUIESCENT_STATES

    @property
    def accepts_submission(self) -> bool:
        return SubmissionState.VALIDATING in ALLOWED_TRANSITIONS.get(self._state, ())

    def can_transition(self, target: SubmissionState) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self._state, ())

    def transition(self, target: SubmissionState, reason: Optional[str] = None) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: the move is not allowed from the current state
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self._state, target)

        previous = self._state
        self._state = target
        self.failure_reason = reason if target == SubmissionState.FAILED else None
        logger.debug(f"Submission state {previous.value} → {target.value}")

        for listener in list(self._listeners):
            listener(previous, target)

    def try_transition(self, target: SubmissionState) -> bool:
        """Transition if allowed; report whether it happened."""
        if not self.can_transition(target):
            return False
        self.transition(target)
        return True

    def fail(self, reason: str) -> None:
        self.transition(SubmissionState.FAILED, reason=reason)

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
