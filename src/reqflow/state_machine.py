"""Request pipeline state machine."""

from enum import Enum, auto
from typing import ClassVar


class PipelineState(Enum):
    """Stages of a single pipeline run.

    State transitions:
        BUILD_REQUEST -> INTERCEPT_OUTBOUND: Request built
        INTERCEPT_OUTBOUND -> EXECUTE: Request interceptors passed
        EXECUTE -> DECODE_COMPRESSION: Response received
        DECODE_COMPRESSION -> VALIDATE_STATUS: Body decoder installed
        VALIDATE_STATUS -> INTERCEPT_INBOUND: Status accepted
        INTERCEPT_INBOUND -> DONE: Response interceptors passed
        Any non-terminal -> FAILED: A step raised
    """

    BUILD_REQUEST = auto()
    INTERCEPT_OUTBOUND = auto()
    EXECUTE = auto()
    DECODE_COMPRESSION = auto()
    VALIDATE_STATUS = auto()
    INTERCEPT_INBOUND = auto()
    DONE = auto()
    FAILED = auto()


class PipelineStateError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: PipelineState, to_state: PipelineState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


class PipelineStateMachine:
    """State machine for one pipeline run.

    Enforces the linear order of pipeline steps.
    """

    VALID_TRANSITIONS: ClassVar[dict[PipelineState, set[PipelineState]]] = {
        PipelineState.BUILD_REQUEST: {
            PipelineState.INTERCEPT_OUTBOUND,
            PipelineState.FAILED,
        },
        PipelineState.INTERCEPT_OUTBOUND: {
            PipelineState.EXECUTE,
            PipelineState.FAILED,
        },
        PipelineState.EXECUTE: {
            PipelineState.DECODE_COMPRESSION,
            PipelineState.FAILED,
        },
        PipelineState.DECODE_COMPRESSION: {
            PipelineState.VALIDATE_STATUS,
            PipelineState.FAILED,
        },
        PipelineState.VALIDATE_STATUS: {
            PipelineState.INTERCEPT_INBOUND,
            PipelineState.FAILED,
        },
        PipelineState.INTERCEPT_INBOUND: {PipelineState.DONE, PipelineState.FAILED},
        PipelineState.DONE: set(),  # Terminal state
        PipelineState.FAILED: set(),  # Terminal state
    }

    def __init__(self) -> None:
        """Initialize the state machine in BUILD_REQUEST state."""
        self._state = PipelineState.BUILD_REQUEST
        self._failed_at: PipelineState | None = None

    @property
    def state(self) -> PipelineState:
        """Get the current state."""
        return self._state

    @property
    def failed_at(self) -> PipelineState | None:
        """State that was active when the run failed."""
        return self._failed_at

    def can_transition(self, to_state: PipelineState) -> bool:
        """Check if a transition to the given state is valid.

        Args:
            to_state: The target state.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: PipelineState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            PipelineStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            raise PipelineStateError(self._state, to_state)
        if to_state == PipelineState.FAILED:
            self._failed_at = self._state
        self._state = to_state

    def fail(self) -> None:
        """Move to FAILED unless already terminal."""
        if not self.is_terminal():
            self.transition(PipelineState.FAILED)

    def is_terminal(self) -> bool:
        """Check if the current state is terminal (no more transitions allowed)."""
        return self._state in {PipelineState.DONE, PipelineState.FAILED}
