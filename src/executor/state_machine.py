"""Operation State Machine — состояния одной операции в Mutation Executor.

Received → Gating → {Aborted | Committing}
Committing → {Aborted (без записи) | Effected}
Effected → Interacting → {Done | InteractionFailed}

Aborted возможен только до commit; после Effected единственный путь
неудачи — InteractionFailed (state уже записан, внешний шаг упал).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Final, List


class OperationState(str, Enum):
    """Состояние операции."""

    RECEIVED = "RECEIVED"
    GATING = "GATING"
    ABORTED = "ABORTED"
    COMMITTING = "COMMITTING"
    EFFECTED = "EFFECTED"
    INTERACTING = "INTERACTING"
    DONE = "DONE"
    INTERACTION_FAILED = "INTERACTION_FAILED"


ALLOWED_TRANSITIONS: Final[dict[OperationState, frozenset[OperationState]]] = {
    # Aborted из Received: неизвестная операция / невалидный request
    OperationState.RECEIVED: frozenset({OperationState.GATING, OperationState.ABORTED}),
    OperationState.GATING: frozenset({OperationState.COMMITTING, OperationState.ABORTED}),
    OperationState.COMMITTING: frozenset({OperationState.EFFECTED, OperationState.ABORTED}),
    OperationState.EFFECTED: frozenset({OperationState.INTERACTING}),
    OperationState.INTERACTING: frozenset(
        {OperationState.DONE, OperationState.INTERACTION_FAILED}
    ),
    OperationState.ABORTED: frozenset(),
    OperationState.DONE: frozenset(),
    OperationState.INTERACTION_FAILED: frozenset(),
}

TERMINAL_STATES: Final[frozenset[OperationState]] = frozenset(
    {OperationState.ABORTED, OperationState.DONE, OperationState.INTERACTION_FAILED}
)


@dataclass(frozen=True)
class StateTransition:
    """Результат перехода состояния."""

    previous_state: OperationState
    new_state: OperationState
    reason: str


class OperationStateMachine:
    """State machine одной операции.

    Одноразовая: создаётся на каждый request, хранит trace всех состояний.
    Нелегальный переход — ошибка программирования executor'а (RuntimeError),
    не ошибка caller'а.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self._state = OperationState.RECEIVED
        self._history: List[StateTransition] = []

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def trace(self) -> tuple[OperationState, ...]:
        return (OperationState.RECEIVED,) + tuple(t.new_state for t in self._history)

    @property
    def history(self) -> tuple[StateTransition, ...]:
        return tuple(self._history)

    def can_transition(self, new_state: OperationState) -> bool:
        return new_state in ALLOWED_TRANSITIONS[self._state]

    def transition(self, new_state: OperationState, reason: str = "") -> StateTransition:
        """Переход в new_state.

        Raises:
            RuntimeError: переход не разрешён из текущего состояния
        """
        if not self.can_transition(new_state):
            raise RuntimeError(
                f"{self.operation}: illegal transition {self._state.value} → {new_state.value}"
            )

        result = StateTransition(
            previous_state=self._state,
            new_state=new_state,
            reason=reason,
        )
        self._history.append(result)
        self._state = new_state
        return result
