"""Executor — исполнение операций в порядке Checks-Effects-Interactions.

- OperationStateMachine: Received → Gating → Committing → Effected → Interacting → Done
- OperationRegistry: явная таблица операций
- MutationExecutor: gates → атомарный commit → внешние вызовы
"""

from .mutation_executor import MutationExecutor, OperationReceipt
from .operations import (
    ALL_OPERATIONS,
    AccountRule,
    Binding,
    Derivation,
    ModuleRef,
    Namespace,
    Operation,
    OperationPlan,
    OperationView,
)
from .registry import OperationRegistry, default_registry
from .state_machine import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    OperationState,
    OperationStateMachine,
    StateTransition,
)

__all__ = [
    "MutationExecutor",
    "OperationReceipt",
    "ALL_OPERATIONS",
    "AccountRule",
    "Binding",
    "Derivation",
    "ModuleRef",
    "Namespace",
    "Operation",
    "OperationPlan",
    "OperationView",
    "OperationRegistry",
    "default_registry",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "OperationState",
    "OperationStateMachine",
    "StateTransition",
]
