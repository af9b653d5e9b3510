"""Operation Registry — явная таблица операций, передаваемая executor'у.

Нет глобальной регистрации: executor знает только операции из registry,
полученного при конструировании.
"""

from typing import Iterable, Iterator

from src.core.errors import UnknownOperationError
from src.executor.operations import ALL_OPERATIONS, Operation


class OperationRegistry:
    """operation_id → Operation."""

    def __init__(self, operations: Iterable[Operation] = ()):
        self._operations: dict[str, Operation] = {}
        for operation in operations:
            self.register(operation)

    def register(self, operation: Operation) -> None:
        """
        Raises:
            ValueError: пустой или уже зарегистрированный operation_id
        """
        if not operation.operation_id:
            raise ValueError(f"{type(operation).__name__} has no operation_id")
        if operation.operation_id in self._operations:
            raise ValueError(f"operation '{operation.operation_id}' already registered")
        self._operations[operation.operation_id] = operation

    def get(self, operation_id: str) -> Operation:
        """
        Raises:
            UnknownOperationError: операция не зарегистрирована
        """
        try:
            return self._operations[operation_id]
        except KeyError:
            raise UnknownOperationError(
                f"operation '{operation_id}' is not registered",
                details={"operation": operation_id},
            ) from None

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)


def default_registry() -> OperationRegistry:
    """Registry со всеми операциями ядра."""
    return OperationRegistry(operation_cls() for operation_cls in ALL_OPERATIONS)
