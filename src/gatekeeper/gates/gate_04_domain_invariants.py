"""GATE 4: Domain Invariants

Пятый gate в цепочке (после GATE 0-3). Проверяет доменные инварианты
операции над уже проверенными record'ами: достаточный баланс, лимит
вывода, ненулевая сумма, включённая конфигурация и т.п.

Проверки формирует определение операции; gate применяет их строго
по порядку, первая проваленная блокирует операцию со своим ErrorCode.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from src.core.errors import ErrorCode
from src.gatekeeper.gates.gate_03_derivation import Gate03Result


@dataclass(frozen=True)
class DomainCheck:
    """Один доменный инвариант."""

    name: str
    passed: bool
    error_code: ErrorCode
    details: str = ""


@dataclass(frozen=True)
class Gate04Result:
    """Результат GATE 4."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    checks_evaluated: int = 0

    # Детали
    details: str = ""


class Gate04DomainInvariants:
    """GATE 4: Domain Invariants.

    GATE 0-2 не передаются явно: GATE 3 уже наследует их блокировку.
    """

    def __init__(self):
        """GATE 4 не требует зависимостей (stateless)."""

    def evaluate(
        self,
        gate03_result: Gate03Result,
        checks: Sequence[DomainCheck],
    ) -> Gate04Result:
        """Оценка GATE 4.

        Args:
            gate03_result: результат GATE 3 (включает блокировки GATE 0-2)
            checks: доменные инварианты в порядке проверки

        Returns:
            Gate04Result с решением о допуске
        """
        if not gate03_result.entry_allowed:
            return Gate04Result(
                entry_allowed=False,
                block_reason=f"gate03_blocked: {gate03_result.block_reason}",
                error_code=gate03_result.error_code,
                details=f"GATE 3 blocked: {gate03_result.block_reason}",
            )

        for index, check in enumerate(checks):
            if not check.passed:
                return Gate04Result(
                    entry_allowed=False,
                    block_reason=f"{check.name}",
                    error_code=check.error_code,
                    checks_evaluated=index + 1,
                    details=check.details or f"Invariant '{check.name}' violated",
                )

        return Gate04Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            checks_evaluated=len(checks),
            details=f"PASS: {len(checks)} invariant(s) hold",
        )
