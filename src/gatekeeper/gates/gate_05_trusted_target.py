"""GATE 5: Trusted-Target Guard

Последний gate в цепочке (после GATE 0-4), выполняется ДО commit.
Перед любым cross-module вызовом сверяет идентичность целевого модуля
с фиксированным allow-list из конфигурации (не из request).

Если target не в allow-list, вызов не выполняется вообще и никакие
эффекты не применяются: операция abort'ится с UntrustedTarget.

Интеграция:
- target=None означает, что операция не делает внешних вызовов (PASS)
"""

from dataclasses import dataclass
from typing import Optional

from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import ErrorCode
from src.gatekeeper.gates.gate_04_domain_invariants import Gate04Result


@dataclass(frozen=True)
class Gate05Result:
    """Результат GATE 5."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    target: Optional[bytes] = None
    is_trusted: bool = False

    # Детали
    details: str = ""


@dataclass(frozen=True)
class Gate05Config:
    """Конфигурация GATE 5.

    trusted_targets — allow-list module id, задаётся при конструировании.
    """

    trusted_targets: frozenset[bytes] = frozenset()


class Gate05TrustedTarget:
    """GATE 5: Trusted-Target Guard."""

    def __init__(self, config: Gate05Config | None = None):
        self.config = config or Gate05Config()

    def is_trusted(self, target: bytes) -> bool:
        return target in self.config.trusted_targets

    def evaluate(
        self,
        gate04_result: Gate04Result,
        target: Optional[bytes],
    ) -> Gate05Result:
        """Оценка GATE 5.

        Args:
            gate04_result: результат GATE 4 (включает блокировки GATE 0-3)
            target: module id цели внешнего вызова (None если вызова нет)

        Returns:
            Gate05Result с решением о допуске
        """
        if not gate04_result.entry_allowed:
            return Gate05Result(
                entry_allowed=False,
                block_reason=f"gate04_blocked: {gate04_result.block_reason}",
                error_code=gate04_result.error_code,
                target=target,
                details=f"GATE 4 blocked: {gate04_result.block_reason}",
            )

        if target is None:
            return Gate05Result(
                entry_allowed=True,
                block_reason="",
                error_code=None,
                details="PASS: no outbound invocation",
            )

        if not self.is_trusted(target):
            return Gate05Result(
                entry_allowed=False,
                block_reason="untrusted_target",
                error_code=ErrorCode.UNTRUSTED_TARGET,
                target=target,
                is_trusted=False,
                details=f"Target {pubkey_to_hex(target)} is not allow-listed",
            )

        return Gate05Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            target=target,
            is_trusted=True,
            details=f"PASS: target {pubkey_to_hex(target)[:16]}… allow-listed",
        )
