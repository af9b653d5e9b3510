"""GATE 1: Provenance Verifier

Второй gate в цепочке (после GATE 0). До того как data любого account'а
будет десериализован и принят на доверие, проверяет:
- account существует в ledger
- owning_module == модуль, определяющий layout ожидаемого record'а

Без этой проверки caller может подставить account, созданный
произвольным модулем, с байтами злоумышленника на тех же offsets.

Блокировка → InvalidOwner (подкласс Unauthorized) или AccountNotFound.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from src.core.domain.account import Account
from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import ErrorCode
from src.gatekeeper.gates.gate_00_signer import Gate00Result


@dataclass(frozen=True)
class Gate01Result:
    """Результат GATE 1."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    # Account'ы с подтверждённым provenance (role → Account)
    accounts: Mapping[str, Account] = field(default_factory=dict)

    # Детали
    details: str = ""


class Gate01Provenance:
    """GATE 1: Provenance Verifier.

    Порядок проверок:
    1. GATE 0 блокировка
    2. Для каждой роли: account присутствует → AccountNotFound
    3. owning_module == ожидаемый модуль → InvalidOwner
    """

    def __init__(self):
        """GATE 1 не требует зависимостей (stateless)."""

    def evaluate(
        self,
        gate00_result: Gate00Result,
        presented: Mapping[str, Optional[Account]],
        expected_owners: Mapping[str, bytes],
    ) -> Gate01Result:
        """Оценка GATE 1.

        Args:
            gate00_result: результат GATE 0 (signer)
            presented: role → Account из ledger (None если адрес не найден)
            expected_owners: role → module id, определяющий layout

        Returns:
            Gate01Result с решением о допуске
        """
        if not gate00_result.entry_allowed:
            return Gate01Result(
                entry_allowed=False,
                block_reason=f"gate00_blocked: {gate00_result.block_reason}",
                error_code=gate00_result.error_code,
                details=f"GATE 0 blocked: {gate00_result.block_reason}",
            )

        verified: dict[str, Account] = {}
        for role, expected_owner in expected_owners.items():
            account = presented.get(role)
            if account is None:
                return Gate01Result(
                    entry_allowed=False,
                    block_reason=f"account_not_found: {role}",
                    error_code=ErrorCode.ACCOUNT_NOT_FOUND,
                    details=f"Account for role '{role}' does not exist",
                )

            if account.owning_module != expected_owner:
                return Gate01Result(
                    entry_allowed=False,
                    block_reason=f"invalid_owner: {role}",
                    error_code=ErrorCode.INVALID_OWNER,
                    details=(
                        f"Role '{role}' owned by {pubkey_to_hex(account.owning_module)[:16]}…, "
                        f"expected {pubkey_to_hex(expected_owner)[:16]}…"
                    ),
                )

            verified[role] = account

        return Gate01Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            accounts=verified,
            details=f"PASS: provenance verified for {sorted(verified)}",
        )
