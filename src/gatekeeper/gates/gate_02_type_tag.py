"""GATE 2: Type-Tag Verifier

Третий gate в цепочке (после GATE 0-1). Читает structural tag в начале
Account.data и сравнивает его с ожидаемым типом record'а для операции,
даже если owning_module корректен.

Два record'а одного модуля с одинаковой шириной не взаимозаменяемы:
дискриминатор — tag, не размер layout.

Блокировка → InvalidAccountType.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from src.core.domain.records import Record, decode_record, read_type_tag
from src.core.errors import ErrorCode, InvalidAccountTypeError
from src.gatekeeper.gates.gate_00_signer import Gate00Result
from src.gatekeeper.gates.gate_01_provenance import Gate01Result


@dataclass(frozen=True)
class Gate02Result:
    """Результат GATE 2."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    # Typed records (role → Record)
    records: Mapping[str, Record] = field(default_factory=dict)

    # Детали
    details: str = ""


class Gate02TypeTag:
    """GATE 2: Type-Tag Verifier.

    Порядок проверок:
    1. GATE 0-1 блокировки
    2. Для каждой роли: tag == expected.type_tag() → decode
    """

    def __init__(self):
        """GATE 2 не требует зависимостей (stateless)."""

    def evaluate(
        self,
        gate00_result: Gate00Result,
        gate01_result: Gate01Result,
        expected_types: Mapping[str, type[Record]],
    ) -> Gate02Result:
        """Оценка GATE 2.

        Args:
            gate00_result: результат GATE 0 (signer)
            gate01_result: результат GATE 1 (provenance, accounts)
            expected_types: role → ожидаемый тип record'а

        Returns:
            Gate02Result с decoded records
        """
        for name, upstream in (("gate00", gate00_result), ("gate01", gate01_result)):
            if not upstream.entry_allowed:
                return Gate02Result(
                    entry_allowed=False,
                    block_reason=f"{name}_blocked: {upstream.block_reason}",
                    error_code=upstream.error_code,
                    details=f"{name.upper()} blocked: {upstream.block_reason}",
                )

        records: dict[str, Record] = {}
        for role, expected in expected_types.items():
            account = gate01_result.accounts[role]
            try:
                records[role] = decode_record(account.data, expected)
            except InvalidAccountTypeError as e:
                return Gate02Result(
                    entry_allowed=False,
                    block_reason=f"invalid_account_type: {role}",
                    error_code=ErrorCode.INVALID_ACCOUNT_TYPE,
                    details=(
                        f"Role '{role}' expected {expected.RECORD_NAME} "
                        f"(tag {expected.type_tag().hex()}), got tag "
                        f"{read_type_tag(account.data).hex() or '<none>'}: {e.message}"
                    ),
                )

        return Gate02Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            records=records,
            details=f"PASS: types verified for {sorted(records)}",
        )
