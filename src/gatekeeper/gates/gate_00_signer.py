"""GATE 0: Signer Gate

Первый gate в цепочке. Проверяет, что каждый principal, заявленный как
авторизующий операцию, действительно подписал ТЕКУЩИЙ запрос своим
приватным ключом.

Недостаточно, что public key principal'а присутствует среди account'ов
запроса или совпадает с хранимым authority: решает только проверенная
подпись (AuthorizationContext от runtime).

Блокировка → MissingSigner, до любого чтения state для мутации.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from src.core.domain.principal import Principal
from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import ErrorCode
from src.runtime.authorization import AuthorizationContext


@dataclass(frozen=True)
class Gate00Result:
    """Результат GATE 0."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    # Principal'ы с выведенным is_authorized (role → Principal)
    principals: Mapping[str, Principal] = field(default_factory=dict)
    missing_signers: tuple[str, ...] = ()

    # Детали
    details: str = ""


class Gate00Signer:
    """GATE 0: Signer Gate.

    Порядок проверок:
    1. Для каждой required роли → Principal из AuthorizationContext
    2. Любой principal без проверенной подписи → MissingSigner
    """

    def __init__(self):
        """GATE 0 не требует зависимостей (stateless)."""

    def evaluate(
        self,
        auth: AuthorizationContext,
        required_signers: Mapping[str, bytes],
    ) -> Gate00Result:
        """Оценка GATE 0.

        Args:
            auth: проверенные runtime'ом signer'ы запроса
            required_signers: role → public key principal'а, который обязан подписать

        Returns:
            Gate00Result с решением о допуске
        """
        principals = {role: auth.principal(pubkey) for role, pubkey in required_signers.items()}
        missing = tuple(role for role, p in principals.items() if not p.is_authorized)

        if missing:
            named = ", ".join(f"{role}={principals[role].hex[:16]}…" for role in missing)
            return Gate00Result(
                entry_allowed=False,
                block_reason=f"missing_signer: {', '.join(missing)}",
                error_code=ErrorCode.MISSING_SIGNER,
                principals=principals,
                missing_signers=missing,
                details=f"No valid signature for {named}",
            )

        signed = ", ".join(pubkey_to_hex(pk)[:16] for pk in required_signers.values())
        return Gate00Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            principals=principals,
            missing_signers=(),
            details=f"PASS: signers=[{signed}]" if signed else "PASS: no signers required",
        )
