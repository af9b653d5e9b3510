"""GATE 3: Address Derivation Verifier + Authority Binding

Четвёртый gate в цепочке (после GATE 0-2), только для derived account'ов.

Derivation:
- пересчитывает derive(namespace, principal) и требует
  presented address == канонический адрес
- требует stored bump == канонический bump
Это единственный способ гарантировать ровно один account для пары
(namespace, principal): иначе злоумышленник подставляет заранее
созданный account с выгодным ему балансом.

Authority binding (has_one):
- хранимый authority record'а == principal, подписавший запрос

Блокировка → InvalidDerivation / Unauthorized / InvalidTokenOwner.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import ErrorCode, InvalidDerivationError
from src.gatekeeper.gates.gate_00_signer import Gate00Result
from src.gatekeeper.gates.gate_01_provenance import Gate01Result
from src.gatekeeper.gates.gate_02_type_tag import Gate02Result
from src.runtime.derivation import find_derived_address, namespace_seeds


# =============================================================================
# CHECKS
# =============================================================================


@dataclass(frozen=True)
class DerivationCheck:
    """Ожидание: address — канонический derived address (namespace, principal)."""

    role: str
    address: bytes
    namespace: str
    principal: bytes
    # None для account'а, который ещё только создаётся
    stored_bump: Optional[int] = None


@dataclass(frozen=True)
class AuthorityBinding:
    """Ожидание: хранимая идентичность == presented principal."""

    role: str
    stored: bytes
    presented: bytes
    error_code: ErrorCode = ErrorCode.UNAUTHORIZED


# =============================================================================
# RESULT / CONFIG
# =============================================================================


@dataclass(frozen=True)
class Gate03Result:
    """Результат GATE 3."""

    entry_allowed: bool
    block_reason: str
    error_code: Optional[ErrorCode]

    # Канонические bump'ы (role → bump)
    bumps: Mapping[str, int] = field(default_factory=dict)

    # Детали
    details: str = ""


@dataclass(frozen=True)
class Gate03Config:
    """Конфигурация GATE 3."""

    # Модуль, от имени которого выводятся адреса
    module_id: bytes


# =============================================================================
# GATE 3
# =============================================================================


class Gate03Derivation:
    """GATE 3: Address Derivation Verifier.

    Порядок проверок:
    1. GATE 0-2 блокировки
    2. Derivation checks (address, затем bump)
    3. Authority bindings
    """

    def __init__(self, config: Gate03Config):
        self.config = config

    def evaluate(
        self,
        gate00_result: Gate00Result,
        gate01_result: Gate01Result,
        gate02_result: Gate02Result,
        derivations: Sequence[DerivationCheck] = (),
        bindings: Sequence[AuthorityBinding] = (),
    ) -> Gate03Result:
        """Оценка GATE 3.

        Args:
            gate00_result: результат GATE 0 (signer)
            gate01_result: результат GATE 1 (provenance)
            gate02_result: результат GATE 2 (type tag)
            derivations: ожидания derived адресов
            bindings: ожидания authority binding

        Returns:
            Gate03Result с каноническими bump'ами
        """
        for name, upstream in (
            ("gate00", gate00_result),
            ("gate01", gate01_result),
            ("gate02", gate02_result),
        ):
            if not upstream.entry_allowed:
                return Gate03Result(
                    entry_allowed=False,
                    block_reason=f"{name}_blocked: {upstream.block_reason}",
                    error_code=upstream.error_code,
                    details=f"{name.upper()} blocked: {upstream.block_reason}",
                )

        bumps: dict[str, int] = {}
        for check in derivations:
            try:
                canonical, bump = find_derived_address(
                    namespace_seeds(check.namespace, check.principal), self.config.module_id
                )
            except InvalidDerivationError as e:
                return self._blocked(ErrorCode.INVALID_DERIVATION, check.role, e.message)

            if check.address != canonical:
                return self._blocked(
                    ErrorCode.INVALID_DERIVATION,
                    check.role,
                    f"address {pubkey_to_hex(check.address)[:16]}… != derive("
                    f"{check.namespace!r}, {pubkey_to_hex(check.principal)[:16]}…) = "
                    f"{pubkey_to_hex(canonical)[:16]}…",
                )

            if check.stored_bump is not None and check.stored_bump != bump:
                return self._blocked(
                    ErrorCode.INVALID_DERIVATION,
                    check.role,
                    f"stored bump {check.stored_bump} != canonical bump {bump}",
                )

            bumps[check.role] = bump

        for binding in bindings:
            if binding.stored != binding.presented:
                return self._blocked(
                    binding.error_code,
                    binding.role,
                    f"stored {pubkey_to_hex(binding.stored)[:16]}… != presented "
                    f"{pubkey_to_hex(binding.presented)[:16]}…",
                )

        return Gate03Result(
            entry_allowed=True,
            block_reason="",
            error_code=None,
            bumps=bumps,
            details=(
                f"PASS: derivations={sorted(bumps)}, "
                f"bindings={[b.role for b in bindings]}"
            ),
        )

    def _blocked(self, error_code: ErrorCode, role: str, details: str) -> Gate03Result:
        return Gate03Result(
            entry_allowed=False,
            block_reason=f"{error_code.value}: {role}",
            error_code=error_code,
            details=details,
        )
