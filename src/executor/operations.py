"""
Operations — декларативные определения операций ядра

Каждая операция описывает:
- signer_roles: роли principal'ов, обязанных подписать запрос (GATE 0)
- account_rules: presented account'ы, их модуль-владелец (GATE 1),
  тип record'а (GATE 2), derivation и authority binding (GATE 3)
- target_role: роль module id цели внешнего вызова (GATE 5)
- checks(): доменные инварианты (GATE 4)
- apply(): эффекты (новые record'ы) и interactions, без записи в ledger

Операция никогда не пишет в ledger сама и не вызывает внешние модули:
это делает MutationExecutor строго после прохождения всех gates.
Вся арифметика над балансами — через src.core.math.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, TypeVar

from src.core.config import CoreConfig
from src.core.domain.pubkey import pubkey_from_hex, pubkey_to_hex
from src.core.domain.records import ConfigRecord, Record, TokenAccountRecord, VaultRecord
from src.core.domain.request import OperationRequest, ParamValue
from src.core.errors import ErrorCode, InvalidRequestError
from src.core.math.checked_arithmetic import checked_add, checked_sub, saturating_add
from src.core.math.compounding import accrue_reward, compound_rewards
from src.gatekeeper.gates.gate_04_domain_invariants import DomainCheck
from src.runtime.token_module import Invocation, TokenTransfer

# =============================================================================
# DECLARATIVE RULES
# =============================================================================


class ModuleRef(str, Enum):
    """Модуль, который обязан владеть account'ом роли."""

    CORE = "core"
    TOKEN = "token"


class Namespace(str, Enum):
    """Namespace derived account'а (значение берётся из CoreConfig)."""

    VAULT = "vault"
    CONFIG = "config"

    def resolve(self, config: CoreConfig) -> str:
        if self is Namespace.VAULT:
            return config.vault_namespace
        return config.config_namespace


@dataclass(frozen=True)
class Derivation:
    """
    Account роли обязан быть каноническим derived address.

    seed_role: роль principal'а, ключ которого seed'ит адрес создаваемого
    account'а. Для существующего account'а seed — хранимый origin.
    """

    namespace: Namespace
    seed_role: Optional[str] = None


@dataclass(frozen=True)
class Binding:
    """has_one: поле record'а == адрес роли (None → идентичность core module)."""

    record_field: str
    role: Optional[str] = None
    error_code: ErrorCode = ErrorCode.UNAUTHORIZED


@dataclass(frozen=True)
class AccountRule:
    """Ожидания к presented account'у одной роли."""

    role: str
    record_type: type[Record]
    owner: ModuleRef = ModuleRef.CORE
    derivation: Optional[Derivation] = None
    binding: Optional[Binding] = None
    # True: account создаётся операцией и ещё не должен существовать
    create: bool = False


# =============================================================================
# VIEW / PLAN
# =============================================================================

R = TypeVar("R", bound=Record)


@dataclass(frozen=True)
class OperationView:
    """Проверенное gates состояние, доступное операции (read-only)."""

    request: OperationRequest
    config: CoreConfig
    addresses: Mapping[str, bytes]
    records: Mapping[str, Record] = field(default_factory=dict)
    bumps: Mapping[str, int] = field(default_factory=dict)
    # Адреса create-ролей, уже занятые в ledger
    occupied: frozenset[bytes] = frozenset()

    @property
    def bound(self) -> int:
        return self.config.balance_bound

    def address(self, role: str) -> bytes:
        return self.addresses[role]

    def param(self, name: str, default: Optional[ParamValue] = None) -> Any:
        return self.request.params.get(name, default)

    def record(self, role: str, expected: type[R]) -> R:
        record = self.records[role]
        if not isinstance(record, expected):
            raise TypeError(f"role '{role}' holds {type(record).__name__}, not {expected.__name__}")
        return record

    def vault(self, role: str = "vault") -> VaultRecord:
        return self.record(role, VaultRecord)

    def token_account(self, role: str) -> TokenAccountRecord:
        return self.record(role, TokenAccountRecord)

    def is_occupied(self, role: str) -> bool:
        return self.addresses[role] in self.occupied


@dataclass(frozen=True)
class OperationPlan:
    """
    Результат apply(): что записать и что вызвать.

    writes/creates адресуются ролями; executor переводит их в адреса,
    кодирует record'ы и коммитит одним атомарным пакетом.
    """

    writes: Mapping[str, Record] = field(default_factory=dict)
    creates: Mapping[str, Record] = field(default_factory=dict)
    interactions: tuple[Invocation, ...] = ()
    result: Any = None


# =============================================================================
# BASE OPERATION
# =============================================================================


class Operation(ABC):
    """Базовое определение операции."""

    operation_id: ClassVar[str] = ""
    signer_roles: ClassVar[tuple[str, ...]] = ()
    account_rules: ClassVar[tuple[AccountRule, ...]] = ()
    target_role: ClassVar[Optional[str]] = None

    @property
    def roles(self) -> tuple[str, ...]:
        """Все роли, которые обязан содержать request."""
        roles = [*self.signer_roles, *(rule.role for rule in self.account_rules)]
        if self.target_role is not None:
            roles.append(self.target_role)
        return tuple(dict.fromkeys(roles))

    def preflight(self, request: OperationRequest, config: CoreConfig) -> None:
        """Структурные проверки params до gating (InvalidRequestError)."""

    def checks(self, view: OperationView) -> list[DomainCheck]:
        return []

    @abstractmethod
    def apply(self, view: OperationView) -> OperationPlan:
        """Вычисление эффектов. Checked arithmetic ошибки abort'ят операцию."""


def _amount_positive(amount: int) -> DomainCheck:
    return DomainCheck(
        name="amount_positive",
        passed=amount > 0,
        error_code=ErrorCode.INVALID_AMOUNT,
        details="amount must be greater than zero",
    )


def _sufficient(name: str, available: int, amount: int) -> DomainCheck:
    return DomainCheck(
        name=name,
        passed=available >= amount,
        error_code=ErrorCode.INSUFFICIENT_FUNDS,
        details=f"available {available} < requested {amount}",
    )


def _not_initialized(view: OperationView, role: str) -> DomainCheck:
    return DomainCheck(
        name="not_initialized",
        passed=not view.is_occupied(role),
        error_code=ErrorCode.ACCOUNT_ALREADY_INITIALIZED,
        details=f"{pubkey_to_hex(view.address(role))} already exists",
    )


_VAULT = AccountRule("vault", VaultRecord, derivation=Derivation(Namespace.VAULT))
_OWNED_VAULT = AccountRule(
    "vault",
    VaultRecord,
    derivation=Derivation(Namespace.VAULT),
    binding=Binding("authority", "authority"),
)
_CUSTODY = AccountRule(
    "custody",
    TokenAccountRecord,
    owner=ModuleRef.TOKEN,
    binding=Binding("owner", None, ErrorCode.INVALID_OWNER),
)


# =============================================================================
# VAULT LIFECYCLE
# =============================================================================


class InitializeAccount(Operation):
    """Создание vault'а для authority по адресу derive(vault_namespace, authority)."""

    operation_id = "initialize_account"
    signer_roles = ("authority",)
    account_rules = (
        AccountRule(
            "vault",
            VaultRecord,
            derivation=Derivation(Namespace.VAULT, seed_role="authority"),
            create=True,
        ),
    )

    def preflight(self, request: OperationRequest, config: CoreConfig) -> None:
        namespace = request.params.get("namespace", config.vault_namespace)
        if namespace != config.vault_namespace:
            raise InvalidRequestError(
                f"namespace {namespace!r} is not the vault namespace {config.vault_namespace!r}"
            )

    def checks(self, view: OperationView) -> list[DomainCheck]:
        return [_not_initialized(view, "vault")]

    def apply(self, view: OperationView) -> OperationPlan:
        authority = view.address("authority")
        record = VaultRecord(
            authority=authority,
            origin=authority,
            withdrawal_limit=view.param("withdrawal_limit", 0),
            bump=view.bumps["vault"],
        )
        return OperationPlan(
            creates={"vault": record},
            result=pubkey_to_hex(view.address("vault")),
        )


class UpdateAuthority(Operation):
    """Замена authority; подписывает текущий authority."""

    operation_id = "update_authority"
    signer_roles = ("authority",)
    account_rules = (_OWNED_VAULT,)

    def apply(self, view: OperationView) -> OperationPlan:
        new_authority = pubkey_from_hex(view.param("new_authority"))
        updated = view.vault().model_copy(update={"authority": new_authority})
        return OperationPlan(writes={"vault": updated}, result=pubkey_to_hex(new_authority))


# =============================================================================
# BALANCE OPERATIONS
# =============================================================================


class Deposit(Operation):
    """Зачисление на баланс (checked). Signer не требуется."""

    operation_id = "deposit"
    account_rules = (_VAULT,)

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        updated = vault.model_copy(
            update={"total_deposited": checked_add(vault.total_deposited, view.param("amount"), view.bound)}
        )
        return OperationPlan(writes={"vault": updated}, result=updated.balance)


class DepositSaturating(Operation):
    """Зачисление с clamp к границе баланса."""

    operation_id = "deposit_saturating"
    account_rules = (_VAULT,)

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        updated = vault.model_copy(
            update={
                "total_deposited": saturating_add(vault.total_deposited, view.param("amount"), view.bound)
            }
        )
        return OperationPlan(writes={"vault": updated}, result=updated.balance)


class Withdraw(Operation):
    """
    Вывод: списание с vault, затем token transfer custody → destination.

    Custody — token account, принадлежащий core module; transfer
    авторизуется идентичностью core module.
    """

    operation_id = "withdraw"
    signer_roles = ("authority",)
    account_rules = (
        _OWNED_VAULT,
        _CUSTODY,
        AccountRule(
            "destination",
            TokenAccountRecord,
            owner=ModuleRef.TOKEN,
            binding=Binding("owner", "authority", ErrorCode.INVALID_TOKEN_OWNER),
        ),
    )
    target_role = "token_program"

    def checks(self, view: OperationView) -> list[DomainCheck]:
        vault = view.vault()
        amount = view.param("amount")
        return [
            _amount_positive(amount),
            _sufficient("sufficient_funds", vault.balance, amount),
            DomainCheck(
                name="withdrawal_limit",
                passed=vault.can_withdraw(amount),
                error_code=ErrorCode.WITHDRAWAL_LIMIT_EXCEEDED,
                details=(
                    f"withdrawn {vault.total_withdrawn} + {amount} > limit {vault.withdrawal_limit}"
                ),
            ),
            _sufficient("custody_liquidity", view.token_account("custody").amount, amount),
        ]

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        amount = view.param("amount")
        updated = vault.model_copy(
            update={
                "total_deposited": checked_sub(vault.total_deposited, amount, view.bound),
                "total_withdrawn": checked_add(vault.total_withdrawn, amount, view.bound),
            }
        )
        transfer = TokenTransfer(
            source=view.address("custody"),
            destination=view.address("destination"),
            authority=view.config.module_id_bytes,
            amount=amount,
        )
        return OperationPlan(
            writes={"vault": updated},
            interactions=(Invocation(target=view.address("token_program"), instruction=transfer),),
            result=updated.balance,
        )


class Transfer(Operation):
    """Перевод между двумя vault'ами; подписывает authority источника."""

    operation_id = "transfer"
    signer_roles = ("authority",)
    account_rules = (
        AccountRule(
            "source",
            VaultRecord,
            derivation=Derivation(Namespace.VAULT),
            binding=Binding("authority", "authority"),
        ),
        AccountRule("destination", VaultRecord, derivation=Derivation(Namespace.VAULT)),
    )

    def checks(self, view: OperationView) -> list[DomainCheck]:
        amount = view.param("amount")
        return [
            _amount_positive(amount),
            DomainCheck(
                name="distinct_accounts",
                passed=view.address("source") != view.address("destination"),
                error_code=ErrorCode.INVALID_REQUEST,
                details="source and destination must be different vaults",
            ),
            _sufficient("sufficient_funds", view.vault("source").balance, amount),
        ]

    def apply(self, view: OperationView) -> OperationPlan:
        source = view.vault("source")
        destination = view.vault("destination")
        amount = view.param("amount")
        new_source = source.model_copy(
            update={"total_deposited": checked_sub(source.total_deposited, amount, view.bound)}
        )
        new_destination = destination.model_copy(
            update={"total_deposited": checked_add(destination.total_deposited, amount, view.bound)}
        )
        return OperationPlan(
            writes={"source": new_source, "destination": new_destination},
            result=new_source.balance,
        )


class ProcessPayment(Operation):
    """Оплата: зачисление на vault, затем token transfer payer → custody."""

    operation_id = "process_payment"
    signer_roles = ("payer",)
    account_rules = (
        _VAULT,
        AccountRule(
            "payer_token",
            TokenAccountRecord,
            owner=ModuleRef.TOKEN,
            binding=Binding("owner", "payer", ErrorCode.INVALID_TOKEN_OWNER),
        ),
        _CUSTODY,
    )
    target_role = "token_program"

    def checks(self, view: OperationView) -> list[DomainCheck]:
        return [
            _sufficient("payer_balance", view.token_account("payer_token").amount, view.param("amount")),
        ]

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        amount = view.param("amount")
        updated = vault.model_copy(
            update={"total_deposited": checked_add(vault.total_deposited, amount, view.bound)}
        )
        transfer = TokenTransfer(
            source=view.address("payer_token"),
            destination=view.address("custody"),
            authority=view.address("payer"),
            amount=amount,
        )
        return OperationPlan(
            writes={"vault": updated},
            interactions=(Invocation(target=view.address("token_program"), instruction=transfer),),
            result=updated.balance,
        )


# =============================================================================
# REWARDS
# =============================================================================


class AccrueReward(Operation):
    """total_rewards += balance × multiplier."""

    operation_id = "accrue_reward"
    account_rules = (_VAULT,)

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        reward = accrue_reward(vault.balance, view.param("multiplier"), view.bound)
        updated = vault.model_copy(
            update={"total_rewards": checked_add(vault.total_rewards, reward, view.bound)}
        )
        return OperationPlan(writes={"vault": updated}, result=reward)


class Compound(Operation):
    """total_rewards += compound(balance) - balance (режим из CoreConfig)."""

    operation_id = "compound"
    account_rules = (_VAULT,)

    def checks(self, view: OperationView) -> list[DomainCheck]:
        periods = view.param("periods")
        max_periods = view.config.max_compound_periods
        return [
            DomainCheck(
                name="rate_denominator",
                passed=view.param("rate_den") != 0,
                error_code=ErrorCode.DIVISION_BY_ZERO,
                details="rate_den must be non-zero",
            ),
            DomainCheck(
                name="periods_range",
                passed=0 < periods <= max_periods,
                error_code=ErrorCode.INVALID_PERIODS,
                details=f"periods {periods} not in (0, {max_periods}]",
            ),
        ]

    def apply(self, view: OperationView) -> OperationPlan:
        vault = view.vault()
        reward = compound_rewards(
            vault.balance,
            view.param("rate_num"),
            view.param("rate_den"),
            view.param("periods"),
            mode=view.config.compounding_mode,
            max_periods=view.config.max_compound_periods,
            bound=view.bound,
        )
        updated = vault.model_copy(
            update={"total_rewards": checked_add(vault.total_rewards, reward, view.bound)}
        )
        return OperationPlan(writes={"vault": updated}, result=reward)


# =============================================================================
# ADMIN CONFIG
# =============================================================================


class InitializeConfig(Operation):
    """Создание config account'а admin'а."""

    operation_id = "initialize_config"
    signer_roles = ("admin",)
    account_rules = (
        AccountRule(
            "config",
            ConfigRecord,
            derivation=Derivation(Namespace.CONFIG, seed_role="admin"),
            create=True,
        ),
    )

    def checks(self, view: OperationView) -> list[DomainCheck]:
        return [_not_initialized(view, "config")]

    def apply(self, view: OperationView) -> OperationPlan:
        admin = view.address("admin")
        record = ConfigRecord(
            admin=admin,
            origin=admin,
            enabled=view.param("enabled", True),
            bump=view.bumps["config"],
        )
        return OperationPlan(
            creates={"config": record},
            result=pubkey_to_hex(view.address("config")),
        )


class ProcessConfig(Operation):
    """Чтение config: возвращает admin, если config включён."""

    operation_id = "process_config"
    account_rules = (AccountRule("config", ConfigRecord, derivation=Derivation(Namespace.CONFIG)),)

    def checks(self, view: OperationView) -> list[DomainCheck]:
        return [
            DomainCheck(
                name="config_enabled",
                passed=view.record("config", ConfigRecord).enabled,
                error_code=ErrorCode.CONFIG_DISABLED,
                details="config is disabled",
            )
        ]

    def apply(self, view: OperationView) -> OperationPlan:
        return OperationPlan(result=pubkey_to_hex(view.record("config", ConfigRecord).admin))


ALL_OPERATIONS: tuple[type[Operation], ...] = (
    InitializeAccount,
    Deposit,
    DepositSaturating,
    Withdraw,
    Transfer,
    AccrueReward,
    Compound,
    UpdateAuthority,
    ProcessPayment,
    InitializeConfig,
    ProcessConfig,
)
