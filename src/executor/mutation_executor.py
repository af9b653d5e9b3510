"""
Mutation Executor — исполнение операции end-to-end

Checks-Effects-Interactions:
1. CHECKS: request contract (jsonschema) → GATE 0..5. Любая блокировка
   abort'ит операцию до единой записи.
2. EFFECTS: apply() операции → один атомарный ledger.commit.
3. INTERACTIONS: внешние вызовы (token transfer) только после commit.
   Re-entrant вызов видит уже списанный баланс.

Падение interaction после commit — InteractionFailedError (не recoverable):
средства списаны, но не доставлены; сверка out-of-band.

Trusted-Target Guard выполняется в фазе CHECKS: при недоверенной цели
нет ни записи, ни вызова.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from jsonschema import ValidationError

from src.core.audit_log import AuditLogger, audit_log, begin_operation, end_operation, get_operation_id
from src.core.config import CoreConfig
from src.core.contracts.validators import validate_operation_params, validate_operation_request
from src.core.domain.account import Account
from src.core.domain.pubkey import pubkey_to_hex
from src.core.domain.records import Record
from src.core.domain.request import OperationRequest, SignedRequest
from src.core.errors import (
    ErrorCode,
    InteractionFailedError,
    InvalidRequestError,
    LedgerError,
    UntrustedTargetError,
    error_for,
)
from src.executor.operations import ModuleRef, Operation, OperationPlan, OperationView
from src.executor.registry import OperationRegistry, default_registry
from src.executor.state_machine import OperationState, OperationStateMachine
from src.gatekeeper.gates import (
    AuthorityBinding,
    DerivationCheck,
    Gate00Signer,
    Gate01Provenance,
    Gate02TypeTag,
    Gate03Config,
    Gate03Derivation,
    Gate04DomainInvariants,
    Gate05Config,
    Gate05TrustedTarget,
)
from src.runtime.authorization import AuthorizationContext, RequestAuthenticator
from src.runtime.ledger import Ledger
from src.runtime.token_module import ExternalModule


@dataclass(frozen=True)
class OperationReceipt:
    """Результат успешно исполненной операции."""

    operation: str
    operation_id: str
    state: OperationState
    result: Any
    written: tuple[str, ...]
    created: tuple[str, ...]
    interactions: int
    trace: tuple[OperationState, ...]


class MutationExecutor:
    """
    Mutation Executor.

    Args:
        ledger: хранилище account'ов
        registry: таблица операций (default_registry() если None)
        config: CoreConfig (идентичность модуля, allow-list, границы)
        modules: внешние модули; каждый trusted target обязан быть среди них
        authenticator: проверка подписей (RequestAuthenticator если None)
        audit: audit logger
    """

    def __init__(
        self,
        ledger: Ledger,
        registry: Optional[OperationRegistry] = None,
        config: Optional[CoreConfig] = None,
        modules: Iterable[ExternalModule] = (),
        authenticator: Optional[RequestAuthenticator] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.config = config or CoreConfig()
        self._ledger = ledger
        self._registry = registry or default_registry()
        self._modules: dict[bytes, ExternalModule] = {m.module_id: m for m in modules}
        self._audit = audit or audit_log
        self._authenticator = authenticator or RequestAuthenticator(self._audit)
        self._module_id = self.config.module_id_bytes

        unregistered = [t for t in self.config.trusted_target_ids if t not in self._modules]
        if unregistered:
            raise ValueError(
                "trusted targets without a registered module: "
                + ", ".join(pubkey_to_hex(t) for t in unregistered)
            )

        self._gate00 = Gate00Signer()
        self._gate01 = Gate01Provenance()
        self._gate02 = Gate02TypeTag()
        self._gate03 = Gate03Derivation(Gate03Config(module_id=self._module_id))
        self._gate04 = Gate04DomainInvariants()
        self._gate05 = Gate05TrustedTarget(
            Gate05Config(trusted_targets=self.config.trusted_target_ids)
        )

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # ENTRY POINT
    # -------------------------------------------------------------------------

    def execute(self, signed: SignedRequest) -> OperationReceipt:
        """
        Исполнение подписанного запроса.

        Returns:
            OperationReceipt (state=DONE)

        Raises:
            LedgerError: abort до commit (state не изменён)
            InteractionFailedError: commit выполнен, внешний вызов упал
        """
        token = begin_operation()
        try:
            return self._execute(signed)
        finally:
            end_operation(token)

    def _execute(self, signed: SignedRequest) -> OperationReceipt:
        request = signed.request
        machine = OperationStateMachine(request.operation)
        self._audit.operation_received(request.operation, request.roles())

        try:
            operation = self._resolve(request)
            auth = self._authenticator.authenticate(signed)

            machine.transition(OperationState.GATING)
            view = self._gate(operation, request, auth)

            machine.transition(OperationState.COMMITTING)
            plan = operation.apply(view)
            written, created = self._commit(operation, view, plan)
            machine.transition(OperationState.EFFECTED)
        except LedgerError as e:
            machine.transition(OperationState.ABORTED, e.code.value)
            self._audit.operation_aborted(request.operation, e.code.value, e.message)
            raise

        self._audit.operation_effected(request.operation, list(written), list(created))

        machine.transition(OperationState.INTERACTING)
        for invocation in plan.interactions:
            target = pubkey_to_hex(invocation.target)
            try:
                self._modules[invocation.target].invoke(
                    self._ledger, invocation.instruction, self._module_id, auth.signers
                )
            except Exception as e:
                machine.transition(OperationState.INTERACTION_FAILED, str(e))
                self._audit.interaction_failed(request.operation, target, str(e))
                raise InteractionFailedError(
                    f"{request.operation}: state committed, interaction with {target} failed: {e}",
                    details={"operation": request.operation, "target": target, "written": list(written)},
                ) from e

        machine.transition(OperationState.DONE)
        self._audit.operation_done(request.operation, len(plan.interactions))

        return OperationReceipt(
            operation=request.operation,
            operation_id=get_operation_id(),
            state=machine.state,
            result=plan.result,
            written=written,
            created=created,
            interactions=len(plan.interactions),
            trace=machine.trace,
        )

    # -------------------------------------------------------------------------
    # REQUEST CONTRACT
    # -------------------------------------------------------------------------

    def _resolve(self, request: OperationRequest) -> Operation:
        """
        Raises:
            UnknownOperationError: операции нет в registry
            InvalidRequestError: request не соответствует контракту операции
        """
        operation = self._registry.get(request.operation)

        try:
            validate_operation_request(request.model_dump(mode="json"))
            validate_operation_params(operation.operation_id, dict(request.params))
        except ValidationError as e:
            raise InvalidRequestError(
                f"{request.operation}: {e.message}",
                details={"path": [str(p) for p in e.absolute_path]},
            ) from e

        presented = set(request.roles())
        expected = set(operation.roles)
        if presented != expected:
            raise InvalidRequestError(
                f"{request.operation}: roles mismatch",
                details={
                    "missing": sorted(expected - presented),
                    "unexpected": sorted(presented - expected),
                },
            )

        operation.preflight(request, self.config)
        return operation

    # -------------------------------------------------------------------------
    # CHECKS
    # -------------------------------------------------------------------------

    def _gate(
        self,
        operation: Operation,
        request: OperationRequest,
        auth: AuthorizationContext,
    ) -> OperationView:
        """GATE 0..5. Возвращает view для apply() или raise первой блокировки."""
        addresses = {role: request.address_of(role) for role in operation.roles}
        existing = [rule for rule in operation.account_rules if not rule.create]

        gate00 = self._gate00.evaluate(
            auth, {role: addresses[role] for role in operation.signer_roles}
        )
        # Ledger не читается, пока signer gate не пройден
        presented: dict[str, Optional[Account]] = {}
        expected_owners: dict[str, bytes] = {}
        if gate00.entry_allowed:
            presented = {rule.role: self._lookup(addresses[rule.role]) for rule in existing}
            expected_owners = {rule.role: self._owner_id(rule.owner) for rule in existing}
        gate01 = self._gate01.evaluate(gate00, presented=presented, expected_owners=expected_owners)
        gate02 = self._gate02.evaluate(
            gate00, gate01, {rule.role: rule.record_type for rule in existing}
        )

        derivations: list[DerivationCheck] = []
        bindings: list[AuthorityBinding] = []
        if gate02.entry_allowed:
            derivations, bindings = self._derivation_checks(operation, addresses, gate02.records)
        gate03 = self._gate03.evaluate(gate00, gate01, gate02, derivations, bindings)

        view = OperationView(
            request=request,
            config=self.config,
            addresses=addresses,
            records=gate02.records,
            bumps=gate03.bumps,
            occupied=frozenset(
                addresses[rule.role]
                for rule in operation.account_rules
                if gate03.entry_allowed and rule.create and addresses[rule.role] in self._ledger
            ),
        )
        gate04 = self._gate04.evaluate(
            gate03, operation.checks(view) if gate03.entry_allowed else ()
        )

        target = addresses[operation.target_role] if operation.target_role else None
        gate05 = self._gate05.evaluate(gate04, target)

        if gate05.entry_allowed:
            return view

        chain = (
            ("GATE_00", gate00),
            ("GATE_01", gate01),
            ("GATE_02", gate02),
            ("GATE_03", gate03),
            ("GATE_04", gate04),
            ("GATE_05", gate05),
        )
        # Первый заблокировавший gate определяет код, остальные его наследуют
        name, origin = next((n, r) for n, r in chain if not r.entry_allowed)
        error_code = origin.error_code or ErrorCode.UNAUTHORIZED
        self._audit.gate_blocked(name, error_code.value, origin.block_reason)
        if error_code == ErrorCode.UNTRUSTED_TARGET and target is not None:
            self._audit.security_event(
                "untrusted_target",
                severity="high",
                operation=request.operation,
                target=pubkey_to_hex(target),
            )
        raise error_for(
            error_code,
            origin.details or origin.block_reason,
            details={"gate": name, "reason": origin.block_reason},
        )

    def _derivation_checks(
        self,
        operation: Operation,
        addresses: Mapping[str, bytes],
        records: Mapping[str, Record],
    ) -> tuple[list[DerivationCheck], list[AuthorityBinding]]:
        derivations: list[DerivationCheck] = []
        bindings: list[AuthorityBinding] = []

        for rule in operation.account_rules:
            if rule.derivation is not None:
                if rule.create:
                    principal = addresses[rule.derivation.seed_role]
                    stored_bump = None
                else:
                    record = records[rule.role]
                    principal = getattr(record, "origin")
                    stored_bump = getattr(record, "bump")
                derivations.append(
                    DerivationCheck(
                        role=rule.role,
                        address=addresses[rule.role],
                        namespace=rule.derivation.namespace.resolve(self.config),
                        principal=principal,
                        stored_bump=stored_bump,
                    )
                )

            if rule.binding is not None:
                binding = rule.binding
                presented = self._module_id if binding.role is None else addresses[binding.role]
                bindings.append(
                    AuthorityBinding(
                        role=rule.role,
                        stored=getattr(records[rule.role], binding.record_field),
                        presented=presented,
                        error_code=binding.error_code,
                    )
                )

        return derivations, bindings

    def _lookup(self, address: bytes) -> Optional[Account]:
        return self._ledger.get(address) if address in self._ledger else None

    def _owner_id(self, owner: ModuleRef) -> bytes:
        if owner is ModuleRef.CORE:
            return self._module_id
        return self.config.token_module_id_bytes

    # -------------------------------------------------------------------------
    # EFFECTS
    # -------------------------------------------------------------------------

    def _commit(
        self,
        operation: Operation,
        view: OperationView,
        plan: OperationPlan,
    ) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Атомарный commit плана. Возвращает (written, created) в hex."""
        for invocation in plan.interactions:
            if not self._gate05.is_trusted(invocation.target):
                raise UntrustedTargetError(
                    f"planned invocation targets {pubkey_to_hex(invocation.target)}"
                )

        owners = {rule.role: rule.owner for rule in operation.account_rules}
        writes: dict[bytes, bytes] = {}
        for role, record in plan.writes.items():
            if owners.get(role) is not ModuleRef.CORE:
                raise RuntimeError(f"{operation.operation_id}: role '{role}' is not writable by core")
            address = view.address(role)
            if address in writes:
                raise InvalidRequestError(f"{operation.operation_id}: roles alias the same account")
            writes[address] = record.encode()

        creates = [
            Account.from_record(view.address(role), self._module_id, record)
            for role, record in plan.creates.items()
        ]

        self._ledger.commit(writes, creates)
        return (
            tuple(pubkey_to_hex(a) for a in writes),
            tuple(pubkey_to_hex(a.address) for a in creates),
        )
