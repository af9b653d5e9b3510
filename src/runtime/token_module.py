"""
Token Module — внешний модуль value transfer

Отдельный модуль в том же ledger: определяет layout TokenAccountRecord
и единственный имеет право мутировать свои account'ы. Ядро вызывает его
только через Trusted-Target allow-list.

Инструкция transfer принимает authority, если authority:
- является идентичностью вызывающего модуля (module-signed custody), или
- является проверенным signer'ом текущего запроса.

Ошибки модуля — LedgerError; executor оборачивает их в InteractionFailed.
"""

from dataclasses import dataclass
from typing import Protocol

from src.core.domain.account import Account
from src.core.domain.pubkey import pubkey_to_hex
from src.core.domain.records import TokenAccountRecord, decode_record
from src.core.errors import (
    InsufficientFundsError,
    InvalidOwnerError,
    InvalidTokenOwnerError,
    MissingSignerError,
)
from src.core.math.checked_arithmetic import checked_add, checked_sub
from src.runtime.ledger import Ledger


@dataclass(frozen=True)
class TokenTransfer:
    """Инструкция перевода токенов между token account'ами."""

    source: bytes
    destination: bytes
    authority: bytes
    amount: int


@dataclass(frozen=True)
class Invocation:
    """Cross-module вызов: целевой модуль и инструкция."""

    target: bytes
    instruction: TokenTransfer


class ExternalModule(Protocol):
    """Интерфейс модуля, доступного для cross-module вызовов."""

    module_id: bytes

    def invoke(
        self,
        ledger: Ledger,
        instruction: TokenTransfer,
        caller: bytes,
        signers: frozenset[bytes],
    ) -> None: ...


class TokenModule:
    """Trusted token module."""

    def __init__(self, module_id: bytes):
        self.module_id = module_id

    def create_token_account(self, ledger: Ledger, address: bytes, owner: bytes, amount: int = 0) -> Account:
        """Создание token account (genesis / mint в тестовом runtime)."""
        account = Account.from_record(
            address, self.module_id, TokenAccountRecord(owner=owner, amount=amount)
        )
        ledger.create(account)
        return account

    def balance_of(self, ledger: Ledger, address: bytes) -> int:
        return self._load(ledger, address).amount

    def invoke(
        self,
        ledger: Ledger,
        instruction: TokenTransfer,
        caller: bytes,
        signers: frozenset[bytes],
    ) -> None:
        """
        Исполнение transfer.

        Raises:
            InvalidOwnerError / InvalidAccountTypeError: account не token account этого модуля
            InvalidTokenOwnerError: source не принадлежит authority
            MissingSignerError: authority не caller и не signer
            InsufficientFundsError: недостаточно токенов
            MathOverflowError: переполнение destination
        """
        if instruction.authority != caller and instruction.authority not in signers:
            raise MissingSignerError(
                f"authority {pubkey_to_hex(instruction.authority)} did not authorize the transfer"
            )

        source = self._load(ledger, instruction.source)
        destination = self._load(ledger, instruction.destination)

        if source.owner != instruction.authority:
            raise InvalidTokenOwnerError("source token account is not owned by authority")

        if source.amount < instruction.amount:
            raise InsufficientFundsError(
                f"source holds {source.amount}, transfer needs {instruction.amount}"
            )

        if instruction.source == instruction.destination:
            return

        new_source = source.model_copy(update={"amount": checked_sub(source.amount, instruction.amount)})
        new_destination = destination.model_copy(
            update={"amount": checked_add(destination.amount, instruction.amount)}
        )
        ledger.commit(
            writes={
                instruction.source: new_source.encode(),
                instruction.destination: new_destination.encode(),
            }
        )

    def _load(self, ledger: Ledger, address: bytes) -> TokenAccountRecord:
        account = ledger.get(address)
        if account.owning_module != self.module_id:
            raise InvalidOwnerError(f"{account.describe()} is not a token account")
        return decode_record(account.data, TokenAccountRecord)
