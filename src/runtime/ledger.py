"""
Ledger — множество Account, ключ — address

Хранилище не выполняет проверок содержимого (provenance/type): это работа
gates. Ledger гарантирует только:
1. Нет дубликатов address
2. commit применяет все writes/creates атомарно (all-or-nothing):
   сначала валидация всего пакета, затем применение
"""

from typing import Iterator, Mapping, Sequence

from src.core.domain.account import Account
from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import AccountAlreadyInitializedError, AccountNotFoundError


class Ledger:
    """In-memory ledger store, предоставляемый runtime'ом."""

    def __init__(self, accounts: Sequence[Account] = ()):
        self._accounts: dict[bytes, Account] = {}
        for account in accounts:
            self.create(account)

    def __contains__(self, address: bytes) -> bool:
        return address in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(list(self._accounts.values()))

    def get(self, address: bytes) -> Account:
        """
        Account по адресу.

        Raises:
            AccountNotFoundError: адрес отсутствует
        """
        try:
            return self._accounts[address]
        except KeyError:
            raise AccountNotFoundError(
                f"account {pubkey_to_hex(address)} not found",
                details={"address": pubkey_to_hex(address)},
            ) from None

    def create(self, account: Account) -> None:
        """
        Создание account.

        Raises:
            AccountAlreadyInitializedError: адрес уже занят
        """
        self.commit(writes={}, creates=[account])

    def commit(self, writes: Mapping[bytes, bytes], creates: Sequence[Account] = ()) -> None:
        """
        Атомарное применение пакета изменений.

        Args:
            writes: address → новый data существующего account
            creates: новые account'ы

        Raises:
            AccountNotFoundError: write в несуществующий account
            AccountAlreadyInitializedError: create поверх существующего адреса
                или дубликат внутри пакета
        """
        for address in writes:
            if address not in self._accounts:
                raise AccountNotFoundError(
                    f"cannot write missing account {pubkey_to_hex(address)}",
                    details={"address": pubkey_to_hex(address)},
                )

        seen: set[bytes] = set()
        for account in creates:
            if account.address in self._accounts or account.address in seen:
                raise AccountAlreadyInitializedError(
                    f"account {pubkey_to_hex(account.address)} already exists",
                    details={"address": pubkey_to_hex(account.address)},
                )
            if account.address in writes:
                raise AccountAlreadyInitializedError(
                    f"account {pubkey_to_hex(account.address)} both written and created"
                )
            seen.add(account.address)

        for address, data in writes.items():
            self._accounts[address] = self._accounts[address].with_data(data)
        for account in creates:
            self._accounts[account.address] = account
