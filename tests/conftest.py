"""Общие fixtures: конфигурация, ledger, token module, executor, ключи principal'ов.

LedgerHarness — тонкая обёртка над MutationExecutor для построения и
подписи запросов в тестах.
"""

import secrets
from typing import Callable, Mapping, Optional

import pytest
from nacl.signing import SigningKey

from src.core.config import CoreConfig
from src.core.domain.pubkey import pubkey_to_hex
from src.core.domain.records import ConfigRecord, VaultRecord, decode_record
from src.core.domain.request import AccountMeta, OperationRequest
from src.executor import MutationExecutor, OperationReceipt
from src.runtime import (
    Ledger,
    TokenModule,
    find_derived_address,
    generate_keypair,
    namespace_seeds,
    public_key_of,
    sign_request,
)


class LedgerHarness:
    """Построение запросов и чтение состояния поверх одного executor'а."""

    def __init__(self, executor: MutationExecutor, token_module: TokenModule):
        self.executor = executor
        self.ledger = executor.ledger
        self.config = executor.config
        self.token = token_module
        self._nonce = 0

    # Requests

    def request(self, operation: str, accounts: Mapping[str, bytes], **params) -> OperationRequest:
        self._nonce += 1
        return OperationRequest(
            operation=operation,
            accounts=[
                AccountMeta(role=role, address=pubkey_to_hex(address))
                for role, address in accounts.items()
            ],
            params=params,
            nonce=self._nonce,
        )

    def run(
        self,
        operation: str,
        accounts: Mapping[str, bytes],
        *signers: SigningKey,
        **params,
    ) -> OperationReceipt:
        return self.executor.execute(sign_request(self.request(operation, accounts, **params), *signers))

    # Addresses

    def vault_address(self, principal: bytes) -> bytes:
        seeds = namespace_seeds(self.config.vault_namespace, principal)
        return find_derived_address(seeds, self.config.module_id_bytes)[0]

    def config_address(self, principal: bytes) -> bytes:
        seeds = namespace_seeds(self.config.config_namespace, principal)
        return find_derived_address(seeds, self.config.module_id_bytes)[0]

    # State

    def vault(self, principal: bytes) -> VaultRecord:
        return decode_record(self.ledger.get(self.vault_address(principal)).data, VaultRecord)

    def config_record(self, principal: bytes) -> ConfigRecord:
        return decode_record(self.ledger.get(self.config_address(principal)).data, ConfigRecord)

    def tokens(self, address: bytes) -> int:
        return self.token.balance_of(self.ledger, address)

    # Setup shortcuts

    def init_vault(self, key: SigningKey, withdrawal_limit: int = 0) -> bytes:
        authority = public_key_of(key)
        vault = self.vault_address(authority)
        self.run(
            "initialize_account",
            {"authority": authority, "vault": vault},
            key,
            withdrawal_limit=withdrawal_limit,
        )
        return vault

    def deposit(self, principal: bytes, amount: int) -> OperationReceipt:
        return self.run("deposit", {"vault": self.vault_address(principal)}, amount=amount)

    def token_account(self, owner: bytes, amount: int = 0) -> bytes:
        address = secrets.token_bytes(32)
        self.token.create_token_account(self.ledger, address, owner, amount)
        return address

    def custody(self, amount: int) -> bytes:
        return self.token_account(self.config.module_id_bytes, amount)

    def withdraw_accounts(
        self,
        authority: bytes,
        custody: bytes,
        destination: bytes,
        vault_owner: Optional[bytes] = None,
        token_program: Optional[bytes] = None,
    ) -> dict[str, bytes]:
        return {
            "authority": authority,
            "vault": self.vault_address(vault_owner or authority),
            "custody": custody,
            "destination": destination,
            "token_program": token_program or self.config.token_module_id_bytes,
        }


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """CoreConfig по умолчанию (allow-list = token module)."""
    return CoreConfig()


@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def token_module(config):
    return TokenModule(config.token_module_id_bytes)


@pytest.fixture
def executor(ledger, config, token_module):
    return MutationExecutor(ledger, config=config, modules=[token_module])


@pytest.fixture
def harness(executor, token_module):
    return LedgerHarness(executor, token_module)


@pytest.fixture
def harness_factory(config) -> Callable[..., LedgerHarness]:
    """Harness с произвольным token module (hooked / failing)."""

    def build(token_module: TokenModule, extra_modules=(), cfg: Optional[CoreConfig] = None) -> LedgerHarness:
        executor = MutationExecutor(
            Ledger(),
            config=cfg or config,
            modules=[token_module, *extra_modules],
        )
        return LedgerHarness(executor, token_module)

    return build


@pytest.fixture
def alice():
    return generate_keypair()


@pytest.fixture
def bob():
    return generate_keypair()


@pytest.fixture
def mallory():
    return generate_keypair()
