"""Integration тесты MutationExecutor: все операции end-to-end.

Покрытие:
- initialize_account / deposit / deposit_saturating / withdraw / transfer
- accrue_reward / compound / update_authority / process_payment
- initialize_config / process_config
- Request contract: неизвестная операция, невалидные params, роли
- Receipt trace и InteractionFailed после commit
"""

import logging

import pytest

from src.core.config import CoreConfig
from src.core.domain.pubkey import pubkey_to_hex
from src.core.errors import (
    AccountAlreadyInitializedError,
    AccountNotFoundError,
    ConfigDisabledError,
    DivisionByZeroError,
    InsufficientFundsError,
    InteractionFailedError,
    InvalidAmountError,
    InvalidDerivationError,
    InvalidOwnerError,
    InvalidPeriodsError,
    InvalidRequestError,
    InvalidTokenOwnerError,
    MathOverflowError,
    MissingSignerError,
    UnauthorizedError,
    UnknownOperationError,
    WithdrawalLimitExceededError,
)
from src.core.math.compounding import CompoundingMode
from src.executor import OperationState
from src.runtime import Ledger, TokenModule, find_derived_address, namespace_seeds, public_key_of


class FailingTokenModule(TokenModule):
    """Token module, который падает на каждом transfer."""

    def invoke(self, ledger, instruction, caller, signers):
        raise RuntimeError("token module offline")


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def alice_pk(alice):
    return public_key_of(alice)


@pytest.fixture
def bob_pk(bob):
    return public_key_of(bob)


@pytest.fixture
def funded_vault(harness, alice, alice_pk):
    """Vault alice с балансом 500 и custody с 500 токенами."""
    harness.init_vault(alice)
    harness.deposit(alice_pk, 500)
    return harness.custody(500)


# =============================================================================
# VAULT LIFECYCLE
# =============================================================================


class TestInitializeAccount:
    def test_creates_vault(self, harness, alice, alice_pk):
        vault = harness.vault_address(alice_pk)
        receipt = harness.run(
            "initialize_account",
            {"authority": alice_pk, "vault": vault},
            alice,
            withdrawal_limit=1000,
        )

        record = harness.vault(alice_pk)
        assert receipt.result == pubkey_to_hex(vault)
        assert receipt.created == (pubkey_to_hex(vault),)
        assert record.authority == alice_pk
        assert record.origin == alice_pk
        assert record.balance == 0
        assert record.withdrawal_limit == 1000

    def test_stores_canonical_bump(self, harness, alice, alice_pk, config):
        harness.init_vault(alice)
        _, bump = find_derived_address(
            namespace_seeds(config.vault_namespace, alice_pk), config.module_id_bytes
        )
        assert harness.vault(alice_pk).bump == bump

    def test_reinitialize_rejected(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 100)

        with pytest.raises(AccountAlreadyInitializedError):
            harness.init_vault(alice)
        assert harness.vault(alice_pk).balance == 100

    def test_wrong_namespace(self, harness, alice, alice_pk):
        with pytest.raises(InvalidRequestError):
            harness.run(
                "initialize_account",
                {"authority": alice_pk, "vault": harness.vault_address(alice_pk)},
                alice,
                namespace="config",
            )

    def test_unsigned(self, harness, alice_pk):
        vault = harness.vault_address(alice_pk)
        with pytest.raises(MissingSignerError):
            harness.run("initialize_account", {"authority": alice_pk, "vault": vault})
        assert vault not in harness.ledger

    def test_non_canonical_address(self, harness, alice, alice_pk):
        address = b"\x42" * 32
        with pytest.raises(InvalidDerivationError):
            harness.run("initialize_account", {"authority": alice_pk, "vault": address}, alice)
        assert address not in harness.ledger

    def test_vault_of_other_principal(self, harness, alice, alice_pk, bob_pk):
        with pytest.raises(InvalidDerivationError):
            harness.run(
                "initialize_account",
                {"authority": alice_pk, "vault": harness.vault_address(bob_pk)},
                alice,
            )


class TestDeposit:
    def test_deposit(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 300)
        receipt = harness.deposit(alice_pk, 200)

        assert receipt.result == 500
        assert harness.vault(alice_pk).balance == 500

    def test_unknown_vault(self, harness, alice_pk):
        with pytest.raises(AccountNotFoundError):
            harness.deposit(alice_pk, 1)

    def test_deposit_saturating(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 2**64 - 10)
        receipt = harness.run(
            "deposit_saturating", {"vault": harness.vault_address(alice_pk)}, amount=100
        )

        assert receipt.result == 2**64 - 1
        assert harness.vault(alice_pk).balance == 2**64 - 1

    def test_amount_above_configured_bound(self, harness_factory, alice, alice_pk, caplog):
        """Amount больше balance_bound abort'ит как MathOverflow, состояние не меняется."""
        cfg = CoreConfig(balance_bound=1000)
        bounded = harness_factory(TokenModule(cfg.token_module_id_bytes), cfg=cfg)
        bounded.init_vault(alice)
        bounded.deposit(alice_pk, 100)

        with caplog.at_level(logging.INFO, logger="ledger.audit"):
            with pytest.raises(MathOverflowError) as exc_info:
                bounded.deposit(alice_pk, 5000)

        assert exc_info.value.details["bound"] == 1000
        assert bounded.vault(alice_pk).balance == 100
        assert any("MathOverflow" in r.getMessage() for r in caplog.records if r.name == "ledger.audit")


class TestUpdateAuthority:
    def test_authority_moves(self, harness, alice, bob, alice_pk, bob_pk, funded_vault):
        receipt = harness.run(
            "update_authority",
            {"authority": alice_pk, "vault": harness.vault_address(alice_pk)},
            alice,
            new_authority=pubkey_to_hex(bob_pk),
        )
        assert receipt.result == pubkey_to_hex(bob_pk)
        assert harness.vault(alice_pk).authority == bob_pk
        assert harness.vault(alice_pk).origin == alice_pk

        alice_dest = harness.token_account(alice_pk)
        with pytest.raises(UnauthorizedError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, funded_vault, alice_dest),
                alice,
                amount=100,
            )

        bob_dest = harness.token_account(bob_pk)
        harness.run(
            "withdraw",
            harness.withdraw_accounts(bob_pk, funded_vault, bob_dest, vault_owner=alice_pk),
            bob,
            amount=100,
        )
        assert harness.tokens(bob_dest) == 100
        assert harness.vault(alice_pk).balance == 400

    def test_only_current_authority(self, harness, alice, bob, alice_pk, bob_pk):
        harness.init_vault(alice)
        with pytest.raises(UnauthorizedError):
            harness.run(
                "update_authority",
                {"authority": bob_pk, "vault": harness.vault_address(alice_pk)},
                bob,
                new_authority=pubkey_to_hex(bob_pk),
            )
        assert harness.vault(alice_pk).authority == alice_pk


# =============================================================================
# WITHDRAW / TRANSFER / PAYMENT
# =============================================================================


class TestWithdraw:
    def test_withdraw_moves_tokens(self, harness, alice, alice_pk, funded_vault):
        destination = harness.token_account(alice_pk)
        receipt = harness.run(
            "withdraw",
            harness.withdraw_accounts(alice_pk, funded_vault, destination),
            alice,
            amount=200,
        )

        assert receipt.result == 300
        assert receipt.interactions == 1
        record = harness.vault(alice_pk)
        assert record.balance == 300
        assert record.total_withdrawn == 200
        assert harness.tokens(destination) == 200
        assert harness.tokens(funded_vault) == 300

    def test_insufficient_funds(self, harness, alice, alice_pk, funded_vault):
        destination = harness.token_account(alice_pk)
        with pytest.raises(InsufficientFundsError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, funded_vault, destination),
                alice,
                amount=501,
            )
        assert harness.vault(alice_pk).balance == 500
        assert harness.tokens(destination) == 0

    def test_unsigned_withdraw_reads_no_accounts(self, harness, alice_pk, funded_vault, monkeypatch):
        """Signer gate блокирует до первого чтения ledger."""
        destination = harness.token_account(alice_pk)
        accounts = harness.withdraw_accounts(alice_pk, funded_vault, destination)
        reads = []
        get, contains = Ledger.get, Ledger.__contains__

        def counting_get(ledger, address):
            reads.append(address)
            return get(ledger, address)

        def counting_contains(ledger, address):
            reads.append(address)
            return contains(ledger, address)

        monkeypatch.setattr(Ledger, "get", counting_get)
        monkeypatch.setattr(Ledger, "__contains__", counting_contains)
        with pytest.raises(MissingSignerError):
            harness.run("withdraw", accounts, amount=100)
        monkeypatch.undo()

        assert reads == []
        assert harness.vault(alice_pk).balance == 500

    def test_limit_exceeded(self, harness, alice, alice_pk):
        harness.init_vault(alice, withdrawal_limit=300)
        harness.deposit(alice_pk, 500)
        custody = harness.custody(500)
        destination = harness.token_account(alice_pk)
        accounts = harness.withdraw_accounts(alice_pk, custody, destination)

        harness.run("withdraw", accounts, alice, amount=200)
        with pytest.raises(WithdrawalLimitExceededError):
            harness.run("withdraw", accounts, alice, amount=101)
        harness.run("withdraw", accounts, alice, amount=100)

        assert harness.vault(alice_pk).total_withdrawn == 300

    def test_zero_amount(self, harness, alice, alice_pk, funded_vault):
        destination = harness.token_account(alice_pk)
        with pytest.raises(InvalidAmountError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, funded_vault, destination),
                alice,
                amount=0,
            )

    def test_other_authority(self, harness, bob, alice_pk, bob_pk, funded_vault):
        destination = harness.token_account(bob_pk)
        with pytest.raises(UnauthorizedError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(bob_pk, funded_vault, destination, vault_owner=alice_pk),
                bob,
                amount=100,
            )
        assert harness.vault(alice_pk).balance == 500

    def test_destination_of_other_owner(self, harness, alice, alice_pk, bob_pk, funded_vault):
        destination = harness.token_account(bob_pk)
        with pytest.raises(InvalidTokenOwnerError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, funded_vault, destination),
                alice,
                amount=100,
            )

    def test_custody_not_owned_by_core(self, harness, alice, alice_pk, funded_vault):
        fake_custody = harness.token_account(alice_pk, 500)
        destination = harness.token_account(alice_pk)
        with pytest.raises(InvalidOwnerError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, fake_custody, destination),
                alice,
                amount=100,
            )

    def test_vault_presented_as_custody(self, harness, alice, alice_pk, funded_vault):
        destination = harness.token_account(alice_pk)
        with pytest.raises(InvalidOwnerError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, harness.vault_address(alice_pk), destination),
                alice,
                amount=100,
            )

    def test_custody_liquidity(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 500)
        custody = harness.custody(50)
        destination = harness.token_account(alice_pk)

        with pytest.raises(InsufficientFundsError):
            harness.run(
                "withdraw",
                harness.withdraw_accounts(alice_pk, custody, destination),
                alice,
                amount=100,
            )
        assert harness.vault(alice_pk).balance == 500


class TestTransfer:
    @pytest.fixture
    def two_vaults(self, harness, alice, bob, alice_pk, bob_pk):
        harness.init_vault(alice)
        harness.init_vault(bob)
        harness.deposit(alice_pk, 500)
        return {
            "authority": alice_pk,
            "source": harness.vault_address(alice_pk),
            "destination": harness.vault_address(bob_pk),
        }

    def test_transfer(self, harness, alice, alice_pk, bob_pk, two_vaults):
        receipt = harness.run("transfer", two_vaults, alice, amount=200)

        assert receipt.result == 300
        assert len(receipt.written) == 2
        assert harness.vault(alice_pk).balance == 300
        assert harness.vault(bob_pk).balance == 200

    def test_same_account(self, harness, alice, alice_pk, two_vaults):
        accounts = {**two_vaults, "destination": two_vaults["source"]}
        with pytest.raises(InvalidRequestError):
            harness.run("transfer", accounts, alice, amount=100)
        assert harness.vault(alice_pk).balance == 500

    def test_insufficient(self, harness, alice, alice_pk, bob_pk, two_vaults):
        with pytest.raises(InsufficientFundsError):
            harness.run("transfer", two_vaults, alice, amount=501)
        assert harness.vault(alice_pk).balance == 500
        assert harness.vault(bob_pk).balance == 0

    def test_zero_amount(self, harness, alice, two_vaults):
        with pytest.raises(InvalidAmountError):
            harness.run("transfer", two_vaults, alice, amount=0)

    def test_signed_by_destination_owner(self, harness, bob, bob_pk, two_vaults):
        accounts = {**two_vaults, "authority": bob_pk}
        with pytest.raises(UnauthorizedError):
            harness.run("transfer", accounts, bob, amount=100)


class TestProcessPayment:
    @pytest.fixture
    def payment_accounts(self, harness, alice, bob_pk, alice_pk):
        harness.init_vault(alice)
        return {
            "payer": bob_pk,
            "vault": harness.vault_address(alice_pk),
            "payer_token": harness.token_account(bob_pk, 1000),
            "custody": harness.custody(0),
            "token_program": harness.config.token_module_id_bytes,
        }

    def test_payment(self, harness, bob, alice_pk, payment_accounts):
        receipt = harness.run("process_payment", payment_accounts, bob, amount=400)

        assert receipt.result == 400
        assert harness.vault(alice_pk).balance == 400
        assert harness.tokens(payment_accounts["payer_token"]) == 600
        assert harness.tokens(payment_accounts["custody"]) == 400

    def test_payer_token_of_other_owner(self, harness, bob, alice_pk, payment_accounts):
        accounts = {**payment_accounts, "payer_token": harness.token_account(alice_pk, 1000)}
        with pytest.raises(InvalidTokenOwnerError):
            harness.run("process_payment", accounts, bob, amount=100)

    def test_payer_balance(self, harness, bob, alice_pk, payment_accounts):
        with pytest.raises(InsufficientFundsError):
            harness.run("process_payment", payment_accounts, bob, amount=1001)
        assert harness.vault(alice_pk).balance == 0

    def test_unsigned(self, harness, alice_pk, payment_accounts):
        with pytest.raises(MissingSignerError):
            harness.run("process_payment", payment_accounts, amount=100)
        assert harness.vault(alice_pk).balance == 0


# =============================================================================
# REWARDS
# =============================================================================


class TestRewards:
    def test_accrue_reward(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 100)
        receipt = harness.run("accrue_reward", {"vault": harness.vault_address(alice_pk)}, multiplier=3)

        assert receipt.result == 300
        assert harness.vault(alice_pk).total_rewards == 300
        assert harness.vault(alice_pk).balance == 100

    def test_compound_truncating(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        harness.deposit(alice_pk, 1000)
        receipt = harness.run(
            "compound",
            {"vault": harness.vault_address(alice_pk)},
            rate_num=1,
            rate_den=10,
            periods=2,
        )

        assert receipt.result == 210
        assert harness.vault(alice_pk).total_rewards == 210

    def test_compound_exact_mode(self, harness_factory, alice, alice_pk):
        cfg = CoreConfig(compounding_mode=CompoundingMode.EXACT_RATIONAL)
        exact = harness_factory(TokenModule(cfg.token_module_id_bytes), cfg=cfg)
        exact.init_vault(alice)
        exact.deposit(alice_pk, 15)

        receipt = exact.run(
            "compound",
            {"vault": exact.vault_address(alice_pk)},
            rate_num=1,
            rate_den=10,
            periods=2,
        )
        assert receipt.result == 3

    def test_compound_zero_denominator(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        with pytest.raises(DivisionByZeroError):
            harness.run(
                "compound",
                {"vault": harness.vault_address(alice_pk)},
                rate_num=1,
                rate_den=0,
                periods=1,
            )

    @pytest.mark.parametrize("periods", [0, 10_001])
    def test_compound_periods_range(self, harness, alice, alice_pk, periods):
        harness.init_vault(alice)
        with pytest.raises(InvalidPeriodsError):
            harness.run(
                "compound",
                {"vault": harness.vault_address(alice_pk)},
                rate_num=1,
                rate_den=10,
                periods=periods,
            )


# =============================================================================
# ADMIN CONFIG
# =============================================================================


class TestConfigOperations:
    def test_initialize_and_process(self, harness, alice, alice_pk):
        config_address = harness.config_address(alice_pk)
        receipt = harness.run("initialize_config", {"admin": alice_pk, "config": config_address}, alice)
        assert receipt.result == pubkey_to_hex(config_address)

        receipt = harness.run("process_config", {"config": config_address})
        assert receipt.result == pubkey_to_hex(alice_pk)

    def test_disabled(self, harness, alice, alice_pk):
        config_address = harness.config_address(alice_pk)
        harness.run(
            "initialize_config",
            {"admin": alice_pk, "config": config_address},
            alice,
            enabled=False,
        )

        assert not harness.config_record(alice_pk).enabled
        with pytest.raises(ConfigDisabledError):
            harness.run("process_config", {"config": config_address})

    def test_reinitialize(self, harness, alice, alice_pk):
        accounts = {"admin": alice_pk, "config": harness.config_address(alice_pk)}
        harness.run("initialize_config", accounts, alice)
        with pytest.raises(AccountAlreadyInitializedError):
            harness.run("initialize_config", accounts, alice, enabled=False)
        assert harness.config_record(alice_pk).enabled

    def test_vault_address_as_config(self, harness, alice, alice_pk):
        with pytest.raises(InvalidDerivationError):
            harness.run(
                "initialize_config",
                {"admin": alice_pk, "config": harness.vault_address(alice_pk)},
                alice,
            )


# =============================================================================
# REQUEST CONTRACT
# =============================================================================


class TestRequestContract:
    def test_unknown_operation(self, harness, alice_pk):
        with pytest.raises(UnknownOperationError):
            harness.run("mint", {"vault": harness.vault_address(alice_pk)}, amount=1)

    @pytest.mark.parametrize("amount", [-1, 2**64, "ten"])
    def test_invalid_amount_param(self, harness, alice, alice_pk, amount):
        harness.init_vault(alice)
        with pytest.raises(InvalidRequestError):
            harness.run("deposit", {"vault": harness.vault_address(alice_pk)}, amount=amount)
        assert harness.vault(alice_pk).balance == 0

    def test_missing_param(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        with pytest.raises(InvalidRequestError):
            harness.run("deposit", {"vault": harness.vault_address(alice_pk)})

    def test_unexpected_param(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        with pytest.raises(InvalidRequestError):
            harness.run("deposit", {"vault": harness.vault_address(alice_pk)}, amount=1, memo="x")

    def test_missing_role(self, harness, alice, alice_pk, funded_vault):
        accounts = harness.withdraw_accounts(alice_pk, funded_vault, harness.token_account(alice_pk))
        del accounts["token_program"]

        with pytest.raises(InvalidRequestError) as exc_info:
            harness.run("withdraw", accounts, alice, amount=100)
        assert exc_info.value.details["missing"] == ["token_program"]

    def test_unexpected_role(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        with pytest.raises(InvalidRequestError) as exc_info:
            harness.run(
                "deposit",
                {"vault": harness.vault_address(alice_pk), "spy": alice_pk},
                amount=1,
            )
        assert exc_info.value.details["unexpected"] == ["spy"]


# =============================================================================
# RECEIPT / INTERACTION FAILURE
# =============================================================================


class TestReceipt:
    def test_trace_without_interactions(self, harness, alice, alice_pk):
        harness.init_vault(alice)
        receipt = harness.deposit(alice_pk, 10)

        assert receipt.state == OperationState.DONE
        assert receipt.trace == (
            OperationState.RECEIVED,
            OperationState.GATING,
            OperationState.COMMITTING,
            OperationState.EFFECTED,
            OperationState.INTERACTING,
            OperationState.DONE,
        )
        assert receipt.written == (pubkey_to_hex(harness.vault_address(alice_pk)),)
        assert receipt.interactions == 0
        assert len(receipt.operation_id) == 32

    def test_abort_logged(self, harness, alice, alice_pk, caplog):
        harness.init_vault(alice)
        with caplog.at_level(logging.INFO, logger="ledger.audit"):
            with pytest.raises(InvalidRequestError):
                harness.deposit(alice_pk, -1)

        events = [r.extra_fields["event_type"] for r in caplog.records if r.name == "ledger.audit"]
        assert events == ["OPERATION_RECEIVED", "OPERATION_ABORTED"]


class TestInteractionFailed:
    def test_failure_after_commit(self, harness_factory, config, alice, alice_pk, caplog):
        failing = harness_factory(FailingTokenModule(config.token_module_id_bytes))
        failing.init_vault(alice)
        failing.deposit(alice_pk, 500)
        custody = failing.custody(500)
        destination = failing.token_account(alice_pk)

        with caplog.at_level(logging.INFO, logger="ledger.audit"):
            with pytest.raises(InteractionFailedError) as exc_info:
                failing.run(
                    "withdraw",
                    failing.withdraw_accounts(alice_pk, custody, destination),
                    alice,
                    amount=500,
                )

        error = exc_info.value
        assert error.recoverable is False
        assert isinstance(error.__cause__, RuntimeError)
        assert error.details["operation"] == "withdraw"

        # Effects уже записаны, токены не доставлены
        assert failing.vault(alice_pk).balance == 0
        assert failing.tokens(destination) == 0
        assert failing.tokens(custody) == 500

        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert critical
        assert critical[-1].extra_fields["event_type"] == "INTERACTION_FAILED"
