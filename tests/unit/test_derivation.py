"""
Тесты для Derived Addresses

Проверяемые инварианты:
1. derive детерминирован для (namespace, principal, module)
2. Канонический адрес всегда off-curve (нет приватного ключа)
3. Канонический bump — первый валидный при переборе от 255 вниз
4. Разные namespace / principal / module → разные адреса
"""

import pytest

from src.core.domain.pubkey import module_id_from_label
from src.core.errors import InvalidDerivationError, UnauthorizedError
from src.runtime.authorization import generate_keypair, public_key_of
from src.runtime.derivation import (
    MAX_SEED_LEN,
    MAX_SEEDS,
    create_derived_address,
    find_derived_address,
    is_on_curve,
    namespace_seeds,
)

CORE = module_id_from_label("ledger-core")
PRINCIPAL = b"\x07" * 32


class TestFindDerivedAddress:
    def test_deterministic(self):
        seeds = namespace_seeds("vault", PRINCIPAL)
        assert find_derived_address(seeds, CORE) == find_derived_address(seeds, CORE)

    def test_off_curve(self):
        address, _ = find_derived_address(namespace_seeds("vault", PRINCIPAL), CORE)
        assert len(address) == 32
        assert not is_on_curve(address)

    def test_bump_recomputes_address(self):
        seeds = namespace_seeds("vault", PRINCIPAL)
        address, bump = find_derived_address(seeds, CORE)
        assert create_derived_address([*seeds, bytes([bump])], CORE) == address

    def test_canonical_bump_is_highest_viable(self):
        seeds = namespace_seeds("vault", PRINCIPAL)
        _, bump = find_derived_address(seeds, CORE)
        for higher in range(bump + 1, 256):
            with pytest.raises(InvalidDerivationError):
                create_derived_address([*seeds, bytes([higher])], CORE)

    def test_namespace_separation(self):
        vault, _ = find_derived_address(namespace_seeds("vault", PRINCIPAL), CORE)
        config, _ = find_derived_address(namespace_seeds("config", PRINCIPAL), CORE)
        assert vault != config

    def test_principal_separation(self):
        a, _ = find_derived_address(namespace_seeds("vault", b"\x01" * 32), CORE)
        b, _ = find_derived_address(namespace_seeds("vault", b"\x02" * 32), CORE)
        assert a != b

    def test_module_separation(self):
        seeds = namespace_seeds("vault", PRINCIPAL)
        a, _ = find_derived_address(seeds, CORE)
        b, _ = find_derived_address(seeds, module_id_from_label("other"))
        assert a != b


class TestSeedValidation:
    def test_seed_too_long(self):
        with pytest.raises(InvalidDerivationError, match="seed longer"):
            find_derived_address([b"x" * (MAX_SEED_LEN + 1)], CORE)

    def test_too_many_seeds(self):
        """Bump занимает один из MAX_SEEDS слотов."""
        with pytest.raises(InvalidDerivationError, match="too many seeds"):
            find_derived_address([b"s"] * MAX_SEEDS, CORE)

    def test_error_is_unauthorized(self):
        with pytest.raises(UnauthorizedError):
            create_derived_address([b"x" * (MAX_SEED_LEN + 1)], CORE)


class TestIsOnCurve:
    def test_public_key_is_on_curve(self):
        """У настоящего public key есть приватный ключ → не годится как derived."""
        assert is_on_curve(public_key_of(generate_keypair()))

    def test_namespace_seeds(self):
        assert namespace_seeds("vault", PRINCIPAL) == [b"vault", PRINCIPAL]
