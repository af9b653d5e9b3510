"""
Derived Addresses — детерминированный адрес из namespace и principal

address = sha256(seed_1 || ... || seed_n || bump || module_id || DERIVED_ADDRESS_MARKER)

Кандидат принимается, только если он НЕ является валидной точкой Ed25519:
у derived address не существует приватного ключа, подписать за него может
только модуль-владелец.

find_derived_address перебирает bump от 255 вниз; первый валидный bump —
канонический. Только канонический bump даёт "тот самый" account для пары
(namespace, principal).
"""

import hashlib
from typing import Final, Sequence

from nacl.bindings import crypto_core_ed25519_is_valid_point

from src.core.errors import InvalidDerivationError
from src.core.math.checked_arithmetic import U8_MAX

DERIVED_ADDRESS_MARKER: Final[bytes] = b"ProgramDerivedAddress"
MAX_SEED_LEN: Final[int] = 32
MAX_SEEDS: Final[int] = 16


def _validate_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise InvalidDerivationError(f"too many seeds: {len(seeds)} > {MAX_SEEDS}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise InvalidDerivationError(f"seed longer than {MAX_SEED_LEN} bytes")


def is_on_curve(candidate: bytes) -> bool:
    """True если candidate — валидная точка Ed25519 (может иметь приватный ключ)."""
    return bool(crypto_core_ed25519_is_valid_point(candidate))


def create_derived_address(seeds: Sequence[bytes], module_id: bytes) -> bytes:
    """
    Вычисление одного кандидата (seeds уже включают bump).

    Raises:
        InvalidDerivationError: seeds невалидны или кандидат лежит на кривой
    """
    _validate_seeds(seeds)

    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(module_id)
    hasher.update(DERIVED_ADDRESS_MARKER)
    candidate = hasher.digest()

    if is_on_curve(candidate):
        raise InvalidDerivationError("derived candidate lies on the ed25519 curve")
    return candidate


def find_derived_address(seeds: Sequence[bytes], module_id: bytes) -> tuple[bytes, int]:
    """
    Канонический derived address и bump.

    Returns:
        (address, bump)

    Raises:
        InvalidDerivationError: ни один bump не дал off-curve адрес
    """
    _validate_seeds([*seeds, b"\x00"])

    for bump in range(U8_MAX, -1, -1):
        try:
            return create_derived_address([*seeds, bytes([bump])], module_id), bump
        except InvalidDerivationError:
            continue
    raise InvalidDerivationError("unable to find a viable bump seed")


def namespace_seeds(namespace: str, principal: bytes) -> list[bytes]:
    """Seeds для пары (namespace, principal)."""
    return [namespace.encode("utf-8"), principal]
