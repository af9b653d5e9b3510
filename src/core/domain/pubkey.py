"""
Pubkey — Централизованный модуль представления идентичностей

Все идентичности ledger (principal, account address, module id) —
32-байтовые значения. Внутри ядра хранятся как bytes, на границе
(request JSON, логи) — как lowercase hex.

ЗАПРЕЩЕНО сравнивать hex-строку с bytes без конвертера из этого модуля.
"""

import hashlib
from typing import Final

PUBKEY_LEN: Final[int] = 32
PUBKEY_HEX_PATTERN: Final[str] = "^[0-9a-f]{64}$"


def validate_pubkey(value: bytes, name: str = "pubkey") -> bytes:
    """
    Проверка 32-байтовой идентичности.

    Raises:
        TypeError: если value не bytes
        ValueError: если длина != 32
    """
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != PUBKEY_LEN:
        raise ValueError(f"{name} must be {PUBKEY_LEN} bytes, got {len(value)}")
    return bytes(value)


def pubkey_from_hex(value: str) -> bytes:
    """hex (64 символа) → bytes."""
    try:
        raw = bytes.fromhex(value)
    except ValueError as e:
        raise ValueError(f"invalid pubkey hex: {value!r}") from e
    return validate_pubkey(raw)


def pubkey_to_hex(value: bytes) -> str:
    """bytes → lowercase hex."""
    return validate_pubkey(value).hex()


def module_id_from_label(label: str) -> bytes:
    """
    Детерминированная идентичность модуля из метки.

    Examples:
        >>> len(module_id_from_label("ledger-core"))
        32
    """
    return hashlib.sha256(f"module:{label}".encode("utf-8")).digest()
