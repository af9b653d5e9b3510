"""
Records — Typed Account Payloads (tagged union)

Immutable Pydantic модели содержимого Account.data.
Persisted layout: [8-byte type tag][fields...], little-endian.

Type tag = sha256("account:<RECORD_NAME>")[:8].

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. decode_record сравнивает tag ДО чтения любого поля
2. Два record'а с одинаковой шириной и одинаковыми offsets
   не взаимозаменяемы: дискриминатор — tag, не размер
3. Payload длины отличной от layout отклоняется (InvalidAccountType)
"""

import hashlib
import struct
from typing import ClassVar, Final, TypeVar

from pydantic import BaseModel, Field

from src.core.errors import InvalidAccountTypeError
from src.core.math.checked_arithmetic import U8_MAX, U64_MAX, saturating_add

# =============================================================================
# TYPE TAG
# =============================================================================

TYPE_TAG_LEN: Final[int] = 8


def type_tag_for(record_name: str) -> bytes:
    """
    Tag record'а по имени.

    Examples:
        >>> len(type_tag_for("Vault"))
        8
    """
    return hashlib.sha256(f"account:{record_name}".encode("utf-8")).digest()[:TYPE_TAG_LEN]


def read_type_tag(data: bytes) -> bytes:
    """Первые TYPE_TAG_LEN байт data (или b"" если data короче)."""
    if len(data) < TYPE_TAG_LEN:
        return b""
    return bytes(data[:TYPE_TAG_LEN])


# =============================================================================
# BASE RECORD
# =============================================================================


class Record(BaseModel):
    """
    Базовый typed record.

    Подклассы задают RECORD_NAME, LAYOUT (struct format без tag)
    и FIELDS (порядок полей в layout).
    """

    RECORD_NAME: ClassVar[str] = ""
    LAYOUT: ClassVar[str] = ""
    FIELDS: ClassVar[tuple[str, ...]] = ()

    model_config = {"frozen": True}

    @classmethod
    def type_tag(cls) -> bytes:
        return type_tag_for(cls.RECORD_NAME)

    @classmethod
    def encoded_size(cls) -> int:
        return TYPE_TAG_LEN + struct.calcsize(cls.LAYOUT)

    def encode(self) -> bytes:
        """Сериализация: tag + packed fields."""
        values = [getattr(self, name) for name in self.FIELDS]
        return self.type_tag() + struct.pack(self.LAYOUT, *values)

    @classmethod
    def decode(cls, data: bytes) -> "Record":
        """Десериализация с проверкой tag и длины."""
        return decode_record(data, cls)


R = TypeVar("R", bound=Record)


def decode_record(data: bytes, expected: type[R]) -> R:
    """
    Tagged-union decode.

    Args:
        data: Account.data
        expected: ожидаемый тип record'а

    Returns:
        Экземпляр expected

    Raises:
        InvalidAccountTypeError: tag не совпадает или длина не соответствует layout
    """
    tag = read_type_tag(data)
    if tag != expected.type_tag():
        raise InvalidAccountTypeError(
            f"expected {expected.RECORD_NAME} tag",
            details={
                "expected_tag": expected.type_tag().hex(),
                "actual_tag": tag.hex(),
            },
        )

    if len(data) != expected.encoded_size():
        raise InvalidAccountTypeError(
            f"{expected.RECORD_NAME} payload length {len(data)} != {expected.encoded_size()}",
            details={"length": len(data), "expected_length": expected.encoded_size()},
        )

    values = struct.unpack(expected.LAYOUT, bytes(data[TYPE_TAG_LEN:]))
    return expected(**dict(zip(expected.FIELDS, values)))


# =============================================================================
# VAULT RECORD
# =============================================================================


class VaultRecord(Record):
    """
    Derived-счёт principal'а.

    Layout: [tag][authority][origin][total_deposited][total_withdrawn]
            [total_rewards][withdrawal_limit][bump]

    - authority: principal, которому разрешено выводить средства
    - origin: principal, ключ которого использован при derivation адреса
      (не меняется при update_authority)
    - total_deposited: баланс
    - withdrawal_limit: 0 = без лимита
    """

    RECORD_NAME: ClassVar[str] = "Vault"
    LAYOUT: ClassVar[str] = "<32s32sQQQQB"
    FIELDS: ClassVar[tuple[str, ...]] = (
        "authority",
        "origin",
        "total_deposited",
        "total_withdrawn",
        "total_rewards",
        "withdrawal_limit",
        "bump",
    )

    authority: bytes = Field(..., min_length=32, max_length=32, description="Текущий authority")
    origin: bytes = Field(..., min_length=32, max_length=32, description="Seed principal")
    total_deposited: int = Field(0, ge=0, le=U64_MAX, description="Баланс")
    total_withdrawn: int = Field(0, ge=0, le=U64_MAX, description="Всего выведено")
    total_rewards: int = Field(0, ge=0, le=U64_MAX, description="Всего начислено наград")
    withdrawal_limit: int = Field(0, ge=0, le=U64_MAX, description="Лимит вывода (0 = нет)")
    bump: int = Field(..., ge=0, le=U8_MAX, description="Derivation salt")

    @property
    def balance(self) -> int:
        return self.total_deposited

    def can_withdraw(self, amount: int) -> bool:
        """
        Проверка, что вывод не превысит лимит.

        Saturating add: при переполнении total_withdrawn + amount
        сравнивается U64_MAX, что превышает любой ненулевой лимит.
        """
        if self.withdrawal_limit == 0:
            return True
        return saturating_add(self.total_withdrawn, amount) <= self.withdrawal_limit


# =============================================================================
# CONFIG RECORD
# =============================================================================


class ConfigRecord(Record):
    """Конфигурация admin'а (derived от admin)."""

    RECORD_NAME: ClassVar[str] = "Config"
    LAYOUT: ClassVar[str] = "<32s32s?B"
    FIELDS: ClassVar[tuple[str, ...]] = ("admin", "origin", "enabled", "bump")

    admin: bytes = Field(..., min_length=32, max_length=32)
    origin: bytes = Field(..., min_length=32, max_length=32)
    enabled: bool = Field(True)
    bump: int = Field(..., ge=0, le=U8_MAX)


# =============================================================================
# TOKEN ACCOUNT RECORD
# =============================================================================


class TokenAccountRecord(Record):
    """Token account, layout определяется token module."""

    RECORD_NAME: ClassVar[str] = "TokenAccount"
    LAYOUT: ClassVar[str] = "<32sQ"
    FIELDS: ClassVar[tuple[str, ...]] = ("owner", "amount")

    owner: bytes = Field(..., min_length=32, max_length=32, description="Владелец токенов")
    amount: int = Field(0, ge=0, le=U64_MAX)
