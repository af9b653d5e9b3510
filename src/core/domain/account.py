"""
Account — Модель typed storage slot в ledger

Immutable Pydantic модель. Любое изменение Account создаёт новый экземпляр
(with_data), ledger заменяет слот атомарно.

Invariant: data никогда не интерпретируется под типом отличным от type_tag
и не доверяется, если owning_module не равен модулю-интерпретатору.
"""

from pydantic import BaseModel, Field

from .pubkey import pubkey_to_hex
from .records import Record, read_type_tag


class Account(BaseModel):
    """
    Typed storage slot.

    - address: уникальный адрес в ledger
    - owning_module: модуль, определяющий layout и имеющий право мутации
    - data: [type_tag][payload]
    """

    address: bytes = Field(..., min_length=32, max_length=32, description="Адрес account")
    owning_module: bytes = Field(
        ..., min_length=32, max_length=32, description="Модуль-владелец layout"
    )
    data: bytes = Field(default=b"", description="Tagged payload")

    model_config = {"frozen": True}

    @classmethod
    def from_record(cls, address: bytes, owning_module: bytes, record: Record) -> "Account":
        """Создание account из typed record."""
        return cls(address=address, owning_module=owning_module, data=record.encode())

    @property
    def type_tag(self) -> bytes:
        return read_type_tag(self.data)

    def with_data(self, data: bytes) -> "Account":
        """Новый экземпляр с заменённым payload (address/owning_module неизменны)."""
        return self.model_copy(update={"data": data})

    def describe(self) -> str:
        return (
            f"Account(address={pubkey_to_hex(self.address)[:16]}…, "
            f"owner={pubkey_to_hex(self.owning_module)[:16]}…, "
            f"tag={self.type_tag.hex()})"
        )
