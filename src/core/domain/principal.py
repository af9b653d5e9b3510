"""
Principal — идентичность с парой ключей

is_authorized выводится runtime'ом (AuthorizationContext) из проверенных
подписей текущего запроса и никогда не задаётся caller'ом.
"""

from pydantic import BaseModel, Field

from .pubkey import pubkey_to_hex


class Principal(BaseModel):
    """Principal в рамках одного запроса."""

    pubkey: bytes = Field(..., min_length=32, max_length=32, description="Public key")
    is_authorized: bool = Field(
        False, description="Подпись principal'а проверена для текущего запроса"
    )

    model_config = {"frozen": True}

    @property
    def hex(self) -> str:
        return pubkey_to_hex(self.pubkey)
