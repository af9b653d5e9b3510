"""
OperationRequest — Модель входящего запроса

Immutable Pydantic модели запроса (operation id, упорядоченный список
presented accounts, scalar params) и подписанного запроса.

Request создаётся на каждый внешний вызов, потребляется целиком в одном
атомарном исполнении и никогда не сохраняется.

Signing message — canonical JSON (sorted keys, compact separators, UTF-8):
семантически одинаковые запросы дают одинаковые байты.
"""

import json
from typing import Any, Union

from pydantic import BaseModel, Field, model_validator

from .pubkey import PUBKEY_HEX_PATTERN, pubkey_from_hex

ParamValue = Union[bool, int, str]


# =============================================================================
# NESTED MODELS
# =============================================================================


class AccountMeta(BaseModel):
    """Presented account (или principal) с ролью в операции."""

    role: str = Field(..., min_length=1, description="Роль account в операции")
    address: str = Field(..., pattern=PUBKEY_HEX_PATTERN, description="Адрес (hex)")

    model_config = {"frozen": True}


class RequestSignature(BaseModel):
    """Ed25519 подпись signing message."""

    signer: str = Field(..., pattern=PUBKEY_HEX_PATTERN, description="Public key (hex)")
    signature: str = Field(..., pattern="^[0-9a-f]{128}$", description="Подпись (hex)")

    model_config = {"frozen": True}


# =============================================================================
# REQUEST MODELS
# =============================================================================


class OperationRequest(BaseModel):
    """
    Запрос операции.

    Роли в accounts уникальны; порядок сохраняется и входит в signing message.
    """

    operation: str = Field(..., min_length=1, description="Идентификатор операции")
    accounts: list[AccountMeta] = Field(default_factory=list, description="Presented accounts")
    params: dict[str, ParamValue] = Field(default_factory=dict, description="Scalar параметры")
    nonce: int = Field(0, ge=0, description="Уникализатор запроса")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_unique_roles(self) -> "OperationRequest":
        roles = [meta.role for meta in self.accounts]
        if len(roles) != len(set(roles)):
            raise ValueError(f"duplicate account roles: {roles}")
        return self

    def roles(self) -> list[str]:
        return [meta.role for meta in self.accounts]

    def has_role(self, role: str) -> bool:
        return any(meta.role == role for meta in self.accounts)

    def address_of(self, role: str) -> bytes:
        """
        Адрес account по роли.

        Raises:
            KeyError: роль не представлена
        """
        for meta in self.accounts:
            if meta.role == role:
                return pubkey_from_hex(meta.address)
        raise KeyError(role)

    def signing_payload(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "accounts": [{"role": m.role, "address": m.address} for m in self.accounts],
            "params": dict(self.params),
            "nonce": self.nonce,
        }

    def message(self) -> bytes:
        """Canonical JSON bytes для подписи."""
        return json.dumps(
            self.signing_payload(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")


class SignedRequest(BaseModel):
    """Запрос вместе с подписями principal'ов."""

    request: OperationRequest
    signatures: list[RequestSignature] = Field(default_factory=list)

    model_config = {"frozen": True}
