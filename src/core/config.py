"""
CoreConfig — Конфигурация ledger core

Immutable Pydantic модель. Trusted-target allow-list задаётся только здесь
(конфигурация), никогда не входит в request.
"""

import json
from pathlib import Path
from typing import Any, Final, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from src.core.audit_log import configure_logging
from src.core.domain.pubkey import PUBKEY_HEX_PATTERN, module_id_from_label, pubkey_from_hex
from src.core.math.checked_arithmetic import U64_MAX
from src.core.math.compounding import MAX_COMPOUND_PERIODS_DEFAULT, CompoundingMode

# =============================================================================
# DEFAULT IDENTITIES
# =============================================================================

CORE_MODULE_ID_DEFAULT: Final[str] = module_id_from_label("ledger-core").hex()
TOKEN_MODULE_ID_DEFAULT: Final[str] = module_id_from_label("token").hex()

VAULT_NAMESPACE_DEFAULT: Final[str] = "vault"
CONFIG_NAMESPACE_DEFAULT: Final[str] = "config"


# =============================================================================
# CORE CONFIG
# =============================================================================


class CoreConfig(BaseModel):
    """
    Конфигурация ядра.

    - module_id: идентичность этого модуля (owning_module его account'ов)
    - token_module_id: модуль, определяющий TokenAccountRecord
    - trusted_targets: allow-list целей cross-module вызовов
      (None → только token_module_id)
    - log_level, log_json, log_file: настройки root logger (configure_logging)
    """

    module_id: str = Field(CORE_MODULE_ID_DEFAULT, pattern=PUBKEY_HEX_PATTERN)
    token_module_id: str = Field(TOKEN_MODULE_ID_DEFAULT, pattern=PUBKEY_HEX_PATTERN)
    trusted_targets: Optional[tuple[str, ...]] = Field(
        None, description="Allow-list module id (hex)"
    )

    vault_namespace: str = Field(VAULT_NAMESPACE_DEFAULT, min_length=1, max_length=32)
    config_namespace: str = Field(CONFIG_NAMESPACE_DEFAULT, min_length=1, max_length=32)

    balance_bound: int = Field(U64_MAX, gt=0, le=U64_MAX)
    max_compound_periods: int = Field(MAX_COMPOUND_PERIODS_DEFAULT, gt=0)
    compounding_mode: CompoundingMode = Field(CompoundingMode.TRUNCATE_PER_PERIOD)

    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_json: bool = Field(True, description="StructuredFormatter вместо plain text")
    log_file: Optional[str] = None

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def validate_trusted_targets(self) -> "CoreConfig":
        if self.trusted_targets is not None:
            for target in self.trusted_targets:
                pubkey_from_hex(target)
            if self.module_id in self.trusted_targets:
                raise ValueError("core module cannot allow-list itself as a target")
        if self.vault_namespace == self.config_namespace:
            raise ValueError("vault_namespace and config_namespace must differ")
        return self

    @property
    def module_id_bytes(self) -> bytes:
        return pubkey_from_hex(self.module_id)

    @property
    def token_module_id_bytes(self) -> bytes:
        return pubkey_from_hex(self.token_module_id)

    @property
    def trusted_target_ids(self) -> frozenset[bytes]:
        targets = self.trusted_targets
        if targets is None:
            targets = (self.token_module_id,)
        return frozenset(pubkey_from_hex(t) for t in targets)

    def configure_logging(self) -> None:
        """Настройка root logger по log_level, log_json и log_file."""
        configure_logging(self.log_level, json_format=self.log_json, log_file=self.log_file)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CoreConfig":
        return cls.model_validate(dict(data))

    @classmethod
    def from_json_file(cls, path: str | Path) -> "CoreConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_mapping(json.load(f))
