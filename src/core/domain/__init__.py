"""
Domain models and value objects.

Contains fundamental ledger entities: Account, typed Records, Principal,
OperationRequest.
"""

from src.core.domain.account import Account
from src.core.domain.principal import Principal
from src.core.domain.pubkey import (
    PUBKEY_LEN,
    module_id_from_label,
    pubkey_from_hex,
    pubkey_to_hex,
    validate_pubkey,
)
from src.core.domain.records import (
    TYPE_TAG_LEN,
    ConfigRecord,
    Record,
    TokenAccountRecord,
    VaultRecord,
    decode_record,
    read_type_tag,
    type_tag_for,
)
from src.core.domain.request import (
    AccountMeta,
    OperationRequest,
    RequestSignature,
    SignedRequest,
)

__all__ = [
    # Pubkey module
    "PUBKEY_LEN",
    "module_id_from_label",
    "pubkey_from_hex",
    "pubkey_to_hex",
    "validate_pubkey",
    # Account model
    "Account",
    # Principal model
    "Principal",
    # Records
    "TYPE_TAG_LEN",
    "Record",
    "VaultRecord",
    "ConfigRecord",
    "TokenAccountRecord",
    "decode_record",
    "read_type_tag",
    "type_tag_for",
    # Request models
    "AccountMeta",
    "OperationRequest",
    "RequestSignature",
    "SignedRequest",
]
