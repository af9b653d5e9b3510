"""Runtime — примитивы, которые ядро получает от внешнего ledger runtime.

- Ledger: хранилище account'ов с атомарным commit
- RequestAuthenticator: проверка Ed25519 подписей запроса
- Derived addresses: канонический адрес для (namespace, principal)
- TokenModule: trusted внешний модуль value transfer
"""

from .authorization import (
    AuthorizationContext,
    RequestAuthenticator,
    generate_keypair,
    public_key_of,
    sign_request,
)
from .derivation import (
    DERIVED_ADDRESS_MARKER,
    create_derived_address,
    find_derived_address,
    is_on_curve,
    namespace_seeds,
)
from .ledger import Ledger
from .token_module import ExternalModule, Invocation, TokenModule, TokenTransfer

__all__ = [
    "AuthorizationContext",
    "RequestAuthenticator",
    "generate_keypair",
    "public_key_of",
    "sign_request",
    "DERIVED_ADDRESS_MARKER",
    "create_derived_address",
    "find_derived_address",
    "is_on_curve",
    "namespace_seeds",
    "Ledger",
    "ExternalModule",
    "Invocation",
    "TokenModule",
    "TokenTransfer",
]
