"""
Request Authorization — проверка подписей запроса

Runtime проверяет каждую Ed25519 подпись над signing message запроса
(canonical JSON) и формирует AuthorizationContext со множеством
проверенных signer'ов.

Principal.is_authorized выводится только отсюда: упоминание public key
среди account'ов запроса не даёт авторизации, её даёт только подпись
приватным ключом над этим конкретным запросом.

Nonce одноразовый: пара (signer, nonce) расходуется при первой успешной
аутентификации, повтор того же запроса отклоняется до gate'ов.
"""

from dataclasses import dataclass

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from src.core.audit_log import AuditLogger, audit_log
from src.core.domain.principal import Principal
from src.core.domain.pubkey import pubkey_from_hex, pubkey_to_hex
from src.core.domain.request import OperationRequest, RequestSignature, SignedRequest
from src.core.errors import ReplayedRequestError


@dataclass(frozen=True)
class AuthorizationContext:
    """Проверенные signer'ы текущего запроса."""

    signers: frozenset[bytes]
    rejected: tuple[str, ...] = ()

    def is_signer(self, pubkey: bytes) -> bool:
        return pubkey in self.signers

    def principal(self, pubkey: bytes) -> Principal:
        return Principal(pubkey=pubkey, is_authorized=self.is_signer(pubkey))


class RequestAuthenticator:
    """Проверка подписей SignedRequest."""

    def __init__(self, audit: AuditLogger | None = None):
        self._audit = audit or audit_log
        self._consumed: set[tuple[bytes, int]] = set()

    def authenticate(self, signed: SignedRequest) -> AuthorizationContext:
        """
        Формирование AuthorizationContext.

        Невалидная подпись не даёт авторизации и фиксируется как
        security event; запрос продолжает обработку, решение
        принимает Signer Gate.

        Raises:
            ReplayedRequestError: проверенный signer уже использовал этот nonce
        """
        message = signed.request.message()
        signers: set[bytes] = set()
        rejected: list[str] = []

        for entry in signed.signatures:
            signer = pubkey_from_hex(entry.signer)
            if self._verify(signer, message, bytes.fromhex(entry.signature)):
                signers.add(signer)
            else:
                rejected.append(entry.signer)
                self._audit.security_event(
                    "signature_rejected",
                    severity="high",
                    signer=entry.signer,
                    operation=signed.request.operation,
                )

        nonce = signed.request.nonce
        replayed = sorted(pubkey_to_hex(s) for s in signers if (s, nonce) in self._consumed)
        if replayed:
            self._audit.security_event(
                "request_replayed",
                severity="high",
                signers=replayed,
                nonce=nonce,
                operation=signed.request.operation,
            )
            raise ReplayedRequestError(
                f"nonce {nonce} already used",
                details={"signers": replayed, "nonce": nonce},
            )
        self._consumed.update((s, nonce) for s in signers)

        return AuthorizationContext(signers=frozenset(signers), rejected=tuple(rejected))

    @staticmethod
    def _verify(signer: bytes, message: bytes, signature: bytes) -> bool:
        try:
            VerifyKey(signer).verify(message, signature)
        except (BadSignatureError, ValueError):
            return False
        return True


# =============================================================================
# SIGNING HELPERS
# =============================================================================


def generate_keypair() -> SigningKey:
    """Новый Ed25519 ключ principal'а."""
    return SigningKey.generate()


def public_key_of(key: SigningKey) -> bytes:
    return bytes(key.verify_key)


def sign_request(request: OperationRequest, *keys: SigningKey) -> SignedRequest:
    """
    Подпись запроса набором ключей.

    Args:
        request: запрос
        keys: ключи principal'ов

    Returns:
        SignedRequest с подписью каждого ключа
    """
    message = request.message()
    signatures = [
        RequestSignature(
            signer=pubkey_to_hex(public_key_of(key)),
            signature=key.sign(message).signature.hex(),
        )
        for key in keys
    ]
    return SignedRequest(request=request, signatures=signatures)
