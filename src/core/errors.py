"""
Ledger Errors — таксономия ошибок ядра

Каждый abort операции сопровождается конкретным ErrorCode, никогда не
generic failure. Все ошибки кроме InteractionFailed считаются recoverable:
операция прерывается до любой записи, caller может повторить запрос с
исправленными входами.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Ни одна ошибка не понижается до no-op
2. InteractionFailed (после commit) не ретраится автоматически
3. Provenance/derivation/authority mismatch группируются под Unauthorized
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCode(str, Enum):
    """Именованные коды ошибок, видимые caller'у."""

    UNAUTHORIZED = "Unauthorized"
    MISSING_SIGNER = "MissingSigner"
    REPLAYED_REQUEST = "ReplayedRequest"
    INVALID_OWNER = "InvalidOwner"
    INVALID_TOKEN_OWNER = "InvalidTokenOwner"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    WITHDRAWAL_LIMIT_EXCEEDED = "WithdrawalLimitExceeded"
    MATH_OVERFLOW = "MathOverflow"
    MATH_UNDERFLOW = "MathUnderflow"
    DIVISION_BY_ZERO = "DivisionByZero"
    INVALID_PERIODS = "InvalidPeriods"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_ACCOUNT_TYPE = "InvalidAccountType"
    INVALID_DERIVATION = "InvalidDerivation"
    UNTRUSTED_TARGET = "UntrustedTarget"
    INTERACTION_FAILED = "InteractionFailed"
    CONFIG_DISABLED = "ConfigDisabled"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    ACCOUNT_ALREADY_INITIALIZED = "AccountAlreadyInitialized"
    UNKNOWN_OPERATION = "UnknownOperation"
    INVALID_REQUEST = "InvalidRequest"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class LedgerError(Exception):
    """
    Базовая ошибка ядра.

    Attributes:
        code: ErrorCode, возвращаемый caller'у
        recoverable: False только для ошибок после commit
        details: диагностический контекст (для audit log)
    """

    code: ErrorCode = ErrorCode.INVALID_REQUEST
    recoverable: bool = True

    def __init__(self, message: str = "", details: Optional[dict[str, Any]] = None):
        self.message = message or self.code.value
        self.details = details or {}
        super().__init__(f"{self.code.value}: {self.message}")


class UnauthorizedError(LedgerError):
    code = ErrorCode.UNAUTHORIZED


class InvalidOwnerError(UnauthorizedError):
    """Account принадлежит не тому модулю, который определяет его layout."""

    code = ErrorCode.INVALID_OWNER


class InvalidTokenOwnerError(UnauthorizedError):
    """Token account принадлежит другому principal."""

    code = ErrorCode.INVALID_TOKEN_OWNER


class InvalidDerivationError(UnauthorizedError):
    """Адрес или bump не совпадают с каноническим derived address."""

    code = ErrorCode.INVALID_DERIVATION


class MissingSignerError(LedgerError):
    code = ErrorCode.MISSING_SIGNER


class ReplayedRequestError(UnauthorizedError):
    """Signer уже использовал этот nonce: подпись не авторизует повторный запрос."""

    code = ErrorCode.REPLAYED_REQUEST


class InsufficientFundsError(LedgerError):
    code = ErrorCode.INSUFFICIENT_FUNDS


class WithdrawalLimitExceededError(LedgerError):
    code = ErrorCode.WITHDRAWAL_LIMIT_EXCEEDED


class MathOverflowError(LedgerError):
    code = ErrorCode.MATH_OVERFLOW


class MathUnderflowError(LedgerError):
    code = ErrorCode.MATH_UNDERFLOW


class DivisionByZeroError(LedgerError):
    code = ErrorCode.DIVISION_BY_ZERO


class InvalidPeriodsError(LedgerError):
    code = ErrorCode.INVALID_PERIODS


class InvalidAmountError(LedgerError):
    code = ErrorCode.INVALID_AMOUNT


class InvalidAccountTypeError(LedgerError):
    code = ErrorCode.INVALID_ACCOUNT_TYPE


class UntrustedTargetError(LedgerError):
    code = ErrorCode.UNTRUSTED_TARGET


class ConfigDisabledError(LedgerError):
    code = ErrorCode.CONFIG_DISABLED


class AccountNotFoundError(LedgerError):
    code = ErrorCode.ACCOUNT_NOT_FOUND


class AccountAlreadyInitializedError(LedgerError):
    code = ErrorCode.ACCOUNT_ALREADY_INITIALIZED


class UnknownOperationError(LedgerError):
    code = ErrorCode.UNKNOWN_OPERATION


class InvalidRequestError(LedgerError):
    code = ErrorCode.INVALID_REQUEST


class InteractionFailedError(LedgerError):
    """
    Внешнее взаимодействие упало ПОСЛЕ commit state.

    Средства списаны со счёта, но не доставлены. Локальный retry запрещён
    (риск двойной выплаты): состояние сверяется out-of-band.
    """

    code = ErrorCode.INTERACTION_FAILED
    recoverable = False


_ERRORS_BY_CODE: dict[ErrorCode, type[LedgerError]] = {
    cls.code: cls
    for cls in (
        UnauthorizedError,
        InvalidOwnerError,
        InvalidTokenOwnerError,
        InvalidDerivationError,
        MissingSignerError,
        ReplayedRequestError,
        InsufficientFundsError,
        WithdrawalLimitExceededError,
        MathOverflowError,
        MathUnderflowError,
        DivisionByZeroError,
        InvalidPeriodsError,
        InvalidAmountError,
        InvalidAccountTypeError,
        UntrustedTargetError,
        ConfigDisabledError,
        AccountNotFoundError,
        AccountAlreadyInitializedError,
        UnknownOperationError,
        InvalidRequestError,
        InteractionFailedError,
    )
}


def error_for(
    code: ErrorCode,
    message: str = "",
    details: Optional[dict[str, Any]] = None,
) -> LedgerError:
    """
    Создание исключения по коду ошибки.

    Используется executor'ом для перевода blocked GateResult в исключение.

    Args:
        code: код ошибки из GateResult
        message: человекочитаемое описание
        details: диагностический контекст

    Returns:
        Экземпляр соответствующего подкласса LedgerError
    """
    return _ERRORS_BY_CODE[code](message, details)
