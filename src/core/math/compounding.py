"""
Compounding — Safe Reward Accrual & Compound Interest

Модуль обеспечивает безопасное начисление наград на unsigned балансы:
- accrue_reward: rewards = balance × multiplier (checked)
- compound_amount: amount × (1 + num/den)^periods, каждый шаг checked
- Два режима точности (CompoundingMode)
- Диагностика накопленного truncation drift

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. rate_den == 0 → DivisionByZero до начала цикла
2. periods == 0 или periods > max_periods → InvalidPeriods
3. Overflow на ЛЮБОМ шаге → abort всей операции (частичного результата нет)
4. TRUNCATE_PER_PERIOD никогда не начисляет больше, чем EXACT_RATIONAL

ФОРМУЛЫ:
    TRUNCATE_PER_PERIOD:
        interest_k = floor(amount_k × num / den)
        amount_{k+1} = amount_k + interest_k

    EXACT_RATIONAL:
        amount_K = floor(principal × ((den + num) / den)^K)
        (одно целочисленное деление вместо цикла; при overflow первый
        период с floor > bound ищется бинарным поиском, последовательность
        монотонна)

    truncation_drift = EXACT_RATIONAL - TRUNCATE_PER_PERIOD >= 0
"""

from enum import Enum
from typing import Final

from src.core.errors import (
    DivisionByZeroError,
    InvalidPeriodsError,
    MathOverflowError,
)
from src.core.math.checked_arithmetic import (
    BALANCE_BOUND_DEFAULT,
    U64_MAX,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    validate_operand,
    validate_unsigned,
)

# =============================================================================
# COMPOUNDING PARAMETERS
# =============================================================================

# Верхний предел числа периодов за одну операцию.
# Цикл итерирует caller-supplied periods, поэтому число ограничено.
MAX_COMPOUND_PERIODS_DEFAULT: Final[int] = 10_000


class CompoundingMode(str, Enum):
    """Режим точности compounding."""

    TRUNCATE_PER_PERIOD = "truncate_per_period"
    EXACT_RATIONAL = "exact_rational"


# =============================================================================
# REWARD ACCRUAL
# =============================================================================


def accrue_reward(
    balance: int,
    multiplier: int,
    bound: int = BALANCE_BOUND_DEFAULT,
) -> int:
    """
    Вычисление награды balance × multiplier.

    Args:
        balance: Текущий баланс
        multiplier: Множитель награды
        bound: Граница значения

    Returns:
        Размер награды

    Raises:
        MathOverflowError: если произведение > bound
    """
    return checked_mul(balance, multiplier, bound)


# =============================================================================
# COMPOUND INTEREST
# =============================================================================


def validate_compound_inputs(
    rate_num: int,
    rate_den: int,
    periods: int,
    max_periods: int = MAX_COMPOUND_PERIODS_DEFAULT,
    bound: int = BALANCE_BOUND_DEFAULT,
) -> None:
    """
    Проверка входов compounding до начала вычислений.

    Raises:
        DivisionByZeroError: rate_den == 0
        InvalidPeriodsError: periods == 0 или periods > max_periods
    """
    # Ставка и число периодов: u64 поля, не балансы
    validate_unsigned(rate_num, "rate_num", U64_MAX)
    validate_unsigned(rate_den, "rate_den", U64_MAX)
    validate_unsigned(periods, "periods", U64_MAX)

    if rate_den == 0:
        raise DivisionByZeroError("rate_den must be non-zero")

    if periods == 0:
        raise InvalidPeriodsError("periods must be positive")

    if periods > max_periods:
        raise InvalidPeriodsError(
            f"periods {periods} exceeds maximum {max_periods}",
            details={"periods": periods, "max_periods": max_periods},
        )


def compound_amount(
    principal: int,
    rate_num: int,
    rate_den: int,
    periods: int,
    mode: CompoundingMode = CompoundingMode.TRUNCATE_PER_PERIOD,
    max_periods: int = MAX_COMPOUND_PERIODS_DEFAULT,
    bound: int = BALANCE_BOUND_DEFAULT,
) -> int:
    """
    Итоговая сумма после periods периодов по ставке rate_num / rate_den.

    Args:
        principal: Исходная сумма
        rate_num: Числитель ставки за период
        rate_den: Знаменатель ставки за период
        periods: Число периодов
        mode: Режим точности
        max_periods: Предел числа периодов
        bound: Граница значения

    Returns:
        Сумма после compounding (>= principal)

    Raises:
        DivisionByZeroError, InvalidPeriodsError, MathOverflowError

    Examples:
        >>> compound_amount(1000, 1, 10, 2)
        1210
        >>> compound_amount(15, 1, 10, 2)  # 15 → 16 → 17
        17
        >>> compound_amount(15, 1, 10, 2, CompoundingMode.EXACT_RATIONAL)  # floor(18.15)
        18
    """
    validate_operand(principal, "principal", bound)
    validate_compound_inputs(rate_num, rate_den, periods, max_periods, bound)

    if mode == CompoundingMode.TRUNCATE_PER_PERIOD:
        return _compound_truncating(principal, rate_num, rate_den, periods, bound)

    return _compound_exact(principal, rate_num, rate_den, periods, bound)


def _compound_truncating(
    principal: int,
    rate_num: int,
    rate_den: int,
    periods: int,
    bound: int,
) -> int:
    amount = principal
    for _ in range(periods):
        # Промежуточное произведение u64, результат шага ограничен bound
        interest = checked_div(checked_mul(amount, rate_num, U64_MAX), rate_den, U64_MAX)
        amount = checked_add(amount, interest, bound)
    return amount


def _compound_exact(
    principal: int,
    rate_num: int,
    rate_den: int,
    periods: int,
    bound: int,
) -> int:
    amount = _exact_floor(principal, rate_num, rate_den, periods)
    if amount <= bound:
        return amount

    low, high = 1, periods
    while low < high:
        mid = (low + high) // 2
        if _exact_floor(principal, rate_num, rate_den, mid) > bound:
            high = mid
        else:
            low = mid + 1

    raise MathOverflowError(
        f"compounded amount exceeds bound {bound} at period {low}",
        details={"period": low, "bound": bound},
    )


def _exact_floor(principal: int, rate_num: int, rate_den: int, periods: int) -> int:
    """floor(principal × ((den + num) / den)^periods)."""
    return principal * (rate_den + rate_num) ** periods // rate_den**periods


def compound_rewards(
    principal: int,
    rate_num: int,
    rate_den: int,
    periods: int,
    mode: CompoundingMode = CompoundingMode.TRUNCATE_PER_PERIOD,
    max_periods: int = MAX_COMPOUND_PERIODS_DEFAULT,
    bound: int = BALANCE_BOUND_DEFAULT,
) -> int:
    """
    Награда от compounding: compound_amount - principal.

    Raises:
        DivisionByZeroError, InvalidPeriodsError, MathOverflowError, MathUnderflowError
    """
    amount = compound_amount(principal, rate_num, rate_den, periods, mode, max_periods, bound)
    return checked_sub(amount, principal, bound)


def truncation_drift(
    principal: int,
    rate_num: int,
    rate_den: int,
    periods: int,
    max_periods: int = MAX_COMPOUND_PERIODS_DEFAULT,
    bound: int = BALANCE_BOUND_DEFAULT,
) -> int:
    """
    Накопленная потеря от per-period truncation.

    Returns:
        EXACT_RATIONAL - TRUNCATE_PER_PERIOD (всегда >= 0)
    """
    exact = compound_amount(
        principal, rate_num, rate_den, periods, CompoundingMode.EXACT_RATIONAL, max_periods, bound
    )
    truncated = compound_amount(
        principal, rate_num, rate_den, periods, CompoundingMode.TRUNCATE_PER_PERIOD, max_periods, bound
    )
    return checked_sub(exact, truncated, bound)
