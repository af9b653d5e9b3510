"""
Checked Arithmetic — Safe Math Primitives для балансов

Модуль обеспечивает отсутствие тихого переполнения для всех переходов
баланса (unsigned fixed-width счётчики):
- Checked add/sub/mul/div: abort с MathOverflow/MathUnderflow/DivisionByZero
- Saturating add/sub: clamp к границе, никогда не abort
  (только там, где clamp является явной политикой)
- Валидация unsigned значений в диапазоне [0, bound]
- Операнд выше bound: MathOverflow (LedgerError), не ValueError

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Результат никогда не выходит за [0, bound] и никогда не wrap'ается
2. Деление на ноль никогда не происходит (DivisionByZero)
3. Никакой raw оператор не применяется к хранимому балансу вне этого модуля
4. Все операции детерминированы и воспроизводимы
"""

from typing import Final

from src.core.errors import DivisionByZeroError, MathOverflowError, MathUnderflowError

# =============================================================================
# BOUNDS
# =============================================================================

# Границы unsigned fixed-width полей record'ов
U8_MAX: Final[int] = 2**8 - 1
U64_MAX: Final[int] = 2**64 - 1

# Граница по умолчанию для балансов
BALANCE_BOUND_DEFAULT: Final[int] = U64_MAX


# =============================================================================
# VALIDATION
# =============================================================================


def is_unsigned(value: int, bound: int = BALANCE_BOUND_DEFAULT) -> bool:
    """
    Проверка, что value — целое в диапазоне [0, bound].

    bool отклоняется явно (bool является подклассом int).
    """
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= bound


def validate_unsigned(value: int, name: str, bound: int = BALANCE_BOUND_DEFAULT) -> None:
    """
    Валидация unsigned операнда.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)
        bound: Верхняя граница (включительно)

    Raises:
        TypeError: Если value не int
        ValueError: Если value вне [0, bound]
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")

    if value < 0 or value > bound:
        raise ValueError(f"{name} must be in [0, {bound}], got {value}")


def validate_operand(value: int, name: str, bound: int = BALANCE_BOUND_DEFAULT) -> None:
    """
    Валидация операнда арифметики балансов.

    Значение выше bound abort'ит как MathOverflow, а не ValueError.

    Raises:
        TypeError: Если value не int
        ValueError: Если value < 0
        MathOverflowError: Если value > bound
    """
    _validate_non_negative(value, name)

    if value > bound:
        raise MathOverflowError(
            f"{name}={value} exceeds bound {bound}",
            details={"operand": name, "value": value, "bound": bound},
        )


def _validate_non_negative(value: int, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


# =============================================================================
# CHECKED OPERATIONS
# =============================================================================


def checked_add(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Сложение с abort при переполнении.

    Examples:
        >>> checked_add(1, 2)
        3
        >>> checked_add(U64_MAX, 1)  # doctest: +SKIP
        Traceback (most recent call last):
            ...
        MathOverflowError: ...
    """
    validate_operand(a, "a", bound)
    validate_operand(b, "b", bound)

    result = a + b
    if result > bound:
        raise MathOverflowError(
            f"{a} + {b} exceeds bound {bound}",
            details={"op": "add", "a": a, "b": b, "bound": bound},
        )
    return result


def checked_sub(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Вычитание с abort при underflow (результат < 0).

    Examples:
        >>> checked_sub(5, 3)
        2
    """
    validate_operand(a, "a", bound)
    validate_operand(b, "b", bound)

    if b > a:
        raise MathUnderflowError(
            f"{a} - {b} is below zero",
            details={"op": "sub", "a": a, "b": b},
        )
    return a - b


def checked_mul(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Умножение с abort при переполнении.

    Examples:
        >>> checked_mul(10, 10)
        100
    """
    validate_operand(a, "a", bound)
    validate_operand(b, "b", bound)

    result = a * b
    if result > bound:
        raise MathOverflowError(
            f"{a} * {b} exceeds bound {bound}",
            details={"op": "mul", "a": a, "b": b, "bound": bound},
        )
    return result


def checked_div(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Целочисленное деление (truncation к нулю) с abort при b == 0.

    Examples:
        >>> checked_div(7, 2)
        3
    """
    validate_operand(a, "a", bound)
    validate_operand(b, "b", bound)

    if b == 0:
        raise DivisionByZeroError(
            f"{a} / 0",
            details={"op": "div", "a": a},
        )
    return a // b


# =============================================================================
# SATURATING OPERATIONS
# =============================================================================


def saturating_add(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Сложение с clamp к bound (операнды выше bound тоже clamp'ятся).

    Examples:
        >>> saturating_add(U64_MAX, 1)
        18446744073709551615
    """
    _validate_non_negative(a, "a")
    _validate_non_negative(b, "b")

    return min(a + b, bound)


def saturating_sub(a: int, b: int, bound: int = BALANCE_BOUND_DEFAULT) -> int:
    """
    Вычитание с clamp к [0, bound].

    Examples:
        >>> saturating_sub(3, 5)
        0
    """
    _validate_non_negative(a, "a")
    _validate_non_negative(b, "b")

    return min(max(a - b, 0), bound)
