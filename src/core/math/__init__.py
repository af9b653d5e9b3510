"""
Core math modules для ledger core

Арифметика балансов с гарантией отсутствия тихого переполнения.
"""

# Checked Arithmetic
from src.core.math.checked_arithmetic import (
    # Bounds
    BALANCE_BOUND_DEFAULT,
    U8_MAX,
    U64_MAX,
    # Checked
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    # Saturating
    saturating_add,
    saturating_sub,
    # Validation
    is_unsigned,
    validate_operand,
    validate_unsigned,
)

# Compounding
from src.core.math.compounding import (
    MAX_COMPOUND_PERIODS_DEFAULT,
    CompoundingMode,
    accrue_reward,
    compound_amount,
    compound_rewards,
    truncation_drift,
    validate_compound_inputs,
)

__all__ = [
    # Checked Arithmetic: Bounds
    "BALANCE_BOUND_DEFAULT",
    "U8_MAX",
    "U64_MAX",
    # Checked Arithmetic: Checked
    "checked_add",
    "checked_div",
    "checked_mul",
    "checked_sub",
    # Checked Arithmetic: Saturating
    "saturating_add",
    "saturating_sub",
    # Checked Arithmetic: Validation
    "is_unsigned",
    "validate_operand",
    "validate_unsigned",
    # Compounding: Constants
    "MAX_COMPOUND_PERIODS_DEFAULT",
    # Compounding: Types
    "CompoundingMode",
    # Compounding: Functions
    "accrue_reward",
    "compound_amount",
    "compound_rewards",
    "truncation_drift",
    "validate_compound_inputs",
]
