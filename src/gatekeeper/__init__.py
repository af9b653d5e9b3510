"""Gatekeeper — цепочка гейтов, допускающих операцию к commit.

- 6 gates с фиксированным порядком
- Ни один gate не пишет в ledger
- Первая блокировка определяет ErrorCode операции
"""

from .gates.gate_00_signer import Gate00Signer, Gate00Result

__all__ = [
    "Gate00Signer",
    "Gate00Result",
]
