"""Gates — индивидуальные гейты цепочки авторизации операции.

Порядок фиксирован, каждый gate получает результаты предыдущих:
- GATE 0: Signer Gate (MissingSigner)
- GATE 1: Provenance Verifier (InvalidOwner / AccountNotFound)
- GATE 2: Type-Tag Verifier (InvalidAccountType)
- GATE 3: Address Derivation Verifier + Authority Binding
- GATE 4: Domain Invariants (InsufficientFunds, WithdrawalLimitExceeded, ...)
- GATE 5: Trusted-Target Guard (UntrustedTarget)
"""

from .gate_00_signer import Gate00Signer, Gate00Result
from .gate_01_provenance import Gate01Provenance, Gate01Result
from .gate_02_type_tag import Gate02TypeTag, Gate02Result
from .gate_03_derivation import (
    Gate03Derivation,
    Gate03Result,
    Gate03Config,
    DerivationCheck,
    AuthorityBinding,
)
from .gate_04_domain_invariants import Gate04DomainInvariants, Gate04Result, DomainCheck
from .gate_05_trusted_target import Gate05TrustedTarget, Gate05Result, Gate05Config

__all__ = [
    "Gate00Signer",
    "Gate00Result",
    "Gate01Provenance",
    "Gate01Result",
    "Gate02TypeTag",
    "Gate02Result",
    "Gate03Derivation",
    "Gate03Result",
    "Gate03Config",
    "DerivationCheck",
    "AuthorityBinding",
    "Gate04DomainInvariants",
    "Gate04Result",
    "DomainCheck",
    "Gate05TrustedTarget",
    "Gate05Result",
    "Gate05Config",
]
