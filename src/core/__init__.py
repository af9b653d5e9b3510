"""
Core domain models, checked arithmetic, request contracts, and errors.

This module contains the foundational building blocks that are independent
of the ledger runtime (accounts storage, signature verification, external modules).
"""
