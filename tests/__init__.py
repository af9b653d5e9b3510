"""
Test suite for ledger core

Contains:
- tests/unit/          : Unit tests for individual modules
- tests/integration/   : Integration tests for the Mutation Executor
- tests/scenarios/     : Adversarial scenarios (forged accounts, type cosplay, re-entry, etc.)
"""
