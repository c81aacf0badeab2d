"""
Test Suite for Bookkeeping Reconciliation

Test Structure:
- fixtures/: Shared document builders
- unit/: Unit tests mirroring src/ package structure
- integration/: CLI workflow tests against a JSON row store

All documents, tax IDs and amounts are synthetic.
"""
