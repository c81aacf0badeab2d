"""
Command Line Interface Package

Command-line entry point for reconciliation passes over a JSON row store.

Command Structure:
- bookkeeping: Main entry point with utility commands (version, config)
- bookkeeping import-csv: Load a CSV sheet export into the row store
- bookkeeping match-invoices / match-receipts: Payment matching with displacement
- bookkeeping reconcile-bank: Bank credit movements against collections
- bookkeeping match-movements: Bank debits and credits against invoices, payments and receipts
- bookkeeping settle-credit-notes: Credit notes against the invoices they cancel
"""
