"""Inventory ledger: products on hand, append-only transactions and running profit totals."""
