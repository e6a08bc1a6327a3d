"""Ledger module - accounts, transactions, budgets and daily budget allocation."""
