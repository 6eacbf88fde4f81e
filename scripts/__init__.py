"""Operational scripts for the ledger engine."""
