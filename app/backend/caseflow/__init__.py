"""Caseflow: assignment, allocation ledger and payout service."""

__version__ = "0.1.0"
