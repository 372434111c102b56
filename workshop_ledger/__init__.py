"""
Workshop Ledger.

Debt and payment tracking for workshops with weekly, monthly and yearly reports.
"""

__version__ = "0.1.0"
