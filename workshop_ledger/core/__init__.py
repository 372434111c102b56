"""
Core modules for the workshop ledger.

This package contains the calendar resolver, the aggregation engine,
the report builder, ledger write operations and the scheduled refresh.
"""
