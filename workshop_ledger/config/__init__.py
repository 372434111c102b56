"""Configuration module for the workshop ledger."""

from workshop_ledger.config.loader import LedgerConfig, load_ledger_config
from workshop_ledger.config.logging import configure_logging, get_logger

__all__ = ["LedgerConfig", "load_ledger_config", "configure_logging", "get_logger"]
