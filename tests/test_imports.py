"""
Smoke tests that the public modules import.
"""


def test_package_imports():
    """The package and its version import."""
    import workshop_ledger

    assert workshop_ledger.__version__


def test_public_modules_import():
    """Every layer imports without side effects."""
    from workshop_ledger.cli.main import app
    from workshop_ledger.config import LedgerConfig, configure_logging, get_logger
    from workshop_ledger.core.reports import generate_weekly_report
    from workshop_ledger.core.refresh import refresh_structured_reports
    from workshop_ledger.storage.repository import LedgerRepository

    assert app is not None
    assert LedgerConfig is not None
    assert callable(configure_logging)
    assert callable(get_logger)
    assert callable(generate_weekly_report)
    assert callable(refresh_structured_reports)
    assert LedgerRepository is not None
