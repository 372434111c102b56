"""
Process-wide report cache.

The refresh job builds every report first and then publishes them in a
single reference swap, so readers see either the previous complete set
or the new one, never a mix.
"""

import threading
from types import MappingProxyType
from typing import Any, Mapping, Optional

WEEKLY_KEY = "structured:weekly"
MONTHLY_KEY = "structured:monthly"
YEARLY_KEY = "structured:yearly"
LAST_RUN_KEY = "lastReportRunAt"


class ReportCache:
    """Key/value store overwritten wholesale on each publish."""

    def __init__(self):
        self._entries: Mapping[str, Any] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def publish(self, entries: Mapping[str, Any]) -> None:
        """Replace the entire cache contents with entries."""
        frozen = MappingProxyType(dict(entries))
        with self._write_lock:
            self._entries = frozen

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._entries.get(key, default)

    def snapshot(self) -> Mapping[str, Any]:
        """Read-only view of the current contents."""
        return self._entries

    def __contains__(self, key: str) -> bool:
        return key in self._entries


_default_cache: Optional[ReportCache] = None


def get_report_cache() -> ReportCache:
    """Get the process-wide report cache."""
    global _default_cache
    if _default_cache is None:
        _default_cache = ReportCache()
    return _default_cache
