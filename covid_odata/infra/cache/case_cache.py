# covid_odata/infra/cache/case_cache.py
from datetime import datetime
from typing import Any, Optional
import logging

from covid_odata.core.config import settings

logger = logging.getLogger(__name__)


class CaseCache:
    """Holds the last fetched case payload for `timeout_seconds`."""

    def __init__(self, timeout_seconds: int = settings.CACHE_DURATION):
        self.timeout_seconds = timeout_seconds
        self._data: Any = None
        self._timestamp: Optional[datetime] = None

    def age(self) -> Optional[float]:
        if self._timestamp is None:
            return None
        return (datetime.now() - self._timestamp).total_seconds()

    def get(self) -> Any:
        age = self.age()
        if self._data is None or age is None:
            return None
        if age >= self.timeout_seconds:
            logger.info("⌛ Case cache expired")
            return None
        logger.info(f"✅ Using cached case data ({age:.0f}s old)")
        return self._data

    def set(self, data: Any) -> None:
        self._data = data
        self._timestamp = datetime.now()

    def clear(self) -> None:
        self._data = None
        self._timestamp = None


case_cache = CaseCache()
