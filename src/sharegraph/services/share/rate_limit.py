"""
Rate limiting for mutating share operations.
"""

import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Tuple

from ...shared import get_logger, get_settings, RateLimitError

Key = Tuple[str, str, str]


class ShareRateLimiter:
    """
    Rolling-window limiter keyed by ``(uid, entity_type, entity_id)``.

    A call is admitted when fewer than ``max_operations`` calls for the same
    key were admitted within the last ``window_seconds``.
    """

    def __init__(self,
                 max_operations: Optional[int] = None,
                 window_seconds: Optional[float] = None,
                 clock=time.monotonic):
        settings = get_settings()
        self.max_operations = max_operations or settings.rate_limit_max_operations
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.clock = clock
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._calls: Dict[Key, Deque[float]] = defaultdict(deque)

    def enforce(self, uid: str, entity_type: str, entity_id: str) -> None:
        """Admit one operation or raise RateLimitError."""
        key = (uid, entity_type, entity_id)
        now = self.clock()
        with self._lock:
            calls = self._calls[key]
            while calls and now - calls[0] >= self.window_seconds:
                calls.popleft()
            if len(calls) >= self.max_operations:
                self.logger.warning(f"Rate limited share operation on {entity_type} {entity_id} by {uid}")
                raise RateLimitError()
            calls.append(now)

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()
