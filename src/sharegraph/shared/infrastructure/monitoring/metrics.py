"""
In-process counters and timings for publish, duplicate and delete work.
"""

import time
import threading
from collections import Counter, defaultdict, deque
from functools import wraps
from typing import Deque, Dict, Optional

from ...config.settings import get_settings


class MetricsCollector:
    """
    Process-wide counters and timings.

    Counters are also broken down by entity type when one is given, so the
    total for ``shares_created`` and the ``document`` share of it can both
    be read back. Timings keep the most recent ``max_history`` samples.
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = threading.RLock()

    def __new__(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        config = get_settings().monitoring_config
        self.enabled: bool = config.get('enabled', True)
        self.max_history: int = config.get('max_history', 1000)

        self._totals: Counter = Counter()
        self._by_type: Dict[str, Counter] = defaultdict(Counter)
        self._samples: Dict[str, Deque[float]] = {}

        self._initialized = True

    def counter(self, name: str, value: int = 1, entity_type: Optional[str] = None) -> None:
        """Add ``value`` to the named counter."""
        if not self.enabled:
            return
        with self._lock:
            self._totals[name] += value
            if entity_type:
                self._by_type[name][entity_type] += value

    def timer(self, name: str, duration_seconds: float) -> None:
        """Record one duration sample."""
        if not self.enabled:
            return
        with self._lock:
            samples = self._samples.get(name)
            if samples is None:
                samples = self._samples[name] = deque(maxlen=self.max_history)
            samples.append(duration_seconds)

    def get_counter(self, name: str, entity_type: Optional[str] = None) -> int:
        with self._lock:
            if entity_type:
                return self._by_type[name][entity_type] if name in self._by_type else 0
            return self._totals[name]

    def get_timer_stats(self, name: str) -> Dict[str, float]:
        with self._lock:
            samples = list(self._samples.get(name, ()))

        if not samples:
            return {'count': 0, 'mean': 0.0, 'min': 0.0, 'max': 0.0}
        return {
            'count': len(samples),
            'mean': sum(samples) / len(samples),
            'min': min(samples),
            'max': max(samples),
        }

    def snapshot(self) -> Dict[str, Dict]:
        """Counters, per-type breakdowns and timer summaries as plain dicts."""
        with self._lock:
            names = list(self._samples)
            counters = dict(self._totals)
            by_type = {name: dict(types) for name, types in self._by_type.items() if types}
        return {
            'counters': counters,
            'by_type': by_type,
            'timers': {name: self.get_timer_stats(name) for name in names},
        }

    def reset(self) -> None:
        with self._lock:
            self._totals.clear()
            self._by_type.clear()
            self._samples.clear()

    def record_share_operation(self, operation: str, entity_type: str) -> None:
        """Count a completed share mutation, e.g. ``created`` or ``deleted``."""
        self.counter(f'shares_{operation}', entity_type=entity_type)


def timed_operation(metric_name: str):
    """
    Time a coroutine under ``metric_name``.

    Failures are timed under ``<metric_name>_error`` and re-raised.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                get_metrics().timer(f"{metric_name}_error", time.perf_counter() - started)
                raise
            get_metrics().timer(metric_name, time.perf_counter() - started)
            return result

        return wrapper
    return decorator


def get_metrics() -> MetricsCollector:
    """Return the process-wide collector."""
    return MetricsCollector()
