"""Utility functions and classes for thematic-index."""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar, Union
import threading
import numpy as np


T = TypeVar("T")
R = TypeVar("R")

RandomState = Union[None, int, np.random.Generator]


class CostTracker:
    """
    Thread-safe accumulator for the cost of calls to external services.

    One tracker is shared by all concurrent calls of a single logical operation
    (e.g. building one topic level). The total only ever increases.
    """

    def __init__(self, initial: float = 0.0):
        self._total = float(initial)
        self._lock = threading.Lock()

    def add(self, amount: float) -> float:
        """Add `amount` to the total and return the new total."""
        if amount < 0:
            raise ValueError(f"Cost must be non-negative (got {amount})")
        with self._lock:
            self._total += float(amount)
            return self._total

    @property
    def total(self) -> float:
        with self._lock:
            return self._total

    def __repr__(self) -> str:
        return f"CostTracker(total=${self.total:.4f})"


def parallel_map(
    func: Callable[[T], R],
    items: Iterable[T],
    max_workers: Optional[int] = None,
) -> List[R]:
    """
    Apply `func` to every item on a short-lived thread pool.

    Results come back in input order. The first exception raised by any unit
    propagates once all units have been joined, so a batch either fully
    succeeds or fails.
    """
    items = list(items)
    if not items:
        return []
    if max_workers == 1 or len(items) == 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(func, items))


def as_rng(random_state: RandomState = None) -> np.random.Generator:
    """Return a numpy Generator from a seed, an existing Generator or None."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def nunique(values: Iterable) -> int:
    """Count unique elements."""
    return len(set(np.asarray(list(values)).tolist()))


def strip_quotes(text: str) -> str:
    """Remove double quotes and surrounding whitespace from generated text."""
    return text.replace('"', "").strip()
