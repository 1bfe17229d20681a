"""
Windowed reduction of classification results.

Single Responsibility: Pick the dominant result of an aggregation window.
"""
import threading
from typing import List, Optional

from fusion.models import ClassificationResult


class TemporalAggregator:
    """
    Collects results over a window and reduces them to the most severe one.

    Ties go to the latest result. An empty window keeps the previous
    dominant result. The buffer is cleared after every reduction.
    """

    def __init__(self, window_sec: float = 30.0):
        self.window_sec = window_sec
        self._results: List[ClassificationResult] = []
        self._dominant: Optional[ClassificationResult] = None
        self._lock = threading.Lock()

    def add(self, result: ClassificationResult) -> None:
        with self._lock:
            self._results.append(result)

    @property
    def dominant(self) -> Optional[ClassificationResult]:
        return self._dominant

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def reduce(self) -> Optional[ClassificationResult]:
        """
        Close the current window.

        Returns:
            The dominant result of the window, or the previous one if the
            window was empty (None before any result was seen)
        """
        with self._lock:
            results, self._results = self._results, []
            if not results:
                return self._dominant

            best = results[0]
            for result in results[1:]:
                if result.severity >= best.severity:
                    best = result
            self._dominant = best
            return best

    def reset(self) -> None:
        with self._lock:
            self._results = []
            self._dominant = None
