"""
Visual note density per target.
"""

from collections import deque
from typing import List

from src.difficulty.core import Target


def _windows(targets: List[Target], preempt_ms: float):
    """Yields (target, targets within +-preempt) using a sliding queue."""
    window = deque()
    nxt = 0
    for target in targets:
        while nxt < len(targets) and targets[nxt].start_time_ms < target.start_time_ms + preempt_ms:
            window.append(targets[nxt])
            nxt += 1
        while window and window[0].start_time_ms < target.start_time_ms - preempt_ms:
            window.popleft()
        yield target, window


def calculate_note_densities(targets: List[Target], preempt_ms: float) -> List[float]:
    """Sum of (1 - |dt| / preempt) over targets visible around each target."""
    densities = []
    for target, window in _windows(targets, preempt_ms):
        densities.append(
            sum(1 - abs(other.start_time_ms - target.start_time_ms) / preempt_ms for other in window)
        )
    return densities
