"""
REHABCOACH Rehab Service - Session Movement History

Bounded FIFO buffer of processed frames owned by one engine instance.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterator, List

from .joint_angles import JointId
from .landmarks import PoseFrame
from .metrics import MovementMetrics


@dataclass
class HistoryEntry:
    """One processed frame."""
    timestamp_ms: float
    frame: PoseFrame
    metrics: MovementMetrics


class MovementHistory:
    """
    Ring buffer of the most recent processed frames.

    Used for range-of-motion widening, fatigue variance and pain heuristics.
    Oldest entries are evicted first once capacity is reached.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._entries: Deque[HistoryEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def append(self, entry: HistoryEntry):
        self._entries.append(entry)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def recent(self, count: int) -> List[HistoryEntry]:
        """The last `count` entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def joint_angle_series(self, joint: JointId) -> List[float]:
        return [
            ja.angle
            for entry in self._entries
            for ja in entry.metrics.joint_angles
            if ja.joint == joint
        ]

    def quality_series(self) -> List[float]:
        return [entry.metrics.movement_quality for entry in self._entries]
