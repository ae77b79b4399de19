"""
REHABCOACH Rehab Service - Landmark Sources & Frame Backpressure

Pose estimation is an upstream collaborator: anything that can hand over
a PoseFrame satisfies `LandmarkSource`. `LatestFrameGate` sits between a
source and an engine and keeps only the newest unprocessed frame, so a
slow consumer skips frames instead of queueing them.
"""

import logging
import threading
from dataclasses import replace
from typing import Iterable, List, Optional, Protocol, Union, runtime_checkable

from .classifiers import ExerciseType
from .engine import MovementAnalysisEngine, PoseAnalysisResult
from .landmarks import PoseFrame

logger = logging.getLogger(__name__)


@runtime_checkable
class LandmarkSource(Protocol):
    """Anything producing landmark frames; None means no frame available."""

    def get_frame(self) -> Optional[PoseFrame]:
        ...


class ReplayLandmarkSource:
    """Replays recorded frames in order (offline analysis and tests)."""

    def __init__(self, frames: Iterable[PoseFrame]):
        self._frames: List[PoseFrame] = list(frames)
        self._position = 0

    def get_frame(self) -> Optional[PoseFrame]:
        if self._position >= len(self._frames):
            return None
        frame = self._frames[self._position]
        self._position += 1
        return frame

    @property
    def remaining(self) -> int:
        return len(self._frames) - self._position

    def rewind(self):
        self._position = 0


class LatestFrameGate:
    """
    Single-slot hand-off between a frame producer and an engine.

    - submit() replaces any unprocessed frame (latest frame wins)
    - frames older than the last processed frame are discarded
    - process_pending() runs the engine on the held frame, one at a time
    """

    def __init__(
        self,
        engine: MovementAnalysisEngine,
        exercise_type: Union[ExerciseType, str, None]
    ):
        self.engine = engine
        self.exercise_type = exercise_type

        self._pending: Optional[PoseFrame] = None
        self._last_processed_ms: Optional[float] = None
        self._lock = threading.Lock()

        # Stats
        self._submitted_count = 0
        self._processed_count = 0
        self._dropped_count = 0
        self._stale_count = 0

    def submit(self, frame: PoseFrame) -> bool:
        """
        Offer a frame for processing.

        Frames without a finite timestamp are stamped with the engine clock.

        Returns:
            False if the frame is older than the last processed one
        """
        timestamp_ms = self.engine.resolve_timestamp(frame.timestamp_ms)
        if timestamp_ms != frame.timestamp_ms:
            frame = replace(frame, timestamp_ms=timestamp_ms)

        with self._lock:
            self._submitted_count += 1

            if self._is_stale(frame):
                self._stale_count += 1
                logger.debug(f"Discarded stale frame at {frame.timestamp_ms:.0f}ms")
                return False

            if self._pending is not None:
                self._dropped_count += 1
                logger.debug(f"Dropped unprocessed frame at {self._pending.timestamp_ms:.0f}ms")

            self._pending = frame
            return True

    def process_pending(self) -> Optional[PoseAnalysisResult]:
        """Analyze the held frame, if any."""
        with self._lock:
            frame = self._pending
            self._pending = None
            if frame is None:
                return None
            # Claimed before analysis so older frames submitted meanwhile are stale
            self._last_processed_ms = frame.timestamp_ms

        result = self.engine.process_frame(frame, self.exercise_type, frame.timestamp_ms)

        with self._lock:
            self._processed_count += 1

        return result

    def pump(self, source: LandmarkSource, max_frames: Optional[int] = None) -> List[PoseAnalysisResult]:
        """
        Drive the engine from a source until it runs dry.

        Args:
            source: Frame producer
            max_frames: Stop after this many frames were pulled

        Returns:
            Results in processing order
        """
        results: List[PoseAnalysisResult] = []
        pulled = 0

        while max_frames is None or pulled < max_frames:
            frame = source.get_frame()
            if frame is None:
                break
            pulled += 1

            if self.submit(frame):
                result = self.process_pending()
                if result is not None:
                    results.append(result)

        return results

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def reset(self):
        """Forget the held frame and the last processed timestamp."""
        with self._lock:
            self._pending = None
            self._last_processed_ms = None

    def _is_stale(self, frame: PoseFrame) -> bool:
        return self._last_processed_ms is not None and frame.timestamp_ms < self._last_processed_ms

    def get_stats(self) -> dict:
        """Get gate statistics."""
        return {
            "submitted_frames": self._submitted_count,
            "processed_frames": self._processed_count,
            "dropped_frames": self._dropped_count,
            "stale_frames": self._stale_count,
            "has_pending": self.has_pending,
            "last_processed_ms": self._last_processed_ms,
        }
