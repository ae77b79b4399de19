"""
REHABCOACH Rehab Service - Fatigue & Pain Heuristics

Fatigue from movement-quality variability over a trailing window, and
pain-indicator tags from compensatory movement signatures.
"""

import math
from typing import List, Optional, Sequence, Set

import numpy as np

from core.config import Settings, settings
from .history import MovementHistory
from .landmarks import JointType, PoseFrame
from .metrics import PainIndicator


MAX_FATIGUE_LEVEL = 10


# ═══════════════════════════════════════════════════════════════════════════════
# FATIGUE
# ═══════════════════════════════════════════════════════════════════════════════

def estimate_fatigue(
    quality_series: Sequence[float],
    window: int = 30,
    scale: float = 0.1
) -> int:
    """
    Fatigue level 0-10 from mean absolute frame-to-frame quality change.

    Needs at least `window` values. With fewer the level is reported as 0,
    which means "not enough data yet" rather than "not fatigued".

    Args:
        quality_series: Movement-quality values, oldest first, current last
        window: Trailing number of values considered
        scale: Converts mean quality change (0-100 points) to fatigue units

    Returns:
        Integer fatigue level in [0, 10]
    """
    if window < 2 or len(quality_series) < window:
        return 0

    recent = np.asarray(quality_series[-window:], dtype=float)
    recent = np.nan_to_num(recent, nan=0.0, posinf=100.0, neginf=0.0)

    mean_change = np.abs(np.diff(recent)).sum() / window
    level = math.floor(mean_change * scale)

    return int(max(0, min(MAX_FATIGUE_LEVEL, level)))


# ═══════════════════════════════════════════════════════════════════════════════
# PAIN INDICATORS
# ═══════════════════════════════════════════════════════════════════════════════

def has_shoulder_compensation(frame: PoseFrame, threshold: float = 0.10) -> bool:
    """One shoulder hitched or dropped relative to the other."""
    left = frame.get(JointType.LEFT_SHOULDER)
    right = frame.get(JointType.RIGHT_SHOULDER)
    if left is None or right is None:
        return False
    return abs(left.y - right.y) > threshold


def has_restricted_movement(
    history: MovementHistory,
    window: int = 10,
    threshold: float = 50.0
) -> bool:
    """
    Average total range-of-motion span over the trailing frames below threshold.

    The span of a frame is the sum of (max - min) over its tracked joints.
    Only evaluated once `window` consecutive recent frames carry ROM data.
    """
    recent = history.recent(window)
    if len(recent) < window:
        return False

    spans = [entry.metrics.total_rom_span for entry in recent if entry.metrics.range_of_motion]
    if len(spans) < window:
        return False

    return float(np.mean(spans)) < threshold


def _wrist_track(frames: Sequence[PoseFrame], wrist: JointType) -> Optional[np.ndarray]:
    xs: List[float] = []
    for frame in frames:
        landmark = frame.get(wrist)
        if landmark is None:
            return None
        xs.append(landmark.x)
    return np.asarray(xs, dtype=float)


def is_jittering(xs: np.ndarray, threshold: float) -> bool:
    """
    Rapid back-and-forth horizontal motion.

    Mean step size must exceed the threshold and the direction must
    reverse on at least half of the consecutive steps, which separates
    tremor from a smooth sweep of the arm.
    """
    if len(xs) < 3:
        return False

    deltas = np.diff(xs)
    if float(np.mean(np.abs(deltas))) <= threshold:
        return False

    signs = np.sign(deltas)
    signs = signs[signs != 0]
    if len(signs) < 2:
        return False

    reversals = int(np.count_nonzero(signs[1:] != signs[:-1]))
    return reversals >= (len(signs) - 1) / 2


def has_tremor(
    frame: PoseFrame,
    history: MovementHistory,
    window: int = 10,
    threshold: float = 0.02
) -> bool:
    """Horizontal wrist jitter over the trailing window (history plus current frame)."""
    if window < 3 or len(history) < window - 1:
        return False

    frames = [entry.frame for entry in history.recent(window - 1)]
    frames.append(frame)

    for wrist in (JointType.LEFT_WRIST, JointType.RIGHT_WRIST):
        xs = _wrist_track(frames, wrist)
        if xs is not None and is_jittering(xs, threshold):
            return True

    return False


def detect_pain_indicators(
    frame: PoseFrame,
    history: MovementHistory,
    config: Settings = settings
) -> Set[PainIndicator]:
    """
    Evaluate every pain rule independently; tags may coexist.

    Args:
        frame: Current visibility-filtered frame
        history: Previously processed frames (current frame not yet appended)
        config: Thresholds

    Returns:
        Set of detected pain indicators
    """
    indicators: Set[PainIndicator] = set()

    if has_shoulder_compensation(frame, config.SHOULDER_COMPENSATION_THRESHOLD):
        indicators.add(PainIndicator.SHOULDER_COMPENSATION)

    if has_restricted_movement(history, config.RESTRICTED_ROM_WINDOW, config.RESTRICTED_ROM_THRESHOLD):
        indicators.add(PainIndicator.RESTRICTED_MOVEMENT)

    if has_tremor(frame, history, config.TREMOR_WINDOW, config.TREMOR_JITTER_THRESHOLD):
        indicators.add(PainIndicator.TREMOR_DETECTED)

    return indicators
