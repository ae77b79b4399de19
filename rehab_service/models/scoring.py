"""
REHABCOACH Rehab Service - Movement Quality, Balance & Symmetry

Heuristic 0-100 scores computed from a single visibility-filtered frame.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from core.config import Settings, settings
from .geometry import midpoint
from .landmarks import JointType, PoseFrame


# Left/right landmark pairs compared for symmetry
SYMMETRY_PAIRS: Tuple[Tuple[JointType, JointType], ...] = (
    (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER),
    (JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW),
    (JointType.LEFT_WRIST, JointType.RIGHT_WRIST),
    (JointType.LEFT_HIP, JointType.RIGHT_HIP),
    (JointType.LEFT_KNEE, JointType.RIGHT_KNEE),
    (JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE),
)


@dataclass
class BalanceAssessment:
    """Balance and symmetry scores with applicability flags."""
    balance_score: float = 0.0
    symmetry_score: float = 0.0
    balance_measured: bool = False
    symmetry_measured: bool = False


def clamp_score(value: float) -> float:
    """Clamp to [0, 100]; non-finite values become 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(min(100.0, max(0.0, value)))


def _level_check(frame: PoseFrame, left: JointType, right: JointType, tolerance: float) -> Optional[bool]:
    lm_left, lm_right = frame.get(left), frame.get(right)
    if lm_left is None or lm_right is None:
        return None
    return abs(lm_left.y - lm_right.y) < tolerance


# ═══════════════════════════════════════════════════════════════════════════════
# MOVEMENT QUALITY
# ═══════════════════════════════════════════════════════════════════════════════

def score_movement_quality(
    frame: PoseFrame,
    exercise_check: Optional[bool] = None,
    config: Settings = settings
) -> float:
    """
    Score postural alignment as an equal-weight checklist.

    Checks whose landmarks are missing are not applicable and are left out
    of the denominator, so partial occlusion does not zero the score.

    Args:
        frame: Visibility-filtered frame
        exercise_check: Result of the exercise-specific check, None if not applicable
        config: Thresholds

    Returns:
        Score in [0, 100]; 0 when no check is applicable
    """
    checks: List[bool] = []

    shoulders_level = _level_check(
        frame, JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER, config.SHOULDER_LEVEL_TOLERANCE
    )
    if shoulders_level is not None:
        checks.append(shoulders_level)

    hips_level = _level_check(
        frame, JointType.LEFT_HIP, JointType.RIGHT_HIP, config.HIP_LEVEL_TOLERANCE
    )
    if hips_level is not None:
        checks.append(hips_level)

    # Head centered over the shoulders
    nose = frame.get(JointType.NOSE)
    shoulder_mid = midpoint(frame.get(JointType.LEFT_SHOULDER), frame.get(JointType.RIGHT_SHOULDER))
    if nose is not None and shoulder_mid is not None:
        checks.append(abs(nose.x - shoulder_mid[0]) < config.HEAD_CENTER_TOLERANCE)

    if exercise_check is not None:
        checks.append(bool(exercise_check))

    if not checks:
        return 0.0

    return clamp_score(100.0 * sum(checks) / len(checks))


# ═══════════════════════════════════════════════════════════════════════════════
# BALANCE & SYMMETRY
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_balance(frame: PoseFrame, config: Settings = settings) -> Tuple[float, bool]:
    """
    Balance from the offset between center of pressure and body center.

    Center of pressure is the midpoint of the feet; body center takes its
    horizontal position from the shoulders and its height from the hips.

    Returns:
        (score, measured)
    """
    center_of_pressure = midpoint(
        frame.get(JointType.LEFT_FOOT_INDEX), frame.get(JointType.RIGHT_FOOT_INDEX)
    )
    shoulder_mid = midpoint(frame.get(JointType.LEFT_SHOULDER), frame.get(JointType.RIGHT_SHOULDER))
    hip_mid = midpoint(frame.get(JointType.LEFT_HIP), frame.get(JointType.RIGHT_HIP))

    if center_of_pressure is None or shoulder_mid is None or hip_mid is None:
        return 0.0, False

    body_center = np.array([shoulder_mid[0], hip_mid[1]])
    offset = float(np.linalg.norm(center_of_pressure - body_center))

    return clamp_score(100.0 - offset * config.BALANCE_SCALE), True


def analyze_symmetry(frame: PoseFrame, config: Settings = settings) -> Tuple[float, bool]:
    """
    Symmetry from summed vertical differences of paired left/right landmarks.

    Returns:
        (score, measured); unmeasured when no pair is fully visible
    """
    difference = 0.0
    pairs_seen = 0

    for left, right in SYMMETRY_PAIRS:
        lm_left, lm_right = frame.get(left), frame.get(right)
        if lm_left is None or lm_right is None:
            continue
        difference += abs(lm_left.y - lm_right.y)
        pairs_seen += 1

    if pairs_seen == 0:
        return 0.0, False

    return clamp_score(100.0 - difference * config.SYMMETRY_SCALE), True


def assess_balance_and_symmetry(frame: PoseFrame, config: Settings = settings) -> BalanceAssessment:
    balance, balance_measured = analyze_balance(frame, config)
    symmetry, symmetry_measured = analyze_symmetry(frame, config)
    return BalanceAssessment(
        balance_score=balance,
        symmetry_score=symmetry,
        balance_measured=balance_measured,
        symmetry_measured=symmetry_measured
    )
