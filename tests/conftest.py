"""
Shared synthetic-pose fixtures.

Synthetic landmark frames stand in for the pose estimator. The standing
pose is level and mirrored about x = 0.5 with both arms hanging down.
"""

from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from core.config import Settings
from rehab_service.models import JointType, MovementAnalysisEngine, NUM_LANDMARKS, PoseFrame


STANDING_POSE: Dict[JointType, Tuple[float, float]] = {
    JointType.NOSE: (0.5, 0.15),
    JointType.LEFT_SHOULDER: (0.4, 0.30),
    JointType.RIGHT_SHOULDER: (0.6, 0.30),
    JointType.LEFT_ELBOW: (0.38, 0.45),
    JointType.RIGHT_ELBOW: (0.62, 0.45),
    JointType.LEFT_WRIST: (0.38, 0.58),
    JointType.RIGHT_WRIST: (0.62, 0.58),
    JointType.LEFT_HIP: (0.43, 0.58),
    JointType.RIGHT_HIP: (0.57, 0.58),
    JointType.LEFT_KNEE: (0.43, 0.75),
    JointType.RIGHT_KNEE: (0.57, 0.75),
    JointType.LEFT_ANKLE: (0.43, 0.90),
    JointType.RIGHT_ANKLE: (0.57, 0.90),
    JointType.LEFT_HEEL: (0.43, 0.92),
    JointType.RIGHT_HEEL: (0.57, 0.92),
    JointType.LEFT_FOOT_INDEX: (0.42, 0.93),
    JointType.RIGHT_FOOT_INDEX: (0.58, 0.93),
}

# Face and hand points are not used by the engine; park them near the head / wrists
_FILLER = {
    JointType.LEFT_EYE_INNER: (0.48, 0.13),
    JointType.LEFT_EYE: (0.47, 0.13),
    JointType.LEFT_EYE_OUTER: (0.46, 0.13),
    JointType.RIGHT_EYE_INNER: (0.52, 0.13),
    JointType.RIGHT_EYE: (0.53, 0.13),
    JointType.RIGHT_EYE_OUTER: (0.54, 0.13),
    JointType.LEFT_EAR: (0.45, 0.14),
    JointType.RIGHT_EAR: (0.55, 0.14),
    JointType.MOUTH_LEFT: (0.48, 0.18),
    JointType.MOUTH_RIGHT: (0.52, 0.18),
    JointType.LEFT_PINKY: (0.38, 0.61),
    JointType.RIGHT_PINKY: (0.62, 0.61),
    JointType.LEFT_INDEX: (0.38, 0.62),
    JointType.RIGHT_INDEX: (0.62, 0.62),
    JointType.LEFT_THUMB: (0.39, 0.60),
    JointType.RIGHT_THUMB: (0.61, 0.60),
}


def make_landmarks(
    overrides: Optional[Dict[JointType, Tuple[float, float]]] = None,
    missing: Iterable[JointType] = (),
    visibility: float = 0.99
) -> List[Optional[dict]]:
    """33 landmark dicts of the standing pose with optional changes."""
    points = dict(_FILLER)
    points.update(STANDING_POSE)
    points.update(overrides or {})
    missing = set(missing)

    landmarks: List[Optional[dict]] = [None] * NUM_LANDMARKS
    for joint, (x, y) in points.items():
        if joint in missing:
            continue
        landmarks[joint.value] = {"x": x, "y": y, "z": 0.0, "visibility": visibility}
    return landmarks


def make_frame(overrides=None, missing=(), visibility: float = 0.99, timestamp_ms: float = 0.0) -> PoseFrame:
    return PoseFrame.from_landmarks(make_landmarks(overrides, missing, visibility), timestamp_ms)


def raised_left_arm(rise: float) -> Dict[JointType, Tuple[float, float]]:
    """Left wrist straight above (rise > 0) or below the left shoulder."""
    shoulder_x, shoulder_y = STANDING_POSE[JointType.LEFT_SHOULDER]
    return {JointType.LEFT_WRIST: (shoulder_x, shoulder_y - rise)}


# Tilted shoulders and hips, head off-center, arms down: every quality check fails
SLOUCHED_POSE: Dict[JointType, Tuple[float, float]] = {
    JointType.NOSE: (0.7, 0.15),
    JointType.LEFT_SHOULDER: (0.4, 0.24),
    JointType.RIGHT_SHOULDER: (0.6, 0.36),
    JointType.LEFT_HIP: (0.43, 0.52),
    JointType.RIGHT_HIP: (0.57, 0.64),
}


@pytest.fixture
def config() -> Settings:
    return Settings()


@pytest.fixture
def engine(config) -> MovementAnalysisEngine:
    return MovementAnalysisEngine(config=config, clock=lambda: 0.0)


@pytest.fixture
def standing_frame() -> PoseFrame:
    return make_frame()


@pytest.fixture
def empty_frame() -> PoseFrame:
    return PoseFrame.empty()
