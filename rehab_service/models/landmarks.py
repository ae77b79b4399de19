"""
REHABCOACH Rehab Service - Landmark Topology

33-point body skeleton, landmark and frame containers.
Landmarks come from an external pose estimator in normalized image
coordinates (x to the right, y downwards, both in [0, 1]).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np


NUM_LANDMARKS = 33


class JointType(Enum):
    """Body landmark indices of the 33-point pose topology."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    return float(value)


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark with 2D coordinates, optional depth and visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    def to_numpy(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z, self.visibility))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}

    @classmethod
    def from_any(cls, value: Any) -> Optional["Landmark"]:
        """
        Build a landmark from a Landmark, a dict or an attribute object.

        Returns None for anything that cannot be read as coordinates.
        """
        if value is None or isinstance(value, Landmark):
            return value

        try:
            if isinstance(value, Mapping):
                return cls(
                    x=float(value["x"]),
                    y=float(value["y"]),
                    z=_as_float(value.get("z"), 0.0),
                    visibility=_as_float(value.get("visibility"), 1.0),
                )
            if hasattr(value, "x") and hasattr(value, "y"):
                return cls(
                    x=float(value.x),
                    y=float(value.y),
                    z=_as_float(getattr(value, "z", None), 0.0),
                    visibility=_as_float(getattr(value, "visibility", None), 1.0),
                )
        except (KeyError, TypeError, ValueError, OverflowError):
            return None

        return None


LandmarkKey = Union[JointType, int]


@dataclass(frozen=True)
class PoseFrame:
    """
    One frame of body landmarks: exactly 33 optional slots.

    Missing or unreadable landmarks are None; nothing downstream may
    assume a slot is populated.
    """
    landmarks: Tuple[Optional[Landmark], ...]
    timestamp_ms: float = 0.0

    @classmethod
    def empty(cls, timestamp_ms: float = 0.0) -> "PoseFrame":
        return cls(landmarks=(None,) * NUM_LANDMARKS, timestamp_ms=timestamp_ms)

    @classmethod
    def from_landmarks(cls, landmarks: Any, timestamp_ms: float = 0.0) -> "PoseFrame":
        """
        Normalize pose-estimator output into a PoseFrame.

        Accepts a PoseFrame, a sequence of landmarks (padded or truncated
        to 33 slots), a mapping of landmark index to landmark, or None.
        """
        if isinstance(landmarks, PoseFrame):
            return cls(landmarks=landmarks.landmarks, timestamp_ms=timestamp_ms)

        slots: List[Optional[Landmark]] = [None] * NUM_LANDMARKS

        if landmarks is None:
            items = []
        elif isinstance(landmarks, Mapping):
            items = landmarks.items()
        else:
            try:
                items = enumerate(landmarks)
            except TypeError:
                items = []

        for key, value in items:
            index = _slot_index(key)
            if index is not None:
                slots[index] = Landmark.from_any(value)

        return cls(landmarks=tuple(slots), timestamp_ms=timestamp_ms)

    def get(self, joint: LandmarkKey) -> Optional[Landmark]:
        index = joint.value if isinstance(joint, JointType) else joint
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def visible(self, min_visibility: float) -> "PoseFrame":
        """Copy of this frame keeping only finite landmarks above the visibility threshold."""
        kept = tuple(
            lm if lm is not None and lm.is_finite() and lm.visibility > min_visibility else None
            for lm in self.landmarks
        )
        return PoseFrame(landmarks=kept, timestamp_ms=self.timestamp_ms)

    @property
    def present_count(self) -> int:
        return sum(1 for lm in self.landmarks if lm is not None)

    def to_list(self) -> List[Optional[Dict[str, float]]]:
        """Convert landmarks to a JSON-serializable list."""
        return [lm.to_dict() if lm is not None else None for lm in self.landmarks]


def _slot_index(key: Any) -> Optional[int]:
    if isinstance(key, JointType):
        return key.value
    try:
        index = int(key)
    except (TypeError, ValueError, OverflowError):
        return None
    return index if 0 <= index < NUM_LANDMARKS else None
