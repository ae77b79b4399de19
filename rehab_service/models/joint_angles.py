"""
REHABCOACH Rehab Service - Joint-Angle Extraction

Maps the fixed landmark topology to named joint angles for both body sides.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple

from .geometry import angle_between
from .landmarks import JointType, PoseFrame


class JointId(Enum):
    """Joints tracked by the engine."""
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"


# Landmark triples (a, vertex, c) defining each joint angle
JOINT_DEFINITIONS: Dict[JointId, Tuple[JointType, JointType, JointType]] = {
    JointId.LEFT_SHOULDER: (JointType.LEFT_ELBOW, JointType.LEFT_SHOULDER, JointType.LEFT_HIP),
    JointId.RIGHT_SHOULDER: (JointType.RIGHT_ELBOW, JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP),
    JointId.LEFT_ELBOW: (JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST),
    JointId.RIGHT_ELBOW: (JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_WRIST),
    JointId.LEFT_HIP: (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_KNEE),
    JointId.RIGHT_HIP: (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE),
    JointId.LEFT_KNEE: (JointType.LEFT_HIP, JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
    JointId.RIGHT_KNEE: (JointType.RIGHT_HIP, JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
}


@dataclass
class JointAngle:
    """Joint angle measurement."""
    joint: JointId
    angle: float  # degrees, 0-180
    timestamp: float  # ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "joint": self.joint.value,
            "angle": round(self.angle, 1),
            "timestamp": self.timestamp,
        }


@dataclass
class RangeOfMotion:
    """Rolling min/max/current angle of one joint over the history window."""
    min: float
    max: float
    current: float

    @property
    def span(self) -> float:
        return self.max - self.min

    def to_dict(self) -> Dict[str, float]:
        return {
            "min": round(self.min, 1),
            "max": round(self.max, 1),
            "current": round(self.current, 1),
        }


def extract_joint_angles(frame: PoseFrame, timestamp: float = 0.0) -> List[JointAngle]:
    """
    Calculate joint angles for every joint whose three landmarks are present.

    The frame is expected to be visibility-filtered already. Joints with a
    missing landmark or a degenerate geometry are omitted, never reported as 0.
    """
    angles: List[JointAngle] = []

    for joint, (a, vertex, c) in JOINT_DEFINITIONS.items():
        angle = angle_between(frame.get(a), frame.get(vertex), frame.get(c))
        if angle is None:
            continue
        angles.append(JointAngle(joint=joint, angle=angle, timestamp=timestamp))

    return angles
