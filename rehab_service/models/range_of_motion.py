"""
REHABCOACH Rehab Service - Range-of-Motion Tracking

Pure function of (current joint angles, history buffer); keeps no state.
"""

from typing import Dict, Iterable

from .history import MovementHistory
from .joint_angles import JointAngle, JointId, RangeOfMotion


def compute_range_of_motion(
    joint_angles: Iterable[JointAngle],
    history: MovementHistory
) -> Dict[JointId, RangeOfMotion]:
    """
    Widen each joint's min/max against the angles held in the history window.

    Only joints present in the current frame are reported. A joint first
    seen in this frame gets min == max == current.
    """
    rom: Dict[JointId, RangeOfMotion] = {}

    for joint_angle in joint_angles:
        series = history.joint_angle_series(joint_angle.joint)
        series.append(joint_angle.angle)
        rom[joint_angle.joint] = RangeOfMotion(
            min=min(series),
            max=max(series),
            current=joint_angle.angle
        )

    return rom
