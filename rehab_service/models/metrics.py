"""
REHABCOACH Rehab Service - Movement Metrics

Per-frame derived metrics shared by the scoring, heuristic and feedback stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Set

from .joint_angles import JointAngle, JointId, RangeOfMotion


class PainIndicator(Enum):
    """Compensatory-movement signatures that may indicate pain or discomfort."""
    SHOULDER_COMPENSATION = "shoulder_compensation"
    RESTRICTED_MOVEMENT = "restricted_movement"
    TREMOR_DETECTED = "tremor_detected"


@dataclass
class MovementMetrics:
    """Metrics derived from one frame and the session history."""
    joint_angles: List[JointAngle] = field(default_factory=list)
    range_of_motion: Dict[JointId, RangeOfMotion] = field(default_factory=dict)
    movement_quality: float = 0.0  # 0-100
    fatigue_level: int = 0  # 0-10
    pain_indicators: Set[PainIndicator] = field(default_factory=set)
    balance_score: float = 0.0  # 0-100
    symmetry_score: float = 0.0  # 0-100

    # False when the landmarks needed for the score were not visible
    balance_measured: bool = False
    symmetry_measured: bool = False

    @property
    def total_rom_span(self) -> float:
        return sum(rom.span for rom in self.range_of_motion.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "joint_angles": [ja.to_dict() for ja in self.joint_angles],
            "range_of_motion": {
                joint.value: rom.to_dict() for joint, rom in self.range_of_motion.items()
            },
            "movement_quality": round(self.movement_quality, 1),
            "fatigue_level": self.fatigue_level,
            "pain_indicators": sorted(p.value for p in self.pain_indicators),
            "balance_score": round(self.balance_score, 1),
            "symmetry_score": round(self.symmetry_score, 1),
        }
