"""
REHABCOACH Rehab Service Models

Landmark-driven movement analysis for stroke-rehabilitation exercises.
"""

from .landmarks import (
    NUM_LANDMARKS,
    JointType,
    Landmark,
    PoseFrame
)

from .geometry import (
    angle_between,
    angle_from_vertical,
    distance,
    midpoint
)

from .joint_angles import (
    JointId,
    JointAngle,
    RangeOfMotion,
    extract_joint_angles
)

from .metrics import (
    MovementMetrics,
    PainIndicator
)

from .history import (
    HistoryEntry,
    MovementHistory
)

from .range_of_motion import compute_range_of_motion

from .scoring import (
    score_movement_quality,
    analyze_balance,
    analyze_symmetry,
    assess_balance_and_symmetry
)

from .heuristics import (
    estimate_fatigue,
    detect_pain_indicators
)

from .classifiers import (
    ExerciseType,
    MovementStage,
    ClassificationResult,
    ExerciseClassifier,
    EXERCISE_THRESHOLDS,
    get_classifier,
    describe_exercises
)

from .phases import (
    ExercisePhase,
    RepCounter,
    PhaseTracker
)

from .feedback import (
    DEFAULT_FEEDBACK,
    select_feedback
)

from .engine import (
    MovementAnalysisEngine,
    PoseAnalysisResult
)

from .landmark_source import (
    LandmarkSource,
    ReplayLandmarkSource,
    LatestFrameGate
)

from .sessions import (
    CoachingSession,
    SessionManager,
    SessionState,
    get_session_manager
)

__all__ = [
    # Landmarks & geometry
    "NUM_LANDMARKS",
    "JointType",
    "Landmark",
    "PoseFrame",
    "angle_between",
    "angle_from_vertical",
    "distance",
    "midpoint",
    # Metrics
    "JointId",
    "JointAngle",
    "RangeOfMotion",
    "extract_joint_angles",
    "MovementMetrics",
    "PainIndicator",
    "HistoryEntry",
    "MovementHistory",
    "compute_range_of_motion",
    "score_movement_quality",
    "analyze_balance",
    "analyze_symmetry",
    "assess_balance_and_symmetry",
    "estimate_fatigue",
    "detect_pain_indicators",
    # Exercises
    "ExerciseType",
    "MovementStage",
    "ClassificationResult",
    "ExerciseClassifier",
    "EXERCISE_THRESHOLDS",
    "get_classifier",
    "describe_exercises",
    "ExercisePhase",
    "RepCounter",
    "PhaseTracker",
    "DEFAULT_FEEDBACK",
    "select_feedback",
    # Engine
    "MovementAnalysisEngine",
    "PoseAnalysisResult",
    "LandmarkSource",
    "ReplayLandmarkSource",
    "LatestFrameGate",
    # Sessions
    "CoachingSession",
    "SessionManager",
    "SessionState",
    "get_session_manager",
]
