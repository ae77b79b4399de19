"""
REHABCOACH Rehab Service - Exercise Classifiers

One rule-based classifier per supported exercise. Each maps a frame to a
correctness flag, confidence, coaching cue and primary metric. Unknown
exercises fall back to a neutral classifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .geometry import angle_between, angle_from_vertical, midpoint
from .landmarks import JointType, Landmark, PoseFrame


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseType(Enum):
    """Supported rehabilitation exercises."""
    SHOULDER_FLEXION = "shoulder_flexion"
    ARM_CIRCLES = "arm_circles"
    BICEP_CURL = "bicep_curl"
    WEIGHT_SHIFT = "weight_shift"
    ANKLE_PUMP = "ankle_pump"
    SEATED_MARCH = "seated_march"

    @classmethod
    def parse(cls, value: Union["ExerciseType", str, None]) -> Optional["ExerciseType"]:
        """
        Resolve an exercise from its value or display title.

        "Shoulder Flexion", "bicep curls" and "seated_marching" all resolve;
        anything unrecognised returns None.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        key = "_".join(value.strip().lower().replace("-", " ").replace("_", " ").split())
        for exercise in cls:
            if exercise.value == key:
                return exercise
        return EXERCISE_ALIASES.get(key)

    @property
    def title(self) -> str:
        return self.value.replace("_", " ").title()


EXERCISE_ALIASES: Dict[str, ExerciseType] = {
    "shoulder_flexions": ExerciseType.SHOULDER_FLEXION,
    "arm_circle": ExerciseType.ARM_CIRCLES,
    "bicep_curls": ExerciseType.BICEP_CURL,
    "biceps_curl": ExerciseType.BICEP_CURL,
    "biceps_curls": ExerciseType.BICEP_CURL,
    "weight_shifts": ExerciseType.WEIGHT_SHIFT,
    "weight_shifting": ExerciseType.WEIGHT_SHIFT,
    "ankle_pumps": ExerciseType.ANKLE_PUMP,
    "seated_marching": ExerciseType.SEATED_MARCH,
    "seated_marches": ExerciseType.SEATED_MARCH,
}


class MovementStage(Enum):
    """How far the current movement has progressed toward its target."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass
class ClassificationResult:
    """Per-frame exercise classification."""
    is_correct_form: bool
    confidence: float  # 0-1
    feedback: str
    primary_metric: float
    stage: MovementStage = MovementStage.NOT_STARTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_correct_form": self.is_correct_form,
            "confidence": round(self.confidence, 3),
            "feedback": self.feedback,
            "primary_metric": round(self.primary_metric, 4),
            "stage": self.stage.value,
        }


# Exercise-specific thresholds (normalized image coordinates / degrees)
EXERCISE_THRESHOLDS: Dict[ExerciseType, Dict[str, float]] = {
    ExerciseType.SHOULDER_FLEXION: {
        "min_wrist_rise": 0.15,  # wrist above shoulder
        "max_elevation_deviation": 30.0,  # arm vs. vertical
        "near_target_rise": 0.05,
        "in_progress_rise": -0.10,
        "rep_cooldown_ms": 2000.0,
    },
    ExerciseType.BICEP_CURL: {
        "full_curl_angle": 60.0,
        "start_angle": 120.0,
        "max_elbow_drift": 0.10,  # elbow kept beside the trunk
        "rep_cooldown_ms": 3000.0,
    },
    ExerciseType.ARM_CIRCLES: {
        "min_lateral_extension": 0.2,
        "in_progress_extension": 0.1,
        "min_elbow_angle": 150.0,
    },
    ExerciseType.WEIGHT_SHIFT: {
        "min_hip_imbalance": 0.03,
        "in_progress_imbalance": 0.015,
        "max_trunk_lean": 0.10,
    },
    ExerciseType.ANKLE_PUMP: {
        "min_ankle_displacement": 0.02,
        "in_progress_displacement": 0.01,
        "rep_cooldown_ms": 1500.0,
    },
    ExerciseType.SEATED_MARCH: {
        "seated_knee_baseline": 0.6,
        "min_knee_lift": 0.05,
        "in_progress_lift": 0.02,
        "max_trunk_lean": 0.10,
        "rep_cooldown_ms": 2000.0,
    },
}


LandmarkGroup = Tuple[JointType, ...]


def _trunk_upright(frame: PoseFrame, max_lean: float) -> Optional[bool]:
    """Shoulders stacked over hips horizontally."""
    shoulder_mid = midpoint(frame.get(JointType.LEFT_SHOULDER), frame.get(JointType.RIGHT_SHOULDER))
    hip_mid = midpoint(frame.get(JointType.LEFT_HIP), frame.get(JointType.RIGHT_HIP))
    if shoulder_mid is None or hip_mid is None:
        return None
    return abs(float(shoulder_mid[0] - hip_mid[0])) < max_lean


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFIER BASE
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseClassifier:
    """
    Base contract for exercise classifiers.

    Subclasses declare `landmark_groups`: alternative landmark sets (usually
    one per body side). A group is usable when all its landmarks are visible;
    `_evaluate` receives the landmarks of every usable group. Confidence is
    the best group's visibility coverage, so each missing landmark lowers
    it proportionally.
    """

    exercise_type: Optional[ExerciseType] = None
    landmark_groups: Tuple[LandmarkGroup, ...] = ()
    missing_feedback = "Position yourself in front of the camera to begin"

    @property
    def thresholds(self) -> Dict[str, float]:
        return EXERCISE_THRESHOLDS.get(self.exercise_type, {})

    def classify(self, frame: PoseFrame) -> ClassificationResult:
        """
        Classify a visibility-filtered frame.

        Never raises: missing landmarks give an incorrect, low-confidence result.
        """
        confidence = self.landmark_coverage(frame)
        groups = self.usable_groups(frame)

        if not groups:
            return ClassificationResult(
                is_correct_form=False,
                confidence=confidence,
                feedback=self.missing_feedback,
                primary_metric=0.0
            )

        return self._evaluate(groups, confidence)

    def posture_check(self, frame: PoseFrame) -> Optional[bool]:
        """Exercise-specific quality check; None when not applicable."""
        return None

    def landmark_coverage(self, frame: PoseFrame) -> float:
        best = 0.0
        for group in self.landmark_groups:
            present = [frame.get(joint) for joint in group]
            total = sum(min(1.0, max(0.0, lm.visibility)) for lm in present if lm is not None)
            best = max(best, total / len(group))
        return best

    def usable_groups(self, frame: PoseFrame) -> List[List[Landmark]]:
        groups = []
        for group in self.landmark_groups:
            landmarks = [frame.get(joint) for joint in group]
            if all(lm is not None for lm in landmarks):
                groups.append(landmarks)
        return groups

    def _evaluate(self, groups: List[List[Landmark]], confidence: float) -> ClassificationResult:
        raise NotImplementedError


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE CLASSIFIERS
# ═══════════════════════════════════════════════════════════════════════════════

class ShoulderFlexionClassifier(ExerciseClassifier):
    """Arm raised forward overhead; the higher arm is assessed."""

    exercise_type = ExerciseType.SHOULDER_FLEXION
    landmark_groups = (
        (JointType.LEFT_SHOULDER, JointType.LEFT_WRIST),
        (JointType.RIGHT_SHOULDER, JointType.RIGHT_WRIST),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds

        # Vertical wrist rise above the shoulder (positive = above)
        rise, shoulder, wrist = max(
            ((shoulder.y - wrist.y, shoulder, wrist) for shoulder, wrist in groups),
            key=lambda item: item[0]
        )
        deviation = angle_from_vertical(shoulder, wrist)

        if rise > t["min_wrist_rise"]:
            if deviation is not None and deviation < t["max_elevation_deviation"]:
                return ClassificationResult(True, confidence, "Perfect! Excellent shoulder flexion",
                                            rise, MovementStage.COMPLETE)
            return ClassificationResult(False, confidence, "Raise your arm straight forward, not out to the side",
                                        rise, MovementStage.IN_PROGRESS)
        if rise > t["near_target_rise"]:
            return ClassificationResult(False, confidence, "Good! Try to raise your arm a bit higher",
                                        rise, MovementStage.IN_PROGRESS)
        if rise > t["in_progress_rise"]:
            return ClassificationResult(False, confidence, "Keep raising your arm forward",
                                        rise, MovementStage.IN_PROGRESS)
        return ClassificationResult(False, confidence, "Raise your arm forward to shoulder height",
                                    rise, MovementStage.NOT_STARTED)

    def posture_check(self, frame):
        groups = self.usable_groups(frame)
        if not groups:
            return None
        return any(wrist.y < shoulder.y for shoulder, wrist in groups)


class BicepCurlClassifier(ExerciseClassifier):
    """Elbow flexion; the more curled arm is assessed."""

    exercise_type = ExerciseType.BICEP_CURL
    landmark_groups = (
        (JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST),
        (JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_WRIST),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds

        angles = [angle_between(shoulder, elbow, wrist) for shoulder, elbow, wrist in groups]
        angles = [a for a in angles if a is not None]
        if not angles:
            return ClassificationResult(False, 0.0, self.missing_feedback, 0.0)

        elbow_angle = min(angles)

        if elbow_angle < t["full_curl_angle"]:
            return ClassificationResult(True, confidence, "Excellent curl! Now lower slowly",
                                        elbow_angle, MovementStage.COMPLETE)
        if elbow_angle <= t["start_angle"]:
            return ClassificationResult(False, confidence, "Good form, continue the curl",
                                        elbow_angle, MovementStage.IN_PROGRESS)
        return ClassificationResult(False, confidence, "Start curling the weight toward your shoulder",
                                    elbow_angle, MovementStage.NOT_STARTED)

    def posture_check(self, frame):
        groups = self.usable_groups(frame)
        if not groups:
            return None
        max_drift = self.thresholds["max_elbow_drift"]
        return all(abs(elbow.x - shoulder.x) < max_drift for shoulder, elbow, _ in groups)


class ArmCirclesClassifier(ExerciseClassifier):
    """Both arms held out to the sides while circling."""

    exercise_type = ExerciseType.ARM_CIRCLES
    landmark_groups = (
        (JointType.LEFT_SHOULDER, JointType.LEFT_WRIST, JointType.RIGHT_SHOULDER, JointType.RIGHT_WRIST),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds
        left_shoulder, left_wrist, right_shoulder, right_wrist = groups[0]

        extension = min(
            abs(left_wrist.x - left_shoulder.x),
            abs(right_wrist.x - right_shoulder.x)
        )

        if extension > t["min_lateral_extension"]:
            return ClassificationResult(True, confidence, "Great! Keep making smooth circles",
                                        extension, MovementStage.COMPLETE)
        stage = MovementStage.IN_PROGRESS if extension > t["in_progress_extension"] else MovementStage.NOT_STARTED
        return ClassificationResult(False, confidence, "Extend your arms out to your sides", extension, stage)

    def posture_check(self, frame):
        min_angle = self.thresholds["min_elbow_angle"]
        angles = [
            angle_between(frame.get(shoulder), frame.get(elbow), frame.get(wrist))
            for shoulder, elbow, wrist in (
                (JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST),
                (JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_WRIST),
            )
        ]
        angles = [a for a in angles if a is not None]
        if not angles:
            return None
        return all(a > min_angle for a in angles)


class WeightShiftClassifier(ExerciseClassifier):
    """Standing weight transfer, seen as one hip dropping below the other."""

    exercise_type = ExerciseType.WEIGHT_SHIFT
    landmark_groups = (
        (JointType.LEFT_HIP, JointType.RIGHT_HIP),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds
        left_hip, right_hip = groups[0]
        imbalance = abs(left_hip.y - right_hip.y)

        if imbalance > t["min_hip_imbalance"]:
            return ClassificationResult(True, confidence, "Good weight shift! Hold and return to center",
                                        imbalance, MovementStage.COMPLETE)
        if imbalance > t["in_progress_imbalance"]:
            return ClassificationResult(False, confidence, "Keep shifting your weight onto one leg",
                                        imbalance, MovementStage.IN_PROGRESS)
        return ClassificationResult(False, confidence, "Shift your weight to one side",
                                    imbalance, MovementStage.NOT_STARTED)

    def posture_check(self, frame):
        return _trunk_upright(frame, self.thresholds["max_trunk_lean"])


class AnklePumpClassifier(ExerciseClassifier):
    """
    Ankle dorsiflexion/plantarflexion.

    Ankle displacement is the vertical travel of the toes relative to the
    heel; the more active foot is assessed.
    """

    exercise_type = ExerciseType.ANKLE_PUMP
    landmark_groups = (
        (JointType.LEFT_HEEL, JointType.LEFT_FOOT_INDEX),
        (JointType.RIGHT_HEEL, JointType.RIGHT_FOOT_INDEX),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds
        displacement = max(abs(heel.y - toe.y) for heel, toe in groups)

        if displacement > t["min_ankle_displacement"]:
            return ClassificationResult(True, confidence, "Great ankle movement! Keep pumping",
                                        displacement, MovementStage.COMPLETE)
        stage = (MovementStage.IN_PROGRESS if displacement > t["in_progress_displacement"]
                 else MovementStage.NOT_STARTED)
        return ClassificationResult(False, confidence, "Move your feet up and down", displacement, stage)


class SeatedMarchClassifier(ExerciseClassifier):
    """Seated knee lifts measured against a fixed seated knee height."""

    exercise_type = ExerciseType.SEATED_MARCH
    landmark_groups = (
        (JointType.LEFT_KNEE,),
        (JointType.RIGHT_KNEE,),
    )

    def _evaluate(self, groups, confidence):
        t = self.thresholds

        # y grows downwards: a lifted knee has a smaller y than the baseline
        lift = t["seated_knee_baseline"] - min(knee.y for (knee,) in groups)

        if lift > t["min_knee_lift"]:
            return ClassificationResult(True, confidence, "Perfect! Keep marching in place",
                                        lift, MovementStage.COMPLETE)
        if lift > t["in_progress_lift"]:
            return ClassificationResult(False, confidence, "Lift your knee a little higher",
                                        lift, MovementStage.IN_PROGRESS)
        return ClassificationResult(False, confidence, "Lift your knees up as if marching",
                                    lift, MovementStage.NOT_STARTED)

    def posture_check(self, frame):
        return _trunk_upright(frame, self.thresholds["max_trunk_lean"])


class NeutralClassifier(ExerciseClassifier):
    """Fallback for exercises without a definition."""

    feedback = "Exercise not recognized - insufficient exercise definition"

    def classify(self, frame: PoseFrame) -> ClassificationResult:
        return ClassificationResult(
            is_correct_form=False,
            confidence=0.0,
            feedback=self.feedback,
            primary_metric=0.0
        )


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

CLASSIFIERS: Dict[ExerciseType, ExerciseClassifier] = {
    classifier.exercise_type: classifier
    for classifier in (
        ShoulderFlexionClassifier(),
        ArmCirclesClassifier(),
        BicepCurlClassifier(),
        WeightShiftClassifier(),
        AnklePumpClassifier(),
        SeatedMarchClassifier(),
    )
}

NEUTRAL_CLASSIFIER = NeutralClassifier()


def get_classifier(exercise: Union[ExerciseType, str, None]) -> ExerciseClassifier:
    """Classifier for an exercise, or the neutral classifier when unknown."""
    exercise_type = ExerciseType.parse(exercise)
    if exercise_type is None:
        return NEUTRAL_CLASSIFIER
    return CLASSIFIERS.get(exercise_type, NEUTRAL_CLASSIFIER)


def describe_exercises() -> List[Dict[str, Any]]:
    """Supported exercises with their thresholds, for listing endpoints."""
    return [
        {
            "id": exercise.value,
            "name": exercise.title,
            "thresholds": dict(EXERCISE_THRESHOLDS.get(exercise, {})),
        }
        for exercise in ExerciseType
    ]
