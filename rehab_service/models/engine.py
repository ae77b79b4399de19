"""
REHABCOACH Rehab Service - Movement Analysis Engine

Per-frame synchronous pipeline:
    landmarks -> joint angles -> range of motion -> quality / balance / symmetry
    -> fatigue / pain -> exercise classifier -> reps & phase -> feedback

One engine instance owns the state of one exercise session (history buffer,
rep counter, phase). Frames must be fed in arrival order.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from core.config import Settings, settings
from .classifiers import (
    ClassificationResult,
    ExerciseClassifier,
    ExerciseType,
    NEUTRAL_CLASSIFIER,
    get_classifier,
)
from .feedback import select_feedback
from .heuristics import detect_pain_indicators, estimate_fatigue
from .history import HistoryEntry, MovementHistory
from .joint_angles import extract_joint_angles
from .landmarks import PoseFrame
from .metrics import MovementMetrics
from .phases import ExercisePhase, PhaseTracker, RepCounter
from .range_of_motion import compute_range_of_motion
from .scoring import assess_balance_and_symmetry, score_movement_quality

logger = logging.getLogger(__name__)


@dataclass
class PoseAnalysisResult:
    """Result of analyzing a single frame."""
    frame: PoseFrame
    metrics: MovementMetrics
    is_correct_form: bool
    confidence: float  # 0-1
    feedback: str
    phase: ExercisePhase

    # Extras for session recording and UI overlays
    exercise_type: Optional[ExerciseType] = None
    exercise_feedback: str = ""
    rep_count: int = 0
    rep_completed: bool = False
    timestamp_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "landmarks": self.frame.to_list(),
            "metrics": self.metrics.to_dict(),
            "is_correct_form": self.is_correct_form,
            "confidence": round(self.confidence, 3),
            "feedback": self.feedback,
            "phase": self.phase.value,
            "exercise_type": self.exercise_type.value if self.exercise_type else None,
            "exercise_feedback": self.exercise_feedback,
            "rep_count": self.rep_count,
            "rep_completed": self.rep_completed,
            "timestamp_ms": self.timestamp_ms,
        }


class MovementAnalysisEngine:
    """
    Movement analysis for one exercise session.

    Usage:
        engine = MovementAnalysisEngine()
        result = engine.process_frame(landmarks, "shoulder_flexion", timestamp_ms=0)
        print(result.feedback, result.rep_count)
        engine.reset()
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Args:
            config: Thresholds and tunables (defaults to global settings)
            clock: Millisecond clock used when a frame has no timestamp
        """
        self.config = config or settings
        self._clock = clock or (lambda: time.time() * 1000.0)

        self.history = MovementHistory(self.config.HISTORY_CAPACITY)
        self.rep_counter = RepCounter(cooldown_ms=self.config.REP_COOLDOWN_MS)
        self.phase_tracker = PhaseTracker(
            execution_quality=self.config.EXECUTION_QUALITY_THRESHOLD,
            recovery_fatigue=self.config.RECOVERY_FATIGUE_THRESHOLD
        )

        # Held for the whole of process_frame and reset
        self._lock = threading.Lock()
        self._warned_unknown = False

    @property
    def rep_count(self) -> int:
        return self.rep_counter.count

    @property
    def phase(self) -> ExercisePhase:
        return self.phase_tracker.phase

    def process_frame(
        self,
        landmarks: Any,
        exercise_type: Union[ExerciseType, str, None],
        timestamp_ms: Optional[float] = None
    ) -> PoseAnalysisResult:
        """
        Analyze one frame of landmarks.

        Never raises for malformed landmark input; missing or unreadable
        landmarks lower confidence and drop the checks that need them.

        Args:
            landmarks: 33 landmarks (see PoseFrame.from_landmarks)
            exercise_type: ExerciseType or its name
            timestamp_ms: Frame time; the engine clock is used when omitted or not finite

        Returns:
            PoseAnalysisResult for this frame
        """
        timestamp_ms = self.resolve_timestamp(timestamp_ms)

        with self._lock:
            return self._analyze(landmarks, exercise_type, timestamp_ms)

    def resolve_timestamp(self, timestamp_ms: Optional[float]) -> float:
        """Frame time in ms; falls back to the engine clock for missing or non-finite values."""
        if timestamp_ms is not None:
            try:
                timestamp_ms = float(timestamp_ms)
            except (TypeError, ValueError, OverflowError):
                timestamp_ms = None
        if timestamp_ms is None or not math.isfinite(timestamp_ms):
            return float(self._clock())
        return timestamp_ms

    def _analyze(self, landmarks, exercise_type, timestamp_ms: float) -> PoseAnalysisResult:
        config = self.config

        raw_frame = PoseFrame.from_landmarks(landmarks, timestamp_ms)
        frame = raw_frame.visible(config.MIN_LANDMARK_VISIBILITY)

        classifier = self._resolve_classifier(exercise_type)

        # Geometry and range of motion
        joint_angles = extract_joint_angles(frame, timestamp_ms)
        range_of_motion = compute_range_of_motion(joint_angles, self.history)

        # Scores
        quality = score_movement_quality(frame, classifier.posture_check(frame), config)
        balance = assess_balance_and_symmetry(frame, config)

        qualities = self.history.quality_series()
        qualities.append(quality)
        fatigue = estimate_fatigue(qualities, config.FATIGUE_WINDOW, config.FATIGUE_SCALE)

        pain_indicators = detect_pain_indicators(frame, self.history, config)

        metrics = MovementMetrics(
            joint_angles=joint_angles,
            range_of_motion=range_of_motion,
            movement_quality=quality,
            fatigue_level=fatigue,
            pain_indicators=pain_indicators,
            balance_score=balance.balance_score,
            symmetry_score=balance.symmetry_score,
            balance_measured=balance.balance_measured,
            symmetry_measured=balance.symmetry_measured
        )

        # Exercise classification, reps and phase
        classification = classifier.classify(frame)
        # Cooldown follows the exercise being coached
        self.rep_counter.cooldown_ms = classifier.thresholds.get("rep_cooldown_ms", config.REP_COOLDOWN_MS)
        rep_completed = self.rep_counter.update(classification.is_correct_form, timestamp_ms)
        stage = classification.stage if classifier is not NEUTRAL_CLASSIFIER else None
        phase = self.phase_tracker.update(quality, fatigue, stage)

        feedback = select_feedback(metrics, config)

        self.history.append(HistoryEntry(timestamp_ms=timestamp_ms, frame=frame, metrics=metrics))

        return self._build_result(raw_frame, metrics, classification, classifier,
                                  feedback, phase, rep_completed, timestamp_ms)

    def _build_result(
        self,
        frame: PoseFrame,
        metrics: MovementMetrics,
        classification: ClassificationResult,
        classifier: ExerciseClassifier,
        feedback: str,
        phase: ExercisePhase,
        rep_completed: bool,
        timestamp_ms: float
    ) -> PoseAnalysisResult:
        return PoseAnalysisResult(
            frame=frame,
            metrics=metrics,
            is_correct_form=classification.is_correct_form,
            confidence=min(1.0, max(0.0, classification.confidence)),
            feedback=feedback,
            phase=phase,
            exercise_type=classifier.exercise_type,
            exercise_feedback=classification.feedback,
            rep_count=self.rep_counter.count,
            rep_completed=rep_completed,
            timestamp_ms=timestamp_ms
        )

    def _resolve_classifier(self, exercise_type) -> ExerciseClassifier:
        classifier = get_classifier(exercise_type)
        if classifier is NEUTRAL_CLASSIFIER:
            if not self._warned_unknown:
                self._warned_unknown = True
                logger.warning(f"Unknown exercise type '{exercise_type}', using neutral classifier")
        return classifier

    def reset(self):
        """Clear history, rep count and phase. Waits for an in-flight frame."""
        with self._lock:
            self.history.clear()
            self.rep_counter.reset()
            self.phase_tracker.reset()
        logger.info("Movement analysis engine reset")
