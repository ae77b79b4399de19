"""
REHABCOACH Rehab Service - Coaching Sessions

Owns one movement-analysis engine per exercise session, feeds it frames
through a latest-frame gate and produces end-of-session summaries for the
session-recording collaborator. Nothing here is persisted.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.config import Settings, settings
from shared.utils import get_now_iso
from .classifiers import ExerciseType
from .engine import MovementAnalysisEngine, PoseAnalysisResult
from .landmark_source import LatestFrameGate
from .landmarks import PoseFrame

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Coaching session states."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class CoachingSession:
    """Live coaching session with running aggregates."""
    session_id: str
    user_id: str
    exercise_name: str
    exercise_type: Optional[ExerciseType]
    engine: MovementAnalysisEngine
    gate: LatestFrameGate
    state: SessionState = SessionState.ACTIVE
    target_reps: int = 10

    # Timing
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    # Aggregates
    frames_processed: int = 0
    quality_total: float = 0.0
    confidence_total: float = 0.0
    correct_form_frames: int = 0
    peak_fatigue: int = 0
    pain_incidents: int = 0
    last_feedback: str = ""

    @property
    def rep_count(self) -> int:
        return self.engine.rep_count

    @property
    def avg_quality(self) -> float:
        return self.quality_total / self.frames_processed if self.frames_processed else 0.0

    @property
    def avg_confidence(self) -> float:
        return self.confidence_total / self.frames_processed if self.frames_processed else 0.0

    @property
    def pain_rate(self) -> float:
        """Share of analyzed frames that carried at least one pain indicator."""
        return self.pain_incidents / self.frames_processed if self.frames_processed else 0.0

    @property
    def duration_seconds(self) -> float:
        return (self.end_time or time.time()) - self.start_time

    def record(self, result: PoseAnalysisResult):
        """Fold one analysis result into the running aggregates."""
        self.frames_processed += 1
        self.quality_total += result.metrics.movement_quality
        self.confidence_total += result.confidence
        if result.is_correct_form:
            self.correct_form_frames += 1
        self.peak_fatigue = max(self.peak_fatigue, result.metrics.fatigue_level)
        if result.metrics.pain_indicators:
            self.pain_incidents += 1
        self.last_feedback = result.feedback

    def clear_aggregates(self):
        self.frames_processed = 0
        self.quality_total = 0.0
        self.confidence_total = 0.0
        self.correct_form_frames = 0
        self.peak_fatigue = 0
        self.pain_incidents = 0
        self.last_feedback = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "exercise": self.exercise_name,
            "exercise_type": self.exercise_type.value if self.exercise_type else None,
            "state": self.state.value,
            "phase": self.engine.phase.value,
            "rep_count": self.rep_count,
            "target_reps": self.target_reps,
            "frames_processed": self.frames_processed,
            "avg_quality": round(self.avg_quality, 1),
            "avg_confidence": round(self.avg_confidence, 3),
            "peak_fatigue": self.peak_fatigue,
            "pain_incidents": self.pain_incidents,
            "last_feedback": self.last_feedback,
            "duration_seconds": round(self.duration_seconds, 1),
            "frame_stats": self.gate.get_stats(),
        }


class SessionManager:
    """
    Manages coaching sessions.

    Features:
    - One engine per session, isolated state
    - Latest-frame-wins backpressure per session
    - Pause / resume / reset
    - Session summary with rating and recommendations
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        max_sessions: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Args:
            config: Engine and application settings (defaults to global settings)
            max_sessions: Concurrent session limit (defaults to MAX_ACTIVE_SESSIONS)
            clock: Millisecond clock for frames submitted without a timestamp
        """
        self.config = config or settings
        self.max_sessions = max_sessions or self.config.MAX_ACTIVE_SESSIONS
        self._clock = clock or (lambda: time.time() * 1000.0)

        self.active_sessions: Dict[str, CoachingSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        user_id: str,
        exercise: Union[ExerciseType, str],
        target_reps: int = 10
    ) -> CoachingSession:
        """
        Create a new coaching session.

        Unknown exercises are accepted and coached with the neutral classifier.

        Raises:
            ValueError: when the concurrent session limit is reached
        """
        exercise_type = ExerciseType.parse(exercise)
        exercise_name = exercise_type.value if exercise_type else str(exercise)

        with self._lock:
            if len(self.active_sessions) >= self.max_sessions:
                raise ValueError(f"Maximum of {self.max_sessions} active sessions reached")

            session_id = str(uuid.uuid4())[:8]
            engine = MovementAnalysisEngine(config=self.config, clock=self._clock)
            session = CoachingSession(
                session_id=session_id,
                user_id=user_id,
                exercise_name=exercise_name,
                exercise_type=exercise_type,
                engine=engine,
                gate=LatestFrameGate(engine, exercise_type or exercise_name),
                target_reps=target_reps
            )
            self.active_sessions[session_id] = session

        logger.info(f"Session {session_id} created for user {user_id} ({exercise_name})")
        return session

    def get_session(self, session_id: str) -> Optional[CoachingSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def process_frame(
        self,
        session_id: str,
        landmarks: Any,
        timestamp_ms: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Analyze one frame for a session.

        Returns:
            Real-time feedback dict, or an error / status dict
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if session.state != SessionState.ACTIVE:
            return {"status": session.state.value, "message": "Session not active"}

        timestamp_ms = session.engine.resolve_timestamp(timestamp_ms)
        frame = PoseFrame.from_landmarks(landmarks, timestamp_ms)

        if not session.gate.submit(frame):
            return {
                "status": "skipped",
                "session_id": session_id,
                "message": "Frame older than the last processed frame"
            }

        result = session.gate.process_pending()
        if result is None:
            # Superseded by a newer frame processed concurrently
            return {"status": "skipped", "session_id": session_id, "message": "Frame superseded"}

        session.record(result)

        response = result.to_dict()
        response.pop("landmarks", None)
        response.update({
            "session_id": session_id,
            "state": session.state.value,
            "target_reps": session.target_reps,
        })
        return response

    def reset_session(self, session_id: str) -> Dict[str, Any]:
        """Clear engine state and aggregates; the session stays active."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        session.engine.reset()
        session.gate.reset()
        session.clear_aggregates()
        session.start_time = time.time()
        session.end_time = None
        session.state = SessionState.ACTIVE

        return {"status": "reset", "session_id": session_id}

    def pause_session(self, session_id: str) -> Dict[str, Any]:
        """Pause an active session."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if session.state != SessionState.ACTIVE:
            return {"error": "Session not active"}

        session.state = SessionState.PAUSED
        return {"status": "paused", "session_id": session_id}

    def resume_session(self, session_id: str) -> Dict[str, Any]:
        """Resume a paused session."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if session.state == SessionState.PAUSED:
            session.state = SessionState.ACTIVE
            return {"status": "resumed", "session_id": session_id}

        return {"error": "Session not paused"}

    def complete_session(self, session_id: str) -> Dict[str, Any]:
        """
        Complete a session and generate its summary.

        Returns complete session summary.
        """
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if session.state != SessionState.COMPLETED:
            session.state = SessionState.COMPLETED
            session.end_time = time.time()

        summary = self._generate_summary(session)
        logger.info(
            f"Session {session_id} completed: {session.rep_count} reps, "
            f"avg quality {session.avg_quality:.1f}"
        )
        return summary

    def _generate_summary(self, session: CoachingSession) -> Dict[str, Any]:
        """Generate session summary."""
        completion_rate = (session.rep_count / session.target_reps * 100) if session.target_reps > 0 else 0.0
        rating, message = self._rate_session(session, completion_rate)

        return {
            "status": "completed",
            "session_id": session.session_id,
            "user_id": session.user_id,
            "exercise": session.exercise_name,
            "summary": {
                "total_reps": session.rep_count,
                "target_reps": session.target_reps,
                "completion_rate": round(completion_rate, 1),
                "frames_processed": session.frames_processed,
                "avg_quality": round(session.avg_quality, 1),
                "avg_confidence": round(session.avg_confidence, 3),
                "correct_form_frames": session.correct_form_frames,
                "peak_fatigue": session.peak_fatigue,
                "pain_incidents": session.pain_incidents,
                "pain_rate": round(session.pain_rate, 3),
                "duration_seconds": round(session.duration_seconds, 1),
                "performance_rating": rating,
                "message": message
            },
            "frame_stats": session.gate.get_stats(),
            "recommendations": self._get_recommendations(session, completion_rate, rating),
            "completed_at": get_now_iso()
        }

    def _rate_session(self, session: CoachingSession, completion_rate: float) -> Tuple[str, str]:
        """
        Rate a session for the patient.

        Discomfort outranks everything else: a session where pain indicators
        show up on half the frames or more is flagged regardless of reps.
        """
        config = self.config
        pain_rate = session.pain_rate
        quality = session.avg_quality

        if pain_rate >= 0.5:
            return "monitor_discomfort", "Signs of discomfort showed up often. Ease off and check in with your therapist."

        rested = session.peak_fatigue <= config.RECOVERY_FATIGUE_THRESHOLD
        if completion_rate >= 100 and quality >= config.EXCELLENT_QUALITY_THRESHOLD and pain_rate < 0.1 and rested:
            return "excellent", "Every target rep done with steady, controlled form."

        if completion_rate >= 75 and quality >= config.GOOD_QUALITY_THRESHOLD and pain_rate < 0.25:
            return "good", "Solid session. Your form held up for most of it."

        if completion_rate >= 40:
            return "steady_progress", "Each session rebuilds strength. Keep showing up."

        return "keep_practicing", "Short sessions still count. Try again when you feel ready."

    def _get_recommendations(self, session: CoachingSession, completion_rate: float, rating: str) -> List[str]:
        """Next-session advice from pain, fatigue, form and completion."""
        config = self.config
        recommendations = []

        if session.pain_incidents:
            recommendations.append(
                f"Discomfort was flagged on {session.pain_incidents} of {session.frames_processed} frames; "
                "slow the movement and stop if it hurts"
            )
        if rating == "monitor_discomfort":
            recommendations.append("Review this session with your therapist before the next one")

        if session.peak_fatigue > config.REST_FATIGUE_THRESHOLD:
            recommendations.append(f"Fatigue peaked at {session.peak_fatigue}/10; rest a full minute between sets")
        elif session.peak_fatigue > config.RECOVERY_FATIGUE_THRESHOLD:
            recommendations.append("Pause briefly whenever the movement starts to feel heavy")

        if session.frames_processed and session.avg_quality < config.GOOD_QUALITY_THRESHOLD:
            recommendations.append("Aim for fewer, cleaner repetitions rather than speed")

        if rating == "excellent":
            recommendations.append("Ready to progress: add a few reps or hold each one a little longer")
        elif completion_rate < 40:
            recommendations.append("Set a smaller rep target next time and build up gradually")

        if not recommendations:
            recommendations.append("Keep the same plan; regular practice drives recovery")

        return recommendations

    def get_session_status(self, session_id: str) -> Dict[str, Any]:
        """Get current session status."""
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        return session.to_dict()

    def cleanup_session(self, session_id: str) -> bool:
        """Remove session from active sessions."""
        with self._lock:
            removed = self.active_sessions.pop(session_id, None)
        if removed:
            logger.info(f"Session {session_id} removed")
        return removed is not None

    @property
    def active_count(self) -> int:
        return len(self.active_sessions)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_manager_instance: Optional[SessionManager] = None

def get_session_manager() -> SessionManager:
    """Get or create the global session manager instance."""
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = SessionManager()
    return _manager_instance
