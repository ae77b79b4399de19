"""
REHABCOACH Rehab Service Router

Endpoints for real-time exercise coaching sessions.
Landmarks come from the client-side pose estimator; the server runs the
movement-analysis engine and returns feedback per frame.
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from .models import (
    ExerciseType,
    SessionManager,
    describe_exercises,
    get_session_manager
)

router = APIRouter()


def get_manager() -> SessionManager:
    """Get the session manager instance."""
    return get_session_manager()


def _raise_for_error(result: Dict[str, Any]) -> Dict[str, Any]:
    """Map session error dicts onto HTTP errors."""
    error = result.get("error")
    if error == "Session not found":
        raise HTTPException(status_code=404, detail=error)
    if error:
        raise HTTPException(status_code=409, detail=error)
    return result


# ============= Pydantic Models =============

class LandmarkModel(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


class StartSessionRequest(BaseModel):
    user_id: str
    exercise_type: str
    target_reps: int = Field(default=10, ge=1)


class FrameRequest(BaseModel):
    landmarks: List[Optional[LandmarkModel]] = Field(default_factory=list)
    timestamp_ms: Optional[float] = Field(default=None, allow_inf_nan=False)


# ============= Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """List supported exercises and their thresholds."""
    exercises = describe_exercises()
    return {
        "exercises": exercises,
        "total": len(exercises)
    }


@router.post("/sessions")
async def start_session(request: StartSessionRequest):
    """
    Start a new coaching session.

    Unknown exercise types are accepted and coached with neutral feedback.
    """
    manager = get_manager()

    try:
        session = manager.create_session(
            user_id=request.user_id,
            exercise=request.exercise_type,
            target_reps=request.target_reps
        )
    except ValueError as e:
        raise HTTPException(status_code=429, detail=str(e))

    return {
        "status": "created",
        "session_id": session.session_id,
        "user_id": request.user_id,
        "exercise_type": session.exercise_name,
        "recognized": ExerciseType.parse(request.exercise_type) is not None,
        "target_reps": session.target_reps
    }


@router.get("/sessions/{session_id}")
async def get_session_status(session_id: str):
    """Get current session status."""
    return _raise_for_error(get_manager().get_session_status(session_id))


@router.post("/sessions/{session_id}/frames")
async def submit_frame(session_id: str, request: FrameRequest):
    """Analyze one landmark frame and return real-time feedback."""
    landmarks = [lm.model_dump() if lm is not None else None for lm in request.landmarks]
    result = get_manager().process_frame(session_id, landmarks, request.timestamp_ms)
    return _raise_for_error(result)


@router.post("/sessions/{session_id}/reset")
async def reset_session(session_id: str):
    """Clear history, rep count and phase for a session."""
    return _raise_for_error(get_manager().reset_session(session_id))


@router.post("/sessions/{session_id}/pause")
async def pause_session(session_id: str):
    return _raise_for_error(get_manager().pause_session(session_id))


@router.post("/sessions/{session_id}/resume")
async def resume_session(session_id: str):
    return _raise_for_error(get_manager().resume_session(session_id))


@router.post("/sessions/{session_id}/complete")
async def complete_session(session_id: str):
    """Complete a session and get its summary."""
    manager = get_manager()

    result = _raise_for_error(manager.complete_session(session_id))
    manager.cleanup_session(session_id)

    return result
