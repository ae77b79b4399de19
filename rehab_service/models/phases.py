"""
REHABCOACH Rehab Service - Rep Counting & Exercise Phases

Repetition debounce and the Preparation -> Execution -> Recovery loop.
Both keep their own state and are independent: a phase change never
touches the rep count.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .classifiers import MovementStage

logger = logging.getLogger(__name__)


class ExercisePhase(Enum):
    """Exercise phase derived frame by frame."""
    PREPARATION = "preparation"
    EXECUTION = "execution"
    RECOVERY = "recovery"


# ═══════════════════════════════════════════════════════════════════════════════
# REP COUNTER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RepCounter:
    """
    Counts repetitions from correct-form frames with a cooldown.

    A rep is counted on a correct-form frame when no rep has been counted
    yet, or when at least `cooldown_ms` has passed since the last one.
    Sustained correct form therefore counts once per cooldown period.
    Frames without a finite timestamp never count.
    """
    cooldown_ms: float = 2000.0
    count: int = 0
    last_rep_ms: Optional[float] = None

    def update(self, is_correct_form: bool, timestamp_ms: float) -> bool:
        """Update counter with a classified frame. Returns True if a rep was counted."""
        if not is_correct_form or not math.isfinite(timestamp_ms):
            return False

        if self.last_rep_ms is not None and timestamp_ms - self.last_rep_ms < self.cooldown_ms:
            return False

        self.count += 1
        self.last_rep_ms = timestamp_ms
        logger.debug(f"Rep {self.count} counted at {timestamp_ms:.0f}ms")
        return True

    def reset(self):
        self.count = 0
        self.last_rep_ms = None


# ═══════════════════════════════════════════════════════════════════════════════
# PHASE TRACKER
# ═══════════════════════════════════════════════════════════════════════════════

class PhaseTracker:
    """
    Exercise phase state machine.

    - Any phase -> Recovery while fatigue exceeds the recovery threshold.
    - Preparation -> Execution once quality exceeds the execution threshold
      and the movement has started.
    - Execution -> Recovery when the movement is released after reaching
      its target; back to Preparation if it is abandoned before that.
    - Recovery -> Preparation once the limb is back at the start position.

    A stage of None means the exercise gives no progress information; the
    phase then follows movement quality alone.
    """

    def __init__(self, execution_quality: float = 50.0, recovery_fatigue: int = 5):
        self.execution_quality = execution_quality
        self.recovery_fatigue = recovery_fatigue
        self.phase = ExercisePhase.PREPARATION
        self._target_reached = False

    def update(
        self,
        movement_quality: float,
        fatigue_level: int,
        stage: Optional[MovementStage] = None
    ) -> ExercisePhase:
        if fatigue_level > self.recovery_fatigue:
            self.phase = ExercisePhase.RECOVERY
            return self.phase

        good_quality = movement_quality > self.execution_quality

        if stage is None:
            self._update_without_stage(good_quality)
            return self.phase

        if self.phase == ExercisePhase.PREPARATION:
            if good_quality and stage != MovementStage.NOT_STARTED:
                self.phase = ExercisePhase.EXECUTION
                self._target_reached = stage == MovementStage.COMPLETE

        elif self.phase == ExercisePhase.EXECUTION:
            if stage == MovementStage.COMPLETE:
                self._target_reached = True
            elif self._target_reached:
                self.phase = ExercisePhase.RECOVERY
            elif stage == MovementStage.NOT_STARTED or not good_quality:
                self.phase = ExercisePhase.PREPARATION

        elif self.phase == ExercisePhase.RECOVERY:
            if stage == MovementStage.NOT_STARTED:
                self.phase = ExercisePhase.PREPARATION
                self._target_reached = False
            elif stage == MovementStage.COMPLETE:
                self.phase = ExercisePhase.EXECUTION
                self._target_reached = True

        return self.phase

    def _update_without_stage(self, good_quality: bool):
        if good_quality:
            self.phase = ExercisePhase.EXECUTION
        elif self.phase == ExercisePhase.EXECUTION:
            self.phase = ExercisePhase.RECOVERY
        else:
            self.phase = ExercisePhase.PREPARATION

    def reset(self):
        self.phase = ExercisePhase.PREPARATION
        self._target_reached = False
