import logging
import threading

import pytest

from core.config import Settings
from rehab_service.models import (
    DEFAULT_FEEDBACK,
    ExercisePhase,
    ExerciseType,
    JointId,
    JointType,
    MovementAnalysisEngine,
    NUM_LANDMARKS,
)

from conftest import SLOUCHED_POSE, make_landmarks, raised_left_arm


RAISE_AND_LOWER = (
    [-0.28] * 3
    + [-0.20, -0.12, -0.05, 0.0, 0.05, 0.10, 0.18, 0.22, 0.18, 0.10, 0.05, 0.0, -0.05, -0.12, -0.20]
    + [-0.28] * 3
)


def _dedupe(phases):
    sequence = []
    for phase in phases:
        if not sequence or sequence[-1] is not phase:
            sequence.append(phase)
    return sequence


class TestScenarios:
    def test_shoulder_flexion_cycle(self, engine):
        results = [
            engine.process_frame(make_landmarks(raised_left_arm(rise)), "shoulder_flexion", i * 100.0)
            for i, rise in enumerate(RAISE_AND_LOWER)
        ]

        assert _dedupe([r.phase for r in results]) == [
            ExercisePhase.PREPARATION,
            ExercisePhase.EXECUTION,
            ExercisePhase.RECOVERY,
            ExercisePhase.PREPARATION,
        ]
        assert results[-1].rep_count == 1
        assert sum(r.rep_completed for r in results) == 1

    def test_fatigue_emerges_from_oscillating_quality(self, engine):
        good = make_landmarks(raised_left_arm(0.2))
        bad = make_landmarks(SLOUCHED_POSE)

        results = [
            engine.process_frame(good if i % 2 == 0 else bad, ExerciseType.SHOULDER_FLEXION, i * 100.0)
            for i in range(40)
        ]

        assert results[0].metrics.movement_quality == 100.0
        assert results[1].metrics.movement_quality == 0.0
        assert results[28].metrics.fatigue_level == 0
        assert results[29].metrics.fatigue_level > 5
        assert results[29].phase is ExercisePhase.RECOVERY

    def test_sustained_correct_form_is_debounced(self, engine):
        held = make_landmarks(raised_left_arm(0.2))
        results = [engine.process_frame(held, "shoulder_flexion", float(ts)) for ts in range(0, 4000, 100)]

        assert results[-1].rep_count == 2
        assert [r.timestamp_ms for r in results if r.rep_completed] == [0.0, 2000.0]

    def test_bicep_curl_uses_longer_cooldown(self, engine):
        curled = make_landmarks({JointType.LEFT_WRIST: (0.42, 0.33)})
        results = [engine.process_frame(curled, "bicep_curl", float(ts)) for ts in range(0, 4000, 100)]

        assert engine.rep_counter.cooldown_ms == 3000.0
        assert [r.timestamp_ms for r in results if r.rep_completed] == [0.0, 3000.0]

    def test_exercise_without_own_cooldown_uses_default(self):
        engine = MovementAnalysisEngine(config=Settings(REP_COOLDOWN_MS=500.0), clock=lambda: 0.0)
        engine.process_frame(make_landmarks(), "weight_shift", 0.0)
        assert engine.rep_counter.cooldown_ms == 500.0

        engine.process_frame(make_landmarks(), "ankle_pump", 100.0)
        assert engine.rep_counter.cooldown_ms == 1500.0

    @pytest.mark.parametrize("timestamp", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_timestamps_keep_debounce(self, engine, timestamp):
        held = make_landmarks(raised_left_arm(0.2))
        results = [engine.process_frame(held, "shoulder_flexion", timestamp) for _ in range(10)]

        assert engine.rep_count <= 1
        assert sum(r.rep_completed for r in results) == 1
        assert all(r.timestamp_ms == 0.0 for r in results)


class TestMissingLandmarks:
    def test_all_missing(self, engine):
        result = engine.process_frame([None] * NUM_LANDMARKS, "shoulder_flexion", 0.0)

        assert result.metrics.movement_quality == 0.0
        assert result.confidence == 0.0
        assert result.feedback == DEFAULT_FEEDBACK
        assert not result.is_correct_form
        assert result.metrics.joint_angles == []

    @pytest.mark.parametrize("landmarks", [None, [], "garbage", [{"x": float("nan"), "y": 0.1}] * 33])
    def test_malformed_input_never_raises(self, engine, landmarks):
        result = engine.process_frame(landmarks, "bicep_curl", 0.0)
        assert result.confidence == 0.0
        assert 0.0 <= result.metrics.movement_quality <= 100.0

    def test_nan_landmark_does_not_corrupt_range_of_motion(self, engine):
        engine.process_frame(make_landmarks(), "bicep_curl", 0.0)

        broken = make_landmarks()
        broken[13]["x"] = float("nan")  # left elbow
        result = engine.process_frame(broken, "bicep_curl", 100.0)

        assert JointId.LEFT_ELBOW not in result.metrics.range_of_motion
        for rom in result.metrics.range_of_motion.values():
            assert rom.min <= rom.current <= rom.max

    def test_low_visibility_is_filtered(self, engine):
        result = engine.process_frame(make_landmarks(visibility=0.4), "shoulder_flexion", 0.0)
        assert result.confidence == 0.0
        assert result.metrics.movement_quality == 0.0


class TestEngineState:
    def test_unknown_exercise_uses_neutral_classifier(self, engine, caplog):
        with caplog.at_level(logging.WARNING):
            first = engine.process_frame(make_landmarks(), "jumping jacks", 0.0)
            engine.process_frame(make_landmarks(), "jumping jacks", 100.0)
            engine.process_frame(make_landmarks(), "burpees", 200.0)

        assert first.confidence == 0.0
        assert first.exercise_type is None
        assert "insufficient exercise definition" in first.exercise_feedback
        assert len([r for r in caplog.records if "jumping jacks" in r.getMessage()]) == 1
        assert not [r for r in caplog.records if "burpees" in r.getMessage()]

    def test_unknown_exercise_names_do_not_accumulate(self, engine, caplog):
        with caplog.at_level(logging.WARNING):
            for i in range(500):
                engine.process_frame(make_landmarks(), f"exercise {i}", float(i))

        warnings = [r for r in caplog.records if "neutral classifier" in r.getMessage()]
        assert len(warnings) == 1

    def test_range_of_motion_widens_over_frames(self, engine):
        for i, rise in enumerate(RAISE_AND_LOWER):
            result = engine.process_frame(make_landmarks(raised_left_arm(rise)), "shoulder_flexion", i * 100.0)
            rom = result.metrics.range_of_motion[JointId.LEFT_ELBOW]
            assert rom.min <= rom.current <= rom.max

    def test_history_bounded(self):
        engine = MovementAnalysisEngine(config=Settings(HISTORY_CAPACITY=10))
        for i in range(25):
            engine.process_frame(make_landmarks(), "shoulder_flexion", i * 10.0)
        assert len(engine.history) == 10

    def test_reset_clears_state(self, engine):
        held = make_landmarks(raised_left_arm(0.2))
        engine.process_frame(held, "shoulder_flexion", 0.0)
        assert engine.rep_count == 1

        engine.reset()

        assert engine.rep_count == 0
        assert len(engine.history) == 0
        assert engine.phase is ExercisePhase.PREPARATION
        # Cooldown cleared as well
        assert engine.process_frame(held, "shoulder_flexion", 500.0).rep_completed

    def test_engines_are_isolated(self, config):
        first = MovementAnalysisEngine(config=config)
        second = MovementAnalysisEngine(config=config)
        first.process_frame(make_landmarks(raised_left_arm(0.2)), "shoulder_flexion", 0.0)

        assert first.rep_count == 1
        assert second.rep_count == 0
        assert len(second.history) == 0

    def test_clock_used_without_timestamp(self):
        engine = MovementAnalysisEngine(clock=lambda: 1234.0)
        result = engine.process_frame(make_landmarks(), "shoulder_flexion")
        assert result.timestamp_ms == 1234.0

    def test_reset_waits_for_frames_from_other_threads(self, engine):
        held = make_landmarks(raised_left_arm(0.2))

        def feed():
            for ts in range(0, 2000, 10):
                engine.process_frame(held, "shoulder_flexion", float(ts))

        worker = threading.Thread(target=feed)
        worker.start()
        engine.reset()
        worker.join()

        assert len(engine.history) <= engine.history.capacity
        assert engine.rep_count <= 1

    def test_result_serializes(self, engine):
        data = engine.process_frame(make_landmarks(raised_left_arm(0.2)), "Shoulder Flexion", 0.0).to_dict()

        assert data["exercise_type"] == "shoulder_flexion"
        assert data["phase"] == "execution"
        assert data["rep_count"] == 1
        assert len(data["landmarks"]) == NUM_LANDMARKS
        assert 0.0 <= data["confidence"] <= 1.0
