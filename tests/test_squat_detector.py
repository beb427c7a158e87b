"""Tests for the squat state machine and the shared phase transition."""

import dataclasses

import pytest

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import SQUAT_THRESHOLDS
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.exercises.ExerciseDetector import (
    PhaseFeedback,
    PhaseState,
    RepQuality,
    grade_rep,
    phase_transition,
)
from services.rep_engine.exercises.SquatDetector import SquatDetector

FEEDBACK = PhaseFeedback.for_namespace("squats")


def _run(detector, frame_factory, angles, start_ms=0.0, step_ms=100.0):
    return [
        detector.evaluate(frame_factory(angle, timestamp_ms=start_ms + i * step_ms))
        for i, angle in enumerate(angles)
    ]


# ============================================================================
# Test: full squat cycle
# ============================================================================

class TestSquatCycle:

    def test_one_rep(self, squat_frame):
        detector = SquatDetector()
        results = _run(detector, squat_frame, [160, 140, 125, 145, 155])

        assert [r.state for r in results] == [
            PhaseState.READY,
            PhaseState.DESCENDING,
            PhaseState.BOTTOM,
            PhaseState.ASCENDING,
            PhaseState.READY,
        ]
        assert [r.rep_completed for r in results] == [False, False, False, False, True]
        assert results[-1].quality is RepQuality.PERFECT
        assert results[-1].feedback == "squats.feedback.excellent"
        assert results[-1].progress == 100.0

    def test_knee_angle_is_reported(self, squat_frame):
        result = SquatDetector().evaluate(squat_frame(160))
        assert result.angles["knee"] == pytest.approx(160.0)

    def test_shallow_squat_returns_to_ready_without_rep(self, squat_frame):
        detector = SquatDetector()
        results = _run(detector, squat_frame, [160, 140, 155])
        assert results[-1].state is PhaseState.READY
        assert results[-1].feedback == "squats.feedback.goDeeper"
        assert not any(r.rep_completed for r in results)

    def test_good_quality_when_not_deep_enough(self, squat_frame):
        detector = SquatDetector(dataclasses.replace(SQUAT_THRESHOLDS, perfect_depth=120))
        results = _run(detector, squat_frame, [160, 140, 125, 145, 155])
        assert results[-1].rep_completed
        assert results[-1].quality is RepQuality.GOOD

    def test_falling_back_to_bottom_while_ascending(self, squat_frame):
        detector = SquatDetector()
        results = _run(detector, squat_frame, [160, 140, 125, 145, 128])
        assert results[-1].state is PhaseState.BOTTOM
        assert results[-1].feedback == "squats.feedback.keepPushing"

    def test_progress_values(self, squat_frame):
        detector = SquatDetector()
        results = _run(detector, squat_frame, [160, 140, 135, 125, 145, 148])
        assert results[0].progress is None
        assert results[1].progress == 10.0
        assert results[2].progress == pytest.approx(37.5, abs=0.01)
        assert results[3].progress == 50.0
        assert results[4].progress == 60.0
        assert results[5].progress == pytest.approx(95.0, abs=0.01)

    def test_not_ready_from_idle(self, squat_frame):
        result = SquatDetector().evaluate(squat_frame(140))
        assert result.state is PhaseState.IDLE
        assert result.feedback == "squats.feedback.standStraight"
        assert result.feedback_params == {"angle": 140}


# ============================================================================
# Test: gating
# ============================================================================

class TestSquatGating:

    def test_empty_frame(self):
        result = SquatDetector().evaluate(KeypointFrame(timestamp_ms=0.0))
        assert result.state is PhaseState.IDLE
        assert result.feedback == "squats.feedback.noPose"

    def test_feet_out_of_frame(self, squat_frame):
        result = SquatDetector().evaluate(squat_frame(160, drop=[BodyJoint.LEFT_FOOT_INDEX]))
        assert result.feedback == "squats.feedback.noBody"

    def test_low_visibility(self, squat_frame):
        result = SquatDetector().evaluate(squat_frame(160, visibility=0.55))
        assert result.feedback == "squats.feedback.improveLight"

    def test_gating_failure_mid_rep_resets_to_idle(self, squat_frame):
        detector = SquatDetector()
        _run(detector, squat_frame, [160, 140, 125])
        result = detector.evaluate(squat_frame(125, visibility=0.2))
        assert result.state is PhaseState.IDLE
        assert detector.state is PhaseState.IDLE

        # Back in view at the bottom: no credit without passing ready again
        results = _run(detector, squat_frame, [125, 145, 155])
        assert not any(r.rep_completed for r in results)


# ============================================================================
# Test: pure transition function
# ============================================================================

class TestPhaseTransition:

    def test_bottom_is_inclusive_for_squats(self):
        result = phase_transition(SQUAT_THRESHOLDS, PhaseState.DESCENDING, 130.0, True, FEEDBACK)
        assert result.state is PhaseState.BOTTOM

    def test_bottom_strict_when_configured(self):
        th = dataclasses.replace(SQUAT_THRESHOLDS, bottom_inclusive=False)
        result = phase_transition(th, PhaseState.DESCENDING, 130.0, True, FEEDBACK)
        assert result.state is PhaseState.DESCENDING

    def test_invisible_forces_idle(self):
        for state in PhaseState:
            result = phase_transition(SQUAT_THRESHOLDS, state, 160.0, False, FEEDBACK)
            assert result.state is PhaseState.IDLE
            assert not result.rep_completed

    def test_rep_only_on_ascending_to_ready(self):
        for state in PhaseState:
            result = phase_transition(SQUAT_THRESHOLDS, state, 170.0, True, FEEDBACK)
            assert result.rep_completed == (state is PhaseState.ASCENDING)

    def test_bottom_start_only_when_allowed(self):
        result = phase_transition(SQUAT_THRESHOLDS, PhaseState.IDLE, 100.0, True, FEEDBACK)
        assert result.state is PhaseState.IDLE
        result = phase_transition(
            SQUAT_THRESHOLDS, PhaseState.IDLE, 100.0, True, FEEDBACK, allow_bottom_start=True
        )
        assert result.state is PhaseState.BOTTOM

    def test_progress_is_bounded(self):
        for state in PhaseState:
            for angle in (0.0, 90.0, 129.0, 131.0, 149.0, 151.0, 180.0):
                result = phase_transition(SQUAT_THRESHOLDS, state, angle, True, FEEDBACK)
                assert result.progress is None or 0.0 <= result.progress <= 100.0

    def test_unknown_state(self):
        with pytest.raises(ValueError):
            phase_transition(SQUAT_THRESHOLDS, "sideways", 150.0, True, FEEDBACK)

    def test_grade_rep(self):
        assert grade_rep(SQUAT_THRESHOLDS, 125.0) is RepQuality.PERFECT
        assert grade_rep(SQUAT_THRESHOLDS, 130.0) is RepQuality.PERFECT
        assert grade_rep(SQUAT_THRESHOLDS, 133.0) is RepQuality.GOOD
