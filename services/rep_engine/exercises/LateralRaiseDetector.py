import logging
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import LateralRaiseThresholds
from services.rep_engine.core.gating import GateStatus
from services.rep_engine.core.geometry import calculate_angle
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.exercises.ExerciseDetector import ExerciseDetector, TransitionResult

logger = logging.getLogger(__name__)


class RaiseState(str, Enum):
    IDLE = "idle"
    DOWN = "down"
    RAISING = "raising"
    UP = "up"
    LOWERING = "lowering"


STATE_FEEDBACK = {
    RaiseState.DOWN: "armsDown",
    RaiseState.RAISING: "raise",
    RaiseState.UP: "upHold",
    RaiseState.LOWERING: "lower",
}


def raise_arm_transition(th: LateralRaiseThresholds, state: RaiseState, angle: float) -> RaiseState:
    """Per-arm sub-state with separate enter/exit angles at both ends."""
    if state is RaiseState.DOWN or state is RaiseState.IDLE:
        return RaiseState.RAISING if angle >= th.down else RaiseState.DOWN
    if state is RaiseState.RAISING:
        if angle > th.up:
            return RaiseState.UP
        if angle < th.down:
            return RaiseState.DOWN
        return RaiseState.RAISING
    if state is RaiseState.UP:
        return RaiseState.LOWERING if angle < th.up_release else RaiseState.UP
    if angle < th.down_reset:
        return RaiseState.DOWN
    if angle > th.up:
        return RaiseState.UP
    return RaiseState.LOWERING


def raise_progress(th: LateralRaiseThresholds, angle: float) -> float:
    clamped = float(np.clip(angle, th.down, th.up))
    return (clamped - th.down) / (th.up - th.down) * 100.0


class LateralRaiseDetector(ExerciseDetector):
    """
    Lateral raise detector

    Measured joint per arm: shoulder abduction (elbow - shoulder - hip).
    A rep is credited when both arms are up together: the mean angle must
    pass the top threshold and the lower arm must be within a small margin
    of it, so raising a single arm never counts.
    """

    name = "lateral_raises"
    idle_state = RaiseState.IDLE
    gate_feedback = {GateStatus.NOT_IN_FRAME: "showShoulders"}

    ABDUCTION_JOINTS = {
        "left": (BodyJoint.LEFT_ELBOW, BodyJoint.LEFT_SHOULDER, BodyJoint.LEFT_HIP),
        "right": (BodyJoint.RIGHT_ELBOW, BodyJoint.RIGHT_SHOULDER, BodyJoint.RIGHT_HIP),
    }

    def __init__(self, thresholds: Optional[LateralRaiseThresholds] = None):
        self.thresholds = thresholds or LateralRaiseThresholds()
        super().__init__(self.thresholds.min_visibility, self.thresholds.debounce_ms, self.thresholds.ui_interval_ms)
        self.arm_states: Dict[str, RaiseState] = {arm: RaiseState.DOWN for arm in self.ABDUCTION_JOINTS}
        self._fallback_state: Optional[RaiseState] = None

    @property
    def required_joints(self) -> List[BodyJoint]:
        return [joint for joints in self.ABDUCTION_JOINTS.values() for joint in joints]

    def _result(self, angles: Dict[str, float], progress: float, **kwargs) -> TransitionResult:
        return TransitionResult(
            self.state,
            f"{self.name}.feedback.{STATE_FEEDBACK.get(self.state, 'lowerArms')}",
            progress=progress,
            angles=dict(angles),
            arm_states=dict(self.arm_states),
            **kwargs,
        )

    def _move(self, new_state: RaiseState) -> None:
        if new_state is not self.state:
            logger.debug("%s: %s -> %s", self.name, self.state.value, new_state.value)
        self.state = new_state

    def evaluate(self, frame: KeypointFrame) -> TransitionResult:
        gate = self.gate(frame)
        if not gate.ok:
            self.arm_states = {arm: RaiseState.DOWN for arm in self.ABDUCTION_JOINTS}
            self._fallback_state = None
            return self.idle_result(gate)

        th = self.thresholds
        angles = {
            arm: calculate_angle(*(frame.get(joint) for joint in joints))
            for arm, joints in self.ABDUCTION_JOINTS.items()
        }
        self.arm_states = {
            arm: raise_arm_transition(th, self.arm_states[arm], angles[arm]) for arm in angles
        }
        progress = float(np.mean([raise_progress(th, a) for a in angles.values()]))

        left, right = angles["left"], angles["right"]
        avg_angle = (left + right) / 2.0
        min_angle = min(left, right)
        both_down = left < th.down and right < th.down
        both_reset = left < th.down_reset and right < th.down_reset
        both_up = avg_angle > th.up and min_angle > th.up - th.both_up_margin
        leaving_up = avg_angle < th.up_release or min_angle < th.up_release

        # Counting starts only from a confirmed arms-down posture
        if self.state is RaiseState.IDLE:
            if both_reset:
                self._move(RaiseState.DOWN)
            return self._result(angles, progress)

        if both_reset and self.state is not RaiseState.DOWN:
            self._move(RaiseState.DOWN)
            return self._result(angles, progress)

        if self.state is RaiseState.DOWN and not both_down:
            self._move(RaiseState.RAISING)

        if both_up and self.state is RaiseState.RAISING:
            self._fallback_state = self.state
            self._move(RaiseState.UP)
            return self._result(angles, progress, rep_completed=True)

        if both_up and self.state is RaiseState.LOWERING:
            # Back up without reaching the bottom: a partial rep, not a new one
            self._move(RaiseState.UP)
            return self._result(angles, progress)

        if self.state is RaiseState.UP and leaving_up:
            self._move(RaiseState.LOWERING)

        return self._result(angles, progress)

    def on_rep_rejected(self, result: TransitionResult) -> None:
        if self._fallback_state is not None:
            self._move(self._fallback_state)
            result.state = self._fallback_state
            result.feedback = f"{self.name}.feedback.{STATE_FEEDBACK[self._fallback_state]}"
        self._fallback_state = None

    def on_rep_accepted(self, result: TransitionResult) -> None:
        self._fallback_state = None

    def reset(self) -> None:
        super().reset()
        self.arm_states = {arm: RaiseState.DOWN for arm in self.ABDUCTION_JOINTS}
        self._fallback_state = None
