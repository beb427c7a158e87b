import logging
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import HammerCurlThresholds
from services.rep_engine.core.gating import GateStatus
from services.rep_engine.core.geometry import calculate_angle
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.exercises.ExerciseDetector import ExerciseDetector, TransitionResult

logger = logging.getLogger(__name__)

ARMS = ("left", "right")


class HammerCurlState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"


class CurlArmState(str, Enum):
    EXTENDED = "extended"
    CURLING = "curling"
    TOP = "top"


def classify_arm(th: HammerCurlThresholds, elbow_angle: float) -> CurlArmState:
    if elbow_angle < th.top:
        return CurlArmState.TOP
    if elbow_angle > th.extended:
        return CurlArmState.EXTENDED
    return CurlArmState.CURLING


def curl_progress(th: HammerCurlThresholds, elbow_angle: float) -> float:
    """0 with the arm extended, 100 at the top of the curl."""
    clamped = float(np.clip(elbow_angle, th.top, th.extended))
    return (th.extended - clamped) / (th.extended - th.top) * 100.0


class HammerCurlDetector(ExerciseDetector):
    """
    Alternating hammer curl detector

    Both arms are tracked independently. An arm is credited when it reaches
    the top while the other arm hangs extended, and never twice in a row, so
    one arm held at the top or a single-arm flinch cannot add reps.
    """

    name = "hammer_curls"
    idle_state = HammerCurlState.IDLE
    gate_feedback = {GateStatus.NOT_IN_FRAME: "showArms"}

    ELBOW_JOINTS = {
        "left": (BodyJoint.LEFT_SHOULDER, BodyJoint.LEFT_ELBOW, BodyJoint.LEFT_WRIST),
        "right": (BodyJoint.RIGHT_SHOULDER, BodyJoint.RIGHT_ELBOW, BodyJoint.RIGHT_WRIST),
    }

    def __init__(self, thresholds: Optional[HammerCurlThresholds] = None):
        self.thresholds = thresholds or HammerCurlThresholds()
        super().__init__(self.thresholds.min_visibility, self.thresholds.debounce_ms, self.thresholds.ui_interval_ms)
        self.arm_states: Dict[str, CurlArmState] = {arm: CurlArmState.EXTENDED for arm in ARMS}
        self.last_arm: Optional[str] = None

    @property
    def required_joints(self) -> List[BodyJoint]:
        return [joint for arm in ARMS for joint in self.ELBOW_JOINTS[arm]]

    def _other_extended_enough(self, arm: str, angles: Dict[str, float]) -> bool:
        other = "right" if arm == "left" else "left"
        return angles[other] > self.thresholds.extended - self.thresholds.other_arm_margin

    def candidate_arm(self, angles: Dict[str, float]) -> Optional[str]:
        """First arm (left before right) eligible for a rep on this frame."""
        for arm in ARMS:
            if self.arm_states[arm] is not CurlArmState.TOP:
                continue
            if not self._other_extended_enough(arm, angles):
                continue
            if self.last_arm == arm:
                continue
            return arm
        return None

    def evaluate(self, frame: KeypointFrame) -> TransitionResult:
        gate = self.gate(frame)
        if not gate.ok:
            self.arm_states = {arm: CurlArmState.EXTENDED for arm in ARMS}
            return self.idle_result(gate)

        angles = {
            arm: calculate_angle(*(frame.get(joint) for joint in self.ELBOW_JOINTS[arm]))
            for arm in ARMS
        }
        self.arm_states = {arm: classify_arm(self.thresholds, angles[arm]) for arm in ARMS}
        self.state = HammerCurlState.TRACKING

        arm = self.candidate_arm(angles)
        if arm is not None:
            return TransitionResult(
                HammerCurlState.TRACKING,
                f"{self.name}.feedback.counting",
                progress=curl_progress(self.thresholds, angles[arm]),
                rep_completed=True,
                feedback_params={"arm": arm},
                angles=dict(angles),
                arm_states=dict(self.arm_states),
                arm=arm,
            )

        if all(state is CurlArmState.EXTENDED for state in self.arm_states.values()):
            return TransitionResult(
                HammerCurlState.TRACKING,
                f"{self.name}.feedback.bothDown",
                angles=dict(angles),
                arm_states=dict(self.arm_states),
            )

        active = min(ARMS, key=lambda a: angles[a])
        return TransitionResult(
            HammerCurlState.TRACKING,
            f"{self.name}.feedback.curl",
            progress=curl_progress(self.thresholds, angles[active]),
            feedback_params={"arm": active},
            angles=dict(angles),
            arm_states=dict(self.arm_states),
        )

    def on_rep_accepted(self, result: TransitionResult) -> None:
        logger.debug("%s: credited %s arm", self.name, result.arm)
        self.last_arm = result.arm

    def reset(self) -> None:
        super().reset()
        self.arm_states = {arm: CurlArmState.EXTENDED for arm in ARMS}
        self.last_arm = None
