import logging
from typing import List, Optional

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import PUSHUP_THRESHOLDS, PhaseThresholds, PushUpPostureLimits
from services.rep_engine.core.geometry import bounding_box, calculate_angle, torso_angle
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.exercises.ExerciseDetector import (
    PhaseDetector,
    PhaseFeedback,
    PhaseState,
    TransitionResult,
)

logger = logging.getLogger(__name__)


class PushUpDetector(PhaseDetector):
    """
    Push-up detector

    Measured joint: elbow angle (shoulder - elbow - wrist), smoothed with an
    EMA. A coarse plank check runs before the state machine: a standing
    silhouette doing arm curls must never count as push-ups.

    Args:
        thresholds: elbow angle thresholds
        posture: plank check limits and bottom dwell time
    """

    name = "pushups"
    angle_name = "elbow"
    allow_bottom_start = True

    REQUIRED_JOINTS = [
        BodyJoint.LEFT_SHOULDER,
        BodyJoint.RIGHT_SHOULDER,
        BodyJoint.LEFT_ELBOW,
        BodyJoint.RIGHT_ELBOW,
        BodyJoint.LEFT_WRIST,
        BodyJoint.RIGHT_WRIST,
        BodyJoint.LEFT_HIP,
        BodyJoint.RIGHT_HIP,
    ]

    def __init__(
        self,
        thresholds: Optional[PhaseThresholds] = None,
        posture: Optional[PushUpPostureLimits] = None,
    ):
        feedback = PhaseFeedback.for_namespace(
            self.name,
            not_ready="extendArms",
            reached_bottom="goodDepth",
            too_shallow="goLower",
            hold_bottom="nowExtend",
        )
        super().__init__(thresholds or PUSHUP_THRESHOLDS, feedback)
        self.posture = posture or PushUpPostureLimits()
        self._bottom_entry_ms: Optional[float] = None
        self._now_ms: float = 0.0

    @property
    def required_joints(self) -> List[BodyJoint]:
        return self.REQUIRED_JOINTS

    def measure(self, frame: KeypointFrame) -> float:
        """
        Elbow angle of the better-seen arm, or the mean of both arms when
        their visibilities are about the same.
        """
        ls, le, lw = (frame.get(BodyJoint.LEFT_SHOULDER), frame.get(BodyJoint.LEFT_ELBOW),
                      frame.get(BodyJoint.LEFT_WRIST))
        rs, re, rw = (frame.get(BodyJoint.RIGHT_SHOULDER), frame.get(BodyJoint.RIGHT_ELBOW),
                      frame.get(BodyJoint.RIGHT_WRIST))

        left_visibility = (ls.visibility + le.visibility + lw.visibility) / 3.0
        right_visibility = (rs.visibility + re.visibility + rw.visibility) / 3.0

        left_angle = calculate_angle(ls, le, lw)
        right_angle = calculate_angle(rs, re, rw)

        if abs(left_visibility - right_visibility) < self.posture.visibility_epsilon:
            return (left_angle + right_angle) / 2.0
        return left_angle if left_visibility > right_visibility else right_angle

    def in_plank_position(self, frame: KeypointFrame) -> bool:
        ls, rs = frame.get(BodyJoint.LEFT_SHOULDER), frame.get(BodyJoint.RIGHT_SHOULDER)
        lh, rh = frame.get(BodyJoint.LEFT_HIP), frame.get(BodyJoint.RIGHT_HIP)
        limits = self.posture

        avg_shoulder_y = (ls.y + rs.y) / 2.0
        avg_hip_y = (lh.y + rh.y) / 2.0
        torso_aligned = abs(avg_hip_y - avg_shoulder_y) < limits.hip_shoulder_max_delta

        shoulders_level = abs(ls.y - rs.y) < limits.level_delta
        hips_level = abs(lh.y - rh.y) < limits.level_delta

        horizontal_torso = torso_angle(ls, rs, lh, rh) < limits.max_torso_angle

        min_x, min_y, max_x, max_y = bounding_box(frame)
        bbox_width = max(max_x - min_x, 1e-9)
        bbox_height = max(max_y - min_y, 0.0)
        too_vertical = (
            bbox_height > limits.max_frame_height
            or bbox_height / bbox_width > limits.max_height_width_ratio
        )

        return torso_aligned and (shoulders_level or hips_level) and horizontal_torso and not too_vertical

    def check_position(self, frame: KeypointFrame) -> Optional[str]:
        if self.in_plank_position(frame):
            return None
        self._bottom_entry_ms = None
        return f"{self.name}.feedback.needPlank"

    def step(self, angle: float) -> TransitionResult:
        previous = self.state
        bottom_entry = self._bottom_entry_ms
        result = super().step(angle)

        if previous is PhaseState.BOTTOM and result.state is PhaseState.ASCENDING:
            dwell = self._now_ms - bottom_entry if bottom_entry is not None else self.posture.bottom_hold_ms
            if dwell < self.posture.bottom_hold_ms:
                logger.debug("%s: bottom held %.0f ms, need %.0f ms", self.name, dwell, self.posture.bottom_hold_ms)
                self.state = PhaseState.BOTTOM
                return TransitionResult(PhaseState.BOTTOM, self.feedback.hold_bottom, progress=50.0)

        if result.state is PhaseState.BOTTOM and previous is not PhaseState.BOTTOM:
            self._bottom_entry_ms = self._now_ms
        elif result.state in (PhaseState.READY, PhaseState.IDLE):
            self._bottom_entry_ms = None
        return result

    def evaluate(self, frame: KeypointFrame) -> TransitionResult:
        self._now_ms = frame.timestamp_ms
        result = super().evaluate(frame)
        if result.state is PhaseState.IDLE:
            self._bottom_entry_ms = None
        return result

    def reset(self) -> None:
        super().reset()
        self._bottom_entry_ms = None
