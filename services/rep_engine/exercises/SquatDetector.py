from typing import List, Optional

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import SQUAT_THRESHOLDS, PhaseThresholds
from services.rep_engine.core.geometry import calculate_angle
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.exercises.ExerciseDetector import PhaseDetector, PhaseFeedback


class SquatDetector(PhaseDetector):
    """
    Squat detector

    Measured joint: knee angle (hip - knee - ankle), averaged over both legs.
    The whole lower body, feet included, has to be visible so a half-framed
    subject never produces a rep.
    """

    name = "squats"
    angle_name = "knee"

    REQUIRED_JOINTS = [
        BodyJoint.LEFT_SHOULDER,
        BodyJoint.RIGHT_SHOULDER,
        BodyJoint.LEFT_HIP,
        BodyJoint.RIGHT_HIP,
        BodyJoint.LEFT_KNEE,
        BodyJoint.RIGHT_KNEE,
        BodyJoint.LEFT_ANKLE,
        BodyJoint.RIGHT_ANKLE,
        BodyJoint.LEFT_HEEL,
        BodyJoint.RIGHT_HEEL,
        BodyJoint.LEFT_FOOT_INDEX,
        BodyJoint.RIGHT_FOOT_INDEX,
    ]

    def __init__(self, thresholds: Optional[PhaseThresholds] = None):
        super().__init__(thresholds or SQUAT_THRESHOLDS, PhaseFeedback.for_namespace(self.name))

    @property
    def required_joints(self) -> List[BodyJoint]:
        return self.REQUIRED_JOINTS

    def measure(self, frame: KeypointFrame) -> float:
        left_knee_angle = calculate_angle(
            frame.get(BodyJoint.LEFT_HIP),
            frame.get(BodyJoint.LEFT_KNEE),
            frame.get(BodyJoint.LEFT_ANKLE),
        )
        right_knee_angle = calculate_angle(
            frame.get(BodyJoint.RIGHT_HIP),
            frame.get(BodyJoint.RIGHT_KNEE),
            frame.get(BodyJoint.RIGHT_ANKLE),
        )
        return (left_knee_angle + right_knee_angle) / 2.0
