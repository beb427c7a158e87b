"""Tests for keypoint presence / visibility gating."""

from services.rep_engine.core.BackendInterface import Keypoint, KeypointFrame
from services.rep_engine.core.gating import GateStatus, check_keypoints
from services.rep_engine.core.joints import BodyJoint

REQUIRED = [BodyJoint.LEFT_HIP, BodyJoint.LEFT_KNEE, BodyJoint.LEFT_ANKLE]


def _frame(visibilities):
    return KeypointFrame(
        {int(joint): Keypoint(0.5, 0.5, visibility=v) for joint, v in visibilities.items()},
        timestamp_ms=0.0,
    )


class TestCheckKeypoints:

    def test_empty_frame_is_no_pose(self):
        result = check_keypoints(KeypointFrame(), REQUIRED, 0.5)
        assert result.status is GateStatus.NO_POSE
        assert not result.ok

    def test_missing_joint_is_not_in_frame(self):
        frame = _frame({BodyJoint.LEFT_HIP: 0.9, BodyJoint.LEFT_KNEE: 0.9})
        result = check_keypoints(frame, REQUIRED, 0.5)
        assert result.status is GateStatus.NOT_IN_FRAME
        assert result.missing == [int(BodyJoint.LEFT_ANKLE)]

    def test_missing_is_reported_before_low_visibility(self):
        frame = _frame({BodyJoint.LEFT_HIP: 0.1, BodyJoint.LEFT_KNEE: 0.1})
        result = check_keypoints(frame, REQUIRED, 0.5)
        assert result.status is GateStatus.NOT_IN_FRAME

    def test_low_visibility(self):
        frame = _frame({BodyJoint.LEFT_HIP: 0.9, BodyJoint.LEFT_KNEE: 0.3, BodyJoint.LEFT_ANKLE: 0.9})
        result = check_keypoints(frame, REQUIRED, 0.5)
        assert result.status is GateStatus.LOW_VISIBILITY
        assert result.occluded == [int(BodyJoint.LEFT_KNEE)]

    def test_visibility_threshold_is_strict(self):
        frame = _frame({joint: 0.5 for joint in REQUIRED})
        assert check_keypoints(frame, REQUIRED, 0.5).status is GateStatus.LOW_VISIBILITY
        frame = _frame({joint: 0.51 for joint in REQUIRED})
        assert check_keypoints(frame, REQUIRED, 0.5).ok

    def test_feedback_keys(self):
        assert check_keypoints(KeypointFrame(), REQUIRED, 0.5).feedback_key("squats") == "squats.feedback.noPose"
        frame = _frame({BodyJoint.LEFT_HIP: 0.9})
        assert check_keypoints(frame, REQUIRED, 0.5).feedback_key("squats") == "squats.feedback.noBody"
        frame = _frame({joint: 0.2 for joint in REQUIRED})
        assert check_keypoints(frame, REQUIRED, 0.5).feedback_key("pushups") == "pushups.feedback.improveLight"

    def test_feedback_key_overrides(self):
        overrides = {GateStatus.NOT_IN_FRAME: "showArms"}
        frame = _frame({BodyJoint.LEFT_HIP: 0.9})
        gate = check_keypoints(frame, REQUIRED, 0.5)
        assert gate.feedback_key("hammer_curls", overrides) == "hammer_curls.feedback.showArms"
        # Statuses without an override keep the shared key
        gate = check_keypoints(KeypointFrame(), REQUIRED, 0.5)
        assert gate.feedback_key("hammer_curls", overrides) == "hammer_curls.feedback.noPose"
