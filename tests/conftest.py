"""Synthetic keypoint frames with exact joint angles.

All coordinates are normalized image units (y grows downwards), like the
MediaPipe output the detectors consume.
"""

import math

import pytest

from services.rep_engine.core.BackendInterface import Keypoint, KeypointFrame
from services.rep_engine.core.joints import BodyJoint


def _point(x, y, visibility=0.9):
    return Keypoint(x=x, y=y, z=0.0, visibility=visibility)


def make_squat_frame(knee_angle, timestamp_ms=0.0, visibility=0.9, drop=()):
    """Standing subject seen from the front; both knees bent to ``knee_angle``."""
    rad = math.radians(knee_angle)
    keypoints = {}
    for side, x in (("LEFT", 0.42), ("RIGHT", 0.58)):
        knee = (x, 0.65)
        ankle = (x, 0.88)
        hip = (x + 0.22 * math.sin(rad), 0.65 + 0.22 * math.cos(rad))
        keypoints[BodyJoint[f"{side}_HIP"]] = _point(*hip, visibility)
        keypoints[BodyJoint[f"{side}_KNEE"]] = _point(*knee, visibility)
        keypoints[BodyJoint[f"{side}_ANKLE"]] = _point(*ankle, visibility)
        keypoints[BodyJoint[f"{side}_SHOULDER"]] = _point(hip[0], hip[1] - 0.3, visibility)
        keypoints[BodyJoint[f"{side}_HEEL"]] = _point(x - 0.01, 0.9, visibility)
        keypoints[BodyJoint[f"{side}_FOOT_INDEX"]] = _point(x + 0.03, 0.91, visibility)
    for joint in drop:
        keypoints.pop(int(joint), None)
    return KeypointFrame({int(k): v for k, v in keypoints.items()}, timestamp_ms)


def make_pushup_frame(elbow_angle, timestamp_ms=0.0, visibility=0.9, plank=True, hip_drop=0.02):
    """
    Side view. In plank the body lies along the x axis with the arms hanging
    from the shoulders; otherwise the subject stands upright.
    """
    rad = math.radians(elbow_angle)
    keypoints = {}
    if plank:
        shoulder = (0.3, 0.5)
        hip = (0.6, 0.5 + hip_drop)
        ankle = (0.9, 0.55)
    else:
        shoulder = (0.5, 0.3)
        hip = (0.5, 0.55)
        ankle = (0.5, 0.9)
    elbow = (shoulder[0], shoulder[1] + 0.15)
    wrist = (elbow[0] + 0.15 * math.sin(rad), elbow[1] - 0.15 * math.cos(rad))
    for side in ("LEFT", "RIGHT"):
        keypoints[BodyJoint[f"{side}_SHOULDER"]] = _point(*shoulder, visibility)
        keypoints[BodyJoint[f"{side}_ELBOW"]] = _point(*elbow, visibility)
        keypoints[BodyJoint[f"{side}_WRIST"]] = _point(*wrist, visibility)
        keypoints[BodyJoint[f"{side}_HIP"]] = _point(*hip, visibility)
        keypoints[BodyJoint[f"{side}_ANKLE"]] = _point(*ankle, visibility)
    return KeypointFrame({int(k): v for k, v in keypoints.items()}, timestamp_ms)


def make_curl_frame(left_angle, right_angle, timestamp_ms=0.0, visibility=0.9):
    """Front view, upper arms hanging down, each elbow bent to its angle."""
    keypoints = {}
    for side, x, angle in (("LEFT", 0.4, left_angle), ("RIGHT", 0.6, right_angle)):
        rad = math.radians(angle)
        shoulder = (x, 0.3)
        elbow = (x, 0.5)
        wrist = (x + 0.18 * math.sin(rad), 0.5 - 0.18 * math.cos(rad))
        keypoints[BodyJoint[f"{side}_SHOULDER"]] = _point(*shoulder, visibility)
        keypoints[BodyJoint[f"{side}_ELBOW"]] = _point(*elbow, visibility)
        keypoints[BodyJoint[f"{side}_WRIST"]] = _point(*wrist, visibility)
    return KeypointFrame({int(k): v for k, v in keypoints.items()}, timestamp_ms)


def make_raise_frame(left_angle, right_angle, timestamp_ms=0.0, visibility=0.9):
    """Front view, each arm abducted ``angle`` degrees away from the torso."""
    keypoints = {}
    for side, x, direction, angle in (("LEFT", 0.4, -1.0, left_angle), ("RIGHT", 0.6, 1.0, right_angle)):
        rad = math.radians(angle)
        shoulder = (x, 0.3)
        hip = (x, 0.6)
        elbow = (x + direction * 0.2 * math.sin(rad), 0.3 + 0.2 * math.cos(rad))
        keypoints[BodyJoint[f"{side}_SHOULDER"]] = _point(*shoulder, visibility)
        keypoints[BodyJoint[f"{side}_HIP"]] = _point(*hip, visibility)
        keypoints[BodyJoint[f"{side}_ELBOW"]] = _point(*elbow, visibility)
    return KeypointFrame({int(k): v for k, v in keypoints.items()}, timestamp_ms)


@pytest.fixture
def squat_frame():
    return make_squat_frame


@pytest.fixture
def pushup_frame():
    return make_pushup_frame


@pytest.fixture
def curl_frame():
    return make_curl_frame


@pytest.fixture
def raise_frame():
    return make_raise_frame
