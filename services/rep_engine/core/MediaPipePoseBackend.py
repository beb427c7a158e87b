import logging
from typing import List, Optional

import cv2
import mediapipe as mp
import numpy as np

from services.rep_engine.core.BackendInterface import DetectorUnavailableError, Keypoint, PoseBackend

logger = logging.getLogger(__name__)


class MediaPipePoseBackend(PoseBackend):
    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        try:
            self._mp_pose = mp.solutions.pose
            self._mp_drawing = mp.solutions.drawing_utils
            from mediapipe.framework.formats import landmark_pb2

            self._landmark_pb2 = landmark_pb2
            self._pose = self._mp_pose.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                enable_segmentation=False,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except (AttributeError, ImportError, RuntimeError, OSError) as exc:
            raise DetectorUnavailableError(f"MediaPipe pose detector unavailable: {exc}") from exc
        logger.info("MediaPipe pose backend ready (complexity=%d)", model_complexity)

    def process(self, frame_rgb: np.ndarray) -> List[Keypoint]:
        results = self._pose.process(frame_rgb)
        keypoints: List[Keypoint] = []

        if getattr(results, "pose_landmarks", None):
            for lm in results.pose_landmarks.landmark:
                keypoints.append(
                    Keypoint(
                        x=lm.x,
                        y=lm.y,
                        z=lm.z,
                        visibility=lm.visibility,
                        presence=getattr(lm, "presence", 1.0) or 1.0,
                    )
                )

        return keypoints

    def close(self) -> None:
        self._pose.close()

    @staticmethod
    def draw_status(
        frame_bgr: np.ndarray,
        lines: List[str],
        progress: Optional[float] = None,
        color=(0, 255, 255),
    ) -> np.ndarray:
        """Overlay rep-engine status text and an optional progress bar."""
        y = 40
        for text in lines:
            cv2.putText(frame_bgr, text, (30, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2, cv2.LINE_AA)
            y += 36

        if progress is not None:
            h, w = frame_bgr.shape[:2]
            bar_w = int((w - 60) * float(np.clip(progress, 0.0, 100.0)) / 100.0)
            cv2.rectangle(frame_bgr, (30, h - 40), (w - 30, h - 20), (80, 80, 80), -1)
            if bar_w > 0:
                cv2.rectangle(frame_bgr, (30, h - 40), (30 + bar_w, h - 20), (0, 220, 0), -1)
        return frame_bgr

    def draw(self, frame_rgb: np.ndarray, keypoints: List[Keypoint]) -> np.ndarray:
        frame_bgr = cv2.cvtColor(frame_rgb, cv2.COLOR_RGB2BGR)
        if not keypoints:
            return frame_bgr

        # --- Convert keypoints to Mediapipe protobuf ---
        lm_list = self._landmark_pb2.NormalizedLandmarkList(
            landmark=[
                self._landmark_pb2.NormalizedLandmark(
                    x=kp.x,
                    y=kp.y,
                    z=kp.z,
                    visibility=kp.visibility,
                )
                for kp in keypoints
            ]
        )

        self._mp_drawing.draw_landmarks(
            frame_bgr,
            lm_list,
            self._mp_pose.POSE_CONNECTIONS,
            self._mp_drawing.DrawingSpec(color=(0, 255, 0), thickness=2, circle_radius=2),
            self._mp_drawing.DrawingSpec(color=(255, 0, 0), thickness=2, circle_radius=2),
        )
        return frame_bgr
