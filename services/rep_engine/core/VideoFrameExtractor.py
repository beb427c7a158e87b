import time
from typing import Iterator, Optional, Tuple, Union

import cv2
import numpy as np

VideoSource = Union[str, int]


class VideoFrameExtractor:
    def __init__(self, target_fps: Optional[int] = None, resize_to=None, max_frames=None):
        """
        target_fps: sampling fps for recorded videos (None keeps every frame)
        resize_to: (width, height) or None to keep original size
        max_frames: optional cap on number of frames to yield
        """
        self.target_fps = target_fps
        self.resize_to = resize_to
        self.max_frames = max_frames

    def iter_frames(self, source: VideoSource) -> Iterator[Tuple[np.ndarray, int, float]]:
        """
        Yield (frame_rgb, frame_idx, timestamp_ms).

        ``source`` is a video path or a camera index. Recorded videos are
        timestamped from their fps metadata; live cameras from a monotonic
        clock.
        """
        cap = cv2.VideoCapture(source)
        if not cap.isOpened():
            raise ValueError(f"Cannot open video source: {source}")

        live = isinstance(source, int)
        orig_fps = cap.get(cv2.CAP_PROP_FPS)
        if orig_fps <= 0:
            # fallback if metadata is broken
            orig_fps = self.target_fps or 30.0

        frame_step = 1
        if not live and self.target_fps:
            frame_step = max(1, round(orig_fps / self.target_fps))

        frame_idx = 0
        yielded = 0
        start = time.monotonic()

        try:
            while True:
                ret, frame_bgr = cap.read()
                if not ret:
                    break

                if frame_idx % frame_step != 0:
                    frame_idx += 1
                    continue

                if self.resize_to is not None:
                    w, h = self.resize_to
                    frame_bgr = cv2.resize(frame_bgr, (w, h))

                # convert BGR -> RGB for mediapipe
                frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

                if live:
                    timestamp_ms = (time.monotonic() - start) * 1000.0
                else:
                    timestamp_ms = frame_idx / orig_fps * 1000.0
                yield frame_rgb, frame_idx, timestamp_ms

                yielded += 1
                frame_idx += 1

                if self.max_frames is not None and yielded >= self.max_frames:
                    break
        finally:
            cap.release()
