import logging
from typing import Callable, Iterator, List, Tuple, Union

import numpy as np

from services.rep_engine.core.BackendInterface import KeypointFrame, PoseBackend

logger = logging.getLogger(__name__)

FrameListener = Callable[[KeypointFrame], object]
VideoSource = Union[str, int]


class LandmarkStream:
    """
    Push-style source of keypoint frames.

    Listeners registered with ``subscribe`` receive every frame in order, one
    at a time. ``run`` drives the stream from a video file or camera through
    the pose backend; tests and bridges can call ``publish`` directly.
    """

    def __init__(self, backend: PoseBackend, extractor=None):
        self.backend = backend
        if extractor is None:
            from services.rep_engine.core.VideoFrameExtractor import VideoFrameExtractor

            extractor = VideoFrameExtractor()
        self.frame_extractor = extractor
        self._listeners: List[FrameListener] = []

    def subscribe(self, listener: FrameListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, frame: KeypointFrame) -> None:
        # copy: a listener may unsubscribe while being notified
        for listener in list(self._listeners):
            listener(frame)

    def frames(self, source: VideoSource) -> Iterator[Tuple[np.ndarray, KeypointFrame]]:
        """Yield (frame_rgb, keypoint_frame) without notifying listeners."""
        for frame_rgb, _frame_idx, timestamp_ms in self.frame_extractor.iter_frames(source):
            keypoints = self.backend.process(frame_rgb)
            yield frame_rgb, KeypointFrame.from_landmarks(keypoints, timestamp_ms)

    def run(self, source: VideoSource) -> int:
        """Publish every frame of ``source``; returns the number of frames published."""
        published = 0
        for _frame_rgb, frame in self.frames(source):
            self.publish(frame)
            published += 1
        logger.info("Stream finished after %d frames", published)
        return published
