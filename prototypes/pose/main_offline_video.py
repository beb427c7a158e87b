import logging
from collections import Counter

import cv2

from services.rep_engine.core.BackendInterface import DetectorUnavailableError
from services.rep_engine.core.LandmarkStream import LandmarkStream
from services.rep_engine.core.VideoFrameExtractor import VideoFrameExtractor
from services.rep_engine.exercises.registry import SQUATS
from services.rep_engine.session.ExerciseSession import ExerciseSession

logger = logging.getLogger(__name__)


def main(*, exercise: str = SQUATS, video_path: str = "prototypes/test-videos/squats.mp4", output_dir: str = None):
    from services.rep_engine.core.MediaPipePoseBackend import MediaPipePoseBackend

    try:
        backend = MediaPipePoseBackend()
    except DetectorUnavailableError as exc:
        logger.warning("Cannot process video: %s", exc)
        return

    session = ExerciseSession.for_exercise(exercise)
    stream = LandmarkStream(backend, VideoFrameExtractor(target_fps=15))

    qualities = Counter()
    frames = 0
    with_keypoints = 0

    def on_update(update):
        if update.rep_counted and update.quality is not None:
            qualities[update.quality.value] += 1

    session.on_update(on_update)

    if output_dir is None:
        session.attach(stream)
        frames = stream.run(video_path)
        session.stop()
    else:
        import os

        os.makedirs(output_dir, exist_ok=True)
        session.start()
        for frame_rgb, frame in stream.frames(video_path):
            frames += 1
            update = session.process_frame(frame)
            if frame.is_empty:
                continue
            with_keypoints += 1
            drawn_bgr = backend.draw(frame_rgb, list(frame))
            backend.draw_status(drawn_bgr, [f"reps: {update.rep_count}", update.feedback], update.progress)
            # Save frame with pose drawn
            cv2.imwrite(f"{output_dir}/frame_{frames:04d}.jpg", drawn_bgr)
        session.stop()
        logger.info("Frames with keypoints: %d / %d", with_keypoints, frames)

    backend.close()

    logger.info("Processed %d frames", frames)
    logger.info("Total %s reps detected: %d %s", exercise, session.rep_count, dict(qualities))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    main()
