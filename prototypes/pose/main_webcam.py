import logging

import cv2

from services.rep_engine.core.BackendInterface import DetectorUnavailableError
from services.rep_engine.core.LandmarkStream import LandmarkStream
from services.rep_engine.core.config import load_thresholds
from services.rep_engine.session.ExerciseSession import ExerciseSession, FrameUpdate
from services.rep_engine.session.RoutineSequencer import RoutinePlan, RoutineSequencer
from services.rep_engine.session.SessionRecorder import SessionRecorder

logger = logging.getLogger(__name__)


def status_lines(update: FrameUpdate):
    lines = [f"{update.exercise}  reps: {update.rep_count}", update.feedback]
    if update.remaining is not None:
        lines.append(f"remaining: {update.remaining}")
    if update.advance is not None:
        lines.append("step done - press n" if not update.advance.routine_complete else "routine complete")
    return lines


def log_record(exercise: str, delta: int, timestamp_ms: float) -> None:
    logger.info("Saved %d %s at %.0f ms", delta, exercise, timestamp_ms)


def main(*, routine: str = "", config_path: str = None, camera: int = 0):
    from services.rep_engine.core.MediaPipePoseBackend import MediaPipePoseBackend

    config = load_thresholds(config_path) if config_path else None

    try:
        backend = MediaPipePoseBackend()
    except DetectorUnavailableError as exc:
        logger.warning("Cannot start session: %s", exc)
        return

    sequencer = RoutineSequencer(RoutinePlan.parse(routine))
    first = sequencer.current.exercise
    session = ExerciseSession.for_exercise(
        first,
        config,
        routine=sequencer,
        recorder=SessionRecorder(first, log_record),
    )
    session.start()

    stream = LandmarkStream(backend)
    latest = None

    try:
        for frame_rgb, frame in stream.frames(camera):
            update = session.process_frame(frame)
            if update.displayed:
                latest = update

            drawn_bgr = backend.draw(frame_rgb, list(frame))
            if latest is not None:
                backend.draw_status(drawn_bgr, status_lines(latest), latest.progress)

            cv2.imshow("Rep Engine - Webcam", drawn_bgr)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                session.reset()
                latest = None
            if key == ord("n") and session.pending_advance is not None:
                next_session = session.next_session(config)
                if next_session is None:
                    logger.info("Routine finished")
                    break
                session = next_session
                session.start()
                latest = None
    except ValueError as exc:
        logger.warning("%s", exc)
    finally:
        session.stop()
        backend.close()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    main()
