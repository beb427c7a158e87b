import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import EngineConfig
from services.rep_engine.core.smoothing import UiThrottle
from services.rep_engine.exercises.ExerciseDetector import ExerciseDetector, RepQuality
from services.rep_engine.exercises.registry import create_detector
from services.rep_engine.session.RepCounter import RepCounter
from services.rep_engine.session.RoutineSequencer import AdvanceEvent, RoutineSequencer
from services.rep_engine.session.SessionRecorder import SessionRecorder

logger = logging.getLogger(__name__)


@dataclass
class FrameUpdate:
    """Everything the UI and routine collaborators need after one frame."""

    exercise: str
    state: Enum
    feedback: str
    rep_count: int
    timestamp_ms: float
    progress: Optional[float] = None
    quality: Optional[RepQuality] = None
    rep_counted: bool = False
    feedback_params: Dict[str, Any] = field(default_factory=dict)
    angles: Dict[str, float] = field(default_factory=dict)
    last_arm: Optional[str] = None
    arm_states: Dict[str, Enum] = field(default_factory=dict)
    remaining: Optional[int] = None
    displayed: bool = False
    advance: Optional[AdvanceEvent] = None


class ExerciseSession:
    """
    Owns one exercise instance: detector, rep counter, UI throttle and the
    optional routine step and recorder.

    Every frame runs gate -> angle -> transition -> debounce -> routine check
    to completion. The UI throttle only decides which updates become the
    ``display`` snapshot; counting never skips a frame.
    """

    def __init__(
        self,
        detector: ExerciseDetector,
        routine: Optional[RoutineSequencer] = None,
        recorder: Optional[SessionRecorder] = None,
        ui_interval_ms: Optional[float] = None,
    ):
        if routine is not None and routine.current is not None and routine.current.exercise != detector.name:
            raise ValueError(
                f"Routine step expects '{routine.current.exercise}', detector is '{detector.name}'"
            )
        self.detector = detector
        self.routine = routine
        self.recorder = recorder
        self.counter = RepCounter(detector.debounce_ms)
        self.throttle = UiThrottle(detector.ui_interval_ms if ui_interval_ms is None else ui_interval_ms)

        self.display: Optional[FrameUpdate] = None
        self.last_quality: Optional[RepQuality] = None
        self.last_arm: Optional[str] = None
        self.pending_advance: Optional[AdvanceEvent] = None
        self.active = False

        self._last_timestamp_ms = 0.0
        self._update_listeners: List[Callable[[FrameUpdate], None]] = []
        self._advance_listeners: List[Callable[[AdvanceEvent], None]] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @classmethod
    def for_exercise(
        cls,
        exercise: str,
        config: Optional[EngineConfig] = None,
        **kwargs,
    ) -> "ExerciseSession":
        return cls(create_detector(exercise, config), **kwargs)

    @property
    def exercise(self) -> str:
        return self.detector.name

    @property
    def rep_count(self) -> int:
        return self.counter.count

    # --- Lifecycle ---

    def start(self) -> None:
        if not self.active:
            self.active = True
            logger.info("Session started: %s", self.exercise)

    def stop(self) -> None:
        self.detach()
        if self.recorder is not None:
            self.recorder.flush(self._last_timestamp_ms)
        if self.active:
            self.active = False
            logger.info("Session stopped: %s with %d reps", self.exercise, self.rep_count)

    def attach(self, stream) -> None:
        """Subscribe to a LandmarkStream and start processing its frames."""
        self.detach()
        self._unsubscribe = stream.subscribe(self.process_frame)
        self.start()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_update(self, listener: Callable[[FrameUpdate], None]) -> None:
        self._update_listeners.append(listener)

    def on_advance(self, listener: Callable[[AdvanceEvent], None]) -> None:
        self._advance_listeners.append(listener)

    # --- Per-frame pass ---

    def process_frame(self, frame: KeypointFrame) -> FrameUpdate:
        now_ms = frame.timestamp_ms
        self._last_timestamp_ms = now_ms

        result = self.detector.evaluate(frame)

        rep_counted = False
        if result.rep_completed:
            if self.counter.offer(now_ms):
                rep_counted = True
                self.detector.on_rep_accepted(result)
                self.last_quality = result.quality
                if result.arm is not None:
                    self.last_arm = result.arm
                logger.info(
                    "%s rep %d%s",
                    self.exercise,
                    self.counter.count,
                    f" ({result.quality.value})" if result.quality is not None else "",
                )
            else:
                self.detector.on_rep_rejected(result)

        show_progress = rep_counted or self.detector.shows_progress(result.state)

        if self.recorder is not None:
            self.recorder.observe(self.counter.count, now_ms)
            self.recorder.poll(now_ms)

        advance = None
        remaining = None
        if self.routine is not None:
            advance = self.routine.check(self.counter.count)
            remaining = self.routine.remaining(self.counter.count)

        update = FrameUpdate(
            exercise=self.exercise,
            state=result.state,
            feedback=result.feedback,
            rep_count=self.counter.count,
            timestamp_ms=now_ms,
            progress=result.progress if show_progress else None,
            quality=self.last_quality,
            rep_counted=rep_counted,
            feedback_params=result.feedback_params,
            angles=result.angles,
            last_arm=self.last_arm,
            arm_states=result.arm_states,
            remaining=remaining,
            advance=advance,
        )

        # A counted rep or a routine advance is always shown
        if self.throttle.ready(now_ms) or rep_counted or advance is not None:
            update.displayed = True
            self.display = update

        for listener in self._update_listeners:
            listener(update)
        if advance is not None:
            self.pending_advance = advance
            for listener in self._advance_listeners:
                listener(advance)

        return update

    def reset(self) -> None:
        """Explicit user reset of the counter and state machine."""
        self.counter.reset()
        self.detector.reset()
        self.throttle.reset()
        self.display = None
        self.last_quality = None
        self.last_arm = None
        if self.recorder is not None:
            # Reps done before the reset still count towards history
            self.recorder.flush(self._last_timestamp_ms)
            self.recorder.observe(0, self._last_timestamp_ms)
        logger.info("Session reset: %s", self.exercise)

    def next_session(self, config: Optional[EngineConfig] = None) -> Optional["ExerciseSession"]:
        """
        Stop this session and build the one for the next routine step.

        Returns None when there is no routine, the step has not been
        completed yet, or the routine is finished.
        """
        if self.routine is None or self.pending_advance is None:
            return None

        self.stop()
        step = self.routine.advance()
        if step is None:
            return None

        recorder = None
        if self.recorder is not None:
            recorder = SessionRecorder(step.exercise, self.recorder.sink, self.recorder.flush_after_ms)

        session = ExerciseSession(create_detector(step.exercise, config), routine=self.routine, recorder=recorder)
        session._update_listeners = list(self._update_listeners)
        session._advance_listeners = list(self._advance_listeners)
        return session
