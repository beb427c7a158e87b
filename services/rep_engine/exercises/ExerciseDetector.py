import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from services.rep_engine.core.BackendInterface import KeypointFrame
from services.rep_engine.core.config import PhaseThresholds
from services.rep_engine.core.gating import GateResult, GateStatus, check_keypoints
from services.rep_engine.core.joints import BodyJoint
from services.rep_engine.core.smoothing import ExponentialSmoother

logger = logging.getLogger(__name__)


class PhaseState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    DESCENDING = "descending"
    BOTTOM = "bottom"
    ASCENDING = "ascending"


class RepQuality(str, Enum):
    PERFECT = "perfect"
    GOOD = "good"
    INCOMPLETE = "incomplete"


@dataclass
class TransitionResult:
    """Output of one state-machine step."""

    state: Enum
    feedback: str
    progress: Optional[float] = None
    rep_completed: bool = False
    quality: Optional[RepQuality] = None
    feedback_params: Dict[str, Any] = field(default_factory=dict)
    # Measured angles for this frame, e.g. {"knee": 141.2}
    angles: Dict[str, float] = field(default_factory=dict)
    # Limb credited by a dual-arm detector
    arm: Optional[str] = None
    # Per-limb sub-states of a dual-arm detector, e.g. {"left": "top"}
    arm_states: Dict[str, Enum] = field(default_factory=dict)


class PhaseFeedback(NamedTuple):
    """Message keys emitted by the phase state machine."""

    ready: str
    not_ready: str
    going_down: str
    reached_bottom: str
    too_shallow: str
    keep_going: str
    push: str
    hold_bottom: str
    excellent: str
    keep_pushing: str
    almost: str
    no_body: str

    @classmethod
    def for_namespace(cls, namespace: str, **overrides: str) -> "PhaseFeedback":
        defaults = {
            "ready": "ready",
            "not_ready": "standStraight",
            "going_down": "goingDown",
            "reached_bottom": "perfectDepth",
            "too_shallow": "goDeeper",
            "keep_going": "keepGoing",
            "push": "push",
            "hold_bottom": "goodPush",
            "excellent": "excellent",
            "keep_pushing": "keepPushing",
            "almost": "almost",
            "no_body": "noBody",
        }
        defaults.update(overrides)
        return cls(**{k: f"{namespace}.feedback.{v}" for k, v in defaults.items()})


def _reached_bottom(th: PhaseThresholds, angle: float) -> bool:
    return angle <= th.bottom if th.bottom_inclusive else angle < th.bottom


def phase_transition(
    th: PhaseThresholds,
    state: PhaseState,
    angle: float,
    visible: bool,
    feedback: PhaseFeedback,
    allow_bottom_start: bool = False,
) -> TransitionResult:
    """
    Pure ready -> descending -> bottom -> ascending -> ready step.

    A rep completes exactly on ascending -> ready. Any invisible frame forces
    idle. ``allow_bottom_start`` lets idle jump straight to bottom when the
    subject is first confirmed already in the low position.
    """
    params = {"angle": round(angle)}

    if not visible:
        return TransitionResult(PhaseState.IDLE, feedback.no_body)

    if state is PhaseState.IDLE:
        if angle > th.ready:
            return TransitionResult(PhaseState.READY, feedback.ready)
        if allow_bottom_start and _reached_bottom(th, angle):
            return TransitionResult(PhaseState.BOTTOM, feedback.hold_bottom, progress=50.0)
        return TransitionResult(PhaseState.IDLE, feedback.not_ready, feedback_params=params)

    if state is PhaseState.READY:
        if angle < th.start_descent:
            return TransitionResult(PhaseState.DESCENDING, feedback.going_down, progress=10.0)
        return TransitionResult(PhaseState.READY, feedback.ready)

    if state is PhaseState.DESCENDING:
        if _reached_bottom(th, angle):
            return TransitionResult(PhaseState.BOTTOM, feedback.reached_bottom, progress=50.0)
        if angle > th.ready:
            return TransitionResult(PhaseState.READY, feedback.too_shallow)
        progress = min(50.0, (th.ready - angle) / (th.ready - th.bottom) * 50.0)
        return TransitionResult(
            PhaseState.DESCENDING, feedback.keep_going, progress=max(progress, 0.0), feedback_params=params
        )

    if state is PhaseState.BOTTOM:
        if angle > th.ascend_trigger:
            return TransitionResult(PhaseState.ASCENDING, feedback.push, progress=60.0)
        return TransitionResult(PhaseState.BOTTOM, feedback.hold_bottom, progress=50.0)

    if state is PhaseState.ASCENDING:
        if angle > th.complete:
            return TransitionResult(
                PhaseState.READY,
                feedback.excellent,
                progress=100.0,
                rep_completed=True,
                quality=RepQuality.PERFECT,
            )
        if _reached_bottom(th, angle):
            return TransitionResult(PhaseState.BOTTOM, feedback.keep_pushing, progress=50.0)
        progress = 50.0 + min(50.0, (angle - th.bottom) / (th.complete - th.bottom) * 50.0)
        return TransitionResult(PhaseState.ASCENDING, feedback.almost, progress=progress, feedback_params=params)

    raise ValueError(f"Unknown phase state: {state!r}")


def grade_rep(th: PhaseThresholds, deepest_angle: Optional[float]) -> RepQuality:
    """Grade a completed rep by the deepest angle reached during it."""
    if deepest_angle is None or deepest_angle <= th.depth_for_perfect:
        return RepQuality.PERFECT
    return RepQuality.GOOD


class ExerciseDetector(ABC):
    """
    Base class for a per-exercise state machine.

    ``evaluate`` is called once per keypoint frame and advances ``state``.
    Whether a completed rep is actually counted is decided by the rep
    counter, which reports back through ``on_rep_accepted`` /
    ``on_rep_rejected``.
    """

    name: str = ""
    idle_state: Enum = PhaseState.IDLE
    # Per-exercise feedback suffixes for failed gates, e.g. {NOT_IN_FRAME: "showArms"}
    gate_feedback: Dict[GateStatus, str] = {}

    def __init__(self, min_visibility: float, debounce_ms: float, ui_interval_ms: float):
        self.min_visibility = min_visibility
        self.debounce_ms = debounce_ms
        self.ui_interval_ms = ui_interval_ms
        self.state: Enum = self.idle_state

    @property
    @abstractmethod
    def required_joints(self) -> List[BodyJoint]:
        ...

    @abstractmethod
    def evaluate(self, frame: KeypointFrame) -> TransitionResult:
        ...

    def gate(self, frame: KeypointFrame) -> GateResult:
        return check_keypoints(frame, self.required_joints, self.min_visibility)

    def idle_result(self, gate: GateResult) -> TransitionResult:
        """Safety reset used whenever gating fails."""
        if self.state is not self.idle_state:
            logger.debug("%s: %s -> idle (%s)", self.name, self.state.value, gate.status.value)
        self.state = self.idle_state
        return TransitionResult(self.idle_state, gate.feedback_key(self.name, self.gate_feedback))

    def shows_progress(self, state: Enum) -> bool:
        return True

    def on_rep_accepted(self, result: TransitionResult) -> None:
        pass

    def on_rep_rejected(self, result: TransitionResult) -> None:
        pass

    def reset(self) -> None:
        self.state = self.idle_state


class PhaseDetector(ExerciseDetector):
    """Shared driver for single-measurement exercises (squat, push-up)."""

    allow_bottom_start = False

    def __init__(self, thresholds: PhaseThresholds, feedback: PhaseFeedback):
        super().__init__(thresholds.min_visibility, thresholds.debounce_ms, thresholds.ui_interval_ms)
        self.thresholds = thresholds
        self.feedback = feedback
        self._smoother = (
            ExponentialSmoother(thresholds.smoothing_alpha) if thresholds.smoothing_alpha is not None else None
        )
        self._deepest: Optional[float] = None

    @property
    @abstractmethod
    def angle_name(self) -> str:
        ...

    @abstractmethod
    def measure(self, frame: KeypointFrame) -> float:
        """Raw joint angle for a frame that passed gating."""
        ...

    def check_position(self, frame: KeypointFrame) -> Optional[str]:
        """Return a feedback key if the body is not in a usable posture."""
        return None

    def smooth(self, angle: float) -> float:
        return self._smoother.update(angle) if self._smoother is not None else angle

    def step(self, angle: float) -> TransitionResult:
        """Advance the state machine with an already measured angle."""
        previous = self.state
        result = phase_transition(
            self.thresholds,
            previous,
            angle,
            True,
            self.feedback,
            allow_bottom_start=self.allow_bottom_start,
        )

        if result.state in (PhaseState.DESCENDING, PhaseState.BOTTOM, PhaseState.ASCENDING):
            self._deepest = angle if self._deepest is None else min(self._deepest, angle)
        if result.rep_completed:
            result.quality = grade_rep(self.thresholds, self._deepest)
        if result.state in (PhaseState.READY, PhaseState.IDLE):
            self._deepest = None

        if result.state is not previous:
            logger.debug("%s: %s -> %s at %.1f deg", self.name, previous.value, result.state.value, angle)
        self.state = result.state
        return result

    def evaluate(self, frame: KeypointFrame) -> TransitionResult:
        gate = self.gate(frame)
        if not gate.ok:
            self._clear_history()
            return self.idle_result(gate)

        raw_angle = self.measure(frame)

        # Out-of-posture angles must not leak into the smoothed signal
        posture_feedback = self.check_position(frame)
        if posture_feedback is not None:
            self.state = self.idle_state
            self._clear_history()
            return TransitionResult(self.idle_state, posture_feedback, angles={self.angle_name: raw_angle})

        angle = self.smooth(raw_angle)
        result = self.step(angle)
        result.angles[self.angle_name] = angle
        return result

    def shows_progress(self, state: Enum) -> bool:
        return state in (PhaseState.DESCENDING, PhaseState.BOTTOM, PhaseState.ASCENDING)

    def _clear_history(self) -> None:
        self._deepest = None
        if self._smoother is not None:
            self._smoother.reset()

    def reset(self) -> None:
        super().reset()
        self._clear_history()
