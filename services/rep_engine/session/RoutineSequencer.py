import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from services.rep_engine.exercises.registry import (
    HAMMER_CURLS,
    LATERAL_RAISES,
    PUSHUPS,
    SQUATS,
    is_exercise,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUTINE_SEQUENCE = [SQUATS, PUSHUPS, HAMMER_CURLS, LATERAL_RAISES]
DEFAULT_ROUTINE_TARGET = 10


@dataclass(frozen=True)
class RoutineStep:
    exercise: str
    target: int
    next_exercise: Optional[str] = None


@dataclass(frozen=True)
class AdvanceEvent:
    """Fired once when the active step reaches its target."""

    completed_exercise: str
    count: int
    target: int
    step_index: int
    next_exercise: Optional[str] = None
    next_target: Optional[int] = None

    @property
    def routine_complete(self) -> bool:
        return self.next_exercise is None


class RoutinePlan:
    """Ordered (exercise, target) steps."""

    def __init__(self, steps: List[RoutineStep]):
        if not steps:
            raise ValueError("A routine needs at least one step")
        self.steps = steps

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> RoutineStep:
        return self.steps[index]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, int]]) -> "RoutinePlan":
        pairs = list(pairs)
        for exercise, target in pairs:
            if not is_exercise(exercise):
                raise ValueError(f"Unknown exercise in routine: {exercise}")
            if int(target) <= 0:
                raise ValueError(f"Target for {exercise} must be positive, got {target}")

        steps = []
        for i, (exercise, target) in enumerate(pairs):
            next_exercise = pairs[i + 1][0] if i + 1 < len(pairs) else None
            steps.append(RoutineStep(exercise, int(target), next_exercise))
        return cls(steps)

    @classmethod
    def default(cls, target: int = DEFAULT_ROUTINE_TARGET) -> "RoutinePlan":
        return cls.from_pairs((exercise, target) for exercise in DEFAULT_ROUTINE_SEQUENCE)

    @classmethod
    def parse(cls, raw: Optional[str], default_target: int = DEFAULT_ROUTINE_TARGET) -> "RoutinePlan":
        """
        Parse ``"squats:12,pushups:8,hammer_curls"``.

        Entries with an unknown exercise or a non-positive target are
        skipped; an entry without a target uses ``default_target``. An empty
        or fully invalid string yields the default routine.
        """
        pairs: List[Tuple[str, int]] = []
        for entry in (raw or "").split(","):
            entry = entry.strip()
            if not entry:
                continue
            key, _, value = entry.partition(":")
            key = key.strip()
            if not is_exercise(key):
                logger.warning("Skipping unknown routine exercise '%s'", key)
                continue
            if not value.strip():
                pairs.append((key, default_target))
                continue
            try:
                target = int(float(value))
            except (ValueError, OverflowError):
                logger.warning("Skipping routine entry '%s': bad target", entry)
                continue
            if target <= 0:
                logger.warning("Skipping routine entry '%s': target must be positive", entry)
                continue
            pairs.append((key, target))

        if not pairs:
            return cls.default(default_target)
        return cls.from_pairs(pairs)

    def serialize(self) -> str:
        return ",".join(f"{step.exercise}:{step.target}" for step in self.steps)


class RoutineSequencer:
    """
    Tracks the active routine step and fires the advance event once.

    ``check`` is consulted every frame with the running rep count. The first
    time the count reaches the target an ``AdvanceEvent`` is returned; the
    latch then stays closed until ``advance()`` moves to the next step.
    """

    def __init__(self, plan: RoutinePlan, step_index: int = 0):
        if not 0 <= step_index < len(plan):
            raise ValueError(f"step_index {step_index} out of range for a {len(plan)}-step routine")
        self.plan = plan
        self.step_index = step_index
        self.completed: List[AdvanceEvent] = []
        self._advanced = False
        self._finished = False

    @property
    def current(self) -> Optional[RoutineStep]:
        return None if self._finished else self.plan[self.step_index]

    @property
    def is_complete(self) -> bool:
        return self._finished

    def remaining(self, count: int) -> Optional[int]:
        step = self.current
        return None if step is None else max(step.target - count, 0)

    def check(self, count: int) -> Optional[AdvanceEvent]:
        step = self.current
        if step is None or self._advanced or count < step.target:
            return None

        self._advanced = True
        next_target = self.plan[self.step_index + 1].target if step.next_exercise is not None else None
        event = AdvanceEvent(
            completed_exercise=step.exercise,
            count=count,
            target=step.target,
            step_index=self.step_index,
            next_exercise=step.next_exercise,
            next_target=next_target,
        )
        self.completed.append(event)

        if event.routine_complete:
            logger.info("Routine complete after %s (%d/%d)", step.exercise, count, step.target)
        else:
            logger.info(
                "Step %d done: %s %d/%d, next %s x%d",
                self.step_index, step.exercise, count, step.target, event.next_exercise, next_target,
            )
        return event

    def advance(self) -> Optional[RoutineStep]:
        """Move to the next step (re-arming the latch); None once the routine is over."""
        if self._finished:
            return None
        if self.step_index + 1 >= len(self.plan):
            self._finished = True
            return None
        self.step_index += 1
        self._advanced = False
        return self.plan[self.step_index]
