from typing import Callable, Dict, List, Optional

from services.rep_engine.core.config import EngineConfig
from services.rep_engine.exercises.ExerciseDetector import ExerciseDetector
from services.rep_engine.exercises.HammerCurlDetector import HammerCurlDetector
from services.rep_engine.exercises.LateralRaiseDetector import LateralRaiseDetector
from services.rep_engine.exercises.PushUpDetector import PushUpDetector
from services.rep_engine.exercises.SquatDetector import SquatDetector

SQUATS = "squats"
PUSHUPS = "pushups"
HAMMER_CURLS = "hammer_curls"
LATERAL_RAISES = "lateral_raises"

EXERCISE_KEYS: List[str] = [SQUATS, PUSHUPS, HAMMER_CURLS, LATERAL_RAISES]

_FACTORIES: Dict[str, Callable[[EngineConfig], ExerciseDetector]] = {
    SQUATS: lambda cfg: SquatDetector(cfg.squats),
    PUSHUPS: lambda cfg: PushUpDetector(cfg.pushups, cfg.pushup_posture),
    HAMMER_CURLS: lambda cfg: HammerCurlDetector(cfg.hammer_curls),
    LATERAL_RAISES: lambda cfg: LateralRaiseDetector(cfg.lateral_raises),
}


def is_exercise(key: Optional[str]) -> bool:
    return isinstance(key, str) and key in _FACTORIES


def create_detector(exercise: str, config: Optional[EngineConfig] = None) -> ExerciseDetector:
    """Build a fresh detector for ``exercise`` using ``config`` thresholds."""
    if not is_exercise(exercise):
        raise ValueError(f"Unknown exercise: {exercise}. Expected one of {EXERCISE_KEYS}")
    return _FACTORIES[exercise](config or EngineConfig())
