"""
Threshold records for every exercise detector.

Each record is immutable and injected into its detector. Values are tuning
parameters, not protocol constants: override them per deployment with a YAML
file, e.g.::

    squats:
      bottom: 125
      debounce_ms: 1000
    lateral_raises:
      up: 75
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseThresholds:
    """Angles (degrees) for a ready/descending/bottom/ascending exercise."""

    ready: float
    start_descent: float
    bottom: float
    ascend_trigger: float
    complete: float
    min_visibility: float
    debounce_ms: float
    ui_interval_ms: float = 140.0
    # "<=" reaches bottom when True, "<" otherwise
    bottom_inclusive: bool = True
    smoothing_alpha: Optional[float] = None
    # Deepest angle that still grades a rep "perfect"; None means the bottom threshold
    perfect_depth: Optional[float] = None

    def __post_init__(self):
        if not self.bottom < self.start_descent <= self.ready:
            raise ValueError(
                f"Expected bottom < start_descent <= ready, got "
                f"{self.bottom} / {self.start_descent} / {self.ready}"
            )
        if not self.bottom < self.ascend_trigger < self.complete:
            raise ValueError(
                f"Expected bottom < ascend_trigger < complete, got "
                f"{self.bottom} / {self.ascend_trigger} / {self.complete}"
            )
        if not 0.0 <= self.min_visibility < 1.0:
            raise ValueError(f"min_visibility must be in [0, 1), got {self.min_visibility}")
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")

    @property
    def depth_for_perfect(self) -> float:
        return self.bottom if self.perfect_depth is None else self.perfect_depth


@dataclass(frozen=True)
class PushUpPostureLimits:
    """Coarse plank check; all distances are in normalized frame units."""

    hip_shoulder_max_delta: float = 0.48
    level_delta: float = 0.2
    max_torso_angle: float = 35.0
    max_frame_height: float = 0.6
    max_height_width_ratio: float = 0.9
    bottom_hold_ms: float = 80.0
    # Arms whose mean visibility differ by less than this are averaged
    visibility_epsilon: float = 0.1


@dataclass(frozen=True)
class HammerCurlThresholds:
    extended: float = 155.0
    top: float = 60.0
    other_arm_margin: float = 10.0
    min_visibility: float = 0.55
    debounce_ms: float = 650.0
    ui_interval_ms: float = 140.0

    def __post_init__(self):
        if not self.top < self.extended - self.other_arm_margin:
            raise ValueError(
                f"Curl top ({self.top}) must sit below extended - margin "
                f"({self.extended - self.other_arm_margin})"
            )


@dataclass(frozen=True)
class LateralRaiseThresholds:
    up: float = 72.0
    up_release: float = 64.0
    down: float = 32.0
    down_reset: float = 38.0
    both_up_margin: float = 6.0
    min_visibility: float = 0.55
    debounce_ms: float = 850.0
    ui_interval_ms: float = 120.0

    def __post_init__(self):
        if not self.down < self.down_reset < self.up_release < self.up:
            raise ValueError(
                f"Expected down < down_reset < up_release < up, got "
                f"{self.down} / {self.down_reset} / {self.up_release} / {self.up}"
            )


SQUAT_THRESHOLDS = PhaseThresholds(
    ready=150.0,
    start_descent=145.0,
    bottom=130.0,
    ascend_trigger=140.0,
    complete=150.0,
    min_visibility=0.55,
    debounce_ms=900.0,
    ui_interval_ms=140.0,
    bottom_inclusive=True,
)

PUSHUP_THRESHOLDS = PhaseThresholds(
    ready=136.0,
    start_descent=132.0,
    bottom=108.0,
    ascend_trigger=118.0,
    complete=138.0,
    min_visibility=0.45,
    debounce_ms=1200.0,
    ui_interval_ms=140.0,
    bottom_inclusive=False,
    smoothing_alpha=0.28,
)


@dataclass(frozen=True)
class EngineConfig:
    squats: PhaseThresholds = SQUAT_THRESHOLDS
    pushups: PhaseThresholds = PUSHUP_THRESHOLDS
    pushup_posture: PushUpPostureLimits = field(default_factory=PushUpPostureLimits)
    hammer_curls: HammerCurlThresholds = field(default_factory=HammerCurlThresholds)
    lateral_raises: LateralRaiseThresholds = field(default_factory=LateralRaiseThresholds)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load a raw YAML mapping (empty file -> empty dict)."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Threshold config not found at {config_path}")
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    return config or {}


def apply_overrides(base: EngineConfig, overrides: Dict[str, Any]) -> EngineConfig:
    """Return ``base`` with the per-section field overrides applied."""
    sections = {f.name for f in dataclasses.fields(EngineConfig)}
    updated = {}
    for section, values in overrides.items():
        if section not in sections:
            raise ValueError(f"Unknown config section '{section}'. Expected one of {sorted(sections)}")
        if not isinstance(values, dict):
            raise ValueError(f"Section '{section}' must be a mapping, got {type(values).__name__}")

        record = getattr(base, section)
        known = {f.name for f in dataclasses.fields(record)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown fields for '{section}': {sorted(unknown)}")
        updated[section] = dataclasses.replace(record, **values)
        logger.debug("Overrode %s: %s", section, values)

    return dataclasses.replace(base, **updated)


def load_thresholds(config_path: str, base: Optional[EngineConfig] = None) -> EngineConfig:
    """Read a YAML override file on top of the default thresholds."""
    config = apply_overrides(base or EngineConfig(), load_config(config_path))
    logger.info("Loaded exercise thresholds from %s", config_path)
    return config
