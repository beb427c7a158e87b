from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from services.rep_engine.core.BackendInterface import KeypointFrame


class GateStatus(str, Enum):
    NO_POSE = "no_pose"
    NOT_IN_FRAME = "not_in_frame"
    LOW_VISIBILITY = "low_visibility"
    OK = "ok"


# Feedback key suffix for each failing status
GATE_FEEDBACK = {
    GateStatus.NO_POSE: "noPose",
    GateStatus.NOT_IN_FRAME: "noBody",
    GateStatus.LOW_VISIBILITY: "improveLight",
}


@dataclass
class GateResult:
    status: GateStatus
    missing: List[int] = field(default_factory=list)
    occluded: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is GateStatus.OK

    def feedback_key(self, namespace: str, overrides: Optional[Dict[GateStatus, str]] = None) -> str:
        """``overrides`` replaces the default key suffix for some statuses."""
        suffix = (overrides or {}).get(self.status, GATE_FEEDBACK[self.status])
        return f"{namespace}.feedback.{suffix}"


def check_keypoints(
    frame: KeypointFrame,
    required: Iterable[int],
    min_visibility: float,
) -> GateResult:
    """
    Decide whether a frame can be trusted for geometry.

    Existence is checked before visibility so "camera can't see you" and
    "camera sees you badly" produce different verdicts. A keypoint passes
    only if its visibility is strictly above ``min_visibility``.
    """
    if frame.is_empty:
        return GateResult(GateStatus.NO_POSE)

    required: Sequence[int] = [int(idx) for idx in required]

    missing = [idx for idx in required if idx not in frame]
    if missing:
        return GateResult(GateStatus.NOT_IN_FRAME, missing=missing)

    occluded = [idx for idx in required if not frame.get(idx).visibility > min_visibility]
    if occluded:
        return GateResult(GateStatus.LOW_VISIBILITY, occluded=occluded)

    return GateResult(GateStatus.OK)
