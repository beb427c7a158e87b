from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional
import numpy as np


class DetectorUnavailableError(RuntimeError):
    """The pose detector could not be started for this session."""


@dataclass
class Keypoint:
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0
    presence: float = 1.0


@dataclass
class KeypointFrame:
    """
    One detector result: landmark index -> Keypoint.

    Indices may be missing (subject partially out of view) and the mapping may
    be empty (no subject detected). Neither is an error.
    """

    keypoints: Dict[int, Keypoint] = field(default_factory=dict)
    timestamp_ms: float = 0.0

    def __contains__(self, index: int) -> bool:
        return int(index) in self.keypoints

    def __len__(self) -> int:
        return len(self.keypoints)

    def __iter__(self) -> Iterator[Keypoint]:
        return iter(self.keypoints.values())

    def get(self, index: int) -> Optional[Keypoint]:
        return self.keypoints.get(int(index))

    @property
    def is_empty(self) -> bool:
        return not self.keypoints

    @classmethod
    def from_landmarks(cls, landmarks: List[Keypoint], timestamp_ms: float) -> "KeypointFrame":
        """Build a frame from a backend's ordered landmark list."""
        return cls(
            keypoints={idx: lm for idx, lm in enumerate(landmarks)},
            timestamp_ms=timestamp_ms,
        )

    @classmethod
    def from_mapping(cls, raw: Mapping[Any, Mapping[str, float]], timestamp_ms: float) -> "KeypointFrame":
        """
        Build a frame from a bridge payload such as
        ``{"11": {"x": .., "y": .., "z": .., "visibility": ..}}``.
        Keys may be ints or numeric strings.
        """
        keypoints: Dict[int, Keypoint] = {}
        for key, point in raw.items():
            if point is None:
                continue
            keypoints[int(key)] = Keypoint(
                x=float(point["x"]),
                y=float(point["y"]),
                z=float(point.get("z", 0.0)),
                visibility=float(point.get("visibility", 1.0)),
                presence=float(point.get("presence", 1.0)),
            )
        return cls(keypoints=keypoints, timestamp_ms=timestamp_ms)


class PoseBackend(ABC):
    """Abstract base for any pose model feeding the rep engine."""

    @abstractmethod
    def process(self, frame_rgb: np.ndarray) -> List[Keypoint]:
        """Run pose estimation on one RGB frame and return its keypoints (empty if no subject)."""
        ...

    @abstractmethod
    def draw(self, frame_rgb: np.ndarray, keypoints: List[Keypoint]) -> np.ndarray:
        """Return a BGR image with keypoints drawn (for debugging / saving)."""
        ...
