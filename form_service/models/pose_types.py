"""
POSEFIT Form Service - Pose and Analysis Types

Joint, frame, and analysis records shared by the scorer, the rep
segmenter/aggregator and the session summarizer.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Any
from enum import Enum

import numpy as np

from .geometry import translation


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class JointName(Enum):
    """Anatomical landmarks delivered by the pose estimator."""
    NOSE = "nose"
    NECK = "neck"
    ROOT = "root"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


class ExerciseType(Enum):
    """Supported exercise types."""
    SQUAT = "squat"
    PUSH_UP = "pushup"
    PLANK = "plank"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def primary_metric(self) -> Optional[str]:
        """Metric driving rep segmentation; None for static holds."""
        return _PRIMARY_METRICS[self]

    @property
    def is_static(self) -> bool:
        return self is ExerciseType.PLANK


_DISPLAY_NAMES = {
    ExerciseType.SQUAT: "Squats",
    ExerciseType.PUSH_UP: "Push-ups",
    ExerciseType.PLANK: "Plank",
}

_DESCRIPTIONS = {
    ExerciseType.SQUAT: "Lower body strength",
    ExerciseType.PUSH_UP: "Upper body strength",
    ExerciseType.PLANK: "Core stability",
}

_PRIMARY_METRICS = {
    ExerciseType.SQUAT: "avg_knee_angle",
    ExerciseType.PUSH_UP: "avg_elbow_angle",
    ExerciseType.PLANK: None,
}


class PoseDimension(Enum):
    """Whether a frame came from the 2D or the 3D pose detector."""
    TWO_D = "2d"
    THREE_D = "3d"


class SessionOutcome(Enum):
    """Terminal state of a session summary."""
    COMPLETED = "completed"
    NO_REPS_DETECTED = "no_reps_detected"


# ═══════════════════════════════════════════════════════════════════════════════
# POSE INPUT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class JointPoint:
    """
    A single detected joint.

    2D joints carry a normalized (x, y) position and a detector confidence.
    3D joints carry either a 4x4 joint transform or an (x, y, z) position and
    an availability flag instead of a confidence.
    """
    name: JointName
    x: float = 0.0
    y: float = 0.0
    z: Optional[float] = None
    confidence: float = 1.0
    transform: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    available: bool = True

    def position(self) -> np.ndarray:
        """Position as a numpy vector (2 components for 2D, 3 for 3D)."""
        if self.transform is not None:
            return translation(self.transform)
        if self.z is None:
            return np.array([self.x, self.y], dtype=float)
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class PoseFrame:
    """Timestamped, immutable set of joints for one instant."""
    timestamp: float
    dimension: PoseDimension
    joints: Mapping[JointName, JointPoint]

    def __post_init__(self):
        object.__setattr__(self, "joints", MappingProxyType(dict(self.joints)))

    def get(self, name: JointName) -> Optional[JointPoint]:
        return self.joints.get(name)

    @property
    def available_joints(self) -> frozenset:
        """Joints flagged as available (meaningful for 3D frames)."""
        return frozenset(name for name, joint in self.joints.items() if joint.available)

    @classmethod
    def from_2d(
        cls,
        timestamp: float,
        points: Mapping[JointName, Tuple[float, float, float]]
    ) -> "PoseFrame":
        """
        Build a 2D frame.

        Args:
            timestamp: Capture time in seconds
            points: joint -> (x, y, confidence), positions normalized to [0, 1]
        """
        joints = {
            name: JointPoint(name=name, x=float(x), y=float(y), confidence=float(conf))
            for name, (x, y, conf) in points.items()
        }
        return cls(timestamp=timestamp, dimension=PoseDimension.TWO_D, joints=joints)

    @classmethod
    def from_3d(
        cls,
        timestamp: float,
        positions: Mapping[JointName, Sequence[float]],
        available: Optional[Iterable[JointName]] = None
    ) -> "PoseFrame":
        """
        Build a 3D frame.

        Args:
            timestamp: Capture time in seconds
            positions: joint -> 4x4 transform or (x, y, z) position
            available: joints the detector reports as available
                       (defaults to every joint given)
        """
        available_set = set(positions) if available is None else set(available)
        joints = {}
        for name, value in positions.items():
            arr = np.asarray(value, dtype=float)
            if arr.shape == (4, 4):
                joints[name] = JointPoint(
                    name=name, transform=arr, available=name in available_set
                )
            else:
                joints[name] = JointPoint(
                    name=name,
                    x=float(arr[0]),
                    y=float(arr[1]),
                    z=float(arr[2]),
                    available=name in available_set,
                )
        return cls(timestamp=timestamp, dimension=PoseDimension.THREE_D, joints=joints)


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYSIS RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FrameAnalysis:
    """Form assessment for a single frame."""
    exercise: ExerciseType
    score: float  # 0-1
    feedback: Tuple[str, ...]
    metrics: Mapping[str, float]
    timestamp: float

    def __post_init__(self):
        object.__setattr__(self, "score", float(min(1.0, max(0.0, self.score))))
        object.__setattr__(self, "feedback", tuple(self.feedback))
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise.value,
            "score": round(self.score, 3),
            "feedback": list(self.feedback),
            "metrics": {k: round(v, 2) for k, v in self.metrics.items()},
            "timestamp": self.timestamp,
        }


@dataclass
class WorkoutAnalysis:
    """Aggregated analysis of one rep, or of a whole static hold."""
    exercise: ExerciseType
    score: float  # 0-1
    feedback: List[str] = field(default_factory=list)
    metrics: Dict[str, float] = field(default_factory=dict)
    start_time: float = 0.0
    end_time: float = 0.0
    frame_count: int = 0
    complete: bool = True  # False for a rep cut off at end of stream

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise.value,
            "score": round(self.score, 3),
            "feedback": self.feedback,
            "metrics": {k: round(v, 2) for k, v in self.metrics.items()},
            "start_time": self.start_time,
            "end_time": self.end_time,
            "frame_count": self.frame_count,
            "complete": self.complete,
        }


@dataclass(frozen=True)
class InsightRow:
    """One row of the session insight table."""
    icon: str
    title: str
    value: str
    insight: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "icon": self.icon,
            "title": self.title,
            "value": self.value,
            "insight": self.insight,
        }


@dataclass
class SessionSummary:
    """Session-level result handed to the presentation layer."""
    exercise: ExerciseType
    outcome: SessionOutcome
    reps: List[WorkoutAnalysis] = field(default_factory=list)
    score: Optional[float] = None
    best_rep_score: Optional[float] = None
    consistency: Optional[float] = None  # percentage
    insights: List[InsightRow] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    message: Optional[str] = None

    @property
    def rep_count(self) -> int:
        return len(self.reps)

    @property
    def has_reps(self) -> bool:
        return self.outcome is SessionOutcome.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise": self.exercise.value,
            "display_name": self.exercise.display_name,
            "outcome": self.outcome.value,
            "score": None if self.score is None else round(self.score, 3),
            "rep_count": self.rep_count,
            "best_rep_score": None if self.best_rep_score is None else round(self.best_rep_score, 3),
            "consistency": None if self.consistency is None else round(self.consistency, 1),
            "insights": [row.to_dict() for row in self.insights],
            "recommendations": self.recommendations,
            "message": self.message,
            "reps": [rep.to_dict() for rep in self.reps],
        }
