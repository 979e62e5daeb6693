"""
POSEFIT Form Service - Exercise Form Scorer

Rule-based form scoring for squats, push-ups and planks.

Each exercise is a pipeline of criteria. A criterion needs a set of usable
joints, measures one geometric feature and maps it through a band table to a
feedback message and a score deduction. Deductions are summed from 1.0 and
floored at 0. The same rule tables serve 2D and 3D poses; only the joint
accessor differs (confidence threshold vs. availability).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from core.config import settings
from .bands import BandTable, band_table
from .geometry import (
    DegenerateGeometryError,
    HORIZONTAL,
    VERTICAL,
    alignment_angle,
    angle_between,
    horizontal_offset,
    midpoint,
)
from .pose_types import ExerciseType, FrameAnalysis, JointName, PoseDimension, PoseFrame

logger = logging.getLogger(__name__)


class InsufficientDataError(Exception):
    """Required joints are missing or unreliable for this frame."""


# ═══════════════════════════════════════════════════════════════════════════════
# JOINT ACCESS
# ═══════════════════════════════════════════════════════════════════════════════

class JointAccessor(ABC):
    """Position lookup plus a usability predicate over one pose frame."""

    def __init__(self, frame: PoseFrame):
        self.frame = frame

    @abstractmethod
    def is_usable(self, joint: JointName) -> bool:
        ...

    @abstractmethod
    def position(self, joint: JointName) -> np.ndarray:
        ...

    def missing(self, joints) -> List[JointName]:
        return [joint for joint in joints if not self.is_usable(joint)]

    def mid(self, left: JointName, right: JointName) -> np.ndarray:
        return midpoint(self.position(left), self.position(right))


class ConfidenceAccessor(JointAccessor):
    """
    2D joints: usable when confidence is strictly above the threshold.

    Positions arrive in image coordinates (origin top-left, y down) and are
    returned with y flipped so that +y points up, matching the 3D convention.
    """

    def __init__(self, frame: PoseFrame, min_confidence: float):
        super().__init__(frame)
        self.min_confidence = min_confidence

    def is_usable(self, joint: JointName) -> bool:
        point = self.frame.get(joint)
        return point is not None and point.confidence > self.min_confidence

    def position(self, joint: JointName) -> np.ndarray:
        point = self.frame.joints[joint]
        return np.array([point.x, 1.0 - point.y], dtype=float)


class AvailabilityAccessor(JointAccessor):
    """3D joints: no confidence, usable when reported as available."""

    def is_usable(self, joint: JointName) -> bool:
        point = self.frame.get(joint)
        return point is not None and point.available

    def position(self, joint: JointName) -> np.ndarray:
        return self.frame.joints[joint].position()


def accessor_for(frame: PoseFrame, min_confidence: Optional[float] = None) -> JointAccessor:
    """Pick the joint accessor matching the frame's dimension."""
    if frame.dimension is PoseDimension.THREE_D:
        return AvailabilityAccessor(frame)
    threshold = settings.MIN_JOINT_CONFIDENCE if min_confidence is None else min_confidence
    return ConfidenceAccessor(frame, threshold)


# ═══════════════════════════════════════════════════════════════════════════════
# CRITERIA
# ═══════════════════════════════════════════════════════════════════════════════

SHOULDERS = (JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER)
ELBOWS = (JointName.LEFT_ELBOW, JointName.RIGHT_ELBOW)
WRISTS = (JointName.LEFT_WRIST, JointName.RIGHT_WRIST)
HIPS = (JointName.LEFT_HIP, JointName.RIGHT_HIP)
KNEES = (JointName.LEFT_KNEE, JointName.RIGHT_KNEE)
ANKLES = (JointName.LEFT_ANKLE, JointName.RIGHT_ANKLE)


@dataclass(frozen=True)
class CriterionResult:
    deduction: float
    message: Optional[str]


class Criterion(ABC):
    """One scored aspect of form."""

    name: str = ""
    required: Tuple[JointName, ...] = ()

    @abstractmethod
    def evaluate(self, joints: JointAccessor, metrics: Dict[str, float]) -> CriterionResult:
        """Measure the feature, record metrics, and return the deduction."""


class BandedCriterion(Criterion):
    """Criterion whose feature is classified by a band table."""

    table: BandTable

    @abstractmethod
    def measure(self, joints: JointAccessor, metrics: Dict[str, float]) -> float:
        ...

    def evaluate(self, joints: JointAccessor, metrics: Dict[str, float]) -> CriterionResult:
        band = self.table.lookup(self.measure(joints, metrics))
        return CriterionResult(band.deduction, band.message)


def _paired_angles(joints: JointAccessor, outer, vertex, inner) -> Tuple[float, float]:
    left = angle_between(joints.position(outer[0]), joints.position(vertex[0]), joints.position(inner[0]))
    right = angle_between(joints.position(outer[1]), joints.position(vertex[1]), joints.position(inner[1]))
    return left, right


# --- Squat ---------------------------------------------------------------------

SQUAT_DEPTH_TABLE = band_table(
    "squat_depth",
    [
        (85, 95, 0.0, "🏆 Perfect squat depth!"),
        (80, 85, 0.05, "✅ Great squat depth!"),
        (95, 105, 0.05, "✅ Great squat depth!"),
        (70, 80, 0.15, "👌 Good depth - could be slightly better"),
        (105, 115, 0.15, "👌 Good depth - could be slightly better"),
        (115, 130, 0.25, "🔽 Go a bit deeper for better form"),
        (50, 70, 0.20, "⬆️ Too deep - come up slightly"),
    ],
    below=(0.35, "⬆️ Way too deep - ease up!"),
    above=(0.40, "🔽 Much deeper needed - bend those knees!"),
)

SQUAT_SYMMETRY_TABLE = band_table(
    "squat_knee_symmetry",
    [
        (0, 5, 0.0, None),
        (5, 10, 0.05, "⚖️ Nearly balanced - good work!"),
        (10, 20, 0.15, "⚖️ Try to keep both legs more even"),
    ],
    below=(0.0, None),
    above=(0.25, "⚖️ Focus on balancing weight between legs"),
)

SQUAT_TORSO_TABLE = band_table(
    "squat_torso_lean",
    [
        (15, 35, 0.0, "📐 Excellent posture!"),
        (10, 15, 0.05, "📐 Good posture - minor adjustment needed"),
        (35, 40, 0.05, "📐 Good posture - minor adjustment needed"),
        (5, 10, 0.15, "📐 Lean forward slightly more"),
        (40, 50, 0.15, "📐 Keep chest up a bit more"),
    ],
    below=(0.20, "📐 Lean forward slightly - engage your core"),
    above=(0.30, "📐 Keep chest up - don't lean too far forward"),
)

KNEE_TRACKING_LIMIT = 0.1
KNEE_TRACKING_DEDUCTION = 0.2


class SquatDepthCriterion(BandedCriterion):
    name = "depth"
    required = HIPS + KNEES + ANKLES
    table = SQUAT_DEPTH_TABLE

    def measure(self, joints, metrics):
        left, right = _paired_angles(joints, HIPS, KNEES, ANKLES)
        avg = (left + right) / 2
        metrics["avg_knee_angle"] = avg
        metrics["left_knee_angle"] = left
        metrics["right_knee_angle"] = right
        return avg


class KneeSymmetryCriterion(BandedCriterion):
    name = "symmetry"
    required = HIPS + KNEES + ANKLES
    table = SQUAT_SYMMETRY_TABLE

    def measure(self, joints, metrics):
        left, right = _paired_angles(joints, HIPS, KNEES, ANKLES)
        difference = abs(left - right)
        metrics["knee_symmetry"] = difference
        return difference


class TorsoLeanCriterion(BandedCriterion):
    name = "torso"
    required = SHOULDERS + HIPS
    table = SQUAT_TORSO_TABLE

    def measure(self, joints, metrics):
        torso = alignment_angle(joints.mid(*HIPS), joints.mid(*SHOULDERS), VERTICAL)
        metrics["torso_angle"] = torso
        return torso


class KneeTrackingCriterion(Criterion):
    name = "knee_tracking"
    required = KNEES + ANKLES

    def evaluate(self, joints, metrics):
        left = horizontal_offset(joints.position(JointName.LEFT_KNEE), joints.position(JointName.LEFT_ANKLE))
        right = horizontal_offset(joints.position(JointName.RIGHT_KNEE), joints.position(JointName.RIGHT_ANKLE))
        metrics["left_knee_tracking"] = left
        metrics["right_knee_tracking"] = right

        if abs(left) > KNEE_TRACKING_LIMIT or abs(right) > KNEE_TRACKING_LIMIT:
            return CriterionResult(KNEE_TRACKING_DEDUCTION, "🦵 Keep knees aligned over your toes")
        return CriterionResult(0.0, None)


# --- Push-up -------------------------------------------------------------------

PUSHUP_DEPTH_TABLE = band_table(
    "pushup_depth",
    [
        (70, 90, 0.0, "🏆 Perfect push-up depth!"),
        (60, 70, 0.10, "✅ Good push-up form!"),
        (90, 110, 0.10, "✅ Good push-up form!"),
        (110, 130, 0.20, "🔽 Go deeper for full range"),
    ],
    below=(0.20, "⬆️ Don't go too low"),
    above=(0.40, "🔽 Much deeper needed!"),
)

PUSHUP_ALIGNMENT_TABLE = band_table(
    "pushup_body_alignment",
    [
        (160, 180, 0.0, "📐 Excellent body alignment!"),
        (150, 160, 0.10, "📐 Good alignment - minor adjustment needed"),
        (0, 150, 0.30, "📐 Keep body straight - avoid sagging hips"),
    ],
    below=(0.30, "📐 Keep body straight - avoid sagging hips"),
    above=(0.0, "📐 Excellent body alignment!"),
)


class PushUpDepthCriterion(BandedCriterion):
    name = "depth"
    required = SHOULDERS + ELBOWS + WRISTS
    table = PUSHUP_DEPTH_TABLE

    def measure(self, joints, metrics):
        left, right = _paired_angles(joints, SHOULDERS, ELBOWS, WRISTS)
        avg = (left + right) / 2
        metrics["avg_elbow_angle"] = avg
        metrics["left_elbow_angle"] = left
        metrics["right_elbow_angle"] = right
        return avg


class BodyLineCriterion(BandedCriterion):
    name = "body_line"
    required = SHOULDERS + HIPS
    table = PUSHUP_ALIGNMENT_TABLE

    def measure(self, joints, metrics):
        angle = alignment_angle(joints.mid(*SHOULDERS), joints.mid(*HIPS), HORIZONTAL)
        # Fold so the reading does not depend on which way the athlete faces
        angle = max(angle, 180.0 - angle)
        metrics["body_alignment"] = angle
        return angle


# --- Plank ---------------------------------------------------------------------

PLANK_ALIGNMENT_TABLE = band_table(
    "plank_hip_alignment",
    [
        (160, 180, 0.0, "🏆 Perfect plank alignment!"),
        (150, 160, 0.10, "✅ Good alignment - minor adjustments"),
        (140, 150, 0.20, "📐 Keep hips level - avoid sagging"),
    ],
    below=(0.40, "📐 Focus on straight line from head to heels"),
    above=(0.0, "🏆 Perfect plank alignment!"),
)


class PlankHipCriterion(BandedCriterion):
    name = "hip_alignment"
    required = SHOULDERS + HIPS + ANKLES
    table = PLANK_ALIGNMENT_TABLE

    def measure(self, joints, metrics):
        angle = angle_between(joints.mid(*SHOULDERS), joints.mid(*HIPS), joints.mid(*ANKLES))
        metrics["hip_angle"] = angle
        return angle


# ═══════════════════════════════════════════════════════════════════════════════
# RULE SETS
# ═══════════════════════════════════════════════════════════════════════════════

# Overall score tiers: >= 0.95, >= 0.85, >= 0.70, >= 0.50, else
SUMMARY_TIERS = (0.95, 0.85, 0.70, 0.50)


@dataclass(frozen=True)
class ExerciseRuleSet:
    exercise: ExerciseType
    criteria: Tuple[Criterion, ...]
    summaries: Tuple[str, str, str, str, str]

    @property
    def required_joints(self) -> Tuple[JointName, ...]:
        seen = []
        for criterion in self.criteria:
            for joint in criterion.required:
                if joint not in seen:
                    seen.append(joint)
        return tuple(seen)

    def summary_for(self, score: float) -> str:
        for threshold, message in zip(SUMMARY_TIERS, self.summaries):
            if score >= threshold:
                return message
        return self.summaries[-1]


RULE_SETS: Dict[ExerciseType, ExerciseRuleSet] = {
    ExerciseType.SQUAT: ExerciseRuleSet(
        exercise=ExerciseType.SQUAT,
        criteria=(
            SquatDepthCriterion(),
            KneeSymmetryCriterion(),
            TorsoLeanCriterion(),
            KneeTrackingCriterion(),
        ),
        summaries=(
            "🏆 Outstanding squat form!",
            "💪 Excellent squat!",
            "👍 Good squat - keep it up!",
            "⚠️ Form improvements needed",
            "🚨 Focus on basic form",
        ),
    ),
    ExerciseType.PUSH_UP: ExerciseRuleSet(
        exercise=ExerciseType.PUSH_UP,
        criteria=(
            PushUpDepthCriterion(),
            BodyLineCriterion(),
        ),
        summaries=(
            "🏆 Outstanding push-up form!",
            "💪 Excellent push-up!",
            "👍 Good push-up - keep it up!",
            "⚠️ Form improvements needed",
            "🚨 Focus on basic form",
        ),
    ),
    ExerciseType.PLANK: ExerciseRuleSet(
        exercise=ExerciseType.PLANK,
        criteria=(
            PlankHipCriterion(),
        ),
        summaries=(
            "🏆 Outstanding plank form!",
            "💪 Excellent plank!",
            "👍 Solid plank - keep holding!",
            "⚠️ Form improvements needed",
            "🚨 Focus on basic form",
        ),
    ),
}


# ═══════════════════════════════════════════════════════════════════════════════
# FORM SCORER
# ═══════════════════════════════════════════════════════════════════════════════

class FormScorer:
    """
    Scores single pose frames against an exercise rule set.

    Frames lacking the required joints (or producing degenerate geometry)
    yield None rather than an error.
    """

    def __init__(self, min_confidence: Optional[float] = None):
        """
        Args:
            min_confidence: 2D joint confidence threshold (uses settings if None)
        """
        self.min_confidence = (
            settings.MIN_JOINT_CONFIDENCE if min_confidence is None else min_confidence
        )

    def score_frame(self, frame: Optional[PoseFrame], exercise: ExerciseType) -> Optional[FrameAnalysis]:
        """
        Assess exercise form for one frame.

        Returns:
            FrameAnalysis, or None when the frame has insufficient data
        """
        if frame is None:
            return None

        rules = RULE_SETS[exercise]
        joints = accessor_for(frame, self.min_confidence)

        try:
            return self._evaluate(rules, joints, frame.timestamp)
        except InsufficientDataError as e:
            logger.debug(f"{exercise.value} @ {frame.timestamp:.2f}s skipped: {e}")
        except DegenerateGeometryError as e:
            logger.debug(f"{exercise.value} @ {frame.timestamp:.2f}s degenerate geometry: {e}")
        return None

    def _evaluate(self, rules: ExerciseRuleSet, joints: JointAccessor, timestamp: float) -> FrameAnalysis:
        missing = joints.missing(rules.required_joints)
        if missing:
            raise InsufficientDataError(
                "missing joints: " + ", ".join(joint.value for joint in missing)
            )

        metrics: Dict[str, float] = {}
        feedback: List[str] = []
        total_deduction = 0.0

        for criterion in rules.criteria:
            result = criterion.evaluate(joints, metrics)
            total_deduction += result.deduction
            if result.message:
                feedback.append(result.message)

        score = max(0.0, round(1.0 - total_deduction, 6))
        feedback.insert(0, rules.summary_for(score))

        return FrameAnalysis(
            exercise=rules.exercise,
            score=score,
            feedback=feedback,
            metrics=metrics,
            timestamp=timestamp,
        )

    def analyze_with_fallback(
        self,
        frame_3d: Optional[PoseFrame],
        frame_2d: Optional[PoseFrame],
        exercise: ExerciseType
    ) -> Optional[FrameAnalysis]:
        """Try the 3D pose first and fall back to the 2D pose."""
        analysis = self.score_frame(frame_3d, exercise)
        if analysis is None:
            analysis = self.score_frame(frame_2d, exercise)
        return analysis


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_scorer_instance: Optional[FormScorer] = None

def get_form_scorer() -> FormScorer:
    """Get or create the global form scorer instance."""
    global _scorer_instance
    if _scorer_instance is None:
        _scorer_instance = FormScorer()
    return _scorer_instance
