"""
POSEFIT Form Service - Rep Aggregator

Reduces the frames of one closed rep (or one static hold) into a single
WorkoutAnalysis: score statistics, depth range, motion consistency, tempo,
averaged metrics and synthesized feedback.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .pose_types import ExerciseType, FrameAnalysis, WorkoutAnalysis
from .rep_segmenter import Rep

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# FEEDBACK TIERS
# ═══════════════════════════════════════════════════════════════════════════════

# (minimum average score, message)
REP_OVERALL_TIERS = [
    (0.9, "🏆 Excellent rep! Nearly perfect form"),
    (0.75, "💪 Great rep! Strong technique"),
    (0.6, "👍 Good rep with room for improvement"),
]
REP_OVERALL_FALLBACK = "⚠️ Focus needed - let's improve this form"

HOLD_OVERALL_TIERS = [
    (0.9, "🏆 Excellent hold! Nearly perfect form"),
    (0.75, "💪 Great hold! Strong technique"),
    (0.6, "👍 Good hold with room for improvement"),
]

# (deepest angle upper limit, message)
DEPTH_TIERS: Dict[ExerciseType, Tuple[List[Tuple[float, str]], str]] = {
    ExerciseType.SQUAT: (
        [
            (85, "🎯 Perfect squat depth achieved!"),
            (95, "✅ Good depth - you're in the ideal range"),
            (110, "📐 Decent depth - try going 5-10° deeper"),
            (130, "🔽 Need more depth - focus on sitting back more"),
        ],
        "⚠️ Much deeper needed - barely a quarter squat",
    ),
    ExerciseType.PUSH_UP: (
        [
            (90, "🎯 Full push-up depth achieved!"),
            (100, "✅ Good depth - chest close to the floor"),
            (110, "📐 Decent depth - lower your chest a little more"),
            (130, "🔽 Need more depth - bend your elbows further"),
        ],
        "⚠️ Much deeper needed - barely bending the elbows",
    ),
}

# (angle standard deviation upper limit, message)
CONSISTENCY_TIERS = [
    (5, "🎯 Consistent motion throughout rep"),
    (10, "📊 Fairly consistent - minor fluctuations"),
]
CONSISTENCY_FALLBACK = "📈 Work on smoother, more controlled movement"

# (minimum range in degrees, message)
RANGE_TIERS = [
    (80, "🔄 Excellent range of motion"),
    (60, "📏 Good range of motion"),
]
RANGE_FALLBACK = "📐 Try for greater range of motion"

# (duration upper limit in seconds, label); >= 6.0s falls through
TEMPO_BANDS = [
    (1.5, "⚡ Very fast rep - slow down for better control"),
    (2.5, "🏃 Fast rep - consider slightly slower tempo"),
    (4.0, "⏱️ Good tempo - well controlled"),
    (6.0, "🐌 Slower tempo - good for strength building"),
]
TEMPO_FALLBACK = "⏳ Very slow rep - might be too slow for most goals"

# Plank hold
HOLD_DURATION_TIERS = [
    (60, "🏆 Excellent plank duration!"),
    (30, "💪 Good plank hold!"),
]
HOLD_DURATION_FALLBACK = "⏱️ Try to hold longer next time"
HOLD_ALIGNMENT_RANGE = (160.0, 180.0)


def _at_least(value: float, tiers, fallback: str) -> str:
    for minimum, message in tiers:
        if value >= minimum:
            return message
    return fallback


def _at_most(value: float, tiers, fallback: str) -> str:
    for limit, message in tiers:
        if value <= limit:
            return message
    return fallback


def _below(value: float, tiers, fallback: str) -> str:
    for limit, message in tiers:
        if value < limit:
            return message
    return fallback


def tempo_label(duration: float) -> str:
    """Classify rep duration (seconds) into a tempo label."""
    return _below(duration, TEMPO_BANDS, TEMPO_FALLBACK)


# ═══════════════════════════════════════════════════════════════════════════════
# STATISTICS
# ═══════════════════════════════════════════════════════════════════════════════

def population_std(values: Sequence[float]) -> float:
    """Standard deviation using the population formula; 0 for fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def mean_metrics(frames: Sequence[FrameAnalysis]) -> Dict[str, float]:
    """Per-key mean over the frames that carry each key."""
    collected: Dict[str, List[float]] = {}
    for frame in frames:
        for key, value in frame.metrics.items():
            collected.setdefault(key, []).append(value)
    return {key: float(np.mean(values)) for key, values in collected.items()}


def _strip_icon(message: str) -> str:
    text = message.strip()
    if text and not text[0].isalnum() and " " in text:
        return text.split(" ", 1)[1].strip()
    return text


def merge_frame_feedback(synthesized: List[str], frames: Sequence[FrameAnalysis]) -> List[str]:
    """
    Append unique per-frame feedback not already implied by synthesized lines.

    Order of first appearance is preserved.
    """
    merged = list(synthesized)
    for frame in frames:
        for message in frame.feedback:
            if message in merged:
                continue
            text = _strip_icon(message)
            if text and any(text in line for line in synthesized):
                continue
            merged.append(message)
    return merged


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATOR
# ═══════════════════════════════════════════════════════════════════════════════

class RepAggregator:
    """Builds rep- and hold-level WorkoutAnalysis records."""

    def aggregate(self, rep: Rep) -> Optional[WorkoutAnalysis]:
        """Aggregate a segmented rep (or static hold)."""
        workout = self.aggregate_frames(rep.frames, rep.exercise)
        if workout is not None:
            workout.complete = rep.complete
        return workout

    def aggregate_frames(
        self,
        frames: Sequence[FrameAnalysis],
        exercise: ExerciseType
    ) -> Optional[WorkoutAnalysis]:
        """
        Aggregate frames of one segment.

        Returns:
            WorkoutAnalysis, or None for an empty segment
        """
        if not frames:
            logger.debug(f"Empty {exercise.value} segment - nothing to aggregate")
            return None
        if exercise.is_static:
            return self.aggregate_hold(frames, exercise)
        return self.aggregate_rep(frames, exercise)

    def aggregate_rep(self, frames: Sequence[FrameAnalysis], exercise: ExerciseType) -> Optional[WorkoutAnalysis]:
        """Aggregate a dynamic repetition."""
        if not frames:
            return None

        scores = [frame.score for frame in frames]
        avg_score = float(np.mean(scores))
        min_score = min(scores)
        max_score = max(scores)

        metric_name = exercise.primary_metric
        angles = [frame.metrics[metric_name] for frame in frames if metric_name in frame.metrics]

        duration = frames[-1].timestamp - frames[0].timestamp

        feedback = [_at_least(avg_score, REP_OVERALL_TIERS, REP_OVERALL_FALLBACK)]
        metrics = mean_metrics(frames)

        if angles:
            deepest = min(angles)
            highest = max(angles)
            depth_range = highest - deepest
            variation = population_std(angles)

            depth_tiers, depth_fallback = DEPTH_TIERS[exercise]
            feedback.append(_at_most(deepest, depth_tiers, depth_fallback))
            feedback.append(_below(variation, CONSISTENCY_TIERS, CONSISTENCY_FALLBACK))
            feedback.append(_at_least(depth_range, RANGE_TIERS, RANGE_FALLBACK))

            metrics.update({
                "deepest_angle": deepest,
                "highest_angle": highest,
                "range_of_motion": depth_range,
                "angle_variation": variation,
                "consistency_score": max(0.0, 100.0 - variation * 10.0),
            })

        feedback.append(tempo_label(duration))

        metrics.update({
            "rep_duration": duration,
            "min_score": min_score,
            "max_score": max_score,
            "score_variation": max_score - min_score,
        })

        return WorkoutAnalysis(
            exercise=exercise,
            score=avg_score,
            feedback=merge_frame_feedback(feedback, frames),
            metrics=metrics,
            start_time=frames[0].timestamp,
            end_time=frames[-1].timestamp,
            frame_count=len(frames),
        )

    def aggregate_hold(
        self,
        frames: Sequence[FrameAnalysis],
        exercise: ExerciseType = ExerciseType.PLANK
    ) -> Optional[WorkoutAnalysis]:
        """Aggregate a whole static hold into one session analysis."""
        if not frames:
            return None

        scores = [frame.score for frame in frames]
        avg_score = float(np.mean(scores))
        duration = frames[-1].timestamp - frames[0].timestamp

        hip_angles = [frame.metrics["hip_angle"] for frame in frames if "hip_angle" in frame.metrics]
        avg_hip_angle = float(np.mean(hip_angles)) if hip_angles else 180.0
        variation = population_std(hip_angles)

        low, high = HOLD_ALIGNMENT_RANGE
        feedback = [
            _at_least(avg_score, HOLD_OVERALL_TIERS, REP_OVERALL_FALLBACK),
            _at_least(duration, HOLD_DURATION_TIERS, HOLD_DURATION_FALLBACK),
            "📐 Great plank alignment!" if low <= avg_hip_angle <= high
            else "📐 Focus on keeping a straight line",
        ]

        metrics = mean_metrics(frames)
        metrics.pop("hip_angle", None)  # reported as avg_hip_angle
        metrics.update({
            "session_duration": duration,
            "avg_hip_angle": avg_hip_angle,
            "stability_score": avg_score * 100.0,
            "angle_variation": variation,
            "consistency_score": max(0.0, 100.0 - variation * 10.0),
            "min_score": min(scores),
            "max_score": max(scores),
        })

        return WorkoutAnalysis(
            exercise=exercise,
            score=avg_score,
            feedback=merge_frame_feedback(feedback, frames),
            metrics=metrics,
            start_time=frames[0].timestamp,
            end_time=frames[-1].timestamp,
            frame_count=len(frames),
        )


_aggregator_instance: Optional[RepAggregator] = None

def get_rep_aggregator() -> RepAggregator:
    """Get or create the global rep aggregator instance."""
    global _aggregator_instance
    if _aggregator_instance is None:
        _aggregator_instance = RepAggregator()
    return _aggregator_instance
