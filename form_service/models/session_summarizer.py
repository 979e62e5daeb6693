"""
POSEFIT Form Service - Session Summarizer

Turns the rep-level analyses of one session into the summary shown to the
user: overall score, best rep, consistency, insight rows and up to three
prioritized recommendations. A session with no reps is reported as its own
outcome rather than as a zero score.
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence

import numpy as np

from core.config import settings
from .bands import band_table
from .pose_types import (
    ExerciseType,
    FrameAnalysis,
    InsightRow,
    SessionOutcome,
    SessionSummary,
    WorkoutAnalysis,
)
from .rep_aggregator import RepAggregator, population_std
from .rep_segmenter import RepSegmenter

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# INSIGHT TABLES (text only, no deductions)
# ═══════════════════════════════════════════════════════════════════════════════

SQUAT_DEPTH_INSIGHT = band_table(
    "squat_depth_insight",
    [
        (80, 95, 0, "Excellent depth!"),
        (95, 110, 0, "Good depth range"),
        (110, 130, 0, "Could go deeper"),
    ],
    below=(0, "Too deep"),
    above=(0, "Focus on more depth"),
)

PUSHUP_DEPTH_INSIGHT = band_table(
    "pushup_depth_insight",
    [
        (70, 90, 0, "Perfect depth!"),
        (60, 70, 0, "Good range"),
        (90, 110, 0, "Good range"),
        (110, 130, 0, "Go deeper"),
    ],
    below=(0, "Don't go too low"),
    above=(0, "Much deeper needed"),
)

RANGE_INSIGHT = band_table(
    "range_insight",
    [
        (80, math.inf, 0, "Excellent mobility"),
        (60, 80, 0, "Good range"),
        (40, 60, 0, "Limited range"),
    ],
    below=(0, "Work on flexibility"),
    above=(0, "Excellent mobility"),
)

SYMMETRY_INSIGHT = band_table(
    "symmetry_insight",
    [
        (0, 5, 0, "Perfect symmetry"),
        (5, 10, 0, "Good balance"),
        (10, 15, 0, "Minor imbalance"),
    ],
    below=(0, "Perfect symmetry"),
    above=(0, "Work on symmetry"),
)

ALIGNMENT_INSIGHT = band_table(
    "alignment_insight",
    [
        (160, math.inf, 0, "Excellent alignment"),
        (150, 160, 0, "Good alignment"),
        (140, 150, 0, "Minor adjustments"),
    ],
    below=(0, "Focus on form"),
    above=(0, "Excellent alignment"),
)

PLANK_DURATION_INSIGHT = band_table(
    "plank_duration_insight",
    [
        (60, math.inf, 0, "Excellent endurance!"),
        (30, 60, 0, "Good hold time"),
        (15, 30, 0, "Building strength"),
    ],
    below=(0, "Keep practicing"),
    above=(0, "Excellent endurance!"),
)

PLANK_ALIGNMENT_INSIGHT = band_table(
    "plank_alignment_insight",
    [
        (160, 180, 0, "Perfect alignment!"),
        (150, 160, 0, "Good form"),
        (140, 150, 0, "Minor adjustments"),
    ],
    below=(0, "Focus on straight line"),
    above=(0, "Perfect alignment!"),
)

STABILITY_INSIGHT = band_table(
    "stability_insight",
    [
        (85, math.inf, 0, "Rock solid!"),
        (70, 85, 0, "Very stable"),
        (55, 70, 0, "Good control"),
    ],
    below=(0, "Work on stability"),
    above=(0, "Rock solid!"),
)


NO_REPS_MESSAGES = {
    ExerciseType.SQUAT: (
        "The video might be too short, unclear, or the squats weren't deep enough to detect. "
        "Try recording a video with 3-5 clear squat reps."
    ),
    ExerciseType.PUSH_UP: (
        "The video might be too short, unclear, or the push-ups weren't deep enough to detect. "
        "Try recording a video with 3-5 clear push-up reps."
    ),
    ExerciseType.PLANK: (
        "The video might be too short or unclear to detect a plank position. "
        "Try recording a video showing you holding a plank for at least 15 seconds."
    ),
}

REMEDIAL_DRILLS = {
    ExerciseType.SQUAT: "Practice bodyweight squats to improve form",
    ExerciseType.PUSH_UP: "Try wall or knee push-ups to build strength",
    ExerciseType.PLANK: "Start with shorter holds and focus on form",
}

PROGRESSIONS = {
    ExerciseType.SQUAT: "Great form! Try adding weight or single-leg squats",
    ExerciseType.PUSH_UP: "Excellent! Try diamond push-ups or add elevation",
    ExerciseType.PLANK: "Amazing stability! Try side planks or dynamic variations",
}

TRAINER_SUGGESTION = "Consider working with a trainer for technique refinement"

REMEDIAL_SCORE = 0.6
PROGRESSION_SCORE = 0.8


def _metric_values(reps: Sequence[WorkoutAnalysis], key: str) -> List[float]:
    return [rep.metrics[key] for rep in reps if key in rep.metrics]


def _mean(values: Sequence[float]) -> Optional[float]:
    return float(np.mean(values)) if values else None


def _mean_side_difference(reps: Sequence[WorkoutAnalysis], left_key: str, right_key: str) -> Optional[float]:
    pairs = [
        abs(rep.metrics[left_key] - rep.metrics[right_key])
        for rep in reps
        if left_key in rep.metrics and right_key in rep.metrics
    ]
    return _mean(pairs)


def score_consistency(scores: Sequence[float]) -> float:
    """Consistency percentage: 100 minus 100x the population std of scores."""
    if len(scores) < 2:
        return 100.0
    return max(0.0, 100.0 - population_std(scores) * 100.0)


# ═══════════════════════════════════════════════════════════════════════════════
# SUMMARIZER
# ═══════════════════════════════════════════════════════════════════════════════

class SessionSummarizer:
    """Builds SessionSummary records from rep-level analyses."""

    def __init__(self, max_recommendations: Optional[int] = None):
        self.max_recommendations = (
            settings.MAX_RECOMMENDATIONS if max_recommendations is None else max_recommendations
        )

    def summarize(self, reps: Sequence[WorkoutAnalysis], exercise: ExerciseType) -> SessionSummary:
        """
        Summarize a session.

        Returns:
            SessionSummary; outcome NO_REPS_DETECTED when reps is empty
        """
        reps = list(reps)
        if not reps:
            logger.info(f"🔍 No {exercise.value} repetitions detected")
            return SessionSummary(
                exercise=exercise,
                outcome=SessionOutcome.NO_REPS_DETECTED,
                message=NO_REPS_MESSAGES[exercise],
            )

        scores = [rep.score for rep in reps]
        session_score = float(np.mean(scores))

        summary = SessionSummary(
            exercise=exercise,
            outcome=SessionOutcome.COMPLETED,
            reps=reps,
            score=session_score,
            best_rep_score=max(scores),
            consistency=score_consistency(scores),
            insights=self.build_insights(reps, exercise),
            recommendations=self.build_recommendations(reps, exercise, session_score),
        )

        logger.info(
            f"📊 {exercise.display_name}: {summary.rep_count} rep(s), "
            f"score {session_score:.2f}, consistency {summary.consistency:.0f}%"
        )
        return summary

    # ───────────────────────────────────────────────────────────────────────────
    # Insights
    # ───────────────────────────────────────────────────────────────────────────

    def build_insights(self, reps: Sequence[WorkoutAnalysis], exercise: ExerciseType) -> List[InsightRow]:
        if exercise is ExerciseType.SQUAT:
            return self._squat_insights(reps)
        if exercise is ExerciseType.PUSH_UP:
            return self._pushup_insights(reps)
        return self._plank_insights(reps)

    def _squat_insights(self, reps) -> List[InsightRow]:
        rows = []

        depth = _mean(_metric_values(reps, "avg_knee_angle"))
        if depth is not None:
            rows.append(InsightRow(
                "📐", "Average Depth", f"{int(depth)}°", SQUAT_DEPTH_INSIGHT.lookup(depth).message
            ))

        motion = _mean(_metric_values(reps, "range_of_motion"))
        if motion is not None:
            rows.append(InsightRow(
                "🔄", "Range of Motion", f"{int(motion)}°", RANGE_INSIGHT.lookup(motion).message
            ))

        difference = _mean_side_difference(reps, "left_knee_angle", "right_knee_angle")
        if difference is not None:
            rows.append(InsightRow(
                "⚖️", "Symmetry", f"{difference:.1f}°", SYMMETRY_INSIGHT.lookup(difference).message
            ))

        return rows

    def _pushup_insights(self, reps) -> List[InsightRow]:
        rows = []

        depth = _mean(_metric_values(reps, "avg_elbow_angle"))
        if depth is not None:
            rows.append(InsightRow(
                "💪", "Average Depth", f"{int(depth)}°", PUSHUP_DEPTH_INSIGHT.lookup(depth).message
            ))

        alignment = _mean(_metric_values(reps, "body_alignment"))
        if alignment is not None:
            rows.append(InsightRow(
                "📐", "Body Alignment", f"{int(alignment)}°", ALIGNMENT_INSIGHT.lookup(alignment).message
            ))

        difference = _mean_side_difference(reps, "left_elbow_angle", "right_elbow_angle")
        if difference is not None:
            rows.append(InsightRow(
                "⚖️", "Arm Symmetry", f"{difference:.1f}°", SYMMETRY_INSIGHT.lookup(difference).message
            ))

        return rows

    def _plank_insights(self, reps) -> List[InsightRow]:
        rows = []
        session = reps[0].metrics

        if "session_duration" in session:
            duration = session["session_duration"]
            rows.append(InsightRow(
                "⏱️", "Hold Duration", f"{int(duration)}s", PLANK_DURATION_INSIGHT.lookup(duration).message
            ))

        if "avg_hip_angle" in session:
            hip_angle = session["avg_hip_angle"]
            rows.append(InsightRow(
                "📐", "Body Alignment", f"{int(hip_angle)}°", PLANK_ALIGNMENT_INSIGHT.lookup(hip_angle).message
            ))

        if "stability_score" in session:
            stability = session["stability_score"]
            rows.append(InsightRow(
                "🎯", "Stability", f"{int(stability)}%", STABILITY_INSIGHT.lookup(stability).message
            ))

        return rows

    # ───────────────────────────────────────────────────────────────────────────
    # Recommendations
    # ───────────────────────────────────────────────────────────────────────────

    def build_recommendations(
        self,
        reps: Sequence[WorkoutAnalysis],
        exercise: ExerciseType,
        session_score: float
    ) -> List[str]:
        """Deficiency checks first, then score-tier suggestions; top N kept."""
        recommendations = []

        if exercise is ExerciseType.SQUAT:
            depth = _mean(_metric_values(reps, "avg_knee_angle"))
            if depth is not None:
                if depth > 130:
                    recommendations.append("Focus on going deeper - aim for 90° knee angle")
                elif depth < 80:
                    recommendations.append("Don't go too deep - aim for parallel thighs")

                difference = _mean_side_difference(reps, "left_knee_angle", "right_knee_angle")
                if difference is not None and difference > 10:
                    recommendations.append("Work on balanced form - one leg deeper than other")

        elif exercise is ExerciseType.PUSH_UP:
            depth = _mean(_metric_values(reps, "avg_elbow_angle"))
            if depth is not None:
                if depth > 130:
                    recommendations.append("Go deeper - chest should nearly touch the ground")
                elif depth < 60:
                    recommendations.append("Don't go too low - maintain control")

                alignment = _mean(_metric_values(reps, "body_alignment"))
                if alignment is not None and alignment < 150:
                    recommendations.append("Keep body straight - engage core to prevent sagging")

        else:
            session = reps[0].metrics
            duration = session.get("session_duration")
            if duration is not None:
                if duration < 30:
                    recommendations.append("Build endurance - aim for 30+ second holds")
                elif duration < 60:
                    recommendations.append("Great progress! Work toward 60-second holds")

            hip_angle = session.get("avg_hip_angle")
            if hip_angle is not None and hip_angle < 150:
                recommendations.append("Keep hips level - imagine a straight line from head to heels")

        if session_score < REMEDIAL_SCORE:
            recommendations.append(REMEDIAL_DRILLS[exercise])
            recommendations.append(TRAINER_SUGGESTION)
        elif session_score > PROGRESSION_SCORE:
            recommendations.append(PROGRESSIONS[exercise])

        return recommendations[:self.max_recommendations]


# ═══════════════════════════════════════════════════════════════════════════════
# PIPELINE
# ═══════════════════════════════════════════════════════════════════════════════

def summarize_frame_analyses(
    analyses: Iterable[FrameAnalysis],
    exercise: ExerciseType,
    summarizer: Optional[SessionSummarizer] = None,
    aggregator: Optional[RepAggregator] = None,
) -> SessionSummary:
    """
    Segment ordered frame analyses, aggregate each rep and summarize.

    Usage:
        summary = summarize_frame_analyses(analyses, ExerciseType.SQUAT)
        if not summary.has_reps:
            show(summary.message)
    """
    summarizer = summarizer or SessionSummarizer()
    aggregator = aggregator or RepAggregator()

    ordered = sorted(analyses, key=lambda analysis: analysis.timestamp)
    reps = RepSegmenter(exercise).segment(ordered)

    workouts = []
    for rep in reps:
        workout = aggregator.aggregate(rep)
        if workout is not None:
            workouts.append(workout)

    return summarizer.summarize(workouts, exercise)
