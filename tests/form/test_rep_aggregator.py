"""
Rep aggregation tests.
"""

import pytest

from form_service.models import ExerciseType, FrameAnalysis, Rep, RepAggregator
from form_service.models.rep_aggregator import (
    TEMPO_FALLBACK,
    mean_metrics,
    merge_frame_feedback,
    population_std,
    tempo_label,
)


@pytest.fixture
def aggregator():
    return RepAggregator()


def _squat_rep(make_analysis, angles, scores=None, step=0.5):
    scores = scores or [0.9] * len(angles)
    return [
        make_analysis(i * step, angle, score=score)
        for i, (angle, score) in enumerate(zip(angles, scores))
    ]


def test_empty_segment_yields_none(aggregator):
    assert aggregator.aggregate_frames([], ExerciseType.SQUAT) is None
    assert aggregator.aggregate_rep([], ExerciseType.SQUAT) is None
    assert aggregator.aggregate_hold([]) is None


def test_rep_statistics(aggregator, make_analysis):
    frames = _squat_rep(make_analysis, [120, 90, 95, 130, 175], scores=[0.7, 0.9, 1.0, 0.8, 0.6])

    workout = aggregator.aggregate(Rep(ExerciseType.SQUAT, frames))

    assert workout.score == pytest.approx(0.8)
    assert workout.frame_count == 5
    assert workout.start_time == 0.0
    assert workout.end_time == 2.0
    assert workout.metrics["deepest_angle"] == 90
    assert workout.metrics["highest_angle"] == 175
    assert workout.metrics["range_of_motion"] == 85
    assert workout.metrics["rep_duration"] == pytest.approx(2.0)
    assert workout.metrics["min_score"] == 0.6
    assert workout.metrics["max_score"] == 1.0
    assert workout.metrics["score_variation"] == pytest.approx(0.4)
    assert workout.metrics["avg_knee_angle"] == pytest.approx(122.0)


def test_partial_rep_is_marked_incomplete(aggregator, make_analysis):
    frames = _squat_rep(make_analysis, [120, 100, 110, 140, 150])

    partial = aggregator.aggregate(Rep(ExerciseType.SQUAT, frames, complete=False))
    full = aggregator.aggregate(Rep(ExerciseType.SQUAT, frames))

    assert partial.complete is False
    assert partial.to_dict()["complete"] is False
    assert full.complete is True


def test_rep_feedback_order(aggregator, make_analysis):
    frames = _squat_rep(make_analysis, [120, 90, 95, 130, 175], scores=[0.95] * 5, step=0.75)

    feedback = aggregator.aggregate_rep(frames, ExerciseType.SQUAT).feedback

    assert feedback[0] == "🏆 Excellent rep! Nearly perfect form"
    assert feedback[1] == "✅ Good depth - you're in the ideal range"
    assert feedback[2] == "📈 Work on smoother, more controlled movement"
    assert feedback[3] == "🔄 Excellent range of motion"
    assert feedback[4] == "⏱️ Good tempo - well controlled"


def test_consistency_score_uses_population_std(aggregator, make_analysis):
    frames = _squat_rep(make_analysis, [100, 102, 98, 100])

    metrics = aggregator.aggregate_rep(frames, ExerciseType.SQUAT).metrics

    assert metrics["angle_variation"] == pytest.approx(population_std([100, 102, 98, 100]))
    assert metrics["consistency_score"] == pytest.approx(100 - 10 * metrics["angle_variation"])


def test_consistency_score_is_floored(aggregator, make_analysis):
    frames = _squat_rep(make_analysis, [60, 175, 60, 175])
    assert aggregator.aggregate_rep(frames, ExerciseType.SQUAT).metrics["consistency_score"] == 0.0


@pytest.mark.parametrize("duration, label", [
    (1.0, "⚡ Very fast rep - slow down for better control"),
    (1.5, "🏃 Fast rep - consider slightly slower tempo"),
    (3.0, "⏱️ Good tempo - well controlled"),
    (5.0, "🐌 Slower tempo - good for strength building"),
    (6.0, TEMPO_FALLBACK),
])
def test_tempo_bands(duration, label):
    assert tempo_label(duration) == label


def test_pushup_rep_uses_elbow_metric(aggregator, make_analysis):
    frames = [
        make_analysis(i * 0.5, angle, exercise=ExerciseType.PUSH_UP)
        for i, angle in enumerate([140, 85, 100, 170])
    ]

    workout = aggregator.aggregate_rep(frames, ExerciseType.PUSH_UP)

    assert workout.exercise is ExerciseType.PUSH_UP
    assert workout.metrics["deepest_angle"] == 85
    assert "🎯 Full push-up depth achieved!" in workout.feedback


def test_hold_aggregation():
    frames = [
        FrameAnalysis(ExerciseType.PLANK, 0.95, ("🏆 Perfect plank alignment!",), {"hip_angle": 170.0}, i * 0.5)
        for i in range(81)
    ]

    workout = RepAggregator().aggregate_hold(frames)

    assert workout.metrics["session_duration"] == pytest.approx(40.0)
    assert workout.metrics["avg_hip_angle"] == pytest.approx(170.0)
    assert workout.metrics["stability_score"] == pytest.approx(95.0)
    assert "hip_angle" not in workout.metrics
    assert workout.feedback[:3] == [
        "🏆 Excellent hold! Nearly perfect form",
        "💪 Good plank hold!",
        "📐 Great plank alignment!",
    ]
    assert "🏆 Perfect plank alignment!" in workout.feedback


def test_mean_metrics_only_counts_frames_with_the_key():
    frames = [
        FrameAnalysis(ExerciseType.SQUAT, 1.0, (), {"a": 1.0, "b": 10.0}, 0.0),
        FrameAnalysis(ExerciseType.SQUAT, 1.0, (), {"a": 3.0}, 0.2),
    ]
    assert mean_metrics(frames) == {"a": 2.0, "b": 10.0}


def test_frame_feedback_is_merged_without_duplicates():
    frames = [
        FrameAnalysis(ExerciseType.SQUAT, 1.0, ("🦵 Keep knees aligned over your toes", "📐 Excellent posture!"), {}, 0.0),
        FrameAnalysis(ExerciseType.SQUAT, 1.0, ("🦵 Keep knees aligned over your toes",), {}, 0.2),
    ]

    merged = merge_frame_feedback(["⏱️ Good tempo - well controlled"], frames)

    assert merged == [
        "⏱️ Good tempo - well controlled",
        "🦵 Keep knees aligned over your toes",
        "📐 Excellent posture!",
    ]


def test_population_std_of_short_input():
    assert population_std([]) == 0.0
    assert population_std([4.2]) == 0.0
    assert population_std([1.0, 3.0]) == pytest.approx(1.0)
