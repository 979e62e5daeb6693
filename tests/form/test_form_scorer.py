"""
Form scorer tests: per-exercise rules, joint usability and 2D/3D handling.
"""

import math

import pytest

from form_service.models import ExerciseType, FormScorer, JointName, PoseFrame
from form_service.models.form_scorer import (
    RULE_SETS,
    AvailabilityAccessor,
    ConfidenceAccessor,
    accessor_for,
)


@pytest.fixture
def scorer():
    return FormScorer(min_confidence=0.5)


# ═══════════════════════════════════════════════════════════════════════════════
# SQUAT
# ═══════════════════════════════════════════════════════════════════════════════

def test_ideal_squat_scores_full_marks(scorer, squat_frame):
    analysis = scorer.score_frame(squat_frame(knee_angle=90.0), ExerciseType.SQUAT)

    assert analysis is not None
    assert analysis.score == pytest.approx(1.0)
    assert analysis.feedback[0] == "🏆 Outstanding squat form!"
    assert "🏆 Perfect squat depth!" in analysis.feedback
    assert analysis.metrics["avg_knee_angle"] == pytest.approx(90.0)
    assert analysis.metrics["torso_angle"] == pytest.approx(25.0)


def test_shallow_squat_loses_depth_points(scorer, squat_frame):
    analysis = scorer.score_frame(squat_frame(knee_angle=150.0), ExerciseType.SQUAT)

    assert analysis.score == pytest.approx(0.6)
    assert "🔽 Much deeper needed - bend those knees!" in analysis.feedback


def test_asymmetric_squat_is_flagged(scorer, squat_frame):
    analysis = scorer.score_frame(
        squat_frame(knee_angle=90.0, right_knee_angle=105.0), ExerciseType.SQUAT
    )

    assert analysis.metrics["knee_symmetry"] == pytest.approx(15.0)
    assert "⚖️ Try to keep both legs more even" in analysis.feedback


def test_knees_past_ankles_are_flagged(scorer, squat_frame):
    analysis = scorer.score_frame(squat_frame(knee_angle=90.0, knee_shift=0.15), ExerciseType.SQUAT)

    assert "🦵 Keep knees aligned over your toes" in analysis.feedback
    assert analysis.metrics["left_knee_tracking"] == pytest.approx(0.15)


def test_squat_feedback_follows_criterion_order(scorer, squat_frame):
    # Shifting the knees forward tilts the shins and opens each knee by the tilt
    tilt = math.degrees(math.atan2(0.15, 0.2))
    frame = squat_frame(knee_angle=112.0 - tilt, right_knee_angle=128.0 - tilt,
                        torso_lean=45.0, knee_shift=0.15)

    analysis = scorer.score_frame(frame, ExerciseType.SQUAT)

    assert analysis.metrics["avg_knee_angle"] == pytest.approx(120.0)
    assert analysis.metrics["knee_symmetry"] == pytest.approx(16.0)
    assert analysis.score == pytest.approx(0.25)
    assert analysis.feedback == (
        "🚨 Focus on basic form",
        "🔽 Go a bit deeper for better form",
        "⚖️ Try to keep both legs more even",
        "📐 Keep chest up a bit more",
        "🦵 Keep knees aligned over your toes",
    )


@pytest.mark.parametrize("knee_angle", [10.0, 45.0, 120.0, 179.0])
@pytest.mark.parametrize("torso_lean", [0.5, 60.0, 89.0])
def test_score_stays_in_unit_interval(scorer, squat_frame, knee_angle, torso_lean):
    frame = squat_frame(knee_angle=knee_angle, right_knee_angle=180.0 - knee_angle / 2,
                        torso_lean=torso_lean, knee_shift=0.2)
    analysis = scorer.score_frame(frame, ExerciseType.SQUAT)

    assert analysis is not None
    assert 0.0 <= analysis.score <= 1.0


# ═══════════════════════════════════════════════════════════════════════════════
# PUSH-UP / PLANK
# ═══════════════════════════════════════════════════════════════════════════════

def test_good_pushup(scorer, pushup_frame):
    analysis = scorer.score_frame(pushup_frame(elbow_angle=80.0), ExerciseType.PUSH_UP)

    assert analysis.score == pytest.approx(1.0)
    assert analysis.metrics["body_alignment"] == pytest.approx(180.0)
    assert "🏆 Perfect push-up depth!" in analysis.feedback


def test_sagging_pushup_loses_alignment_points(scorer, pushup_frame):
    analysis = scorer.score_frame(pushup_frame(elbow_angle=80.0, hip_drop=0.25), ExerciseType.PUSH_UP)

    assert analysis.metrics["body_alignment"] < 150.0
    assert analysis.score == pytest.approx(0.7)
    assert "📐 Keep body straight - avoid sagging hips" in analysis.feedback


def test_straight_plank_is_perfect(scorer, plank_frame):
    analysis = scorer.score_frame(plank_frame(hip_angle=175.0), ExerciseType.PLANK)

    assert analysis.metrics["hip_angle"] == pytest.approx(175.0)
    assert analysis.score == pytest.approx(1.0)
    assert analysis.feedback[0] == "🏆 Outstanding plank form!"


def test_sagging_plank(scorer, plank_frame):
    analysis = scorer.score_frame(plank_frame(hip_angle=130.0), ExerciseType.PLANK)

    assert analysis.score == pytest.approx(0.6)
    assert "📐 Focus on straight line from head to heels" in analysis.feedback


# ═══════════════════════════════════════════════════════════════════════════════
# INSUFFICIENT DATA
# ═══════════════════════════════════════════════════════════════════════════════

def test_missing_joint_yields_none(scorer, squat_frame):
    frame = squat_frame(drop=(JointName.LEFT_ANKLE,))
    assert scorer.score_frame(frame, ExerciseType.SQUAT) is None


def test_confidence_must_be_strictly_above_threshold(scorer, squat_frame):
    assert scorer.score_frame(squat_frame(confidence=0.5), ExerciseType.SQUAT) is None
    assert scorer.score_frame(squat_frame(confidence=0.51), ExerciseType.SQUAT) is not None


def test_unavailable_3d_joint_yields_none(scorer, squat_frame):
    required = set(RULE_SETS[ExerciseType.SQUAT].required_joints)
    frame = squat_frame(dimension="3d", available=required - {JointName.RIGHT_HIP})
    assert scorer.score_frame(frame, ExerciseType.SQUAT) is None


def test_degenerate_geometry_yields_none(scorer):
    point = (0.5, 0.5, 0.9)
    frame = PoseFrame.from_2d(0.0, {joint: point for joint in JointName})
    assert scorer.score_frame(frame, ExerciseType.PLANK) is None


def with_nan_knee(frame):
    points = {name: (p.x, p.y, p.confidence) for name, p in frame.joints.items()}
    _, y, confidence = points[JointName.LEFT_KNEE]
    points[JointName.LEFT_KNEE] = (float("nan"), y, confidence)
    return PoseFrame.from_2d(frame.timestamp, points)


def test_non_finite_joint_yields_none(scorer, squat_frame):
    frame = with_nan_knee(squat_frame(knee_angle=90.0))
    assert scorer.score_frame(frame, ExerciseType.SQUAT) is None


def test_none_frame_yields_none(scorer):
    assert scorer.score_frame(None, ExerciseType.SQUAT) is None


# ═══════════════════════════════════════════════════════════════════════════════
# 2D / 3D
# ═══════════════════════════════════════════════════════════════════════════════

def test_accessor_matches_dimension(squat_frame):
    assert isinstance(accessor_for(squat_frame()), ConfidenceAccessor)
    assert isinstance(accessor_for(squat_frame(dimension="3d")), AvailabilityAccessor)


@pytest.mark.parametrize("knee_angle", [75.0, 100.0, 140.0])
def test_2d_and_3d_agree_on_the_same_pose(scorer, squat_frame, knee_angle):
    flat = scorer.score_frame(squat_frame(knee_angle=knee_angle), ExerciseType.SQUAT)
    deep = scorer.score_frame(squat_frame(knee_angle=knee_angle, dimension="3d"), ExerciseType.SQUAT)

    assert flat.score == pytest.approx(deep.score)
    assert flat.metrics["avg_knee_angle"] == pytest.approx(deep.metrics["avg_knee_angle"])
    assert flat.metrics["torso_angle"] == pytest.approx(deep.metrics["torso_angle"])


def test_fallback_prefers_3d(scorer, squat_frame):
    frame_3d = squat_frame(timestamp=1.0, knee_angle=90.0, dimension="3d")
    frame_2d = squat_frame(timestamp=1.0, knee_angle=150.0)

    analysis = scorer.analyze_with_fallback(frame_3d, frame_2d, ExerciseType.SQUAT)
    assert analysis.metrics["avg_knee_angle"] == pytest.approx(90.0)


def test_fallback_uses_2d_when_3d_is_insufficient(scorer, squat_frame):
    frame_3d = squat_frame(dimension="3d", available=set())
    frame_2d = squat_frame(knee_angle=150.0)

    analysis = scorer.analyze_with_fallback(frame_3d, frame_2d, ExerciseType.SQUAT)
    assert analysis.metrics["avg_knee_angle"] == pytest.approx(150.0)


def test_fallback_with_neither_pose(scorer):
    assert scorer.analyze_with_fallback(None, None, ExerciseType.PUSH_UP) is None
