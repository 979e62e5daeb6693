"""
Synthetic pose builders for the form service tests.

Builders work in a y-up coordinate system. 2D frames are converted to image
coordinates (y down) on the way out; 3D frames keep y-up with z = 0, so the
same geometry yields the same angles in both dimensions.
"""

import math

import pytest

from form_service.models import (
    ExerciseType,
    FrameAnalysis,
    JointName,
    PoseFrame,
)

J = JointName


def _unit(degrees):
    radians = math.radians(degrees)
    return math.sin(radians), math.cos(radians)


def _to_frame(timestamp, positions, dimension, confidence=0.9, drop=(), available=None):
    positions = {name: point for name, point in positions.items() if name not in drop}
    if dimension == "3d":
        return PoseFrame.from_3d(
            timestamp,
            {name: (x, y, 0.0) for name, (x, y) in positions.items()},
            available=available,
        )
    return PoseFrame.from_2d(
        timestamp,
        {name: (x, 1.0 - y, confidence) for name, (x, y) in positions.items()},
    )


def build_squat(timestamp=0.0, knee_angle=90.0, right_knee_angle=None, torso_lean=25.0,
                knee_shift=0.0, dimension="2d", **kwargs):
    """Standing-on-the-floor squat with vertical shins and the given knee angle."""
    right_knee_angle = knee_angle if right_knee_angle is None else right_knee_angle
    positions = {}
    for side, x, angle in (("LEFT", 0.4, knee_angle), ("RIGHT", 0.6, right_knee_angle)):
        ankle = (x, 0.1)
        knee = (x + knee_shift, 0.3)
        sin_a, cos_a = _unit(angle)
        hip = (knee[0] + 0.2 * sin_a, knee[1] - 0.2 * cos_a)
        positions[J[f"{side}_ANKLE"]] = ankle
        positions[J[f"{side}_KNEE"]] = knee
        positions[J[f"{side}_HIP"]] = hip

    hip_x = (positions[J.LEFT_HIP][0] + positions[J.RIGHT_HIP][0]) / 2
    hip_y = (positions[J.LEFT_HIP][1] + positions[J.RIGHT_HIP][1]) / 2
    sin_t, cos_t = _unit(torso_lean)
    shoulder_y = hip_y + 0.3 * cos_t
    positions[J.LEFT_SHOULDER] = (hip_x - 0.1 + 0.3 * sin_t, shoulder_y)
    positions[J.RIGHT_SHOULDER] = (hip_x + 0.1 + 0.3 * sin_t, shoulder_y)
    return _to_frame(timestamp, positions, dimension, **kwargs)


def build_pushup(timestamp=0.0, elbow_angle=80.0, hip_drop=0.0, dimension="2d", **kwargs):
    """Side-view push-up; hip_drop lowers the hips below the shoulder line."""
    shoulder = (0.3, 0.5)
    elbow = (0.3, 0.35)
    sin_a, cos_a = _unit(elbow_angle)
    wrist = (elbow[0] + 0.15 * sin_a, elbow[1] + 0.15 * cos_a)
    hip = (0.6, 0.5 - hip_drop)
    positions = {
        J.LEFT_SHOULDER: shoulder, J.RIGHT_SHOULDER: shoulder,
        J.LEFT_ELBOW: elbow, J.RIGHT_ELBOW: elbow,
        J.LEFT_WRIST: wrist, J.RIGHT_WRIST: wrist,
        J.LEFT_HIP: hip, J.RIGHT_HIP: hip,
    }
    return _to_frame(timestamp, positions, dimension, **kwargs)


def build_plank(timestamp=0.0, hip_angle=175.0, dimension="2d", **kwargs):
    """Side-view plank whose shoulder-hip-ankle angle equals hip_angle."""
    sag = 0.3 * math.tan(math.radians((180.0 - hip_angle) / 2.0))
    shoulder = (0.2, 0.5)
    hip = (0.5, 0.5 - sag)
    ankle = (0.8, 0.5)
    positions = {
        J.LEFT_SHOULDER: shoulder, J.RIGHT_SHOULDER: shoulder,
        J.LEFT_HIP: hip, J.RIGHT_HIP: hip,
        J.LEFT_ANKLE: ankle, J.RIGHT_ANKLE: ankle,
    }
    return _to_frame(timestamp, positions, dimension, **kwargs)


def build_analysis(timestamp, metric=None, score=0.9, exercise=ExerciseType.SQUAT, feedback=()):
    """Frame analysis carrying only the exercise's primary metric."""
    metrics = {}
    if metric is not None and exercise.primary_metric:
        metrics[exercise.primary_metric] = metric
    return FrameAnalysis(
        exercise=exercise,
        score=score,
        feedback=feedback,
        metrics=metrics,
        timestamp=timestamp,
    )


@pytest.fixture
def squat_frame():
    return build_squat


@pytest.fixture
def pushup_frame():
    return build_pushup


@pytest.fixture
def plank_frame():
    return build_plank


@pytest.fixture
def make_analysis():
    return build_analysis


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
