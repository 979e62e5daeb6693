"""
Joint geometry tests.
"""

import numpy as np
import pytest

from form_service.models.geometry import (
    HORIZONTAL,
    VERTICAL,
    DegenerateGeometryError,
    alignment_angle,
    angle_between,
    horizontal_offset,
    midpoint,
    translation,
)


# ═══════════════════════════════════════════════════════════════════════════════
# ANGLES
# ═══════════════════════════════════════════════════════════════════════════════

def test_colinear_points_give_straight_angle():
    assert angle_between((0, 0), (1, 0), (2, 0)) == pytest.approx(180.0)


def test_orthogonal_unit_vectors_give_right_angle():
    assert angle_between((1, 0), (0, 0), (0, 1)) == pytest.approx(90.0)
    assert angle_between((1, 0, 0), (0, 0, 0), (0, 0, 1)) == pytest.approx(90.0)


@pytest.mark.parametrize("seed", range(5))
def test_angle_is_always_within_range(seed):
    rng = np.random.default_rng(seed)
    for _ in range(50):
        a, b, c = rng.normal(size=(3, 3))
        angle = angle_between(a, b, c)
        assert 0.0 <= angle <= 180.0


def test_coincident_points_are_degenerate():
    with pytest.raises(DegenerateGeometryError):
        angle_between((0.5, 0.5), (0.5, 0.5), (1.0, 1.0))


@pytest.mark.parametrize("bad", [float("nan"), float("inf")])
def test_non_finite_points_are_degenerate(bad):
    with pytest.raises(DegenerateGeometryError):
        angle_between((bad, 0.5), (0.5, 0.5), (1.0, 1.0))
    with pytest.raises(DegenerateGeometryError):
        alignment_angle((0.0, 0.0), (0.2, bad))


def test_degenerate_error_is_a_value_error():
    assert issubclass(DegenerateGeometryError, ValueError)


def test_alignment_against_vertical_and_horizontal():
    assert alignment_angle((0, 0), (0, 1), VERTICAL) == pytest.approx(0.0)
    assert alignment_angle((0, 0), (1, 1), VERTICAL) == pytest.approx(45.0)
    assert alignment_angle((0, 0), (1, 0), HORIZONTAL) == pytest.approx(0.0)
    assert alignment_angle((1, 0), (0, 0), HORIZONTAL) == pytest.approx(180.0)


def test_alignment_pads_reference_axis_for_3d():
    assert alignment_angle((0, 0, 0), (0, 1, 1), VERTICAL) == pytest.approx(45.0)


def test_alignment_of_zero_length_segment_is_degenerate():
    with pytest.raises(DegenerateGeometryError):
        alignment_angle((0.3, 0.3), (0.3, 0.3))


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def test_horizontal_offset_is_signed():
    assert horizontal_offset((0.5, 0.2), (0.3, 0.9)) == pytest.approx(0.2)
    assert horizontal_offset((0.3, 0.2), (0.5, 0.9)) == pytest.approx(-0.2)


def test_midpoint():
    np.testing.assert_allclose(midpoint((0, 0, 0), (2, 4, 6)), [1, 2, 3])


def test_translation_reads_last_column():
    transform = np.eye(4)
    transform[:3, 3] = [0.1, 1.2, -0.4]
    np.testing.assert_allclose(translation(transform), [0.1, 1.2, -0.4])


def test_translation_rejects_non_4x4():
    with pytest.raises(ValueError):
        translation(np.eye(3))
