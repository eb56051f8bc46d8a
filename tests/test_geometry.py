import math

import pytest

from featmorph.geometry import FeatureSegment, Vector2

from conftest import seg


def test_vector_arithmetic():
    a = Vector2(1.0, 2.0)
    b = Vector2(3.0, -1.0)
    assert a + b == Vector2(4.0, 1.0)
    assert a - b == Vector2(-2.0, 3.0)
    assert a * 2 == Vector2(2.0, 4.0)
    assert 2 * a == Vector2(2.0, 4.0)
    assert b / 2 == Vector2(1.5, -0.5)
    assert -a == Vector2(-1.0, -2.0)
    assert a.dot(b) == 1.0


def test_vector_perp_and_length():
    v = Vector2(3.0, 4.0)
    assert v.perp() == Vector2(-4.0, 3.0)
    assert v.perp().dot(v) == 0.0
    assert v.length() == 5.0
    assert v.length2() == 25.0
    assert v.perp().length() == 5.0


def test_vector_division_by_zero():
    with pytest.raises(ZeroDivisionError):
        Vector2(1.0, 1.0) / 0.0


def test_segment_basic_queries():
    s = seg(0, 0, 10, 0)
    assert s.direction() == Vector2(10.0, 0.0)
    assert s.perp() == Vector2(0.0, 10.0)
    assert s.length() == 10.0
    assert s.length2() == 100.0
    assert not s.is_degenerate()
    assert s.as_tuple() == (0.0, 0.0, 10.0, 0.0)


def test_line_parameter():
    s = seg(0, 0, 10, 0)
    assert s.line_parameter(Vector2(5, 3)) == 0.5
    assert s.line_parameter(Vector2(-5, 0)) == -0.5
    assert s.line_parameter(Vector2(20, 0)) == 2.0


def test_signed_line_distance():
    s = seg(0, 0, 10, 0)
    assert s.signed_line_distance(Vector2(5, 3)) == 3.0
    assert s.signed_line_distance(Vector2(5, -3)) == -3.0
    assert s.signed_line_distance(Vector2(42, 0)) == 0.0


def test_segment_distance_start_mode_measures_to_start_on_both_sides():
    s = seg(0, 0, 10, 0)
    before = Vector2(-3, 4)
    after = Vector2(20, 0)
    inside = Vector2(5, 3)
    assert s.segment_distance_to(before) == 5.0
    assert s.segment_distance_to(after) == 20.0
    assert s.segment_distance_to(inside) == 3.0


def test_segment_distance_nearest_mode():
    s = seg(0, 0, 10, 0)
    assert s.segment_distance_to(Vector2(-3, 4), endpoint_mode="nearest") == 5.0
    assert s.segment_distance_to(Vector2(20, 0), endpoint_mode="nearest") == 10.0
    assert s.segment_distance_to(Vector2(13, 4), endpoint_mode="nearest") == 5.0
    assert s.segment_distance_to(Vector2(5, -3), endpoint_mode="nearest") == 3.0


def test_segment_distance_invalid_mode():
    with pytest.raises(ValueError):
        seg(0, 0, 1, 0).segment_distance(Vector2(0, 0), 0.0, 0.0, endpoint_mode="closest")


def test_degenerate_segment_queries_do_not_divide_by_zero():
    s = seg(2, 2, 2, 2)
    p = Vector2(5, 6)
    assert s.is_degenerate()
    assert s.direction() == Vector2(0.0, 0.0)
    assert s.perp() == Vector2(0.0, 0.0)
    assert s.line_parameter(p) == 0.0
    assert s.signed_line_distance(p) == 0.0
    assert math.isfinite(s.segment_distance_to(p))


def test_lerp_endpoints_are_exact():
    a = seg(0.1, 0.7, 3.3, 9.9)
    b = seg(0.3, 1.1, 7.7, 0.2)
    assert a.lerp(b, 0.0) == a
    assert a.lerp(b, 1.0) == b
    mid = a.lerp(b, 0.5)
    assert mid.start.x == pytest.approx(0.2)
    assert mid.end.y == pytest.approx(5.05)


@pytest.mark.parametrize("t", [0.0, 0.1, 0.3, 0.5, 0.7, 0.99, 1.0])
def test_lerp_of_identical_segments_is_identical(t):
    a = seg(0.1, 7.3, 3.3, 9.9)
    assert a.lerp(FeatureSegment(a.start, a.end), t) == a


def test_from_coords_converts_to_float():
    s = FeatureSegment.from_coords(1, 2, 3, 4)
    assert isinstance(s.start.x, float)
    assert s.end == Vector2(3.0, 4.0)
