import numpy as np
import pytest

from featmorph.buffer import PixelBuffer
from featmorph.errors import FeatureMismatchError
from featmorph.sampler import sample_bilinear
from featmorph.warp import as_segment, distort, map_point

from conftest import random_image, seg


def gradient_image(h=10, w=12):
    ys, xs = np.mgrid[0:h, 0:w]
    arr = np.stack([xs * 20, ys * 25, (xs + ys) * 10, np.full_like(xs, 255)], axis=-1)
    return PixelBuffer.from_array(arr.astype(np.uint8))


@pytest.mark.parametrize("t", [0.0, 0.3, 0.5, 0.77, 1.0])
def test_equal_segments_give_identity(img_a, segs_a, t):
    out = distort(img_a, segs_a, list(segs_a), t)
    assert out == img_a


@pytest.mark.parametrize("t", [0.0, 0.5, 1.0])
def test_no_features_give_identity(img_a, t):
    assert distort(img_a, [], [], t) == img_a


def test_degenerate_features_are_ignored(img_a):
    point = seg(5, 5, 5, 5)
    # degenerate only at the source
    assert distort(img_a, [point], [seg(1, 1, 9, 9)], 0.5) == img_a
    # degenerate only at t=1
    assert distort(img_a, [seg(1, 1, 9, 9)], [point], 1.0) == img_a


def test_output_is_a_new_buffer(img_a, segs_a, segs_b):
    before = img_a.to_array()
    out = distort(img_a, segs_a, segs_b, 0.5)
    assert out is not img_a
    assert out.shape == img_a.shape
    assert np.array_equal(img_a.array, before)


@pytest.mark.parametrize("channels", [1, 3, 4])
def test_channel_count_is_preserved(segs_a, segs_b, channels):
    img = random_image(8, 11, channels, seed=9)
    assert distort(img, segs_a, segs_b, 0.4).shape == (8, 11, channels)


def test_feature_count_mismatch(img_a, segs_a):
    with pytest.raises(FeatureMismatchError):
        distort(img_a, segs_a, segs_a[:2], 0.5)
    with pytest.raises(ValueError):
        distort(img_a, segs_a, segs_a[:1], 0.5)


@pytest.mark.parametrize("kwargs", [dict(a=0.0), dict(b=-1.0), dict(p=-0.5),
                                    dict(endpoint_mode="far"), dict(weighting="cubic")])
def test_invalid_shape_parameters(img_a, segs_a, kwargs):
    with pytest.raises(ValueError):
        distort(img_a, segs_a, segs_a, 0.5, **kwargs)


def test_single_feature_translation():
    img = gradient_image()
    dx, dy = 2, 1
    src = seg(3, 3, 8, 3)
    dst = seg(3 + dx, 3 + dy, 8 + dx, 3 + dy)

    out = distort(img, [src], [dst], 1.0, a=0.5, b=1.0, p=0.0)

    arr = img.array
    rows = np.clip(np.arange(img.height) - dy, 0, img.height - 1)
    cols = np.clip(np.arange(img.width) - dx, 0, img.width - 1)
    expected = arr[rows][:, cols]
    assert np.array_equal(out.array, expected)


def test_half_translation_at_mid_time():
    img = gradient_image()
    src = seg(3, 3, 8, 3)
    dst = seg(7, 3, 12, 3)
    out = distort(img, [src], [dst], 0.5, a=0.5, b=1.0, p=0.0)
    # at t=0.5 the feature moved 2 px to the right
    for y in range(img.height):
        for x in range(img.width):
            assert out.pixel(y, x) == sample_bilinear(img, x - 2, y)


def test_chunking_does_not_change_result(img_a, segs_a, segs_b):
    full = distort(img_a, segs_a, segs_b, 0.6)
    assert distort(img_a, segs_a, segs_b, 0.6, rows_per_chunk=1) == full
    assert distort(img_a, segs_a, segs_b, 0.6, rows_per_chunk=3) == full


def test_distort_agrees_with_map_point(img_a, segs_a, segs_b):
    out = distort(img_a, segs_a, segs_b, 0.35, a=0.5, b=1.5, p=0.3).array
    for y, x in [(0, 0), (4, 7), (9, 11), (2, 10), (7, 1)]:
        sx, sy = map_point(x, y, segs_a, segs_b, 0.35, a=0.5, b=1.5, p=0.3)
        expected = sample_bilinear(img_a, sx, sy)
        assert np.all(np.abs(out[y, x].astype(int) - np.array(expected)) <= 1)


def test_map_point_identity_without_features():
    assert map_point(3, 4, [], [], 0.5) == (3.0, 4.0)


def _two_feature_setup():
    moving_src = seg(0, 0, 10, 0)
    moving_dst = seg(0, 2, 10, 2)
    still = seg(0, 20, 10, 20)
    return [moving_src, still], [moving_dst, still]


def _expected_y(d_moving, d_still):
    w1 = 1.0 / (0.5 + d_moving)
    w2 = 1.0 / (0.5 + d_still)
    return 10.0 + (w1 * -2.0) / (w1 + w2)


def test_map_point_start_endpoint_mode():
    start, end = _two_feature_setup()
    x, y = map_point(30, 10, start, end, 1.0, a=0.5, b=1.0, p=0.0)
    assert x == pytest.approx(30.0, abs=1e-8)
    assert y == pytest.approx(_expected_y(np.hypot(30, 8), np.hypot(30, 10)), abs=1e-8)


def test_map_point_nearest_endpoint_mode():
    start, end = _two_feature_setup()
    x, y = map_point(30, 10, start, end, 1.0, a=0.5, b=1.0, p=0.0, endpoint_mode="nearest")
    assert x == pytest.approx(30.0, abs=1e-8)
    assert y == pytest.approx(_expected_y(np.hypot(20, 8), np.hypot(20, 10)), abs=1e-8)


def test_endpoint_modes_differ_in_distort():
    img = gradient_image(24, 32)
    start, end = _two_feature_setup()
    legacy = distort(img, start, end, 1.0, a=0.5, b=2.0, p=0.0)
    nearest = distort(img, start, end, 1.0, a=0.5, b=2.0, p=0.0, endpoint_mode="nearest")
    assert legacy != nearest


def test_overflowing_weights_fall_back_to_identity(img_a):
    big = [seg(0, 0, 11, 9)]
    moved = [seg(1, 0, 11, 8)]
    out = distort(img_a, big, moved, 0.5, a=0.5, b=1.0, p=1000.0)
    assert out.shape == img_a.shape
    sx, sy = map_point(3, 3, big, moved, 0.5, a=0.5, b=1.0, p=1000.0)
    assert np.isfinite(sx) and np.isfinite(sy)


def test_segments_as_tuples(img_a):
    s = as_segment((1, 2, 3, 4))
    assert s == seg(1, 2, 3, 4)
    out = distort(img_a, [(2, 2, 9, 2)], [(3, 2, 10, 2)], 0.5)
    assert out == distort(img_a, [seg(2, 2, 9, 2)], [seg(3, 2, 10, 2)], 0.5)


def test_zero_total_weight_keeps_pixel_in_place():
    img = random_image(20, 20, 4, seed=13)
    src, dst = [seg(0, 0, 2, 0)], [seg(0, 3, 2, 3)]
    out = distort(img, src, dst, 1.0, a=0.5, b=400.0, p=0.0)
    arr, before = out.array, img.array

    # longe do segmento o peso some (underflow) e o pixel fica onde está
    assert map_point(19, 19, src, dst, 1.0, a=0.5, b=400.0, p=0.0) == (19.0, 19.0)
    assert np.array_equal(arr[19], before[19])
    assert np.array_equal(arr[:, 19], before[:, 19])

    # sobre o segmento o deslocamento é o do par: 3 px para cima
    assert map_point(1, 3, src, dst, 1.0, a=0.5, b=400.0, p=0.0) == (1.0, 0.0)
    assert np.array_equal(arr[3, 0:3], before[0, 0:3])
