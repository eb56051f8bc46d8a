import numpy as np
import pytest

from featmorph.buffer import PixelBuffer
from featmorph.geometry import FeatureSegment


def random_image(h, w, c=4, seed=0):
    rng = np.random.default_rng(seed)
    return PixelBuffer.from_array(rng.integers(0, 256, size=(h, w, c), dtype=np.uint8))


def seg(x0, y0, x1, y1):
    return FeatureSegment.from_coords(x0, y0, x1, y1)


@pytest.fixture
def img_a():
    return random_image(10, 12, 4, seed=1)


@pytest.fixture
def img_b():
    return random_image(10, 12, 4, seed=2)


@pytest.fixture
def segs_a():
    return [seg(2, 2, 9, 2.5), seg(3, 7, 3.2, 1.1), seg(10.5, 8, 6, 6)]


@pytest.fixture
def segs_b():
    return [seg(1.5, 3, 8, 3), seg(4, 8, 4, 1), seg(11, 7, 5.5, 7.25)]
