# Reexporta a API pública do pacote,
# mantendo o import "import featmorph.morph as M" funcionando.

from .geometry import Vector2, FeatureSegment

from .buffer import PixelBuffer

from .sampler import sample_bilinear, sample_bilinear_map

from .warp import (
    as_segment, map_point, distort, blend, morph,
    linear, sigmoid, frame_times, morph_sequence
)

from .morph_core import (
    load_image, save_image, from_pil, to_pil,
    load_segments, save_segments,
    palette_color, draw_segments
)

from .config import MorphParams, DEFAULT_A, DEFAULT_B, DEFAULT_P

from .errors import (
    MorphError, FeatureMismatchError, ImageShapeMismatchError,
    CorrespondenceFormatError, ImageIOError
)
