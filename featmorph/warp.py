"""
Warping por campo de segmentos (Beier & Neely, "Feature-Based Image
Metamorphosis", 1992), dissolução cruzada e morph.

Mapeamento inverso: para cada pixel X do destino procura-se o ponto de origem
combinando, com pesos, a transformação local induzida por cada par de
segmentos; a cor vem da amostragem bilinear da imagem de origem nesse ponto.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .buffer import PixelBuffer
from .config import (BILINEAR_WEIGHTINGS, DEFAULT_A, DEFAULT_B, DEFAULT_P,
                     ENDPOINT_MODES, ROWS_PER_CHUNK, SOURCE_SNAP_DECIMALS)
from .errors import FeatureMismatchError, ImageShapeMismatchError
from .geometry import FeatureSegment, Vector2
from .sampler import sample_bilinear_map

logger = logging.getLogger(__name__)


# ------------------------- Segmentos -------------------------

def as_segment(seg):
    """Aceita FeatureSegment ou 4 números (x0, y0, x1, y1)."""
    if isinstance(seg, FeatureSegment):
        return seg
    x0, y0, x1, y1 = seg
    return FeatureSegment.from_coords(x0, y0, x1, y1)


def _check_pairs(start_segs, end_segs):
    start_segs = [as_segment(s) for s in start_segs]
    end_segs = [as_segment(s) for s in end_segs]
    if len(start_segs) != len(end_segs):
        raise FeatureMismatchError(
            f"Listas de segmentos com tamanhos diferentes: {len(start_segs)} != {len(end_segs)}")
    return start_segs, end_segs


def _check_shape_params(a, b, p, endpoint_mode):
    if not a > 0:
        raise ValueError(f"a deve ser > 0: {a}")
    if not b >= 0:
        raise ValueError(f"b deve ser >= 0: {b}")
    if not p >= 0:
        raise ValueError(f"p deve ser >= 0: {p}")
    if endpoint_mode not in ENDPOINT_MODES:
        raise ValueError(f"endpoint_mode inválido: {endpoint_mode!r} (use {ENDPOINT_MODES})")


class _FeaturePair:
    """Grandezas de um par (origem S, referência R no tempo t) usadas por pixel."""

    def __init__(self, src, ref, p):
        self.src_start = src.start
        self.src_dir = src.direction()
        self.src_perp_n = src.perp() / src.length()
        self.ref_start = ref.start
        self.ref_end = ref.end
        self.ref_dir = ref.direction()
        self.ref_perp = ref.perp()
        self.ref_len2 = ref.length2()
        self.ref_len = ref.length()
        with np.errstate(over="ignore"):
            self.strength = np.float64(self.ref_len) ** p


def _feature_pairs(start_segs, end_segs, t, p):
    pairs = []
    for i, (src, dst) in enumerate(zip(start_segs, end_segs)):
        ref = src.lerp(dst, t)
        # segmento de comprimento zero não tem referencial local: peso 0
        if src.is_degenerate() or ref.is_degenerate():
            logger.debug("Segmento %d degenerado em t=%.3f, ignorado", i, t)
            continue
        pairs.append(_FeaturePair(src, ref, p))
    return pairs


# ------------------------- Ponto a ponto -------------------------

def map_point(x, y, start_segs, end_segs, t, a=DEFAULT_A, b=DEFAULT_B, p=DEFAULT_P,
              endpoint_mode="start"):
    """
    Ponto de origem (x', y') amostrado para o pixel de destino (x, y).
    Formulação escalar do mesmo cálculo que distort() faz por faixas.
    """
    start_segs, end_segs = _check_pairs(start_segs, end_segs)
    _check_shape_params(a, b, p, endpoint_mode)

    X = Vector2(float(x), float(y))
    dsum_x = dsum_y = wsum = np.float64(0.0)
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        for src, dst in zip(start_segs, end_segs):
            ref = src.lerp(dst, t)
            if src.is_degenerate() or ref.is_degenerate():
                continue
            u = ref.line_parameter(X)
            v = ref.signed_line_distance(X)
            source = src.start + src.direction() * u + (src.perp() / src.length()) * v
            dist = ref.segment_distance(X, u, v, endpoint_mode)
            weight = (np.float64(ref.length()) ** p / (a + dist)) ** b
            disp = source - X
            dsum_x += weight * disp.x
            dsum_y += weight * disp.y
            wsum += weight

        sx, sy = X.x, X.y
        if wsum > 0:
            cx = X.x + dsum_x / wsum
            cy = X.y + dsum_y / wsum
            if np.isfinite(cx) and np.isfinite(cy):
                sx, sy = cx, cy
    return (float(np.round(sx, SOURCE_SNAP_DECIMALS)),
            float(np.round(sy, SOURCE_SNAP_DECIMALS)))


# ------------------------- Warping -------------------------

def _source_coords(xs, ys, pairs, a, b, endpoint_mode):
    """Coordenadas de origem para a grade (xs, ys) de uma faixa de linhas."""
    acc_x = np.zeros(xs.shape, dtype=np.float64)
    acc_y = np.zeros(xs.shape, dtype=np.float64)
    acc_w = np.zeros(xs.shape, dtype=np.float64)

    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        for f in pairs:
            px = xs - f.ref_start.x
            py = ys - f.ref_start.y
            u = (f.ref_dir.x * px + f.ref_dir.y * py) / f.ref_len2
            v = (px * f.ref_perp.x + py * f.ref_perp.y) / f.ref_len

            src_x = f.src_start.x + f.src_dir.x * u + f.src_perp_n.x * v
            src_y = f.src_start.y + f.src_dir.y * u + f.src_perp_n.y * v

            d_start = np.sqrt(px * px + py * py)
            if endpoint_mode == "nearest":
                ex = xs - f.ref_end.x
                ey = ys - f.ref_end.y
                d_after = np.sqrt(ex * ex + ey * ey)
            else:
                d_after = d_start
            dist = np.where(u < 0, d_start, np.where(u > 1, d_after, np.abs(v)))

            weight = (f.strength / (a + dist)) ** b
            acc_x += weight * (src_x - xs)
            acc_y += weight * (src_y - ys)
            acc_w += weight

        has_weight = acc_w > 0
        safe_w = np.where(has_weight, acc_w, 1.0)
        fx = xs + np.where(has_weight, acc_x / safe_w, 0.0)
        fy = ys + np.where(has_weight, acc_y / safe_w, 0.0)

    # peso total infinito (expoentes grandes) cai na identidade
    bad = ~(np.isfinite(fx) & np.isfinite(fy))
    if bad.any():
        fx = np.where(bad, xs, fx)
        fy = np.where(bad, ys, fy)

    return np.round(fx, SOURCE_SNAP_DECIMALS), np.round(fy, SOURCE_SNAP_DECIMALS)


def distort(image, start_segs, end_segs, t, a=DEFAULT_A, b=DEFAULT_B, p=DEFAULT_P,
            endpoint_mode="start", weighting="legacy", rows_per_chunk=None):
    """
    Distorce image levando a geometria de start_segs (t=0) para a geometria
    interpolada em t entre start_segs e end_segs.

    - image: PixelBuffer (W,H,C)
    - start_segs, end_segs: listas alinhadas por índice (mesmo tamanho)
    - t: tempo de interpolação dos segmentos
    - a > 0, b >= 0, p >= 0: peso = (comprimento**p / (a + distancia))**b
    - endpoint_mode: "start" (legado) ou "nearest" (distância ao extremo mais próximo)
    - weighting: pesos do amostrador bilinear, "legacy" ou "standard"
    Retorna um novo PixelBuffer com as mesmas dimensões.
    """
    start_segs, end_segs = _check_pairs(start_segs, end_segs)
    _check_shape_params(a, b, p, endpoint_mode)
    if weighting not in BILINEAR_WEIGHTINGS:
        raise ValueError(f"weighting inválido: {weighting!r} (use {BILINEAR_WEIGHTINGS})")

    logger.info("Distorcendo imagem %dx%d com %d segmentos (t=%.3f)...",
                image.width, image.height, len(start_segs), t)

    pairs = _feature_pairs(start_segs, end_segs, t, p)
    h, w, c = image.shape
    if not pairs or w == 0 or h == 0:
        return image.copy()

    chunk = max(1, int(rows_per_chunk or ROWS_PER_CHUNK))
    out = np.empty((h, w, c), dtype=np.uint8)
    cols = np.arange(w, dtype=np.float64)

    for r0 in range(0, h, chunk):
        r1 = min(h, r0 + chunk)
        ys, xs = np.meshgrid(np.arange(r0, r1, dtype=np.float64), cols, indexing="ij")
        fx, fy = _source_coords(xs, ys, pairs, a, b, endpoint_mode)
        out[r0:r1] = sample_bilinear_map(image, fx, fy, weighting)[..., :c]
        logger.debug("Linhas %d..%d de %d", r0, r1 - 1, h)

    return PixelBuffer._adopt(out)


# ------------------------- Dissolução -------------------------

def blend(img1, img2, t):
    """
    Mistura linear pixel a pixel: floor(t*img1 + (1-t)*img2).
    As duas imagens devem ter as MESMAS dimensões e canais.
    """
    if not img1.same_dims_as(img2):
        raise ImageShapeMismatchError(
            f"Imagens com dimensões diferentes: {img1.shape} vs {img2.shape} (H,W,C)")

    logger.info("Misturando imagens (t=%.3f)...", t)
    p1 = img1.array.astype(np.float64)
    p2 = img2.array.astype(np.float64)
    # mesma combinação convexa escrita de forma que operandos iguais dão bytes iguais
    res = np.floor(p2 + t * (p1 - p2))
    return PixelBuffer._adopt(np.clip(res, 0, 255).astype(np.uint8))


# ------------------------- Morph -------------------------

def morph(img1, img2, seg1, seg2, t, a=DEFAULT_A, b=DEFAULT_B, p=DEFAULT_P,
          dissolve=None, parallel=False, endpoint_mode="start", weighting="legacy",
          rows_per_chunk=None):
    """
    Frame intermediário de img1 -> img2 no tempo t.

    img1 é distorcida de 0 até t (seg1 -> seg2) e img2 de 1 até t (seg2 -> seg1,
    tempo 1-t); os resultados são misturados com peso 1-d para img1, onde d é
    t ou, se fornecido, dissolve (tempo separado para a mistura de cores).
    parallel=True executa as duas distorções em threads e espera ambas.
    """
    if not img1.same_dims_as(img2):
        raise ImageShapeMismatchError(
            f"As imagens devem ter o MESMO tamanho e canais: {img1.shape} vs {img2.shape} (H,W,C)")
    seg1, seg2 = _check_pairs(seg1, seg2)

    opts = dict(a=a, b=b, p=p, endpoint_mode=endpoint_mode, weighting=weighting,
                rows_per_chunk=rows_per_chunk)
    if parallel:
        with ThreadPoolExecutor(max_workers=2) as pool:
            fut1 = pool.submit(distort, img1, seg1, seg2, t, **opts)
            fut2 = pool.submit(distort, img2, seg2, seg1, 1 - t, **opts)
            warped1 = fut1.result()
            warped2 = fut2.result()
    else:
        warped1 = distort(img1, seg1, seg2, t, **opts)
        warped2 = distort(img2, seg2, seg1, 1 - t, **opts)

    d = t if dissolve is None else dissolve
    return blend(warped1, warped2, 1 - d)


# ------------------------- Sequências -------------------------

def linear(t, a=1.0, b=0.0):
    """Interpolação linear: a*t + b."""
    return a * t + b


def sigmoid(t, k):
    """
    Sigmoide centrada em 0.5, renormalizada para valer 0 em t=0 e 1 em t=1.
    k controla a inclinação: maior k => transição mais rápida no meio.
    k <= 0 devolve t.
    """
    if k <= 0:
        return t
    s0 = 1.0 / (1.0 + np.exp(k * 0.5))
    s1 = 1.0 / (1.0 + np.exp(-k * 0.5))
    st = 1.0 / (1.0 + np.exp(-k * (np.asarray(t, dtype=np.float64) - 0.5)))
    out = (st - s0) / (s1 - s0)
    return float(out) if out.ndim == 0 else out


def frame_times(n_frames):
    """n_frames tempos igualmente espaçados em [0,1]."""
    n_frames = int(n_frames)
    if n_frames < 1:
        raise ValueError(f"n_frames deve ser >= 1: {n_frames}")
    if n_frames == 1:
        return [0.0]
    return [f / (n_frames - 1) for f in range(n_frames)]


def morph_sequence(img1, img2, seg1, seg2, n_frames, a=DEFAULT_A, b=DEFAULT_B, p=DEFAULT_P,
                   k=None, **morph_options):
    """
    Gera (t, frame) para n_frames tempos igualmente espaçados.
    Geometria segue linear(t); a mistura de cores segue sigmoid(t, k) se k for dado.
    """
    times = frame_times(n_frames)
    for f, t in enumerate(times):
        alfa = linear(t)
        beta = t if k is None else sigmoid(t, k)
        frame = morph(img1, img2, seg1, seg2, alfa, a, b, p, dissolve=beta, **morph_options)
        logger.info("Frame %d/%d gerado (t=%.3f)", f + 1, len(times), t)
        yield t, frame
