"""
Amostragem bilinear com clamp nas bordas.

Pixels centrados nas coordenadas inteiras: o pixel (lin, col) fica em
(x=col, y=lin). Os quatro vizinhos de (x,y) são recortados de forma
independente para [0..W-1] x [0..H-1] (a borda é duplicada, nunca "embrulhada"),
então nenhuma coordenada, por mais distante, lê fora do buffer.

Pesos por canto (weighting="legacy", compatível com a saída histórica):

    (lin0,col0): (col1-x)(lin1-y)     (lin0,col1): (col1-x)(y-lin0)
    (lin1,col0): (x-col0)(lin1-y)     (lin1,col1): (x-col0)(y-lin0)

weighting="standard" troca os dois pesos fora da diagonal, dando a
interpolação bilinear de livro-texto. Os dois modos coincidem em coordenadas
inteiras, na diagonal de cada célula e no centro dela.
"""
import math

import numpy as np

from .config import BILINEAR_WEIGHTINGS

# além disso floor(x) + 1 deixa de ser exato em float64
_COORD_LIMIT = float(2 ** 52)


def _check_weighting(weighting):
    if weighting not in BILINEAR_WEIGHTINGS:
        raise ValueError(f"weighting inválido: {weighting!r} (use {BILINEAR_WEIGHTINGS})")


def _corner_weights(wx0, wx1, wy0, wy1, weighting):
    # ordem: (lin0,col0), (lin0,col1), (lin1,col0), (lin1,col1)
    if weighting == "standard":
        return wx0 * wy0, wx1 * wy0, wx0 * wy1, wx1 * wy1
    return wx0 * wy0, wx0 * wy1, wx1 * wy0, wx1 * wy1


def _finite_coord(v):
    if math.isnan(v):
        return 0.0
    return min(_COORD_LIMIT, max(-_COORD_LIMIT, v))


def sample_bilinear(buf, x, y, weighting="legacy"):
    """
    Amostra buf em (x,y) reais. Retorna sempre 4 valores inteiros em [0,255];
    canais além de buf.channels valem 0.
    """
    _check_weighting(weighting)
    out = [0, 0, 0, 0]
    h, w, c = buf.shape
    if w == 0 or h == 0:
        return tuple(out)

    x = _finite_coord(float(x))
    y = _finite_coord(float(y))

    col0 = math.floor(x)
    row0 = math.floor(y)
    col1 = col0 + 1
    row1 = row0 + 1

    pc0 = min(max(col0, 0), w - 1)
    pc1 = min(max(col1, 0), w - 1)
    pr0 = min(max(row0, 0), h - 1)
    pr1 = min(max(row1, 0), h - 1)

    w00, w01, w10, w11 = _corner_weights(col1 - x, x - col0, row1 - y, y - row0, weighting)

    data = buf.array
    for ch in range(c):
        res = (float(data[pr0, pc0, ch]) * w00 + float(data[pr0, pc1, ch]) * w01
               + float(data[pr1, pc0, ch]) * w10 + float(data[pr1, pc1, ch]) * w11)
        out[ch] = min(255, max(0, math.floor(res)))
    return tuple(out)


def sample_bilinear_map(buf, xs, ys, weighting="legacy"):
    """
    Versão vetorizada de sample_bilinear.
    xs, ys: arrays de mesma forma S. Retorna uint8 de forma S + (4,).
    """
    _check_weighting(weighting)
    xs, ys = np.broadcast_arrays(np.asarray(xs, dtype=np.float64),
                                 np.asarray(ys, dtype=np.float64))
    out = np.zeros(xs.shape + (4,), dtype=np.uint8)
    h, w, c = buf.shape
    if w == 0 or h == 0 or c == 0 or xs.size == 0:
        return out

    xs = np.nan_to_num(xs, nan=0.0, posinf=_COORD_LIMIT, neginf=-_COORD_LIMIT)
    ys = np.nan_to_num(ys, nan=0.0, posinf=_COORD_LIMIT, neginf=-_COORD_LIMIT)
    xs = np.clip(xs, -_COORD_LIMIT, _COORD_LIMIT)
    ys = np.clip(ys, -_COORD_LIMIT, _COORD_LIMIT)

    col0 = np.floor(xs)
    row0 = np.floor(ys)
    col1 = col0 + 1
    row1 = row0 + 1

    pc0 = np.clip(col0, 0, w - 1).astype(np.intp)
    pc1 = np.clip(col1, 0, w - 1).astype(np.intp)
    pr0 = np.clip(row0, 0, h - 1).astype(np.intp)
    pr1 = np.clip(row1, 0, h - 1).astype(np.intp)

    w00, w01, w10, w11 = _corner_weights(col1 - xs, xs - col0, row1 - ys, ys - row0, weighting)

    # só os cantos amostrados viram float
    data = buf.array
    v00 = data[pr0, pc0].astype(np.float64)
    v01 = data[pr0, pc1].astype(np.float64)
    v10 = data[pr1, pc0].astype(np.float64)
    v11 = data[pr1, pc1].astype(np.float64)
    res = (v00 * w00[..., None] + v01 * w01[..., None]
           + v10 * w10[..., None] + v11 * w11[..., None])
    out[..., :c] = np.clip(np.floor(res), 0, 255).astype(np.uint8)
    return out
