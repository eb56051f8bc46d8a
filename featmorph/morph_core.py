import logging
import os

import numpy as np
from PIL import Image

from .buffer import PixelBuffer
from .config import DEFAULT_CHANNELS
from .errors import CorrespondenceFormatError, FeatureMismatchError, ImageIOError
from .geometry import FeatureSegment

logger = logging.getLogger(__name__)

_MODES = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}

# ------------------------- Imagens (Pillow) <-> PixelBuffer -------------------------

def from_pil(im, channels=DEFAULT_CHANNELS):
    """
    Converte PIL.Image em PixelBuffer com 'channels' canais (1=L, 2=LA, 3=RGB, 4=RGBA).
    channels=None preserva L/LA/RGB/RGBA e converte outros modos para RGBA.
    """
    if channels is None:
        if im.mode not in _MODES.values():
            im = im.convert("RGBA")
    else:
        if channels not in _MODES:
            raise ValueError(f"channels deve ser 1..4 ou None (recebido {channels})")
        if im.mode != _MODES[channels]:
            im = im.convert(_MODES[channels])
    return PixelBuffer.from_array(np.asarray(im, dtype=np.uint8))


def to_pil(buf):
    if buf.channels not in _MODES:
        raise ValueError(f"Sem modo Pillow para {buf.channels} canais")
    arr = buf.to_array()
    if buf.channels == 1:
        arr = arr[:, :, 0]
    return Image.fromarray(arr)


def load_image(path, channels=DEFAULT_CHANNELS):
    """
    Lê uma imagem do disco como PixelBuffer. Por padrão força RGBA, para que as
    duas entradas do morph tenham sempre o mesmo número de canais.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Imagem não encontrada: {path}")
    try:
        with Image.open(path) as im:
            im.load()
            buf = from_pil(im, channels)
    except OSError as e:
        raise ImageIOError(f"Não foi possível ler a imagem {path}: {e}") from e
    logger.debug("Imagem %s carregada: %r", path, buf)
    return buf


def save_image(buf, path):
    """Grava buf em path; o formato vem da extensão. Retorna o caminho."""
    ext = os.path.splitext(path)[1].lower()
    if ext not in Image.registered_extensions():
        raise ImageIOError(f"Formato de saída não suportado: {path}")
    try:
        to_pil(buf).save(path)
    except (OSError, ValueError) as e:
        raise ImageIOError(f"Erro ao gravar a imagem {path}: {e}") from e
    logger.debug("Imagem gravada em %s", path)
    return path

# ------------------------- Arquivo de correspondências -------------------------

def load_segments(path):
    """
    Lê pares de segmentos correspondentes.

    Formato (texto, separado por espaços):
        N
        asx asy aex aey bsx bsy bex bey     (N linhas)
    O segmento 'a' é da imagem 1 e o 'b' da imagem 2. Ignora linhas vazias e
    '#'. Linhas depois do N-ésimo par são ignoradas.
    Retorna (seg1, seg2), listas de FeatureSegment alinhadas por índice.
    """
    seg1, seg2 = [], []
    n = None
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            parts = s.split()
            if n is None:
                try:
                    n = int(parts[0])
                except ValueError:
                    raise CorrespondenceFormatError(
                        f"{path}:{lineno}: número de segmentos inválido: {parts[0]!r}") from None
                if n < 0:
                    raise CorrespondenceFormatError(f"{path}:{lineno}: número de segmentos negativo: {n}")
                continue
            if len(seg1) >= n:
                break
            if len(parts) != 8:
                raise CorrespondenceFormatError(
                    f"{path}:{lineno}: esperados 8 valores por par, encontrados {len(parts)}")
            try:
                v = [float(tok) for tok in parts]
            except ValueError:
                raise CorrespondenceFormatError(
                    f"{path}:{lineno}: valor não numérico no par {len(seg1)}") from None
            seg1.append(FeatureSegment.from_coords(*v[:4]))
            seg2.append(FeatureSegment.from_coords(*v[4:]))

    if n is None:
        raise CorrespondenceFormatError(f"{path}: arquivo vazio (falta o número de segmentos)")
    if len(seg1) != n:
        raise CorrespondenceFormatError(f"{path}: esperados {n} pares de segmentos, lidos {len(seg1)}")
    return seg1, seg2


def save_segments(path, seg1, seg2):
    if len(seg1) != len(seg2):
        raise FeatureMismatchError(f"Listas de segmentos com tamanhos diferentes: {len(seg1)} != {len(seg2)}")
    with open(path, "w", encoding="utf-8") as f:
        f.write(f"{len(seg1)}\n")
        for a, b in zip(seg1, seg2):
            f.write(" ".join(f"{v:.6f}" for v in a.as_tuple() + b.as_tuple()) + "\n")
    return path

# ------------------------- Paleta e sobreposição de segmentos -------------------------

# Cores por índice de feição (RGB em bytes); a mesma feição tem a mesma cor nas duas imagens
PALETTE = (
    (255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 0, 255),
    (0, 255, 255), (255, 255, 0), (255, 77, 179), (255, 179, 77),
    (179, 255, 77), (77, 255, 179), (179, 77, 255), (77, 179, 255),
    (255, 128, 128), (128, 255, 128), (128, 128, 255), (255, 128, 255),
    (128, 255, 255), (255, 255, 128), (128, 0, 0), (0, 128, 0),
    (0, 0, 128), (128, 0, 128), (0, 128, 128), (128, 128, 0),
)


def palette_color(i):
    return PALETTE[i % len(PALETTE)]


def _pixel_color(color, channels):
    # cor da paleta ajustada ao número de canais do buffer
    r, g, b = color
    if channels == 1:
        return np.array([(r + g + b) / 3.0])
    if channels == 2:
        return np.array([(r + g + b) / 3.0, 255.0])
    if channels == 3:
        return np.array([r, g, b], dtype=np.float64)
    return np.array([r, g, b, 255.0])


def _clip_to_image(p, q, W, H):
    """
    Recorta o segmento p->q ao retângulo coberto pelos pixels (Liang-Barsky).
    Retorna (p', q') ou None se nada do segmento cai na imagem.
    """
    x0, y0 = p
    dx, dy = q[0] - x0, q[1] - y0
    if not (np.isfinite(dx) and np.isfinite(dy)):
        return None
    lo, hi = 0.0, 1.0
    for step, room in ((-dx, x0 + 0.5), (dx, W - 0.5 - x0), (-dy, y0 + 0.5), (dy, H - 0.5 - y0)):
        if step == 0:
            if room < 0:
                return None
            continue
        r = room / step
        if step < 0:
            lo = max(lo, r)
        else:
            hi = min(hi, r)
        if lo > hi:
            return None
    return (x0 + lo * dx, y0 + lo * dy), (x0 + hi * dx, y0 + hi * dy)


def _segment_pixels(p, q, W, H):
    """Pixels (linhas, colunas) cobertos por p->q, sem repetição e dentro da imagem."""
    clipped = _clip_to_image(p, q, W, H)
    if clipped is None:
        return np.zeros(0, dtype=np.intp), np.zeros(0, dtype=np.intp)
    (x0, y0), (x1, y1) = clipped
    # meio pixel por passo no eixo dominante: linha conexa mesmo com arredondamento
    n = 2 * int(np.ceil(max(abs(x1 - x0), abs(y1 - y0)))) + 1
    cols = np.clip(np.floor(np.linspace(x0, x1, n) + 0.5), 0, W - 1).astype(np.intp)
    rows = np.clip(np.floor(np.linspace(y0, y1, n) + 0.5), 0, H - 1).astype(np.intp)
    flat = np.unique(rows * W + cols)
    return flat // W, flat % W


def _mark_start(img, p, color, radius=1):
    H, W = img.shape[:2]
    cx, cy = int(round(p[0])), int(round(p[1]))
    y0, y1 = max(0, cy - radius), min(H, cy + radius + 1)
    x0, x1 = max(0, cx - radius), min(W, cx + radius + 1)
    if y0 < y1 and x0 < x1:
        img[y0:y1, x0:x1, :] = color
    return img


def draw_segments(buf, segments, alpha=0.8, mark_start=True):
    """
    Desenha os segmentos sobre a imagem, cada um com a cor da paleta do seu
    índice; o início de cada segmento recebe uma marca 3x3. Retorna um novo
    PixelBuffer, a entrada não é alterada.
    """
    H, W = buf.height, buf.width
    if buf.channels == 0 or W == 0 or H == 0:
        return buf.copy()
    out = buf.to_array().astype(np.float64)
    a = float(alpha)
    for i, seg in enumerate(segments):
        p = (seg.start.x, seg.start.y)
        q = (seg.end.x, seg.end.y)
        if not np.all(np.isfinite(p + q)):
            continue
        color = _pixel_color(palette_color(i), buf.channels)
        rows, cols = _segment_pixels(p, q, W, H)
        out[rows, cols] = (1.0 - a) * out[rows, cols] + a * color
        if mark_start:
            _mark_start(out, p, color)
    return PixelBuffer.from_array(np.clip(np.round(out), 0, 255).astype(np.uint8))
