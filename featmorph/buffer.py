"""
Buffer de pixels com 1 byte por canal.

Layout: linhas em sequência (row-major), array numpy uint8 de forma (H,W,C).
O buffer é dono exclusivo da sua memória: os construtores copiam os dados de
entrada e o array exposto é somente leitura, então nunca há aliasing entre uma
imagem "origem" e uma imagem derivada.
"""
import numpy as np

from .config import MAX_CHANNELS


class PixelBuffer:
    """Imagem W x H x C (0 <= C <= 4), bytes por canal."""

    __hash__ = None

    def __init__(self, width, height, channels, data=None):
        width, height, channels = int(width), int(height), int(channels)
        if width < 0 or height < 0 or channels < 0:
            raise ValueError(f"Dimensões devem ser não-negativas: {width}x{height}x{channels}")
        if channels > MAX_CHANNELS:
            raise ValueError(f"No máximo {MAX_CHANNELS} canais por pixel (recebido {channels})")

        shape = (height, width, channels)
        if data is None:
            arr = np.zeros(shape, dtype=np.uint8)
        else:
            if isinstance(data, (bytes, bytearray, memoryview)):
                arr = np.frombuffer(data, dtype=np.uint8).copy()
            else:
                arr = _as_bytes_array(data)
            if arr.size != width * height * channels:
                raise ValueError(
                    f"Tamanho dos dados ({arr.size}) != W*H*C ({width}*{height}*{channels})")
            arr = np.ascontiguousarray(arr.reshape(shape))
        self._data = arr

    @classmethod
    def from_array(cls, arr):
        """Cria um buffer a partir de array (H,W) ou (H,W,C). Sempre copia."""
        arr = np.asarray(arr)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3:
            raise ValueError(f"Esperado array (H,W) ou (H,W,C), recebido shape {arr.shape}")
        h, w, c = arr.shape
        return cls(w, h, c, arr)

    @classmethod
    def _adopt(cls, arr):
        # assume posse de um array (H,W,C) uint8 recém-alocado, sem copiar
        buf = cls.__new__(cls)
        buf._data = np.ascontiguousarray(arr, dtype=np.uint8)
        return buf

    @property
    def width(self):
        return self._data.shape[1]

    @property
    def height(self):
        return self._data.shape[0]

    @property
    def channels(self):
        return self._data.shape[2]

    @property
    def shape(self):
        return self._data.shape

    @property
    def array(self):
        """Visão somente leitura dos pixels, forma (H,W,C)."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def to_array(self):
        """Cópia gravável dos pixels."""
        return self._data.copy()

    def tobytes(self):
        return self._data.tobytes()

    def copy(self):
        return PixelBuffer._adopt(self._data.copy())

    def pixel(self, row, col):
        return tuple(int(v) for v in self._data[row, col])

    def same_dims_as(self, other):
        return self._data.shape == other._data.shape

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.same_dims_as(other) and np.array_equal(self._data, other._data)

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height}x{self.channels})"


def _as_bytes_array(data):
    arr = np.asarray(data)
    if arr.dtype == np.uint8:
        return arr.copy()
    if arr.size and (not np.all(np.isfinite(arr)) or arr.min() < 0 or arr.max() > 255):
        raise ValueError("Valores de pixel devem estar em [0,255]")
    return arr.astype(np.uint8)
