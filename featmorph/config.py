"""
Parâmetros padrão e constantes globais do morphing por segmentos.

Não há arquivo de configuração: a CLI (featmorph.cli) é a superfície de
configuração e estes valores são os padrões dela e da API.
"""
from dataclasses import dataclass

# Parâmetros de forma do peso de cada segmento:
#   peso = (comprimento**p / (a + distancia))**b
DEFAULT_A = 0.5
DEFAULT_B = 1.0
DEFAULT_P = 0.2

# As duas imagens são carregadas com o mesmo número de canais (RGBA)
DEFAULT_CHANNELS = 4
MAX_CHANNELS = 4

# Faixa de linhas processada por vez no warping vetorizado
ROWS_PER_CHUNK = 64

# Arredondamento da coordenada de origem final (1e-9 px)
SOURCE_SNAP_DECIMALS = 9

ENDPOINT_MODES = ("start", "nearest")
BILINEAR_WEIGHTINGS = ("legacy", "standard")


@dataclass
class MorphParams:
    """Tempo t e escalares de forma (a, b, p) de uma chamada de morph."""
    t: float = 0.5
    a: float = DEFAULT_A
    b: float = DEFAULT_B
    p: float = DEFAULT_P

    @classmethod
    def clamped(cls, t, a=DEFAULT_A, b=DEFAULT_B, p=DEFAULT_P):
        """Cria os parâmetros com t recortado para [0,1] (camada de chamada, não o núcleo)."""
        return cls(t=min(1.0, max(0.0, float(t))), a=float(a), b=float(b), p=float(p))

    def validate(self):
        if not (0.0 <= self.t <= 1.0):
            raise ValueError(f"t fora de [0,1]: {self.t}")
        if not self.a > 0.0:
            raise ValueError(f"a deve ser > 0: {self.a}")
        if not self.b >= 0.0:
            raise ValueError(f"b deve ser >= 0: {self.b}")
        if not self.p >= 0.0:
            raise ValueError(f"p deve ser >= 0: {self.p}")
        return self
