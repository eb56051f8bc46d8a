"""
Primitivas geométricas 2D usadas pelo warping por segmentos (Beier & Neely).

Coordenadas em pixels: origem no canto superior esquerdo, x para a direita,
y para baixo. O centro do pixel (col, lin) fica exatamente em (col, lin).
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from .config import ENDPOINT_MODES


def _lerp(a, b, t):
    # exato em t=0, t=1 e quando a == b
    if t < 0.5:
        return a + (b - a) * t
    return b - (b - a) * (1.0 - t)


@dataclass(frozen=True)
class Vector2:
    """Ponto/vetor 2D com semântica de valor."""
    x: float
    y: float

    def __add__(self, other: Vector2) -> Vector2:
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vector2) -> Vector2:
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> Vector2:
        return Vector2(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector2:
        if scalar == 0.0:
            raise ZeroDivisionError("divisão de Vector2 por zero")
        return Vector2(self.x / scalar, self.y / scalar)

    def __neg__(self) -> Vector2:
        return Vector2(-self.x, -self.y)

    def dot(self, other: Vector2) -> float:
        return self.x * other.x + self.y * other.y

    def perp(self) -> Vector2:
        """Rotação de 90° no sentido anti-horário, mesmo módulo: (x,y) -> (-y,x)."""
        return Vector2(-self.y, self.x)

    def length2(self) -> float:
        return self.dot(self)

    def length(self) -> float:
        return math.sqrt(self.length2())

    def lerp(self, other: Vector2, t: float) -> Vector2:
        return Vector2(_lerp(self.x, other.x, t), _lerp(self.y, other.y, t))

    def as_tuple(self):
        return (self.x, self.y)


@dataclass(frozen=True)
class FeatureSegment:
    """
    Segmento de feição: par ordenado (start, end).

    Pode ser degenerado (comprimento zero). Nesse caso direction()/perp()
    valem (0,0) e line_parameter()/signed_line_distance() devolvem 0.0 em vez
    de dividir por zero; o motor de warping descarta o segmento (peso 0).
    """
    start: Vector2
    end: Vector2

    @classmethod
    def from_coords(cls, x0, y0, x1, y1) -> FeatureSegment:
        return cls(Vector2(float(x0), float(y0)), Vector2(float(x1), float(y1)))

    def as_tuple(self):
        return (self.start.x, self.start.y, self.end.x, self.end.y)

    def direction(self) -> Vector2:
        """Direção não normalizada: end - start."""
        return self.end - self.start

    def perp(self) -> Vector2:
        return self.direction().perp()

    def length2(self) -> float:
        return self.direction().length2()

    def length(self) -> float:
        return math.sqrt(self.length2())

    def is_degenerate(self) -> bool:
        return self.length2() == 0.0

    def line_parameter(self, p: Vector2) -> float:
        """
        Parâmetro u da projeção ortogonal de p na reta suporte:
        o ponto mais próximo é start + u*(end - start).
        u < 0 antes de start, u > 1 depois de end.
        """
        len2 = self.length2()
        if len2 == 0.0:
            return 0.0
        return self.direction().dot(p - self.start) / len2

    def signed_line_distance(self, p: Vector2) -> float:
        """Distância com sinal de p à reta suporte (normalizada pelo comprimento)."""
        length = self.length()
        if length == 0.0:
            return 0.0
        return (p - self.start).dot(self.perp()) / length

    def segment_distance(self, p: Vector2, u: float, v: float, endpoint_mode="start") -> float:
        """
        Distância (sem sinal) de p ao segmento finito, com u e v já calculados.

        endpoint_mode:
        - "start": fora de [0,1] (antes OU depois) mede até start. Modo legado,
          mantido para compatibilidade de saída.
        - "nearest": variante corrigida, antes de start mede até start e
          depois de end mede até end.
        """
        if endpoint_mode not in ENDPOINT_MODES:
            raise ValueError(f"endpoint_mode inválido: {endpoint_mode!r}")
        if u < 0:
            return (p - self.start).length()
        if u > 1:
            if endpoint_mode == "nearest":
                return (p - self.end).length()
            return (p - self.start).length()
        return abs(v)

    def segment_distance_to(self, p: Vector2, endpoint_mode="start") -> float:
        u = self.line_parameter(p)
        v = self.signed_line_distance(p)
        return self.segment_distance(p, u, v, endpoint_mode)

    def lerp(self, other: FeatureSegment, t: float) -> FeatureSegment:
        """Interpola extremidade a extremidade: self em t=0, other em t=1."""
        return FeatureSegment(self.start.lerp(other.start, t), self.end.lerp(other.end, t))
