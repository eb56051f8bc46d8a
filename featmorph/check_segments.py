"""
Verificador de correspondências de segmentos (imagem 1 vs imagem 2).

Checa:
1) Mesma contagem de segmentos (N_1 == N_2)
2) Extremidades finitas e dentro do domínio (opcional, se passadas as imagens)
3) Segmentos degenerados (comprimento zero; são ignorados pelo warping)
4) Segmentos duplicados no mesmo arquivo (inclusive percorridos ao contrário)
5) Similaridade global B ~ c*A + d e resíduo por feição
6) Pares cuja direção gira mais de 90° em relação à rotação média
7) Pares de feições que se cruzam numa imagem e não na outra (dobras no warping)

Uso:
    featmorph-check --segments data/segmentos.txt [--img1 data/A.png --img2 data/B.png] [--report report.txt]
"""
import argparse
import sys

import numpy as np
from PIL import Image
from scipy.spatial import cKDTree

from .errors import MorphError
from .morph_core import load_segments


def endpoints(segs):
    """Extremidades (2N,2): start e end de cada segmento, em ordem."""
    return segment_rows(segs).reshape(-1, 2)


def segment_rows(segs):
    if not segs:
        return np.zeros((0, 4), dtype=np.float64)
    return np.array([s.as_tuple() for s in segs], dtype=np.float64)


def _as_complex(P):
    return P[:, 0] + 1j * P[:, 1]


def _directions(segs):
    R = segment_rows(segs)
    return _as_complex(R[:, 2:4] - R[:, 0:2])


def rms(x):
    return float(np.sqrt(np.mean(x**2))) if x.size else 0.0


def wrap_degrees(a):
    return (np.asarray(a) + 180.0) % 360.0 - 180.0

# ------------------------- Transformações -------------------------

def pair_transforms(seg1, seg2):
    """
    Cada par define uma similaridade exata: o segmento 1 vira o 2 com escala s
    e rotação θ. Retorna (s (N,), θ em graus (N,)); pares com algum segmento
    degenerado ficam NaN.
    """
    z1, z2 = _directions(seg1), _directions(seg2)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = z2 / z1
    ratio[(z1 == 0) | (z2 == 0)] = np.nan
    return np.abs(ratio), np.degrees(np.angle(ratio))


def fit_similarity(seg1, seg2):
    """
    Similaridade global B ~ c*A + d por mínimos quadrados (c complexo: escala
    e rotação) sobre as extremidades de todos os pares.
    Retorna c, d e o resíduo de cada feição (pior das duas extremidades), em px.
    """
    A = _as_complex(endpoints(seg1))
    B = _as_complex(endpoints(seg2))
    X = np.c_[A, np.ones_like(A)]
    sol, *_ = np.linalg.lstsq(X, B, rcond=None)
    c, d = complex(sol[0]), complex(sol[1])
    err = np.abs(c * A + d - B).reshape(-1, 2).max(axis=1)
    return c, d, err


def turned_pairs(seg1, seg2, max_turn=90.0):
    """
    Pares cuja rotação se afasta mais de max_turn graus da rotação média
    (média circular das rotações dos pares válidos).
    Retorna (índices, rotação média em graus).
    """
    _, rot = pair_transforms(seg1, seg2)
    valid = np.isfinite(rot)
    if not valid.any():
        return [], 0.0
    base = float(np.degrees(np.angle(np.exp(1j * np.radians(rot[valid])).sum())))
    turn = wrap_degrees(rot - base)
    idx = [int(i) for i in np.flatnonzero(valid & (np.abs(np.where(valid, turn, 0.0)) > max_turn))]
    return idx, base

# ------------------------- Cruzamentos -------------------------

def _orient(p, q, r):
    return np.sign((q.x - p.x) * (r.y - p.y) - (q.y - p.y) * (r.x - p.x))


def segments_cross(s, r):
    """Cruzamento próprio (interior com interior); encostar na ponta não conta."""
    o1 = _orient(s.start, s.end, r.start)
    o2 = _orient(s.start, s.end, r.end)
    o3 = _orient(r.start, r.end, s.start)
    o4 = _orient(r.start, r.end, s.end)
    return bool(o1 * o2 < 0 and o3 * o4 < 0)


def crossing_changes(seg1, seg2):
    """Pares (i,j) que se cruzam em uma das imagens e não na outra."""
    out = []
    n = min(len(seg1), len(seg2))
    for i in range(n):
        for j in range(i + 1, n):
            if segments_cross(seg1[i], seg1[j]) != segments_cross(seg2[i], seg2[j]):
                out.append((i, j))
    return out

# ------------------------- Checagens por lista -------------------------

def duplicate_segments(segs, tol=1e-6):
    """Pares de índices de segmentos praticamente iguais, em qualquer sentido."""
    R = segment_rows(segs)
    finite = np.flatnonzero(np.all(np.isfinite(R), axis=1))
    if finite.size < 2:
        return []
    rows = R[finite]
    m = rows.shape[0]
    tree = cKDTree(np.vstack([rows, rows[:, [2, 3, 0, 1]]]))
    dup = set()
    for i, j in tree.query_pairs(tol):
        a, b = int(finite[i % m]), int(finite[j % m])
        if a != b:
            dup.add((min(a, b), max(a, b)))
    return sorted(dup)


def degenerate_segments(segs):
    return [i for i, s in enumerate(segs) if s.is_degenerate()]


def bound_checks(segs, W, H):
    out = []
    for i, s in enumerate(segs):
        for name, pt in (("start", s.start), ("end", s.end)):
            if not (np.isfinite(pt.x) and np.isfinite(pt.y)):
                out.append((i, name, "NaN/Inf"))
            elif pt.x < 0 or pt.y < 0 or pt.x > W-1 or pt.y > H-1:
                out.append((i, name, "fora dos limites"))
    return out


def _resumo(items):
    return f"{items[:5]}{'...' if len(items) > 5 else ''}"


def check_segments(seg1, seg2, size1=None, size2=None):
    """
    Executa todas as checagens. size1/size2 = (W,H) das imagens, opcionais.
    Retorna (ok, linhas do relatório).
    """
    lines = []
    ok = True
    n1, n2 = len(seg1), len(seg2)
    same_n = n1 == n2

    # 1) N iguais
    if not same_n:
        ok = False
        lines.append(f"ERRO: N_1 != N_2 ({n1} != {n2})")
    else:
        lines.append(f"OK: N_1 == N_2 ({n1})")

    # 2) limites se tamanhos fornecidos
    for name, segs, size in (("1", seg1, size1), ("2", seg2, size2)):
        if size is None:
            continue
        b = bound_checks(segs, *size)
        if b:
            ok = False
            lines.append(f"ERRO: {len(b)} extremidades de {name} fora/inválidas: {_resumo(b)}")
        else:
            lines.append(f"OK: extremidades de {name} dentro dos limites")

    # 3) degenerados
    for name, segs in (("1", seg1), ("2", seg2)):
        d = degenerate_segments(segs)
        if d:
            ok = False
            lines.append(f"ERRO: segmentos de comprimento zero em {name}: {_resumo(d)}")
        else:
            lines.append(f"OK: sem segmentos degenerados em {name}")

    # 4) duplicatas por lista
    for name, segs in (("1", seg1), ("2", seg2)):
        dup = duplicate_segments(segs)
        if dup:
            ok = False
            lines.append(f"ERRO: duplicatas em {name} (pares): {_resumo(dup)}")
        else:
            lines.append(f"OK: sem duplicatas em {name}")

    comparable = same_n and n1 > 0 and bool(
        np.all(np.isfinite(segment_rows(seg1))) and np.all(np.isfinite(segment_rows(seg2))))

    # 5) similaridade global
    if comparable:
        c, _, err = fit_similarity(seg1, seg2)
        worst = int(np.argmax(err))
        lines.append(f"Similaridade global: escala={abs(c):.4f}, rotação={np.degrees(np.angle(c)):.2f}°, "
                     f"RMS = {rms(err):.3f} px (pior feição: {worst}, {err[worst]:.3f} px)")
    else:
        lines.append("Similaridade global: insuficiente (N=0, N_1!=N_2 ou extremidades inválidas)")

    # 6) direção de cada par
    if comparable:
        turned, base = turned_pairs(seg1, seg2)
        if turned:
            ok = False
            lines.append(f"ERRO: {len(turned)} pares giram mais de 90° em relação à rotação média "
                         f"({base:.2f}°): {_resumo(turned)}")
        else:
            lines.append(f"OK: todos os pares seguem a rotação média ({base:.2f}°)")

    # 7) cruzamentos
    if comparable:
        changes = crossing_changes(seg1, seg2)
        if changes:
            ok = False
            lines.append(f"ERRO: {len(changes)} pares de feições mudam de cruzamento entre 1 e 2 "
                         f"(pode causar dobras). Ex.: {changes[:3]}")
        else:
            lines.append("OK: cruzamentos entre feições iguais nas duas imagens")

    lines.append("STATUS FINAL: " + ("OK" if ok else "ATENÇÃO, veja erros acima"))
    return ok, lines


def _image_size(path):
    with Image.open(path) as im:
        return im.size


def main(argv=None):
    ap = argparse.ArgumentParser(description="Checa um arquivo de correspondências de segmentos.")
    ap.add_argument("--segments", required=True, help="Arquivo de pares de segmentos")
    ap.add_argument("--img1", default=None)
    ap.add_argument("--img2", default=None)
    ap.add_argument("--report", default=None, help="Se fornecido, escreve relatório de texto neste caminho")
    args = ap.parse_args(argv)

    try:
        seg1, seg2 = load_segments(args.segments)
        size1 = _image_size(args.img1) if args.img1 else None
        size2 = _image_size(args.img2) if args.img2 else None
    except (MorphError, OSError) as e:
        print(f"ERRO: {e}", file=sys.stderr)
        return 1

    ok, lines = check_segments(seg1, seg2, size1, size2)
    lines.insert(0, f"Arquivo: {args.segments}  | N_1={len(seg1)}  N_2={len(seg2)}")

    report = "\n".join(lines)
    print(report)
    if args.report:
        with open(args.report, "w", encoding="utf-8") as f:
            f.write(report + "\n")
        print(f"\nRelatório salvo em: {args.report}")
    return 0 if ok else 1

if __name__ == "__main__":
    sys.exit(main())
