"""
Driver de linha de comando: gera um frame (ou uma sequência) do morph.

Uso:
    featmorph image1 image2 segments_file t output.png [a b p]
    featmorph A.png B.png segs.txt 0 out/frame.png --frames 21 --sigmoid-k 8
"""
import argparse
import logging
import os
import sys

from .config import (BILINEAR_WEIGHTINGS, DEFAULT_A, DEFAULT_B, DEFAULT_CHANNELS,
                     DEFAULT_P, ENDPOINT_MODES, MorphParams)
from .errors import ImageShapeMismatchError, MorphError
from .logging_config import setup_logging
from .morph_core import draw_segments, load_image, load_segments, save_image
from .warp import morph, morph_sequence

logger = logging.getLogger(__name__)


def build_parser():
    ap = argparse.ArgumentParser(
        prog="featmorph",
        description="Morph por segmentos de feição (Beier & Neely) entre duas imagens.")
    ap.add_argument("image1")
    ap.add_argument("image2")
    ap.add_argument("segments", help="Arquivo de pares de segmentos")
    ap.add_argument("t", type=float, help="Tempo em [0,1] (recortado se estiver fora)")
    ap.add_argument("output", help="Imagem de saída (.png, .bmp, ...)")
    ap.add_argument("shape", nargs="*", type=float, metavar="a b p",
                    help=f"Parâmetros de forma, os três ou nenhum (padrão {DEFAULT_A} {DEFAULT_B} {DEFAULT_P})")
    ap.add_argument("--frames", type=int, default=None,
                    help="Gera N frames igualmente espaçados (t é ignorado)")
    ap.add_argument("--sigmoid-k", type=float, default=None,
                    help="Com --frames: mistura de cores segue uma sigmoide de inclinação k")
    ap.add_argument("--endpoint-mode", choices=ENDPOINT_MODES, default="start")
    ap.add_argument("--bilinear", choices=BILINEAR_WEIGHTINGS, default="legacy")
    ap.add_argument("--parallel", action="store_true", help="Distorce as duas imagens em paralelo")
    ap.add_argument("--overlay", action="store_true",
                    help="Salva também as entradas com os segmentos desenhados")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    ap.add_argument("--log-file", default=None)
    return ap


def _with_suffix(path, suffix):
    stem, ext = os.path.splitext(path)
    return f"{stem}{suffix}{ext or '.png'}"


def main(argv=None):
    ap = build_parser()
    args = ap.parse_args(argv)

    if len(args.shape) not in (0, 3):
        ap.error("informe os três parâmetros a b p, ou nenhum")
    if args.frames is not None and args.frames < 1:
        ap.error("--frames deve ser >= 1")
    a, b, p = args.shape if args.shape else (DEFAULT_A, DEFAULT_B, DEFAULT_P)

    setup_logging(getattr(logging, args.log_level), args.log_file)

    if not (0.0 <= args.t <= 1.0):
        logger.warning("Tempo t=%s fora de [0,1]: recortando", args.t)
    params = MorphParams.clamped(args.t, a, b, p)
    try:
        params.validate()
    except ValueError as e:
        ap.error(str(e))

    opts = dict(endpoint_mode=args.endpoint_mode, weighting=args.bilinear, parallel=args.parallel)
    logger.info("Morph de %s para %s, parâmetros { a : %g, b : %g, p : %g }",
                args.image1, args.image2, params.a, params.b, params.p)

    try:
        img1 = load_image(args.image1, DEFAULT_CHANNELS)
        img2 = load_image(args.image2, DEFAULT_CHANNELS)
        if not img1.same_dims_as(img2):
            raise ImageShapeMismatchError(
                f"As duas imagens devem ter as mesmas dimensões: "
                f"{img1.width}x{img1.height} vs {img2.width}x{img2.height}")
        logger.info("Carregadas duas imagens %dx%d com %d canais", img1.width, img1.height, img1.channels)

        seg1, seg2 = load_segments(args.segments)
        logger.info("Lidos %d segmentos", len(seg1))

        if args.overlay:
            save_image(draw_segments(img1, seg1), _with_suffix(args.output, "_overlay1"))
            save_image(draw_segments(img2, seg2), _with_suffix(args.output, "_overlay2"))

        if args.frames is not None:
            frames = morph_sequence(img1, img2, seg1, seg2, args.frames, params.a, params.b, params.p,
                                    k=args.sigmoid_k, **opts)
            for f, (t, frame) in enumerate(frames):
                out = save_image(frame, _with_suffix(args.output, f"_{f:03d}"))
                logger.info("Frame %d (t=%.3f) salvo em %s", f, t, out)
        else:
            logger.info("Gerando %s em t = %g", args.output, params.t)
            frame = morph(img1, img2, seg1, seg2, params.t, params.a, params.b, params.p, **opts)
            save_image(frame, args.output)
    except (MorphError, OSError) as e:
        print(f"ERRO: {e}", file=sys.stderr)
        return 1

    logger.info("Concluído.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
