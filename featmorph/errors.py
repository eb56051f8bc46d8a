"""Erros de contrato do morphing. Todos derivam de MorphError."""


class MorphError(Exception):
    pass


class FeatureMismatchError(MorphError, ValueError):
    """Listas de segmentos com tamanhos diferentes."""


class ImageShapeMismatchError(MorphError, ValueError):
    """Imagens com largura, altura ou número de canais diferentes."""


class CorrespondenceFormatError(MorphError, ValueError):
    """Arquivo de correspondências malformado."""


class ImageIOError(MorphError, OSError):
    """Falha ao decodificar ou gravar uma imagem."""
