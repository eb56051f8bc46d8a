"""
Configuração de logging
Prepara o logger do pacote 'featmorph' para a CLI.
"""
import logging
import sys


def setup_logging(level=logging.INFO, log_file=None):
    """
    Configura o logger do namespace 'featmorph'.

    Args:
        level: nível de logging (ex.: logging.DEBUG, logging.INFO)
        log_file: caminho opcional de um arquivo de log.
    """
    logger = logging.getLogger("featmorph")
    logger.setLevel(level)

    # evita handlers duplicados se a CLI for chamada mais de uma vez no mesmo processo
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging inicializado.")
    return logger
