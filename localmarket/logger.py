'''
Logger centralisé du service de recherche.

Sortie console colorée au niveau LOG_LEVEL, plus un fichier par famille de
niveaux dans LOG_DIR (debug, info/warning, error), rotation à minuit.
'''

import os
import sys

from loguru import logger

from localmarket.config import settings

CONSOLE_FORMAT = (
    "<white>{time:YYYY-MM-DD HH:mm:ss.SSS}</white> | "
    "<level>{level: <8}</level> | "
    "<light-black>{name}:{function}:{line}</light-black> - "
    "<level><b>{message}</b></level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# fichier -> (niveau minimal, niveaux retenus ; None = tout à partir du minimum)
LOG_FILES = {
    "debug.log": ("DEBUG", {"DEBUG"}),
    "info.log": ("INFO", {"INFO", "WARNING"}),
    "error.log": ("ERROR", None),
}


def _only(levels):
    if levels is None:
        return None
    return lambda record: record["level"].name in levels


def configure_logging(log_dir: str = settings.LOG_DIR, level: str = settings.LOG_LEVEL) -> None:
    """(Re)configure les handlers loguru ; appelée une fois à l'import."""
    os.makedirs(log_dir, exist_ok=True)
    logger.remove()

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True, backtrace=True)

    for filename, (min_level, levels) in LOG_FILES.items():
        logger.add(
            os.path.join(log_dir, filename),
            level=min_level,
            format=FILE_FORMAT,
            filter=_only(levels),
            rotation="00:00",
            retention=settings.LOG_RETENTION,
            compression="zip",
            encoding="utf-8",
            backtrace=min_level == "ERROR",
            diagnose=min_level == "ERROR",
        )


configure_logging()
