"""
Configuracion de logging para los puntos de entrada.
"""
import sys

from loguru import logger

from posts_sync.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """
    Configura loguru: consola al nivel configurado y archivo rotativo.

    Reemplaza los sinks existentes, por lo que puede llamarse mas de una vez.
    """
    level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL

    logger.remove()
    logger.add(sys.stderr, level=level)

    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=level,
        )

    logger.debug(f"Logging configurado (nivel={level}, archivo={settings.LOG_FILE or '-'})")
