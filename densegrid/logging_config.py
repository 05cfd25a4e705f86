"""
Configuración de logging para el namespace ``densegrid``.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configura el logger del paquete.

    Args:
        level: Nivel de logging (p. ej. logging.DEBUG, logging.INFO).
        log_file: Ruta opcional para guardar también los logs en archivo.
    """
    logger = logging.getLogger("densegrid")
    logger.setLevel(level)

    # Evita handlers duplicados si se llama varias veces
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging inicializado.")
