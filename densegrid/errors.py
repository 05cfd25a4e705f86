"""
Errores del cálculo de densidad.

Cada tipo se puede distinguir por separado para que quien llama decida entre
"configuración inválida", "cancelado" o "éxito" sin inspeccionar mensajes.
"""

from __future__ import annotations


class DensityError(Exception):
    """Raíz de todos los errores del constructor de densidad."""


class InvalidConfigError(DensityError, ValueError):
    """Resolución, suavizado o radio efectivo fuera de rango."""


class InvalidSelectionError(DensityError, IndexError):
    """La selección referencia índices que no existen en el conjunto de puntos."""


class DegenerateBoxError(DensityError, ValueError):
    """La caja envolvente tiene extensión nula o negativa en algún eje."""


class DensityCancelled(DensityError):
    """El cálculo se detuvo entre dos bloques a petición de quien llama."""

    def __init__(self, processed: int, total: int) -> None:
        super().__init__(f"Cálculo de densidad cancelado tras {processed}/{total} puntos.")
        self.processed = processed
        self.total = total
