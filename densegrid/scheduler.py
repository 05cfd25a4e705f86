"""
Planificación cooperativa de la acumulación.

La acumulación se divide en bloques de puntos. Tras cada bloque se notifica el
progreso y se consulta si hay que detenerse. El planificador sólo guarda un
cursor sobre los índices de orden; los datos viven en los buffers del cálculo.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

# Visitas a voxeles aproximadas por bloque.
SLICE_VOXEL_BUDGET = 100_000


def slice_size(max_radius: float, resolution: float, budget: int = SLICE_VOXEL_BUDGET) -> int:
    """
    Número de puntos por bloque.

    Radios grandes y resoluciones finas tocan más voxeles por punto, así que el
    bloque se reduce para acotar el trabajo. Siempre es al menos 1.
    """
    ng = math.ceil(2.0 * max_radius / resolution)
    voxels_per_point = (2 * ng + 2) ** 3
    return max(1, budget // voxels_per_point)


class ProgressSink:
    """Interfaz del receptor de progreso. Por defecto ignora las notificaciones y nunca pide detenerse."""

    def update(self, current: int, total: int, message: str) -> None:
        pass

    @property
    def should_stop(self) -> bool:
        return False


class NullProgress(ProgressSink):
    """Receptor que descarta el progreso; el cálculo corre hasta el final."""


class CallbackProgress(ProgressSink):
    """
    Reenvía el progreso a una función y expone la cancelación mediante un
    ``threading.Event``.

    El callback se ejecuta en el hilo del cálculo; debe volver enseguida.
    """

    def __init__(
        self,
        callback: Optional[Callable[[int, int, str], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.callback = callback
        self.stop_event = stop_event or threading.Event()

    def update(self, current: int, total: int, message: str) -> None:
        if self.callback is not None:
            self.callback(current, total, message)

    def cancel(self) -> None:
        self.stop_event.set()

    @property
    def should_stop(self) -> bool:
        return self.stop_event.is_set()


@dataclass
class SliceCursor:
    """Posición de reanudación sobre los ``total`` puntos seleccionados."""

    total: int
    chunk: int
    position: int = 0

    @property
    def done(self) -> bool:
        return self.position >= self.total

    def next_slice(self) -> Tuple[int, int]:
        begin = self.position
        end = min(begin + self.chunk, self.total)
        return begin, end

    def advance(self, end: int) -> None:
        self.position = end
