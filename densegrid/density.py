"""
Cálculo completo del campo de densidad gaussiana.

Flujo:
1. Se valida la configuración, la selección y la caja.
2. Se construye la rejilla con margen.
3. Se acumula la densidad por bloques, notificando progreso entre bloques.
4. Se empaqueta el campo escalar, el de identidad y la transformación.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

import numpy as np

from .accumulator import AccumulationBuffers, DensityKernel
from .config import GridConfig
from .errors import DensityCancelled
from .field import GaussianDensityData, package_field
from .geometry import BoundingBox, Grid, PointSet, build_grid, effective_radii, resolve_selection
from .scheduler import NullProgress, ProgressSink, SliceCursor, slice_size

logger = logging.getLogger(__name__)

PROGRESS_MESSAGE = "filling density grid"


class DensityComputation:
    """
    Cálculo reanudable: cada :meth:`step` procesa un bloque y devuelve el
    cursor. Cancelar equivale a no volver a llamar a :meth:`step`; :meth:`cancel`
    además libera los buffers.

    Estados: ``accumulating`` → ``packaged`` | ``cancelled``.
    """

    def __init__(
        self,
        points: PointSet,
        box: BoundingBox,
        config: Optional[GridConfig] = None,
        selection: Optional[Iterable[int]] = None,
    ) -> None:
        config = config or GridConfig()
        config.validate()
        idx = resolve_selection(points, selection)
        radii = effective_radii(points, idx, config.radius_offset)
        box.validate()

        self.config = config
        self.grid: Grid = build_grid(box, radii, config.resolution)
        self.kernel = DensityKernel(self.grid, points, idx, radii, config.smoothness)
        self.cursor = SliceCursor(total=int(idx.size), chunk=slice_size(self.grid.max_radius, config.resolution))
        self._buffers: Optional[AccumulationBuffers] = AccumulationBuffers.allocate(self.grid)
        self.state = "accumulating"
        logger.info(
            "Densidad: %d puntos, rejilla %s, bloques de %d puntos",
            self.cursor.total,
            self.grid.dim,
            self.cursor.chunk,
        )

    @property
    def done(self) -> bool:
        return self.cursor.done

    def step(self) -> SliceCursor:
        if self.state != "accumulating" or self._buffers is None:
            raise RuntimeError(f"No se puede continuar un cálculo en estado '{self.state}'.")
        begin, end = self.cursor.next_slice()
        self.kernel.accumulate_range(self._buffers, begin, end)
        self.cursor.advance(end)
        return self.cursor

    def cancel(self) -> None:
        self._buffers = None
        self.state = "cancelled"
        logger.info("Densidad cancelada en %d/%d puntos", self.cursor.position, self.cursor.total)

    def package(self) -> GaussianDensityData:
        if self.state != "accumulating" or self._buffers is None:
            raise RuntimeError(f"No se puede empaquetar un cálculo en estado '{self.state}'.")
        if not self.cursor.done:
            raise RuntimeError(
                f"Acumulación incompleta: {self.cursor.position}/{self.cursor.total} puntos procesados."
            )
        buffers, self._buffers = self._buffers, None
        self.state = "packaged"
        return package_field(self.grid, buffers.field, buffers.id_field, self.config.smoothness)


def compute_gaussian_density(
    points: PointSet,
    box: BoundingBox,
    config: Optional[GridConfig] = None,
    selection: Optional[Iterable[int]] = None,
    progress: Optional[ProgressSink] = None,
) -> GaussianDensityData:
    """
    Calcula el campo de densidad gaussiana de los puntos seleccionados.

    Args:
        points: Conjunto de puntos ponderados.
        box: Caja envolvente suministrada por quien llama (no se modifica).
        config: Resolución, desplazamiento de radio y suavizado.
        selection: Índices de orden a incluir. ``None`` incluye todos.
        progress: Receptor de progreso; se consulta ``should_stop`` entre bloques.

    Returns:
        GaussianDensityData con campo escalar, campo de identidad y transformación.

    Raises:
        InvalidConfigError, InvalidSelectionError, DegenerateBoxError: antes de
            construir la rejilla.
        DensityCancelled: si ``progress.should_stop`` se activa entre bloques.
    """
    progress = progress or NullProgress()
    t0 = time.time()
    computation = DensityComputation(points, box, config, selection)

    while not computation.done:
        cursor = computation.step()
        progress.update(cursor.position, cursor.total, PROGRESS_MESSAGE)
        if progress.should_stop:
            computation.cancel()
            raise DensityCancelled(cursor.position, cursor.total)

    data = computation.package()
    logger.info(
        "Densidad lista en %.3fs (max=%.4f, voxeles ocupados=%d)",
        time.time() - t0,
        float(data.field.max()) if data.field.size else 0.0,
        int(np.count_nonzero(data.id_field != -1)),
    )
    return data
