"""
Acumulación de densidad gaussiana truncada sobre la rejilla.

Cada punto deposita ``exp(-smoothness * d² / r²)`` en los voxeles a distancia
``d <= 2r`` de su centro. El campo escalar suma todas las contribuciones; el
campo de identidad guarda el punto con la mayor contribución local positiva
(los empates los conserva el punto anterior en orden). Una contribución que
se redondea a cero nunca reclama el voxel.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .geometry import NO_CONTRIBUTOR, Grid, PointSet


@dataclass
class AccumulationBuffers:
    """Buffers propios de un cálculo: campo escalar, mejor contribución e identidad."""

    field: np.ndarray
    best: np.ndarray
    id_field: np.ndarray

    @classmethod
    def allocate(cls, grid: Grid) -> "AccumulationBuffers":
        return cls(
            field=np.zeros(grid.dim, dtype=np.float64),
            best=np.zeros(grid.dim, dtype=np.float64),
            id_field=np.full(grid.dim, NO_CONTRIBUTOR, dtype=np.int64),
        )


class DensityKernel:
    """
    Núcleo de acumulación para una rejilla y una selección concretas.

    No guarda estado entre bloques más allá de lo recibido en el constructor;
    los buffers se pasan explícitamente a :meth:`accumulate_range`.
    """

    def __init__(
        self,
        grid: Grid,
        points: PointSet,
        selection: np.ndarray,
        radii: np.ndarray,
        smoothness: float,
    ) -> None:
        self.grid = grid
        self.points = points
        self.selection = selection
        self.radii = radii
        self.smoothness = float(smoothness)
        self._axes = tuple(grid.axis(a) for a in range(3))
        self._origin = np.asarray(grid.origin, dtype=np.float64)
        self._dim = np.asarray(grid.dim, dtype=np.int64)
        self._scale = 1.0 / grid.resolution

    def voxel_range(self, center: np.ndarray, radius: float):
        """
        Rango de índices (inicio, fin exclusivo) que cubre el corte ``2r``.

        Incluye un voxel extra en el extremo superior; el test exacto de
        distancia lo descarta si sobra.
        """
        ng = int(np.ceil(2.0 * radius * self._scale))
        ia = np.floor(self._scale * (center - self._origin)).astype(np.int64)
        begin = np.maximum(0, ia - ng)
        end = np.minimum(self._dim, ia + ng + 2)
        return begin, end

    def accumulate_range(self, buffers: AccumulationBuffers, begin: int, end: int) -> None:
        """Deposita los puntos ``selection[begin:end]`` en los buffers."""
        alpha = self.smoothness
        gx, gy, gz = self._axes
        for i in range(begin, end):
            rad = float(self.radii[i])
            if rad <= 0.0:
                # Radio cero: soporte vacío.
                continue
            j = int(self.selection[i])
            center = np.array([self.points.x[j], self.points.y[j], self.points.z[j]], dtype=np.float64)
            lo, hi = self.voxel_range(center, rad)
            if np.any(hi <= lo):
                continue

            dx = (gx[lo[0]:hi[0]] - center[0])[:, None, None]
            dy = (gy[lo[1]:hi[1]] - center[1])[None, :, None]
            dz = (gz[lo[2]:hi[2]] - center[2])[None, None, :]
            d_sq = dx * dx + dy * dy + dz * dz

            inside = d_sq <= (2.0 * rad) ** 2
            dens = np.where(inside, np.exp(-alpha * d_sq / (rad * rad)), 0.0)

            window = (slice(lo[0], hi[0]), slice(lo[1], hi[1]), slice(lo[2], hi[2]))
            buffers.field[window] += dens

            best = buffers.best[window]
            wins = inside & (dens > best)
            best[wins] = dens[wins]
            buffers.id_field[window][wins] = self.points.ids[j]
