"""
Geometría de la rejilla de densidad.

Contiene los puntos ponderados (esferas), la caja envolvente y el cálculo de la
rejilla de voxeles: a partir del radio máximo se añade un margen a la caja y se
obtienen las dimensiones en voxeles para una resolución dada.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .errors import DegenerateBoxError, InvalidConfigError, InvalidSelectionError

logger = logging.getLogger(__name__)

# Valor del campo de identidad donde ningún punto alcanza el voxel.
NO_CONTRIBUTOR = -1

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class WeightedPoint:
    """Centro de esfera con radio e identificador asignado por quien llama."""

    id: int
    position: Vec3
    radius: float
    order: int


class PointSet:
    """
    Conjunto de puntos en columnas, indexado por el índice de orden.

    Args:
        positions: Arreglo (N, 3) con los centros.
        radius: Arreglo (N,) con los radios.
        ids: Identificadores opcionales (N,). Por defecto ``0..N-1``.
        groups: Grupo opcional de cada punto (p. ej. el canal al que pertenece).
    """

    def __init__(
        self,
        positions: np.ndarray,
        radius: np.ndarray,
        ids: Optional[np.ndarray] = None,
        groups: Optional[np.ndarray] = None,
    ) -> None:
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim == 1 and positions.size == 0:
            positions = positions.reshape(0, 3)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"Las posiciones deben tener forma (N, 3), se recibió {positions.shape}.")
        n = positions.shape[0]

        radius = np.asarray(radius, dtype=np.float64).reshape(-1)
        if radius.shape[0] != n:
            raise ValueError(f"Se esperaban {n} radios, se recibieron {radius.shape[0]}.")

        if ids is None:
            ids = np.arange(n, dtype=np.int64)
        else:
            ids = np.asarray(ids).reshape(-1)
            if ids.shape[0] != n:
                raise ValueError(f"Se esperaban {n} identificadores, se recibieron {ids.shape[0]}.")
            if ids.size and not np.issubdtype(ids.dtype, np.integer):
                raise ValueError("Los identificadores deben ser enteros.")
            ids = ids.astype(np.int64)
            if np.any(ids == NO_CONTRIBUTOR):
                raise ValueError(f"El identificador {NO_CONTRIBUTOR} está reservado para voxeles vacíos.")

        if groups is not None:
            groups = np.asarray(groups, dtype=np.int64).reshape(-1)
            if groups.shape[0] != n:
                raise ValueError(f"Se esperaban {n} grupos, se recibieron {groups.shape[0]}.")

        self.x = np.ascontiguousarray(positions[:, 0])
        self.y = np.ascontiguousarray(positions[:, 1])
        self.z = np.ascontiguousarray(positions[:, 2])
        self.radii = radius
        self.ids = ids
        self.groups = groups

    @classmethod
    def from_points(cls, points: Iterable[WeightedPoint]) -> "PointSet":
        """Construye el conjunto respetando el índice de orden de cada punto."""
        ordered = sorted(points, key=lambda p: p.order)
        orders = [p.order for p in ordered]
        if orders != list(range(len(ordered))):
            raise ValueError("Los índices de orden deben ser 0..N-1 sin huecos ni repeticiones.")
        return cls(
            positions=np.array([p.position for p in ordered], dtype=np.float64).reshape(-1, 3),
            radius=np.array([p.radius for p in ordered], dtype=np.float64),
            ids=np.array([p.id for p in ordered], dtype=np.int64),
        )

    def __len__(self) -> int:
        return int(self.radii.shape[0])

    def position(self, i: int) -> Vec3:
        return float(self.x[i]), float(self.y[i]), float(self.z[i])

    def radius(self, i: int) -> float:
        return float(self.radii[i])

    def point(self, i: int) -> WeightedPoint:
        return WeightedPoint(id=int(self.ids[i]), position=self.position(i), radius=self.radius(i), order=i)

    @property
    def positions(self) -> np.ndarray:
        return np.stack([self.x, self.y, self.z], axis=1)


@dataclass(frozen=True)
class BoundingBox:
    """Caja alineada a los ejes en unidades de mundo. Nunca se modifica en sitio."""

    min: Vec3
    max: Vec3

    @classmethod
    def from_points(
        cls, points: PointSet, selection: Optional[np.ndarray] = None, radius_offset: float = 0.0
    ) -> "BoundingBox":
        """Caja que contiene todas las esferas (centro ± radio) seleccionadas."""
        idx = np.arange(len(points)) if selection is None else np.asarray(selection, dtype=np.int64)
        if idx.size == 0:
            raise DegenerateBoxError("No se puede derivar una caja de una selección vacía.")
        centers = points.positions[idx]
        radii = np.maximum(points.radii[idx] + radius_offset, 0.0)[:, None]
        lo = (centers - radii).min(axis=0)
        hi = (centers + radii).max(axis=0)
        return cls(min=tuple(float(v) for v in lo), max=tuple(float(v) for v in hi))  # type: ignore[arg-type]

    @classmethod
    def from_sphere(cls, center: Sequence[float], radius: float) -> "BoundingBox":
        c = np.asarray(center, dtype=np.float64)
        return cls(min=tuple(float(v) for v in c - radius), max=tuple(float(v) for v in c + radius))  # type: ignore[arg-type]

    @property
    def size(self) -> np.ndarray:
        return np.asarray(self.max, dtype=np.float64) - np.asarray(self.min, dtype=np.float64)

    def expand(self, pad: float) -> "BoundingBox":
        """Devuelve una caja nueva crecida ``pad`` en cada cara."""
        lo = np.asarray(self.min, dtype=np.float64) - pad
        hi = np.asarray(self.max, dtype=np.float64) + pad
        return BoundingBox(min=tuple(float(v) for v in lo), max=tuple(float(v) for v in hi))  # type: ignore[arg-type]

    def validate(self) -> None:
        size = self.size
        if size.shape != (3,) or not np.all(np.isfinite(size)):
            raise DegenerateBoxError(f"Caja envolvente inválida: min={self.min}, max={self.max}.")
        if np.any(size <= 0):
            raise DegenerateBoxError(
                f"La caja envolvente debe tener extensión positiva en cada eje, se recibió {tuple(size)}."
            )


@dataclass(frozen=True)
class Grid:
    """Rejilla derivada: dimensiones, origen (mínimo de la caja expandida) y resolución."""

    dim: Tuple[int, int, int]
    origin: Vec3
    resolution: float
    box: BoundingBox
    max_radius: float

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.dim

    def axis(self, axis: int) -> np.ndarray:
        """Coordenadas de mundo de los puntos de la rejilla a lo largo de un eje."""
        return self.origin[axis] + np.arange(self.dim[axis], dtype=np.float64) * self.resolution


def resolve_selection(points: PointSet, selection: Optional[Iterable[int]] = None) -> np.ndarray:
    """
    Normaliza la selección a índices ordenados y sin duplicados.

    ``None`` selecciona todos los puntos.
    """
    n = len(points)
    if selection is None:
        return np.arange(n, dtype=np.int64)

    raw = np.asarray(list(selection) if not isinstance(selection, np.ndarray) else selection)
    if raw.size == 0:
        return np.empty(0, dtype=np.int64)
    if not np.issubdtype(raw.dtype, np.integer):
        raise InvalidSelectionError(f"La selección debe contener índices enteros, se recibió {raw.dtype}.")
    idx = np.unique(raw.astype(np.int64).reshape(-1))
    if idx[0] < 0 or idx[-1] >= n:
        bad = idx[(idx < 0) | (idx >= n)]
        raise InvalidSelectionError(f"Índices fuera de rango [0, {n}): {bad.tolist()[:10]}")
    return idx


def effective_radii(points: PointSet, selection: np.ndarray, radius_offset: float) -> np.ndarray:
    """Radio de cada punto seleccionado con ``radius_offset`` aplicado."""
    radii = points.radii[selection] + radius_offset
    if radii.size and not np.all(np.isfinite(radii)):
        raise InvalidConfigError("Los radios efectivos deben ser finitos.")
    negative = selection[radii < 0]
    if negative.size:
        raise InvalidConfigError(
            f"radius_offset={radius_offset} deja radios efectivos negativos en los puntos {negative.tolist()[:10]}."
        )
    return radii


def build_grid(box: BoundingBox, radii: np.ndarray, resolution: float) -> Grid:
    """
    Expande la caja con el margen ``2 * max_radius + resolution`` y calcula las
    dimensiones de la rejilla (techo de extensión / resolución, mínimo 1).
    """
    max_radius = float(radii.max()) if radii.size else 0.0
    pad = 2.0 * max_radius + resolution
    expanded = box.expand(pad)
    dim = np.maximum(1, np.ceil(expanded.size / resolution).astype(np.int64))
    grid = Grid(
        dim=(int(dim[0]), int(dim[1]), int(dim[2])),
        origin=expanded.min,
        resolution=float(resolution),
        box=expanded,
        max_radius=max_radius,
    )
    logger.debug("Rejilla %s con origen %s (max_radius=%.4f, pad=%.4f)", grid.dim, grid.origin, max_radius, pad)
    return grid
