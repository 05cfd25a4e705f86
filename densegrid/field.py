"""
Empaquetado del campo de densidad.

El resultado de un cálculo se entrega como :class:`GaussianDensityData`: campo
escalar, campo de identidad y la transformación afín índice → mundo. Es lo que
consume la extracción de isosuperficie.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np

from .geometry import Grid

# Suavizado por defecto (el mismo que usa GridConfig).
DEFAULT_SMOOTHNESS = 1.5


@dataclass(frozen=True)
class GridTransform:
    """Escala por la resolución y traslada al mínimo de la caja expandida."""

    resolution: float
    origin: Sequence[float]

    @property
    def matrix(self) -> np.ndarray:
        m = np.eye(4, dtype=np.float64)
        m[0, 0] = m[1, 1] = m[2, 2] = self.resolution
        m[:3, 3] = np.asarray(self.origin, dtype=np.float64)
        return m

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "GridTransform":
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Se esperaba una matriz 4x4, se recibió {matrix.shape}.")
        return cls(resolution=float(matrix[0, 0]), origin=tuple(float(v) for v in matrix[:3, 3]))

    def apply(self, ijk: np.ndarray) -> np.ndarray:
        """Convierte índices de voxel (..., 3) a coordenadas de mundo."""
        ijk = np.asarray(ijk, dtype=np.float64)
        return ijk * self.resolution + np.asarray(self.origin, dtype=np.float64)

    def inverse(self, xyz: np.ndarray) -> np.ndarray:
        """Coordenadas de mundo (..., 3) a índices de voxel continuos."""
        xyz = np.asarray(xyz, dtype=np.float64)
        return (xyz - np.asarray(self.origin, dtype=np.float64)) / self.resolution


@dataclass
class GaussianDensityData:
    field: np.ndarray
    id_field: np.ndarray
    transform: GridTransform
    resolution: float
    max_radius: float
    radius_factor: float = 1.0
    smoothness: float = DEFAULT_SMOOTHNESS

    @property
    def iso_level(self) -> float:
        return iso_level(self.smoothness, self.radius_factor)

    @property
    def shape(self):
        return self.field.shape


def iso_level(smoothness: float, radius_factor: float = 1.0) -> float:
    """Iso-nivel habitual para el campo: ``exp(-smoothness) / radius_factor``."""
    return math.exp(-smoothness) / radius_factor


def package_field(
    grid: Grid, field: np.ndarray, id_field: np.ndarray, smoothness: float = DEFAULT_SMOOTHNESS
) -> GaussianDensityData:
    return GaussianDensityData(
        field=field,
        id_field=id_field,
        transform=GridTransform(resolution=grid.resolution, origin=grid.origin),
        resolution=grid.resolution,
        max_radius=grid.max_radius,
        smoothness=float(smoothness),
    )


def save_field(data: GaussianDensityData, path: Path) -> Path:
    """Guarda el paquete en ``.npz`` (la extensión se fuerza)."""
    path = path.with_suffix(".npz")
    np.savez_compressed(
        path,
        field=data.field,
        id_field=data.id_field,
        transform=data.transform.matrix,
        resolution=np.float64(data.resolution),
        max_radius=np.float64(data.max_radius),
        radius_factor=np.float64(data.radius_factor),
        smoothness=np.float64(data.smoothness),
    )
    return path


def load_field(path: Path) -> GaussianDensityData:
    """
    Carga un paquete guardado con :func:`save_field`.

    También acepta un grid crudo (``.npy`` o ``.npz`` sin claves conocidas): en
    ese caso se usa resolución 1, origen 0 y un campo de identidad vacío.
    """
    if not path.exists():
        raise FileNotFoundError(f"No existe el archivo de densidad: {path}")

    if path.suffix == ".npy":
        grid = np.load(path)
        return _raw_field(grid)
    if path.suffix != ".npz":
        raise ValueError("Solo se aceptan archivos .npy o .npz para el campo de densidad.")

    with np.load(path) as data:
        if "field" not in data.files:
            # Usamos la primera clave encontrada
            return _raw_field(data[next(iter(data.files))])
        field = data["field"]
        if field.ndim != 3:
            raise ValueError(f"Se esperaba un campo 3D, pero se obtuvo una forma {field.shape}.")
        id_field = data["id_field"] if "id_field" in data.files else np.full(field.shape, -1, dtype=np.int64)
        transform = GridTransform.from_matrix(data["transform"])
        return GaussianDensityData(
            field=field,
            id_field=id_field,
            transform=transform,
            resolution=float(data["resolution"]) if "resolution" in data.files else transform.resolution,
            max_radius=float(data["max_radius"]) if "max_radius" in data.files else 0.0,
            radius_factor=float(data["radius_factor"]) if "radius_factor" in data.files else 1.0,
            smoothness=float(data["smoothness"]) if "smoothness" in data.files else DEFAULT_SMOOTHNESS,
        )


def _raw_field(grid: np.ndarray) -> GaussianDensityData:
    if grid.ndim != 3:
        raise ValueError(f"Se esperaba un grid 3D, pero se obtuvo una forma {grid.shape}.")
    return GaussianDensityData(
        field=grid,
        id_field=np.full(grid.shape, -1, dtype=np.int64),
        transform=GridTransform(resolution=1.0, origin=(0.0, 0.0, 0.0)),
        resolution=1.0,
        max_radius=0.0,
    )
