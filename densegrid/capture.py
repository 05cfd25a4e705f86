"""
Generador de mallas a partir del campo de densidad usando Marching Cubes.

1. Se calcula (o se lee) el campo de densidad gaussiana.
2. Se ejecuta Marching Cubes de scikit-image para obtener la malla.
3. Cada cara recibe el id del punto dominante en el voxel más cercano.
4. Se exporta a un formato estándar (OBJ/PLY/GLB, etc.).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import trimesh
from skimage import measure

from .config import SUPPORTED_EXPORT_FORMATS, CaptureConfig, GridConfig
from .density import compute_gaussian_density
from .field import GaussianDensityData
from .geometry import BoundingBox, PointSet
from .scheduler import ProgressSink

logger = logging.getLogger(__name__)


def _ensure_supported_format(path: Path, export_format: str | None) -> str:
    fmt = (export_format or path.suffix.replace(".", "")).lower()
    if fmt not in SUPPORTED_EXPORT_FORMATS:
        raise ValueError(
            f"Formato '{fmt}' no soportado. Usa uno de: {', '.join(sorted(SUPPORTED_EXPORT_FORMATS))}"
        )
    return fmt


def face_ids(data: GaussianDensityData, vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Id del campo de identidad en el voxel más cercano al centroide de cada cara."""
    if len(faces) == 0:
        return np.empty(0, dtype=np.int64)
    centroids = vertices[faces].mean(axis=1)
    ijk = np.rint(data.transform.inverse(centroids)).astype(np.int64)
    ijk = np.clip(ijk, 0, np.asarray(data.id_field.shape) - 1)
    return data.id_field[ijk[:, 0], ijk[:, 1], ijk[:, 2]].astype(np.int64)


def run_marching_cubes(
    data: GaussianDensityData, level: Optional[float] = None, step_size: int = 1
) -> trimesh.Trimesh:
    """
    Ejecuta Marching Cubes sobre el campo y devuelve una malla ``trimesh.Trimesh``
    en coordenadas de mundo, con ``face_attributes["id"]``.
    """
    if level is None:
        level = data.iso_level
    field = np.asarray(data.field)
    if field.size == 0 or not (field.min() <= level <= field.max()):
        raise ValueError(
            f"El iso-nivel {level:.4f} está fuera del rango del campo "
            f"[{float(field.min()) if field.size else 0.0:.4f}, {float(field.max()) if field.size else 0.0:.4f}]."
        )

    spacing = (data.resolution,) * 3
    vertices, faces, normals, _ = measure.marching_cubes(
        volume=field, level=level, spacing=spacing, step_size=step_size, allow_degenerate=False
    )
    vertices = vertices + np.asarray(data.transform.origin, dtype=np.float64)
    ids = face_ids(data, vertices, faces)
    logger.info("Marching Cubes: %d vértices, %d caras (iso=%.4f)", len(vertices), len(faces), level)
    return trimesh.Trimesh(
        vertices=vertices,
        faces=faces,
        vertex_normals=normals,
        face_attributes={"id": ids},
        process=False,
    )


def export_mesh(mesh: trimesh.Trimesh, output_path: Path, export_format: str | None = None) -> Path:
    """
    Exporta la malla al formato indicado usando la extensión del archivo o
    ``export_format``. Los ids por cara se guardan junto a la malla en
    ``<nombre>.face_ids.npy``.
    """
    fmt = _ensure_supported_format(output_path, export_format)
    output_path = output_path.with_suffix(f".{fmt}")
    mesh.export(output_path, file_type=fmt)
    if "id" in mesh.face_attributes:
        np.save(output_path.with_suffix(".face_ids.npy"), np.asarray(mesh.face_attributes["id"]))
    return output_path


def capture_field_to_mesh(
    data: GaussianDensityData,
    output_path: Path,
    config: CaptureConfig | None = None,
    smoothness: float | None = None,
) -> Path:
    """
    Campo ya calculado → Marching Cubes → exporta.

    El iso-nivel sale del suavizado guardado en ``data`` salvo que se indique
    ``smoothness`` o un ``iso_level`` explícito en ``config``.
    """
    config = config or CaptureConfig()
    config.validate()
    mesh = run_marching_cubes(
        data,
        level=config.resolve_iso_level(
            data.smoothness if smoothness is None else smoothness, data.radius_factor
        ),
        step_size=config.step_size,
    )
    return export_mesh(mesh, output_path, config.export_format)


def capture_points_to_mesh(
    points: PointSet,
    output_path: Path,
    grid_config: GridConfig | None = None,
    capture_config: CaptureConfig | None = None,
    box: BoundingBox | None = None,
    progress: ProgressSink | None = None,
) -> Path:
    """
    Pipeline completo: puntos → densidad → Marching Cubes → exporta.
    """
    grid_config = grid_config or GridConfig()
    if box is None:
        box = BoundingBox.from_points(points, radius_offset=grid_config.radius_offset)
    data = compute_gaussian_density(points, box, grid_config, progress=progress)
    return capture_field_to_mesh(data, output_path, capture_config)
