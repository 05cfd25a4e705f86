"""
Lectura de puntos ponderados desde disco.

Formatos aceptados:
- ``.npy``: arreglo (N, 4) ``x, y, z, r`` o (N, 5) con el id en la última columna.
- ``.npz``: claves ``positions`` (N, 3), ``radius`` (N,) e ``id`` opcional.
- ``.json``: lista de esferas ``{"center": [x, y, z], "radius": r, "id": i}`` o
  un documento de perfiles de canal
  ``{"Channels": {"ReviewedChannels": [{"Profile": [{"X", "Y", "Z", "Radius"}]}]}}``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

from .geometry import PointSet

logger = logging.getLogger(__name__)


def load_points(path: Path) -> PointSet:
    if not path.exists():
        raise FileNotFoundError(f"No existe el archivo de puntos: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        points = _points_from_array(np.load(path))
    elif suffix == ".npz":
        with np.load(path) as data:
            points = _points_from_npz(data)
    elif suffix == ".json":
        points = points_from_json(json.loads(path.read_text(encoding="utf-8")))
    else:
        raise ValueError("Solo se aceptan archivos .npy, .npz o .json para los puntos.")

    logger.info("Cargados %d puntos desde %s", len(points), path)
    return points


def _points_from_array(array: np.ndarray) -> PointSet:
    if array.ndim != 2 or array.shape[1] not in (4, 5):
        raise ValueError(f"Se esperaba un arreglo (N, 4) o (N, 5), se obtuvo {array.shape}.")
    ids = array[:, 4].astype(np.int64) if array.shape[1] == 5 else None
    return PointSet(positions=array[:, :3], radius=array[:, 3], ids=ids)


def _points_from_npz(data) -> PointSet:
    missing = {"positions", "radius"} - set(data.files)
    if missing:
        raise ValueError(f"El archivo NPZ no contiene las claves: {', '.join(sorted(missing))}")
    return PointSet(
        positions=data["positions"],
        radius=data["radius"],
        ids=data["id"] if "id" in data.files else None,
        groups=data["group"] if "group" in data.files else None,
    )


def points_from_json(payload: Any) -> PointSet:
    if isinstance(payload, dict) and "Channels" in payload:
        return _points_from_channels(payload)
    if not isinstance(payload, list):
        raise ValueError("El JSON de puntos debe ser una lista de esferas o un documento de canales.")

    positions: List[List[float]] = []
    radius: List[float] = []
    ids: List[int] = []
    for i, entry in enumerate(payload):
        try:
            positions.append([float(v) for v in entry["center"]])
            radius.append(float(entry["radius"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Esfera {i} mal formada: {entry!r}") from exc
        ids.append(int(entry.get("id", i)))
    return PointSet(
        positions=np.asarray(positions, dtype=np.float64).reshape(-1, 3),
        radius=np.asarray(radius, dtype=np.float64),
        ids=np.asarray(ids, dtype=np.int64),
    )


def _points_from_channels(payload: Dict[str, Any]) -> PointSet:
    """Cada bola de cada canal recibe un id secuencial; el canal queda como grupo."""
    channels = payload["Channels"].get("ReviewedChannels", [])
    positions: List[List[float]] = []
    radius: List[float] = []
    groups: List[int] = []
    for group, channel in enumerate(channels):
        for entry in channel.get("Profile", []):
            positions.append([float(entry["X"]), float(entry["Y"]), float(entry["Z"])])
            radius.append(float(entry["Radius"]))
            groups.append(group)
    return PointSet(
        positions=np.asarray(positions, dtype=np.float64).reshape(-1, 3),
        radius=np.asarray(radius, dtype=np.float64),
        groups=np.asarray(groups, dtype=np.int64),
    )
