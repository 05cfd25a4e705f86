"""
Configuración del cálculo de densidad y de la captura de isosuperficie.

Ambos bloques se pueden guardar juntos en un JSON para reproducir parámetros.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .errors import InvalidConfigError
from .field import DEFAULT_SMOOTHNESS, iso_level as default_iso_level

SUPPORTED_EXPORT_FORMATS = {"obj", "ply", "glb", "gltf", "stl"}


@dataclass(frozen=True)
class GridConfig:
    """Parámetros de la rejilla gaussiana."""

    resolution: float = 1.0
    radius_offset: float = 0.0
    smoothness: float = DEFAULT_SMOOTHNESS

    @classmethod
    def from_mapping(cls, payload: dict) -> "GridConfig":
        return cls(
            resolution=float(payload.get("resolution", 1.0)),
            radius_offset=float(payload.get("radius_offset", 0.0)),
            smoothness=float(payload.get("smoothness", DEFAULT_SMOOTHNESS)),
        )

    def validate(self) -> None:
        if not math.isfinite(self.resolution) or self.resolution <= 0:
            raise InvalidConfigError(f"resolution debe ser > 0, se recibió {self.resolution}.")
        if not math.isfinite(self.smoothness) or self.smoothness <= 0:
            raise InvalidConfigError(f"smoothness debe ser > 0, se recibió {self.smoothness}.")
        if not math.isfinite(self.radius_offset):
            raise InvalidConfigError(f"radius_offset debe ser finito, se recibió {self.radius_offset}.")

    @property
    def iso_level(self) -> float:
        return default_iso_level(self.smoothness)


@dataclass(frozen=True)
class CaptureConfig:
    """Configuración para el paso de Marching Cubes."""

    iso_level: Optional[float] = None
    step_size: int = 1
    export_format: str = "obj"

    @classmethod
    def from_mapping(cls, payload: dict) -> "CaptureConfig":
        level = payload.get("iso_level")
        return cls(
            iso_level=None if level is None else float(level),
            step_size=int(payload.get("step_size", 1)),
            export_format=str(payload.get("export_format", "obj")).lower(),
        )

    def validate(self) -> None:
        if self.step_size < 1:
            raise InvalidConfigError(f"step_size debe ser >= 1, se recibió {self.step_size}.")
        if self.export_format not in SUPPORTED_EXPORT_FORMATS:
            raise InvalidConfigError(
                f"Formato '{self.export_format}' no soportado. "
                f"Usa uno de: {', '.join(sorted(SUPPORTED_EXPORT_FORMATS))}"
            )

    def resolve_iso_level(self, smoothness: float, radius_factor: float = 1.0) -> float:
        if self.iso_level is not None:
            return self.iso_level
        return default_iso_level(smoothness, radius_factor)


def save_config(path: Path, grid: GridConfig, capture: Optional[CaptureConfig] = None) -> None:
    """Guarda la configuración en JSON para reproducir parámetros."""
    payload = {
        "grid": {
            "resolution": grid.resolution,
            "radius_offset": grid.radius_offset,
            "smoothness": grid.smoothness,
        }
    }
    if capture is not None:
        payload["capture"] = {
            "iso_level": capture.iso_level,
            "step_size": capture.step_size,
            "export_format": capture.export_format,
        }
    path.write_text(json.dumps(payload, indent=2))


def load_config(path: Path) -> Tuple[GridConfig, CaptureConfig]:
    """Lee un JSON de configuración y devuelve ``(GridConfig, CaptureConfig)``."""
    payload = json.loads(path.read_text())
    return (
        GridConfig.from_mapping(payload.get("grid", {})),
        CaptureConfig.from_mapping(payload.get("capture", {})),
    )
