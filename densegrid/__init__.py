"""
Herramientas para construir campos de densidad gaussiana a partir de esferas
y convertirlos en mallas con Marching Cubes.
"""

from .config import CaptureConfig, GridConfig
from .density import DensityComputation, compute_gaussian_density
from .errors import (
    DegenerateBoxError,
    DensityCancelled,
    DensityError,
    InvalidConfigError,
    InvalidSelectionError,
)
from .field import GaussianDensityData, GridTransform, iso_level
from .geometry import NO_CONTRIBUTOR, BoundingBox, Grid, PointSet, WeightedPoint
from .scheduler import CallbackProgress, NullProgress, ProgressSink

__all__ = [
    "BoundingBox",
    "CallbackProgress",
    "CaptureConfig",
    "DegenerateBoxError",
    "DensityCancelled",
    "DensityComputation",
    "DensityError",
    "GaussianDensityData",
    "Grid",
    "GridConfig",
    "GridTransform",
    "InvalidConfigError",
    "InvalidSelectionError",
    "NO_CONTRIBUTOR",
    "NullProgress",
    "PointSet",
    "ProgressSink",
    "WeightedPoint",
    "compute_gaussian_density",
    "iso_level",
]
