"""
CLI para calcular campos de densidad gaussiana y capturarlos como malla.

Ejemplos:
  python -m densegrid.cli density --points spheres.json --output field.npz --resolution 0.5
  python -m densegrid.cli capture --field field.npz --output mesh.obj
  python -m densegrid.cli full --points spheres.npy --output mesh.glb --resolution 0.25 --format glb
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Iterable, Optional, Tuple

from densegrid.capture import capture_field_to_mesh
from densegrid.config import SUPPORTED_EXPORT_FORMATS, CaptureConfig, GridConfig, load_config, save_config
from densegrid.density import compute_gaussian_density
from densegrid.errors import DensityCancelled, DensityError
from densegrid.field import GaussianDensityData, load_field, save_field
from densegrid.geometry import BoundingBox
from densegrid.logging_config import setup_logging
from densegrid.points import load_points
from densegrid.scheduler import CallbackProgress

logger = logging.getLogger("densegrid.cli")


def _parse_box(value: str) -> BoundingBox:
    parts = value.split(",")
    if len(parts) != 6:
        raise argparse.ArgumentTypeError("La caja debe tener formato xmin,ymin,zmin,xmax,ymax,zmax.")
    v = [float(p) for p in parts]
    return BoundingBox(min=(v[0], v[1], v[2]), max=(v[3], v[4], v[5]))


def _parse_step_size(value: str) -> int:
    step = int(value)
    if step < 1:
        raise argparse.ArgumentTypeError("El step_size debe ser >= 1.")
    return step


def _log_progress(current: int, total: int, message: str) -> None:
    logger.debug("%s: %d/%d", message, current, total)


def _compute(args: argparse.Namespace, grid: GridConfig) -> GaussianDensityData:
    points = load_points(args.points)
    box = args.box or BoundingBox.from_points(points, radius_offset=grid.radius_offset)
    progress = CallbackProgress(_log_progress)

    # Ctrl+C pide cancelar en el siguiente límite de bloque.
    def _handler(signum, frame):  # noqa: ARG001
        logger.warning("Cancelación solicitada; se detendrá tras el bloque actual.")
        progress.cancel()

    if threading.current_thread() is not threading.main_thread():
        # Solo el hilo principal puede instalar manejadores de señales.
        return compute_gaussian_density(points, box, grid, progress=progress)

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        return compute_gaussian_density(points, box, grid, progress=progress)
    finally:
        signal.signal(signal.SIGINT, previous)


def add_grid_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--points", required=True, type=Path, help="Esferas de entrada (.npy, .npz o .json).")
    parser.add_argument("--resolution", default=None, type=float, help="Unidades de mundo por voxel.")
    parser.add_argument("--radius-offset", default=None, type=float, help="Se suma al radio de cada esfera.")
    parser.add_argument("--smoothness", default=None, type=float, help="Coeficiente de caída gaussiana.")
    parser.add_argument(
        "--box",
        default=None,
        type=_parse_box,
        help="Caja envolvente xmin,ymin,zmin,xmax,ymax,zmax (por defecto, la de las esferas).",
    )
    parser.add_argument("--config-in", type=Path, help="Carga un JSON con configuración.")
    parser.add_argument("--config-out", type=Path, help="Guarda un JSON con la configuración usada.")


def add_capture_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--iso-level", default=None, type=float, help="Iso-superficie (por defecto exp(-smoothness)).")
    parser.add_argument("--step-size", default=None, type=_parse_step_size, help="Salto de Marching Cubes.")
    parser.add_argument("--format", default=None, help="Formato de exportación: obj, ply, glb, gltf, stl.")


def _build_configs(args: argparse.Namespace) -> Tuple[GridConfig, CaptureConfig]:
    if getattr(args, "config_in", None):
        grid, capture = load_config(args.config_in)
    else:
        grid, capture = GridConfig(), CaptureConfig()

    grid = GridConfig(
        resolution=args.resolution if args.resolution is not None else grid.resolution,
        radius_offset=args.radius_offset if args.radius_offset is not None else grid.radius_offset,
        smoothness=args.smoothness if args.smoothness is not None else grid.smoothness,
    )
    output: Optional[Path] = getattr(args, "output", None)
    suffix = output.suffix.replace(".", "").lower() if output else ""
    if suffix not in SUPPORTED_EXPORT_FORMATS:
        suffix = ""
    fmt = getattr(args, "format", None) or suffix or capture.export_format
    level = getattr(args, "iso_level", None)
    capture = CaptureConfig(
        iso_level=level if level is not None else capture.iso_level,
        step_size=getattr(args, "step_size", None) or capture.step_size,
        export_format=fmt.lower(),
    )
    if getattr(args, "config_out", None):
        save_config(args.config_out, grid, capture)
    return grid, capture


def handle_density(args: argparse.Namespace) -> Path:
    grid, _ = _build_configs(args)
    data = _compute(args, grid)
    output = save_field(data, args.output)
    print(f"[cli] Campo de densidad {data.field.shape} guardado en: {output}")
    return output


def handle_capture(args: argparse.Namespace) -> Path:
    grid, capture = _build_configs(args)
    data = load_field(args.field)
    # Por defecto se usa el suavizado guardado con el campo.
    smoothness = args.smoothness
    if smoothness is None and args.config_in:
        smoothness = grid.smoothness
    output = capture_field_to_mesh(data, args.output, capture, smoothness=smoothness)
    print(f"[cli] Malla generada con Marching Cubes: {output}")
    return output


def handle_full(args: argparse.Namespace) -> Path:
    grid, capture = _build_configs(args)
    data = _compute(args, grid)
    output = capture_field_to_mesh(data, args.output, capture)
    print(f"[cli] Malla generada con Marching Cubes: {output}")
    return output


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campos de densidad gaussiana + Marching Cubes.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Muestra logs de depuración.")
    parser.add_argument("--log-file", default=None, help="Guarda también los logs en este archivo.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    density_parser = subparsers.add_parser("density", help="Calcula el campo de densidad y lo guarda en .npz.")
    add_grid_arguments(density_parser)
    density_parser.add_argument("--output", required=True, type=Path, help="Campo de salida (.npz).")
    density_parser.set_defaults(func=handle_density)

    capture_parser = subparsers.add_parser("capture", help="Convierte un campo guardado en malla.")
    capture_parser.add_argument("--field", required=True, type=Path, help="Campo de densidad (.npz o .npy).")
    capture_parser.add_argument("--output", required=True, type=Path, help="Malla de salida (usa extensión o --format).")
    capture_parser.add_argument("--smoothness", default=None, type=float, help="Sustituye el suavizado guardado con el campo.")
    capture_parser.add_argument("--config-in", type=Path, help="Carga un JSON con configuración.")
    add_capture_arguments(capture_parser)
    capture_parser.set_defaults(func=handle_capture, resolution=None, radius_offset=None)

    full_parser = subparsers.add_parser("full", help="Calcula la densidad y exporta la malla.")
    add_grid_arguments(full_parser)
    full_parser.add_argument("--output", required=True, type=Path, help="Malla de salida.")
    add_capture_arguments(full_parser)
    full_parser.set_defaults(func=handle_full)

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        args.func(args)
    except DensityCancelled as exc:
        print(f"[cli] {exc}", file=sys.stderr)
        return 130
    except (DensityError, FileNotFoundError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
