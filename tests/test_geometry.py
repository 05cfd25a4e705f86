import numpy as np
import pytest

from densegrid import BoundingBox, DegenerateBoxError, InvalidConfigError, InvalidSelectionError, PointSet, WeightedPoint
from densegrid.geometry import build_grid, effective_radii, resolve_selection


def test_bounding_box_from_spheres(two_points):
    box = BoundingBox.from_points(two_points)
    assert box.min == (-1.0, -1.0, -1.0)
    assert box.max == (3.0, 1.0, 1.0)


def test_expand_returns_new_box():
    box = BoundingBox(min=(0.0, 0.0, 0.0), max=(1.0, 1.0, 1.0))
    expanded = box.expand(0.5)
    assert box.min == (0.0, 0.0, 0.0)
    assert expanded.min == (-0.5, -0.5, -0.5)
    assert expanded.max == (1.5, 1.5, 1.5)


def test_build_grid_scenario_dimensions(two_points, two_points_box):
    radii = effective_radii(two_points, resolve_selection(two_points), 0.0)
    grid = build_grid(two_points_box, radii, 0.5)
    assert grid.max_radius == 1.0
    assert grid.origin == (-3.5, -3.5, -3.5)
    assert grid.dim == (18, 14, 14)


def test_build_grid_empty_selection_uses_resolution_only():
    box = BoundingBox(min=(0.0, 0.0, 0.0), max=(1.0, 2.0, 3.0))
    grid = build_grid(box, np.empty(0), 0.5)
    assert grid.max_radius == 0.0
    assert grid.dim == (4, 6, 8)


def test_grid_dimensions_are_ceiled():
    box = BoundingBox(min=(0.0, 0.0, 0.0), max=(1.1, 1.0, 1.0))
    grid = build_grid(box, np.array([0.0]), 1.0)
    # extensión 3.1 en x, 3.0 en y/z
    assert grid.dim == (4, 3, 3)


def test_resolve_selection_sorts_and_deduplicates(two_points):
    assert resolve_selection(two_points, [1, 0, 1]).tolist() == [0, 1]
    assert resolve_selection(two_points, []).size == 0


def test_resolve_selection_out_of_range(two_points):
    with pytest.raises(InvalidSelectionError):
        resolve_selection(two_points, [0, 2])
    with pytest.raises(IndexError):
        resolve_selection(two_points, [-1])


def test_resolve_selection_rejects_non_integer(two_points):
    with pytest.raises(InvalidSelectionError):
        resolve_selection(two_points, [0.5])


def test_negative_effective_radius_rejected(two_points):
    with pytest.raises(InvalidConfigError):
        effective_radii(two_points, resolve_selection(two_points), -1.5)


def test_zero_effective_radius_allowed(two_points):
    radii = effective_radii(two_points, resolve_selection(two_points), -1.0)
    assert radii.tolist() == [0.0, 0.0]


@pytest.mark.parametrize(
    "lo, hi",
    [
        ((0.0, 0.0, 0.0), (1.0, 0.0, 1.0)),
        ((0.0, 0.0, 0.0), (1.0, 1.0, -1.0)),
        ((0.0, 0.0, 0.0), (1.0, 1.0, float("nan"))),
    ],
)
def test_degenerate_box(lo, hi):
    with pytest.raises(DegenerateBoxError):
        BoundingBox(min=lo, max=hi).validate()


def test_point_set_accessors(two_points):
    assert len(two_points) == 2
    assert two_points.position(1) == (2.0, 0.0, 0.0)
    assert two_points.radius(0) == 1.0
    assert two_points.point(1) == WeightedPoint(id=1, position=(2.0, 0.0, 0.0), radius=1.0, order=1)


def test_point_set_from_points_follows_order():
    points = PointSet.from_points(
        [
            WeightedPoint(id=20, position=(1.0, 0.0, 0.0), radius=0.5, order=1),
            WeightedPoint(id=10, position=(0.0, 0.0, 0.0), radius=1.0, order=0),
        ]
    )
    assert points.ids.tolist() == [10, 20]
    assert points.radius(1) == 0.5


def test_point_set_rejects_sentinel_id():
    with pytest.raises(ValueError):
        PointSet(positions=np.zeros((1, 3)), radius=np.ones(1), ids=np.array([-1]))


def test_point_set_shape_mismatch():
    with pytest.raises(ValueError):
        PointSet(positions=np.zeros((2, 3)), radius=np.ones(3))
