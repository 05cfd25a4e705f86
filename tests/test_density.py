import math

import numpy as np
import pytest

from densegrid import (
    NO_CONTRIBUTOR,
    BoundingBox,
    DegenerateBoxError,
    GridConfig,
    InvalidConfigError,
    InvalidSelectionError,
    PointSet,
    compute_gaussian_density,
)


def _voxel_coords(data):
    ijk = np.indices(data.field.shape).reshape(3, -1).T
    return data.transform.apply(ijk).reshape(data.field.shape + (3,))


def _brute_force(points, data, smoothness):
    """Contribuciones de cada punto sobre toda la rejilla, sin recorte por ventana."""
    coords = _voxel_coords(data)
    contributions = []
    masks = []
    for j in range(len(points)):
        dx = coords[..., 0] - points.x[j]
        dy = coords[..., 1] - points.y[j]
        dz = coords[..., 2] - points.z[j]
        d_sq = dx * dx + dy * dy + dz * dz
        r = points.radii[j]
        inside = d_sq <= (2.0 * r) ** 2
        masks.append(inside)
        contributions.append(np.where(inside, np.exp(-smoothness * d_sq / (r * r)), -np.inf))
    return np.stack(contributions), np.stack(masks)


def test_two_point_scenario(two_points, two_points_box, scenario_config):
    data = compute_gaussian_density(two_points, two_points_box, scenario_config)

    assert data.max_radius == 1.0
    assert data.resolution == 0.5
    assert data.field.shape == (18, 14, 14)
    np.testing.assert_allclose(data.transform.origin, (-3.5, -3.5, -3.5))

    # (0,0,0) -> voxel (7,7,7); (2,0,0) -> (11,7,7); (1,0,0) -> (9,7,7)
    tail = math.exp(-1.5 * 4.0)
    assert data.field[7, 7, 7] == pytest.approx(1.0 + tail)
    assert data.id_field[7, 7, 7] == 0
    assert data.field[11, 7, 7] == pytest.approx(1.0 + tail)
    assert data.id_field[11, 7, 7] == 1
    assert data.field[9, 7, 7] == pytest.approx(2.0 * math.exp(-1.5))
    assert data.id_field[9, 7, 7] == 0


def test_tie_goes_to_earlier_point_even_with_larger_id():
    points = PointSet(
        positions=np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]]),
        radius=np.array([1.0, 1.0]),
        ids=np.array([50, 3]),
    )
    box = BoundingBox.from_points(points)
    data = compute_gaussian_density(points, box, GridConfig(resolution=0.5))
    assert data.id_field[9, 7, 7] == 50
    assert data.id_field[9, 8, 7] == 50


def test_point_center_saturation():
    points = PointSet(positions=np.zeros((1, 3)), radius=np.array([1.0]), ids=np.array([4]))
    box = BoundingBox.from_sphere((0.0, 0.0, 0.0), 1.0)
    data = compute_gaussian_density(points, box, GridConfig(resolution=0.25))
    # origen -3.25 -> el centro cae en el índice 13
    assert data.field[13, 13, 13] == pytest.approx(1.0)
    assert data.id_field[13, 13, 13] == 4
    assert data.field.max() == pytest.approx(1.0)


def test_cutoff_truncation():
    center = np.array([0.1, -0.2, 0.05])
    points = PointSet(positions=center[None, :], radius=np.array([1.0]))
    box = BoundingBox.from_sphere(center, 1.0)
    data = compute_gaussian_density(points, box, GridConfig(resolution=0.25))

    d_sq = ((_voxel_coords(data) - center) ** 2).sum(axis=-1)
    outside = d_sq > 4.0 + 1e-9
    inside = d_sq < 4.0 - 1e-9
    assert np.all(data.field[outside] == 0.0)
    assert np.all(data.id_field[outside] == NO_CONTRIBUTOR)
    assert np.all(data.field[inside] > 0.0)
    assert np.all(data.id_field[inside] == 0)


def test_scalar_field_matches_brute_force(random_points):
    config = GridConfig(resolution=0.5, smoothness=2.0)
    box = BoundingBox.from_points(random_points)
    data = compute_gaussian_density(random_points, box, config)

    contributions, masks = _brute_force(random_points, data, config.smoothness)
    expected = np.where(masks, contributions, 0.0).sum(axis=0)
    np.testing.assert_allclose(data.field, expected, rtol=1e-12, atol=1e-15)


def test_identity_field_is_dominant_contributor(random_points):
    config = GridConfig(resolution=0.5, smoothness=2.0)
    box = BoundingBox.from_points(random_points)
    data = compute_gaussian_density(random_points, box, config)

    contributions, masks = _brute_force(random_points, data, config.smoothness)
    # Solo una contribución positiva reclama el voxel.
    touched = contributions.max(axis=0) > 0.0
    winner = np.argmax(contributions, axis=0)
    expected = np.where(touched, random_points.ids[winner], NO_CONTRIBUTOR)
    np.testing.assert_array_equal(data.id_field, expected)


def test_underflowed_contribution_never_claims_voxel():
    points = PointSet(positions=np.zeros((1, 3)), radius=np.array([1.0]), ids=np.array([9]))
    box = BoundingBox.from_sphere((0.0, 0.0, 0.0), 1.0)
    data = compute_gaussian_density(points, box, GridConfig(resolution=0.5, smoothness=200.0))

    owned = data.id_field != NO_CONTRIBUTOR
    # Con smoothness tan alto la cola del núcleo se redondea a cero.
    assert np.any(owned)
    assert not np.any(owned & (data.field == 0.0))
    assert np.all(data.field[owned] > 0.0)
    assert np.all(data.id_field[data.field == 0.0] == NO_CONTRIBUTOR)


def test_scalar_field_independent_of_order(random_points):
    config = GridConfig(resolution=0.5)
    box = BoundingBox.from_points(random_points)
    perm = np.array([3, 0, 5, 1, 4, 2])
    permuted = PointSet(
        positions=random_points.positions[perm],
        radius=random_points.radii[perm],
        ids=random_points.ids[perm],
    )
    a = compute_gaussian_density(random_points, box, config)
    b = compute_gaussian_density(permuted, box, config)
    np.testing.assert_allclose(a.field, b.field, rtol=1e-12, atol=1e-15)
    # Sin empates exactos, la identidad tampoco cambia.
    np.testing.assert_array_equal(a.id_field, b.id_field)


def test_transform_round_trip(random_points):
    config = GridConfig(resolution=0.3)
    box = BoundingBox.from_points(random_points)
    data = compute_gaussian_density(random_points, box, config)

    pad = 2.0 * data.max_radius + config.resolution
    expanded_min = np.asarray(box.min) - pad
    expanded_max = np.asarray(box.max) + pad
    np.testing.assert_allclose(data.transform.apply((0, 0, 0)), expanded_min)

    last = data.transform.apply(np.asarray(data.field.shape) - 1)
    gap = expanded_max - last
    assert np.all(np.abs(gap) <= config.resolution + 1e-9)


def test_empty_selection(two_points):
    box = BoundingBox(min=(0.0, 0.0, 0.0), max=(1.0, 2.0, 3.0))
    data = compute_gaussian_density(two_points, box, GridConfig(resolution=0.5), selection=[])
    assert data.field.shape == (4, 6, 8)
    assert data.max_radius == 0.0
    assert np.all(data.field == 0.0)
    assert np.all(data.id_field == NO_CONTRIBUTOR)


def test_selection_subset(two_points, two_points_box, scenario_config):
    data = compute_gaussian_density(two_points, two_points_box, scenario_config, selection=[1])
    assert data.id_field[7, 7, 7] == 1
    assert data.field[7, 7, 7] == pytest.approx(math.exp(-6.0))
    assert data.field[11, 7, 7] == pytest.approx(1.0)
    assert not np.any(data.id_field == 0)


def test_radius_offset_enlarges_support(two_points, two_points_box):
    plain = compute_gaussian_density(two_points, two_points_box, GridConfig(resolution=0.5))
    grown = compute_gaussian_density(two_points, two_points_box, GridConfig(resolution=0.5, radius_offset=0.5))
    assert grown.max_radius == 1.5
    assert np.count_nonzero(grown.id_field != NO_CONTRIBUTOR) > np.count_nonzero(plain.id_field != NO_CONTRIBUTOR)


def test_zero_effective_radius_contributes_nothing(two_points, two_points_box):
    data = compute_gaussian_density(two_points, two_points_box, GridConfig(resolution=0.5, radius_offset=-1.0))
    assert data.max_radius == 0.0
    assert np.all(data.field == 0.0)
    assert np.all(data.id_field == NO_CONTRIBUTOR)


def test_caller_box_not_mutated(two_points, two_points_box, scenario_config):
    before = (two_points_box.min, two_points_box.max)
    compute_gaussian_density(two_points, two_points_box, scenario_config)
    assert (two_points_box.min, two_points_box.max) == before


@pytest.mark.parametrize(
    "config",
    [
        GridConfig(resolution=0.0),
        GridConfig(resolution=-1.0),
        GridConfig(smoothness=0.0),
        GridConfig(radius_offset=-2.0),
    ],
)
def test_invalid_config(two_points, two_points_box, config):
    with pytest.raises(InvalidConfigError):
        compute_gaussian_density(two_points, two_points_box, config)


def test_invalid_selection(two_points, two_points_box):
    with pytest.raises(InvalidSelectionError):
        compute_gaussian_density(two_points, two_points_box, selection=[0, 5])


def test_degenerate_box(two_points):
    box = BoundingBox(min=(0.0, 0.0, 0.0), max=(1.0, 1.0, 0.0))
    with pytest.raises(DegenerateBoxError):
        compute_gaussian_density(two_points, box)
