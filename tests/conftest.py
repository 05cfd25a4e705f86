import numpy as np
import pytest

from densegrid import BoundingBox, GridConfig, PointSet


@pytest.fixture
def two_points():
    """Dos esferas de radio 1 en (0,0,0) y (2,0,0)."""
    return PointSet(
        positions=np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]]),
        radius=np.array([1.0, 1.0]),
        ids=np.array([0, 1]),
    )


@pytest.fixture
def two_points_box(two_points):
    return BoundingBox.from_points(two_points)


@pytest.fixture
def scenario_config():
    return GridConfig(resolution=0.5, radius_offset=0.0, smoothness=1.5)


@pytest.fixture
def random_points():
    rng = np.random.default_rng(7)
    return PointSet(
        positions=rng.uniform(-2.0, 2.0, size=(6, 3)),
        radius=rng.uniform(0.5, 1.2, size=6),
        ids=np.array([10, 3, 42, 7, 99, 5]),
    )
