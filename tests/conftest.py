import numpy as np
import pytest

from lidar_perception.point_cloud import PointCloud, PointXYZ, PointXYZI


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def plane_with_objects(rng):
    """Flat ground at z=0 plus two separated boxes of points above it."""
    ground = np.column_stack([
        rng.uniform(-10, 10, 2000),
        rng.uniform(-10, 10, 2000),
        rng.normal(0, 0.02, 2000),
    ])
    box_a = rng.uniform([2, 2, 0.5], [3, 3, 1.5], size=(150, 3))
    box_b = rng.uniform([-6, -5, 0.5], [-5, -4, 2.0], size=(150, 3))
    return PointCloud(np.vstack([ground, box_a, box_b]), PointXYZ)


@pytest.fixture
def intensity_cloud(rng):
    xyz = rng.uniform(-5, 5, size=(500, 3))
    intensity = rng.uniform(0, 1, size=(500, 1))
    return PointCloud(np.hstack([xyz, intensity]), PointXYZI)
