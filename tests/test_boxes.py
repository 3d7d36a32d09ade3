import numpy as np
import pytest

from lidar_perception.boxes import BoundingBox, bounding_box
from lidar_perception.errors import EmptyClusterError
from lidar_perception.point_cloud import PointCloud


def test_box_is_tightest(rng):
    xyz = rng.normal(size=(200, 3))
    box = bounding_box(PointCloud(xyz))

    assert box.contains(xyz).all()
    # Every face touches at least one point
    np.testing.assert_allclose(box.min_point, xyz.min(axis=0))
    np.testing.assert_allclose(box.max_point, xyz.max(axis=0))
    for axis in range(3):
        assert np.isclose(xyz[:, axis], box.min_point[axis]).any()
        assert np.isclose(xyz[:, axis], box.max_point[axis]).any()


def test_single_point_box_is_degenerate():
    box = bounding_box(np.array([[1.0, 2.0, 3.0]]))
    assert box.volume == 0.0
    np.testing.assert_array_equal(box.center, [1, 2, 3])


def test_box_geometry():
    box = BoundingBox(0, 0, 0, 4, 2, 1)
    np.testing.assert_array_equal(box.dimensions, [4, 2, 1])
    np.testing.assert_array_equal(box.center, [2, 1, 0.5])
    assert box.volume == 8.0
    assert box.corners().shape == (8, 3)
    assert box.contains(np.array([4, 2, 1])).all()
    assert not box.contains(np.array([4.1, 0, 0])).any()


@pytest.mark.parametrize("empty", [PointCloud.empty(), np.zeros((0, 3)), []])
def test_empty_cluster_is_precondition_error(empty):
    with pytest.raises(EmptyClusterError):
        bounding_box(empty)
    with pytest.raises(ValueError):
        bounding_box(empty)
