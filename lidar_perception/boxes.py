import numpy as np
from dataclasses import dataclass
from typing import Union

from lidar_perception.errors import EmptyClusterError
from lidar_perception.point_cloud import PointCloud


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    min_z: float
    max_x: float
    max_y: float
    max_z: float

    @property
    def min_point(self) -> np.ndarray:
        return np.array([self.min_x, self.min_y, self.min_z])

    @property
    def max_point(self) -> np.ndarray:
        return np.array([self.max_x, self.max_y, self.max_z])

    @property
    def dimensions(self) -> np.ndarray:
        return self.max_point - self.min_point

    @property
    def center(self) -> np.ndarray:
        return (self.min_point + self.max_point) / 2

    @property
    def volume(self) -> float:
        return float(np.prod(self.dimensions))

    def contains(self, points: np.ndarray) -> np.ndarray:
        """Boolean mask of points inside the box (faces included)."""
        xyz = np.atleast_2d(points)[:, :3]
        return np.all((xyz >= self.min_point) & (xyz <= self.max_point), axis=1)

    def corners(self) -> np.ndarray:
        """(8, 3) corners; the first four are the bottom face in ring order."""
        x0, y0, z0 = self.min_point
        x1, y1, z1 = self.max_point
        return np.array([
            [x0, y0, z0], [x1, y0, z0], [x1, y1, z0], [x0, y1, z0],
            [x0, y0, z1], [x1, y0, z1], [x1, y1, z1], [x0, y1, z1],
        ])


def bounding_box(cluster: Union[PointCloud, np.ndarray]) -> BoundingBox:
    """
    Tightest axis-aligned box around a non-empty cluster.
    """
    xyz = cluster.xyz if isinstance(cluster, PointCloud) else np.asarray(cluster, dtype=np.float64)
    if xyz.size == 0:
        raise EmptyClusterError("Cannot compute a bounding box of an empty cluster", context="bounding_box")
    xyz = np.atleast_2d(xyz)[:, :3]

    lo = xyz.min(axis=0)
    hi = xyz.max(axis=0)
    return BoundingBox(
        float(lo[0]), float(lo[1]), float(lo[2]),
        float(hi[0]), float(hi[1]), float(hi[2]),
    )
