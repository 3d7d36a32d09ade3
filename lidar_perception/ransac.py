import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from lidar_perception.errors import InsufficientDataError
from lidar_perception.point_cloud import PointCloud

logger = logging.getLogger(__name__)

RandomState = Union[None, int, np.random.Generator]


@dataclass
class PlaneModel:
    """
    Represents a 3D plane: normal * point + d = 0
    """
    # Unit vector with distance parameter to represent plane
    normal: np.ndarray
    d: float

    @classmethod
    def from_coefficients(cls, a: float, b: float, c: float, d: float) -> "PlaneModel":
        normal = np.array([a, b, c], dtype=np.float64)
        norm = np.linalg.norm(normal)
        if norm < 1e-12:
            raise ValueError("Plane normal must be non-zero")
        return cls(normal=normal / norm, d=float(d) / norm)

    @property
    def coefficients(self) -> Tuple[float, float, float, float]:
        a, b, c = (float(v) for v in self.normal)
        return a, b, c, float(self.d)

    def distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.abs(self.signed_distance(points))

    def signed_distance(self, points: np.ndarray) -> np.ndarray:
        return np.dot(points[:, :3], self.normal) + self.d

    @property
    def equation_string(self) -> str:
        return f"{self.normal[0]:.4f}x + {self.normal[1]:.4f}y + {self.normal[2]:.4f}z + {self.d:.4f} = 0"


def fit_plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> PlaneModel:
    """
    Fit a plane through three 3D points.
    """
    v1 = p2 - p1
    v2 = p3 - p1

    normal = np.cross(v1, v2)

    norm = np.linalg.norm(normal)
    if norm < 1e-10:
        raise ValueError("Points are collinear")

    normal = normal / norm

    d = -np.dot(normal, p1)

    return PlaneModel(normal=normal, d=float(d))


def ransac_plane(
    points: np.ndarray,
    num_iterations: int = 100,
    distance_threshold: float = 0.2,
    rng: RandomState = None,
) -> Tuple[Optional[PlaneModel], np.ndarray]:
    """
    Fit the dominant plane with RANSAC.

    Returns the best plane and its inlier mask. Ties keep the first model found.
    If every sample was collinear the plane is None and the mask is all False.
    """
    xyz = np.asarray(points, dtype=np.float64)[:, :3]
    n_points = len(xyz)

    if n_points < 3:
        raise InsufficientDataError(
            f"RANSAC needs at least 3 points, got {n_points}",
            context="segment_plane",
        )

    rng = np.random.default_rng(rng)

    best_plane = None
    best_inlier_count = 0
    best_inlier_mask = np.zeros(n_points, dtype=bool)

    for _ in range(num_iterations):
        sample_indices = rng.choice(n_points, 3, replace=False)
        p1, p2, p3 = xyz[sample_indices]

        try:
            plane = fit_plane_from_points(p1, p2, p3)
        except ValueError:
            continue

        distances = plane.distance_to_points(xyz)
        inlier_mask = distances <= distance_threshold
        inlier_count = int(np.sum(inlier_mask))

        if best_plane is None or inlier_count > best_inlier_count:
            best_inlier_count = inlier_count
            best_plane = plane
            best_inlier_mask = inlier_mask

    if best_plane is None:
        logger.warning(
            "RANSAC found no non-collinear sample in %d iterations over %d points; "
            "returning an empty inlier set",
            num_iterations, n_points,
        )
    else:
        logger.debug(
            "RANSAC plane %s with %d/%d inliers",
            best_plane.equation_string, best_inlier_count, n_points,
        )

    return best_plane, best_inlier_mask


def segment_plane(
    cloud: PointCloud,
    max_iterations: int = 100,
    distance_threshold: float = 0.2,
    rng: RandomState = None,
) -> Tuple[PointCloud, PointCloud]:
    """
    Split a cloud into (outliers, inliers) of its dominant plane.
    """
    _, inlier_mask = ransac_plane(cloud.xyz, max_iterations, distance_threshold, rng=rng)
    return cloud.select(~inlier_mask), cloud.select(inlier_mask)
