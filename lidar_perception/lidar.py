"""
Synthetic rotating lidar.

Rays are cast from the sensor origin over a full horizontal sweep and a fixed
set of elevation layers, and stop at the nearest obstacle box or the ground
plane, whichever comes first.

Seeding: each Lidar owns one numpy Generator created from `seed` at
construction. Consecutive scans draw from the same stream, so the n-th scan of
two sensors built with the same seed is identical. `reseed()` restarts it.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from lidar_perception.point_cloud import PointCloud, PointXYZ
from lidar_perception.ransac import PlaneModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Obstacle:
    """Box volume centred on `position`, rotated by `yaw` (radians) about z."""
    position: Tuple[float, float, float]
    dimensions: Tuple[float, float, float]
    yaw: float = 0.0
    name: str = ""

    def to_local(self, points: np.ndarray) -> np.ndarray:
        """Rotate world-frame vectors into the box frame (translation not applied)."""
        c, s = np.cos(-self.yaw), np.sin(-self.yaw)
        rot = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        return np.atleast_2d(points) @ rot.T

    def contains(self, points: np.ndarray, tol: float = 1e-9) -> np.ndarray:
        local = self.to_local(np.atleast_2d(points) - np.asarray(self.position))
        half = np.asarray(self.dimensions) / 2
        return np.all(np.abs(local) <= half + tol, axis=1)


def ground_plane(height: float = 0.0, slope: float = 0.0) -> PlaneModel:
    """Ground surface z = height + slope * x."""
    return PlaneModel.from_coefficients(-slope, 0.0, 1.0, -height)


def highway_scene() -> List[Obstacle]:
    """Ego car at the origin plus three traffic cars, each 4 x 2 x 2 m on flat ground."""
    dims = (4.0, 2.0, 2.0)
    return [
        Obstacle((0.0, 0.0, 1.0), dims, name="egoCar"),
        Obstacle((15.0, 0.0, 1.0), dims, name="car1"),
        Obstacle((8.0, -4.0, 1.0), dims, name="car2"),
        Obstacle((-12.0, 4.0, 1.0), dims, name="car3"),
    ]


def intersect_box(origin: np.ndarray, directions: np.ndarray, box: Obstacle) -> np.ndarray:
    """
    Distance along each ray to the first positive hit on the box surface (slab
    method). Rays that miss get +inf.
    """
    o = box.to_local(np.asarray(origin, dtype=np.float64) - np.asarray(box.position))[0]
    d = box.to_local(directions)
    half = np.asarray(box.dimensions, dtype=np.float64) / 2

    parallel = np.abs(d) < 1e-12
    with np.errstate(divide="ignore", invalid="ignore"):
        t1 = (-half - o) / d
        t2 = (half - o) / d
    near = np.minimum(t1, t2)
    far = np.maximum(t1, t2)

    # A ray parallel to a slab either always lies inside it or never does
    inside_slab = np.abs(o) <= half
    near = np.where(parallel, np.where(inside_slab, -np.inf, np.inf), near)
    far = np.where(parallel, np.where(inside_slab, np.inf, -np.inf), far)

    t_enter = near.max(axis=1)
    t_exit = far.min(axis=1)

    hit = (t_exit >= t_enter) & (t_exit > 0)
    t = np.where(t_enter > 0, t_enter, t_exit)
    return np.where(hit, t, np.inf)


def intersect_plane(origin: np.ndarray, directions: np.ndarray, plane: PlaneModel) -> np.ndarray:
    """Distance along each ray to the plane; +inf when parallel or behind."""
    denom = directions @ plane.normal
    num = -(np.dot(plane.normal, origin) + plane.d)
    with np.errstate(divide="ignore", invalid="ignore"):
        t = num / denom
    return np.where((np.abs(denom) > 1e-12) & (t > 0), t, np.inf)


class Lidar:
    """
    Rotating multi-layer lidar that ray-casts against obstacle boxes and a ground plane.
    """

    def __init__(
        self,
        obstacles: Sequence[Obstacle],
        origin: Sequence[float] = (0.0, 0.0, 2.6),
        ground: Optional[PlaneModel] = None,
        num_layers: int = 8,
        min_elevation: float = np.deg2rad(-30.0),
        elevation_range: float = np.deg2rad(26.0),
        horizontal_resolution: float = np.pi / 64,
        min_range: float = 5.0,
        max_range: float = 50.0,
        noise_std: float = 0.2,
        seed: Optional[int] = None,
    ):
        if num_layers < 1:
            raise ValueError("num_layers must be at least 1")
        if horizontal_resolution <= 0:
            raise ValueError("horizontal_resolution must be positive")
        if not 0 <= min_range < max_range:
            raise ValueError(f"Invalid range [{min_range}, {max_range}]")
        if noise_std < 0:
            raise ValueError("noise_std must be non-negative")

        self.obstacles = list(obstacles)
        self.origin = np.asarray(origin, dtype=np.float64)
        self.ground = ground if ground is not None else ground_plane()
        self.num_layers = num_layers
        self.min_elevation = min_elevation
        self.elevation_range = elevation_range
        self.horizontal_resolution = horizontal_resolution
        self.min_range = min_range
        self.max_range = max_range
        self.noise_std = noise_std
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    @classmethod
    def from_params(cls, obstacles: Sequence[Obstacle], params) -> "Lidar":
        """Build from a LidarParams config section (angles in degrees)."""
        return cls(
            obstacles,
            origin=params.origin,
            ground=ground_plane(params.ground_height, params.ground_slope),
            num_layers=params.num_layers,
            min_elevation=np.deg2rad(params.min_elevation_deg),
            elevation_range=np.deg2rad(params.elevation_range_deg),
            horizontal_resolution=np.deg2rad(params.horizontal_resolution_deg),
            min_range=params.min_range,
            max_range=params.max_range,
            noise_std=params.noise_std,
            seed=params.seed,
        )

    def reseed(self, seed: Optional[int] = None) -> None:
        self.seed = self.seed if seed is None else seed
        self.rng = np.random.default_rng(self.seed)

    def ray_directions(self) -> np.ndarray:
        """Unit ray directions, layer-major, shape (layers * horizontal steps, 3)."""
        n_horizontal = int(round(2 * np.pi / self.horizontal_resolution))
        azimuth = np.arange(n_horizontal) * self.horizontal_resolution
        elevation = self.min_elevation + np.arange(self.num_layers) * (self.elevation_range / self.num_layers)

        el, az = np.meshgrid(elevation, azimuth, indexing="ij")
        el, az = el.ravel(), az.ravel()
        return np.stack([np.cos(el) * np.cos(az), np.cos(el) * np.sin(az), np.sin(el)], axis=1)

    def cast(self, directions: np.ndarray) -> np.ndarray:
        """Distance to the nearest surface along each ray (+inf when nothing is hit)."""
        t = intersect_plane(self.origin, directions, self.ground)
        for obstacle in self.obstacles:
            t = np.minimum(t, intersect_box(self.origin, directions, obstacle))
        return t

    def scan(self) -> PointCloud[PointXYZ]:
        directions = self.ray_directions()
        t = self.cast(directions)

        in_range = np.isfinite(t) & (t >= self.min_range) & (t <= self.max_range)
        points = self.origin + directions[in_range] * t[in_range, None]

        if self.noise_std > 0:
            points = points + self.rng.normal(0.0, self.noise_std, size=points.shape)

        logger.debug("scan: %d rays, %d returns", len(directions), len(points))
        return PointCloud(points, PointXYZ)
