import logging
import numpy as np
from typing import Optional, Sequence

from lidar_perception.point_cloud import PointCloud

logger = logging.getLogger(__name__)


def voxel_downsample(cloud: PointCloud, voxel_size: float = 0.2) -> PointCloud:
    """
    Downsample point cloud using voxel grid filtering.
    Every channel (intensity included) is averaged per voxel.
    """
    if voxel_size <= 0:
        raise ValueError(f"voxel_size must be positive, got {voxel_size}")

    if len(cloud) == 0:
        return cloud.with_data(cloud.data)

    data = cloud.data
    xyz = cloud.xyz

    # Floor-divide into integer voxel coordinates, group rows by voxel,
    # then average each channel per voxel
    voxel_indices = np.floor(xyz / voxel_size).astype(np.int64)
    _, inverse_indices = np.unique(voxel_indices, axis=0, return_inverse=True)
    inverse_indices = inverse_indices.reshape(-1)

    counts = np.bincount(inverse_indices)
    centroids = np.zeros((len(counts), data.shape[1]))

    for dim in range(data.shape[1]):
        centroids[:, dim] = np.bincount(inverse_indices, weights=data[:, dim]) / counts

    return cloud.with_data(centroids)


def crop_box_mask(
    xyz: np.ndarray,
    min_bound: Sequence[float],
    max_bound: Sequence[float],
) -> np.ndarray:
    """Mask of points inside the inclusive axis-aligned box."""
    lo = np.asarray(min_bound, dtype=np.float64)[:3]
    hi = np.asarray(max_bound, dtype=np.float64)[:3]
    return np.all((xyz >= lo) & (xyz <= hi), axis=1)


def _check_bounds(min_bound: Sequence[float], max_bound: Sequence[float], name: str) -> None:
    lo = np.asarray(min_bound, dtype=np.float64)
    hi = np.asarray(max_bound, dtype=np.float64)
    if lo.shape[0] < 3 or hi.shape[0] < 3:
        raise ValueError(f"{name} bounds need three components")
    if not np.all(lo[:3] < hi[:3]):
        raise ValueError(f"{name} min bound {lo[:3]} must be below max bound {hi[:3]}")


def filter_cloud(
    cloud: PointCloud,
    leaf_size: float,
    min_bound: Sequence[float],
    max_bound: Sequence[float],
    roof_min: Optional[Sequence[float]] = None,
    roof_max: Optional[Sequence[float]] = None,
) -> PointCloud:
    """
    Voxel downsample, then keep only representatives inside [min_bound, max_bound].
    If a roof box is given, representatives inside it (returns from the ego
    vehicle itself) are dropped as well.
    """
    _check_bounds(min_bound, max_bound, "crop")
    if (roof_min is None) != (roof_max is None):
        raise ValueError("roof_min and roof_max must be given together")
    if roof_min is not None:
        _check_bounds(roof_min, roof_max, "roof")

    downsampled = voxel_downsample(cloud, voxel_size=leaf_size)

    keep = crop_box_mask(downsampled.xyz, min_bound, max_bound)
    if roof_min is not None:
        keep &= ~crop_box_mask(downsampled.xyz, roof_min, roof_max)

    filtered = downsampled.select(keep)
    logger.debug(
        "filter_cloud: %d raw -> %d voxels -> %d cropped",
        len(cloud), len(downsampled), len(filtered),
    )
    return filtered
