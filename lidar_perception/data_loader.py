import numpy as np
import open3d as o3d
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Union

from lidar_perception.errors import FrameLoadError
from lidar_perception.point_cloud import PointCloud, as_cloud

PathLike = Union[str, Path]


def load_kitti_txt(file_path: PathLike) -> np.ndarray:
    """
    Load a LiDAR point cloud from a whitespace/comma separated text file
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    delimiter = "," if file_path.suffix == ".csv" else None
    points = np.loadtxt(file_path, dtype=np.float32, delimiter=delimiter, ndmin=2)
    return points


def load_kitti_bin(file_path: PathLike) -> np.ndarray:
    """
    Load a KITTI velodyne scan: packed float32 (x, y, z, reflectance) records
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    raw = np.fromfile(file_path, dtype=np.float32)
    if raw.size % 4:
        raise ValueError(f"{file_path} size is not a multiple of 4 float32 values")
    return raw.reshape(-1, 4)


def load_pcd(file_path: PathLike) -> np.ndarray:
    """
    Load a PCD file (ascii, binary or binary_compressed) using Open3D's tensor
    API, which keeps the intensity channel.

    Returns (N, 4) xyz + intensity when the file has intensity, else (N, 3).
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Point cloud file not found: {file_path}")

    pcd = o3d.t.io.read_point_cloud(str(file_path))
    if not "positions" in pcd.point:
        raise ValueError(f"No points could be read from {file_path}")

    xyz = pcd.point.positions.numpy().astype(np.float64)
    if "intensity" in pcd.point:
        intensity = pcd.point.intensity.numpy().astype(np.float64).reshape(-1, 1)
        return np.hstack([xyz, intensity])
    return xyz


LOADERS: Dict[str, Callable[[PathLike], np.ndarray]] = {
    ".pcd": load_pcd,
    ".bin": load_kitti_bin,
    ".txt": load_kitti_txt,
    ".csv": load_kitti_txt,
}


def load_frame(file_path: PathLike) -> PointCloud:
    """
    Load any supported frame file into a PointCloud. Every failure surfaces as FrameLoadError.
    """
    file_path = Path(file_path)
    loader = LOADERS.get(file_path.suffix.lower())
    if loader is None:
        raise FrameLoadError(f"No loader for {file_path.suffix!r} files", context=str(file_path))
    try:
        return as_cloud(loader(file_path))
    except (OSError, ValueError, KeyError, IndexError) as e:
        raise FrameLoadError(f"Failed to load {file_path}: {e}", context=str(file_path)) from e


def discover_frames(
    directory: PathLike,
    patterns: Iterable[str] = ("*.pcd", "*.bin", "*.txt", "*.csv"),
) -> List[Path]:
    """
    All frame files directly under `directory`, sorted ascending by path.
    """
    directory = Path(directory)

    if not directory.is_dir():
        return []

    found = set()
    for pattern in patterns:
        found.update(p for p in directory.glob(pattern) if p.is_file())
    return sorted(found)
