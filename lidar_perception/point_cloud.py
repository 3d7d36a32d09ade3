import numpy as np
from dataclasses import dataclass, fields, astuple
from typing import Generic, Iterable, Iterator, Sequence, Type, TypeVar, Union


@dataclass(frozen=True)
class PointXYZ:
    x: float
    y: float
    z: float

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])


@dataclass(frozen=True)
class PointXYZI(PointXYZ):
    intensity: float = 0.0


P = TypeVar("P", bound=PointXYZ)


class PointCloud(Generic[P]):
    """
    Ordered, immutable collection of points of a single type.

    Points are stored row-wise in a read-only (N, k) float64 array whose
    columns follow the fields of `point_type` (x, y, z[, intensity]).
    """

    def __init__(self, data: np.ndarray, point_type: Type[P] = PointXYZ):
        n_fields = len(fields(point_type))
        data = np.array(data, dtype=np.float64, copy=True)
        if data.size == 0:
            data = data.reshape(0, n_fields)
        if data.ndim != 2 or data.shape[1] != n_fields:
            raise ValueError(
                f"{point_type.__name__} cloud needs shape (N, {n_fields}), got {data.shape}"
            )
        data.flags.writeable = False
        self._data = data
        self.point_type = point_type

    @classmethod
    def from_points(cls, points: Iterable[P], point_type: Type[P] = PointXYZ) -> "PointCloud[P]":
        rows = [astuple(p) for p in points]
        return cls(np.array(rows, dtype=np.float64), point_type)

    @classmethod
    def empty(cls, point_type: Type[P] = PointXYZ) -> "PointCloud[P]":
        return cls(np.zeros((0, len(fields(point_type)))), point_type)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def xyz(self) -> np.ndarray:
        return self._data[:, :3]

    @property
    def has_intensity(self) -> bool:
        return self._data.shape[1] > 3

    def select(self, indices: Union[np.ndarray, Sequence[int]]) -> "PointCloud[P]":
        """New cloud holding the rows picked by an index array or boolean mask."""
        indices = np.asarray(indices)
        if indices.dtype != bool:
            indices = indices.astype(np.intp)
        return PointCloud(self._data[indices], self.point_type)

    def with_data(self, data: np.ndarray) -> "PointCloud[P]":
        return PointCloud(data, self.point_type)

    def __len__(self) -> int:
        return len(self._data)

    def __getitem__(self, i: int) -> P:
        return self.point_type(*(float(v) for v in self._data[i]))

    def __iter__(self) -> Iterator[P]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        return f"PointCloud[{self.point_type.__name__}]({len(self)} points)"


def as_cloud(points: Union["PointCloud", np.ndarray]) -> PointCloud:
    """Wrap a raw (N, 3) or (N, 4) array, passing existing clouds through."""
    if isinstance(points, PointCloud):
        return points
    points = np.asarray(points, dtype=np.float64)
    if points.size == 0:
        return PointCloud.empty(PointXYZ)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(f"Expected an (N, 3) or (N, 4) array, got shape {points.shape}")
    if points.shape[1] >= 4:
        return PointCloud(points[:, :4], PointXYZI)
    return PointCloud(points, PointXYZ)
