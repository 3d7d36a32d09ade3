import numpy as np
from abc import ABC, abstractmethod
from scipy.spatial import KDTree
from typing import List


class SpatialIndex(ABC):
    """
    Radius-query index over a fixed (N, 3) point set. Backends implement radius_search.
    """

    def __init__(self, xyz: np.ndarray):
        self.xyz = np.asarray(xyz, dtype=np.float64)[:, :3]

    def __len__(self) -> int:
        return len(self.xyz)

    @abstractmethod
    def radius_search(self, point: np.ndarray, radius: float) -> List[int]:
        """Sorted indices of indexed points within `radius` of `point`."""

    def radius_neighbors(self, radius: float) -> List[List[int]]:
        """Neighbor lists (self included) for every indexed point."""
        return [self.radius_search(p, radius) for p in self.xyz]


class KDTreeIndex(SpatialIndex):
    """
    Balanced KD-tree backend, O(log N) amortized per radius query.
    """

    def __init__(self, xyz: np.ndarray):
        super().__init__(xyz)
        self.tree = KDTree(self.xyz) if len(self.xyz) else None

    def radius_search(self, point: np.ndarray, radius: float) -> List[int]:
        if self.tree is None:
            return []
        return sorted(self.tree.query_ball_point(np.asarray(point)[:3], radius))

    def radius_neighbors(self, radius: float) -> List[List[int]]:
        if self.tree is None:
            return []
        return [sorted(n) for n in self.tree.query_ball_point(self.xyz, radius)]


class BruteForceIndex(SpatialIndex):
    """
    Linear scan per query. O(N) per query, O(N^2) for a full clustering pass.
    """

    def radius_search(self, point: np.ndarray, radius: float) -> List[int]:
        if len(self.xyz) == 0:
            return []
        dist = np.linalg.norm(self.xyz - np.asarray(point)[:3], axis=1)
        return np.flatnonzero(dist <= radius).tolist()


INDEX_BACKENDS = {
    "kdtree": KDTreeIndex,
    "brute": BruteForceIndex,
}


def build_index(xyz: np.ndarray, backend: str = "kdtree") -> SpatialIndex:
    if backend not in INDEX_BACKENDS:
        raise ValueError(f"Unknown spatial index backend: {backend!r}")
    return INDEX_BACKENDS[backend](xyz)
