import logging
import numpy as np
from dataclasses import dataclass, field
from typing import List
from collections import deque

from lidar_perception.point_cloud import PointCloud
from lidar_perception.spatial_index import build_index

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    labels: np.ndarray
    num_clusters: int
    cluster_sizes: List[int]
    noise_count: int
    # Ascending point indices per cluster, in emission order
    indices: List[np.ndarray] = field(default_factory=list)


def euclidean_cluster(
    points: np.ndarray,
    distance_tolerance: float = 0.5,
    min_size: int = 1,
    max_size: int = 0,
    index: str = "kdtree",
) -> ClusterResult:
    """
    Euclidean region growing over a spatial index.

    Seeds are taken in stored order; each cluster is grown breadth-first
    through radius queries until no unvisited neighbor remains. Clusters
    smaller than min_size or larger than max_size (0 = unbounded) are
    discarded and their points labelled -1.
    """
    if len(points) == 0:
        return ClusterResult(
            labels=np.array([], dtype=int),
            num_clusters=0,
            cluster_sizes=[],
            noise_count=0,
        )

    xyz = np.asarray(points, dtype=np.float64)[:, :3]
    n = len(xyz)
    tree = build_index(xyz, backend=index)

    neighborhoods = tree.radius_neighbors(distance_tolerance)

    labels = np.full(n, -1, dtype=int)
    visited = np.zeros(n, dtype=bool)
    clusters = []

    for i in range(n):
        if visited[i]:
            continue

        visited[i] = True
        members = [i]
        queue = deque([i])

        while queue:
            j = queue.popleft()
            for k in neighborhoods[j]:
                if not visited[k]:
                    visited[k] = True
                    members.append(k)
                    queue.append(k)

        size = len(members)
        if size < min_size or (max_size > 0 and size > max_size):
            continue

        cluster_id = len(clusters)
        member_indices = np.sort(np.array(members, dtype=int))
        labels[member_indices] = cluster_id
        clusters.append(member_indices)

    cluster_sizes = [len(c) for c in clusters]
    noise_count = int((labels == -1).sum())

    logger.debug(
        "euclidean_cluster: %d points -> %d clusters, %d unclustered",
        n, len(clusters), noise_count,
    )

    return ClusterResult(
        labels=labels,
        num_clusters=len(clusters),
        cluster_sizes=cluster_sizes,
        noise_count=noise_count,
        indices=clusters,
    )


def clustering(
    cloud: PointCloud,
    distance_tolerance: float = 0.5,
    min_size: int = 1,
    max_size: int = 0,
    index: str = "kdtree",
) -> List[PointCloud]:
    """
    Partition a cloud into Euclidean clusters, returned as separate clouds.
    """
    result = euclidean_cluster(cloud.xyz, distance_tolerance, min_size, max_size, index=index)
    return [cloud.select(idx) for idx in result.indices]
