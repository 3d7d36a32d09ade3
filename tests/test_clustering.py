import numpy as np
import pytest

from lidar_perception.clustering import clustering, euclidean_cluster
from lidar_perception.point_cloud import PointCloud


def _grid(origin, n=4, spacing=0.2):
    ax = np.arange(n) * spacing
    g = np.stack(np.meshgrid(ax, ax, ax, indexing="ij"), axis=-1).reshape(-1, 3)
    return g + np.asarray(origin, dtype=float)


def _chain_connected(xyz, tol):
    """Flood fill over the cluster's own points only."""
    reached = {0}
    frontier = [0]
    while frontier:
        i = frontier.pop()
        d = np.linalg.norm(xyz - xyz[i], axis=1)
        for j in np.flatnonzero(d <= tol):
            if j not in reached:
                reached.add(int(j))
                frontier.append(int(j))
    return len(reached) == len(xyz)


@pytest.mark.parametrize("index", ["kdtree", "brute"])
def test_two_separated_groups(index):
    a = _grid((0, 0, 0))
    b = _grid((5, 5, 0))
    cloud = PointCloud(np.vstack([a, b]))

    clusters = clustering(cloud, 0.5, 1, 1000, index=index)

    assert len(clusters) == 2
    np.testing.assert_allclose(clusters[0].xyz, a)
    np.testing.assert_allclose(clusters[1].xyz, b)


def test_emission_follows_seed_order():
    a = _grid((0, 0, 0))
    b = _grid((5, 5, 0))
    # b's first point comes first in storage, so b is emitted first
    cloud = PointCloud(np.vstack([b[:1], a, b[1:]]))

    result = euclidean_cluster(cloud.xyz, 0.5, 1, 1000)

    assert result.num_clusters == 2
    assert result.indices[0][0] == 0
    assert len(result.indices[0]) == len(b)
    assert result.labels[0] == 0
    assert result.labels[1] == 1


def test_clusters_are_disjoint_and_chain_connected(rng):
    xyz = rng.uniform(0, 10, size=(600, 3))
    result = euclidean_cluster(xyz, 0.8, 1, 0)

    seen = np.concatenate(result.indices)
    assert len(seen) == len(np.unique(seen))
    for idx in result.indices:
        assert _chain_connected(xyz[idx], 0.8)


def test_chained_points_join_one_cluster():
    # Consecutive points 0.4 apart; ends are far apart but linked through the chain
    xyz = np.array([[i * 0.4, 0, 0] for i in range(20)])
    result = euclidean_cluster(xyz, 0.5, 1, 0)
    assert result.num_clusters == 1
    assert result.cluster_sizes == [20]


def test_size_limits_discard_clusters():
    small = _grid((0, 0, 0), n=2)      # 8 points
    medium = _grid((5, 0, 0), n=3)     # 27 points
    large = _grid((10, 0, 0), n=4)     # 64 points
    cloud = PointCloud(np.vstack([small, medium, large]))

    result = euclidean_cluster(cloud.xyz, 0.5, 10, 30)

    assert result.num_clusters == 1
    assert result.cluster_sizes == [27]
    assert result.noise_count == 8 + 64
    assert set(np.unique(result.labels)) == {-1, 0}


def test_max_size_zero_means_unbounded():
    result = euclidean_cluster(_grid((0, 0, 0), n=5), 0.5, 1, 0)
    assert result.cluster_sizes == [125]


def test_empty_cloud():
    assert clustering(PointCloud.empty(), 0.5, 1, 10) == []
    assert euclidean_cluster(np.zeros((0, 3))).num_clusters == 0


def test_intensity_carried_into_clusters(intensity_cloud):
    clusters = clustering(intensity_cloud, 3.0, 1, 0)
    assert all(c.has_intensity for c in clusters)
    assert sum(len(c) for c in clusters) == len(intensity_cloud)
