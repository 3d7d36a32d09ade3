import numpy as np
import pytest

from lidar_perception.errors import FrameErrorPolicy, FrameLoadError
from lidar_perception.lidar import Lidar, highway_scene
from lidar_perception.pipeline import (
    CLUSTER_COLORS,
    FrameResult,
    PipelineParams,
    PointCloudProcessor,
    run_frame_pipeline,
    run_replay,
    run_sequence_pipeline,
)
from lidar_perception.point_cloud import PointCloud
from lidar_perception.stream import FrameStream


@pytest.fixture
def params():
    return PipelineParams(
        voxel_size=0.1,
        crop_min=(-12, -12, -1),
        crop_max=(12, 12, 5),
        ransac_iters=100,
        dist_thresh=0.1,
        ransac_seed=0,
        cluster_tol=0.5,
        min_cluster=10,
        max_cluster=5000,
    )


def test_frame_pipeline_finds_objects(plane_with_objects, params):
    result = run_frame_pipeline(plane_with_objects, params)

    assert result.ok
    assert result.num_clusters == 2
    assert result.filtered_count == len(result.road_cloud) + len(result.obstacle_cloud)
    assert [o.id for o in result.objects] == [0, 1]
    assert set(result.timings) == {"filter", "segment", "cluster", "box"}

    for obj in result.objects:
        assert obj.box.contains(obj.cloud.xyz).all()
        assert obj.color == CLUSTER_COLORS[obj.id % 3]


def test_colors_cycle_through_palette(rng, params):
    centers = [(x, 0.0, 1.0) for x in (-9, -6, -3, 3, 6)]
    blobs = [rng.uniform(np.subtract(c, 0.3), np.add(c, 0.3), size=(60, 3)) for c in centers]
    ground = np.column_stack([rng.uniform(-10, 10, 3000), rng.uniform(-10, 10, 3000), np.zeros(3000)])
    cloud = PointCloud(np.vstack([ground] + blobs))

    result = run_frame_pipeline(cloud, params)

    assert result.num_clusters == 5
    assert [o.color for o in result.objects] == [CLUSTER_COLORS[i % 3] for i in range(5)]
    assert len(CLUSTER_COLORS) == 3


def test_simulated_highway_scene():
    lidar = Lidar(highway_scene(), noise_std=0.0, horizontal_resolution=np.pi / 256, num_layers=16, seed=0)
    params = PipelineParams(voxel_size=0.2, ransac_iters=50, dist_thresh=0.15, ransac_seed=0,
                            cluster_tol=1.0, min_cluster=3, max_cluster=5000)

    result = run_frame_pipeline(lidar.scan(), params)

    assert result.plane_model is not None
    assert abs(result.plane_model.normal[2]) == pytest.approx(1.0, abs=1e-6)
    # car1 ahead and car2 to the right sit inside the default crop box
    centers = [o.box.center[:2] for o in result.objects]
    for expected in [(15.0, 0.0), (8.0, -4.0)]:
        assert any(np.linalg.norm(c - expected) < 3.0 for c in centers)


def test_input_cloud_unchanged(plane_with_objects, params):
    before = plane_with_objects.data.copy()
    run_frame_pipeline(plane_with_objects, params)
    np.testing.assert_array_equal(plane_with_objects.data, before)


def test_processor_methods_match_functions(plane_with_objects, params):
    proc = PointCloudProcessor()
    filtered = proc.filter_cloud(plane_with_objects, params.voxel_size, params.crop_min, params.crop_max)
    obstacles, road = proc.segment_plane(filtered, 100, 0.1, rng=0)
    clusters = proc.clustering(obstacles, 0.5, 10, 5000)

    assert len(clusters) == 2
    assert proc.num_points(road) == len(road)
    assert proc.bounding_box(clusters[0]).contains(clusters[0].xyz).all()


def test_replay_stops_between_frames(plane_with_objects, params):
    stream = FrameStream.from_clouds([plane_with_objects, plane_with_objects])
    seen = []

    summary = run_replay(stream, params, sink=seen.append, should_stop=lambda: len(seen) >= 3)

    assert summary.frames == 3
    assert [r.frame_index for r in seen] == [0, 1, 0]


def test_replay_degrades_failed_frames(plane_with_objects, params):
    tiny = PointCloud(np.array([[0.0, 0.0, 0.0]]))
    stream = FrameStream.from_clouds([tiny, plane_with_objects])
    seen = []

    summary = run_replay(stream, params, sink=seen.append, max_frames=4)

    assert summary.frames == 4
    assert summary.failed == 2
    assert summary.errors == 2
    assert [r.ok for r in seen] == [False, True, False, True]
    assert isinstance(seen[0], FrameResult)
    assert seen[0].objects == []


def test_replay_skips_unreadable_files(tmp_path, plane_with_objects, params):
    np.savetxt(tmp_path / "0000.txt", plane_with_objects.xyz)
    (tmp_path / "0001.txt").write_text("bad row\n")
    stream = FrameStream.from_directory(tmp_path)

    seen = []
    summary = run_replay(stream, params, sink=seen.append, max_frames=2)

    assert [r.frame_index for r in seen] == [0, 0]
    assert summary.warnings >= 1


def test_sequence_pipeline_is_fatal_on_load_error(tmp_path, params):
    (tmp_path / "0000.txt").write_text("bad row\n")
    with pytest.raises(FrameLoadError):
        run_sequence_pipeline(str(tmp_path), params)


def test_sequence_pipeline_processes_each_frame_once(tmp_path, plane_with_objects, params):
    for i in range(3):
        np.savetxt(tmp_path / f"{i:04d}.txt", plane_with_objects.xyz)
    progress = []

    results = run_sequence_pipeline(str(tmp_path), params, progress_callback=lambda i, n: progress.append((i, n)))

    assert [r.frame_index for r in results] == [0, 1, 2]
    assert progress[-1] == (3, 3)
    assert all(r.num_clusters == 2 for r in results)


def test_processor_clustering_forwards_index_backend(plane_with_objects):
    proc = PointCloudProcessor()
    obstacles, _ = proc.segment_plane(plane_with_objects, 100, 0.1, rng=0)

    kd = proc.clustering(obstacles, 0.5, 10, 5000)
    brute = proc.clustering(obstacles, 0.5, 10, 5000, index="brute")

    assert len(kd) == len(brute)
    for a, b in zip(kd, brute):
        np.testing.assert_array_equal(a.xyz, b.xyz)
    with pytest.raises(ValueError):
        proc.clustering(obstacles, 0.5, 10, 5000, index="octree")
