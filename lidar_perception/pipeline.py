import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from lidar_perception.boxes import BoundingBox, bounding_box
from lidar_perception.clustering import clustering, euclidean_cluster
from lidar_perception.errors import FrameErrorPolicy, PipelineError
from lidar_perception.log import CountingHandler
from lidar_perception.point_cloud import PointCloud
from lidar_perception.preprocessing import filter_cloud
from lidar_perception.ransac import PlaneModel, ransac_plane, segment_plane
from lidar_perception.stream import FrameStream

logger = logging.getLogger(__name__)

Color = Tuple[float, float, float]

# red, yellow, blue; object i gets CLUSTER_COLORS[i % 3]
CLUSTER_COLORS: List[Color] = [(1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 0.0, 1.0)]


@dataclass(frozen=True)
class PipelineParams:
    """Parameters for the LiDAR processing pipeline."""
    # Filtering
    voxel_size: float = 0.2
    crop_min: Sequence[float] = (-10.0, -7.0, -2.0)
    crop_max: Sequence[float] = (20.0, 7.0, 5.0)
    roof_min: Optional[Sequence[float]] = None
    roof_max: Optional[Sequence[float]] = None
    # RANSAC
    ransac_iters: int = 50
    dist_thresh: float = 0.15
    ransac_seed: Optional[int] = None
    # Clustering
    cluster_tol: float = 0.5
    min_cluster: int = 5
    max_cluster: int = 1000
    index: str = "kdtree"


@dataclass
class DetectedObject:
    id: int
    cloud: PointCloud
    box: BoundingBox
    color: Color


@dataclass
class FrameResult:
    """Result of processing a single frame."""
    frame_index: int
    source: Optional[str]

    raw_count: int
    filtered_count: int = 0

    # Ground segmentation
    plane_model: Optional[PlaneModel] = None
    road_cloud: Optional[PointCloud] = None
    obstacle_cloud: Optional[PointCloud] = None

    # Clustering
    objects: List[DetectedObject] = field(default_factory=list)
    cluster_labels: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))
    noise_count: int = 0

    timings: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def num_clusters(self) -> int:
        return len(self.objects)

    @property
    def ok(self) -> bool:
        return self.error is None


class PointCloudProcessor:
    """
    Object-style access to the pipeline stages. Holds no per-frame state.
    """

    def filter_cloud(self, cloud: PointCloud, leaf_size: float, min_bound, max_bound, roof_min=None, roof_max=None) -> PointCloud:
        return filter_cloud(cloud, leaf_size, min_bound, max_bound, roof_min, roof_max)

    def segment_plane(self, cloud: PointCloud, max_iterations: int, distance_threshold: float, rng=None) -> Tuple[PointCloud, PointCloud]:
        return segment_plane(cloud, max_iterations, distance_threshold, rng=rng)

    def clustering(self, cloud: PointCloud, distance_tolerance: float, min_size: int, max_size: int, index: str = "kdtree") -> List[PointCloud]:
        return clustering(cloud, distance_tolerance, min_size, max_size, index=index)

    def bounding_box(self, cluster: PointCloud) -> BoundingBox:
        return bounding_box(cluster)

    def num_points(self, cloud: PointCloud) -> int:
        logger.info("%d points", len(cloud))
        return len(cloud)


def run_frame_pipeline(
    cloud: PointCloud,
    params: PipelineParams,
    frame_index: int = 0,
    source: Optional[str] = None,
) -> FrameResult:
    """
    Run the full pipeline on a single frame.
    """
    timings = {}

    # Downsample + crop
    start = time.perf_counter()
    filtered = filter_cloud(
        cloud,
        leaf_size=params.voxel_size,
        min_bound=params.crop_min,
        max_bound=params.crop_max,
        roof_min=params.roof_min,
        roof_max=params.roof_max,
    )
    timings["filter"] = time.perf_counter() - start

    # Ground segmentation
    start = time.perf_counter()
    plane, ground_mask = ransac_plane(
        filtered.xyz,
        num_iterations=params.ransac_iters,
        distance_threshold=params.dist_thresh,
        rng=params.ransac_seed,
    )
    road_cloud = filtered.select(ground_mask)
    obstacle_cloud = filtered.select(~ground_mask)
    timings["segment"] = time.perf_counter() - start

    # Clustering
    start = time.perf_counter()
    cluster_result = euclidean_cluster(
        obstacle_cloud.xyz,
        distance_tolerance=params.cluster_tol,
        min_size=params.min_cluster,
        max_size=params.max_cluster,
        index=params.index,
    )
    timings["cluster"] = time.perf_counter() - start

    # Boxes
    start = time.perf_counter()
    objects = []
    for cluster_id, indices in enumerate(cluster_result.indices):
        cluster_cloud = obstacle_cloud.select(indices)
        objects.append(DetectedObject(
            id=cluster_id,
            cloud=cluster_cloud,
            box=bounding_box(cluster_cloud),
            color=CLUSTER_COLORS[cluster_id % len(CLUSTER_COLORS)],
        ))
    timings["box"] = time.perf_counter() - start

    logger.info(
        "frame %d: %d raw, %d filtered, %d road, %d obstacle points, %d objects",
        frame_index, len(cloud), len(filtered), len(road_cloud), len(obstacle_cloud), len(objects),
    )

    return FrameResult(
        frame_index=frame_index,
        source=source,
        raw_count=len(cloud),
        filtered_count=len(filtered),
        plane_model=plane,
        road_cloud=road_cloud,
        obstacle_cloud=obstacle_cloud,
        objects=objects,
        cluster_labels=cluster_result.labels,
        noise_count=cluster_result.noise_count,
        timings=timings,
    )


@dataclass
class ReplaySummary:
    frames: int = 0
    failed: int = 0
    warnings: int = 0
    errors: int = 0


def run_replay(
    stream: FrameStream,
    params: PipelineParams,
    sink: Optional[Callable[[FrameResult], None]] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    max_frames: Optional[int] = None,
) -> ReplaySummary:
    """
    Pull frames from a cycling stream and process them one at a time.

    `should_stop` is polled between frames. A frame whose stages raise a
    PipelineError is logged and handed to the sink as an empty result.
    """
    summary = ReplaySummary()
    counter = CountingHandler()
    logging.getLogger().addHandler(counter)
    try:
        while max_frames is None or summary.frames < max_frames:
            if should_stop is not None and should_stop():
                logger.info("Replay stopped after %d frames", summary.frames)
                break

            frame = stream.next_frame()
            try:
                result = run_frame_pipeline(frame.cloud, params, frame_index=frame.index, source=frame.source)
            except PipelineError as e:
                logger.error("Frame %d failed (%s): %s", frame.index, e.code, e)
                summary.failed += 1
                result = FrameResult(
                    frame_index=frame.index,
                    source=frame.source,
                    raw_count=len(frame.cloud),
                    error=str(e),
                )

            summary.frames += 1
            if sink is not None:
                sink(result)
    finally:
        logging.getLogger().removeHandler(counter)

    summary.warnings = counter.warnings
    summary.errors = counter.errors
    return summary


def run_sequence_pipeline(
    seq_dir: str,
    params: PipelineParams,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> list[FrameResult]:
    """
    Process every frame of a directory once, in order. Load errors are fatal here.
    """
    stream = FrameStream.from_directory(seq_dir, on_error=FrameErrorPolicy.RAISE)

    results = []
    for i in range(len(stream)):
        if progress_callback:
            progress_callback(i, len(stream))

        frame = stream[i]
        results.append(run_frame_pipeline(frame.cloud, params, frame_index=i, source=frame.source))

    if progress_callback:
        progress_callback(len(stream), len(stream))

    return results
