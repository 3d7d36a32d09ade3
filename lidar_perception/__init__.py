"""
LiDAR perception: ground segmentation, obstacle clustering and bounding boxes
for real or simulated point-cloud frames.
"""

from .point_cloud import PointCloud, PointXYZ, PointXYZI
from .preprocessing import voxel_downsample, filter_cloud
from .ransac import PlaneModel, ransac_plane, segment_plane
from .clustering import ClusterResult, clustering, euclidean_cluster
from .boxes import BoundingBox, bounding_box
from .lidar import Lidar, Obstacle, highway_scene
from .stream import Frame, FrameStream
from .pipeline import PipelineParams, FrameResult, PointCloudProcessor, run_frame_pipeline, run_replay

__version__ = "0.1.0"
