"""Streamlit viewer: replays frames through the pipeline and renders the results"""

import time
from pathlib import Path

import streamlit as st

from lidar_perception.config import LidarParams
from lidar_perception.errors import PipelineError
from lidar_perception.lidar import Lidar, highway_scene
from lidar_perception.pipeline import FrameResult, PipelineParams, run_frame_pipeline
from lidar_perception.stream import FrameStream
from lidar_perception.visualizations import bev_with_boxes, scatter_2d, scatter_3d_frame


def get_params_from_sidebar() -> PipelineParams:
    """Render parameter controls in sidebar and return PipelineParams."""
    with st.popover("Filtering", use_container_width=True):
        voxel_size = st.slider("Voxel size (larger = fewer points, faster)", 0.05, 1.0, 0.2, 0.05)
        crop_x = st.slider("Crop X (m)", -50.0, 50.0, (-10.0, 20.0), 1.0)
        crop_y = st.slider("Crop Y (m)", -30.0, 30.0, (-7.0, 7.0), 1.0)
        crop_z = st.slider("Crop Z (m)", -5.0, 10.0, (-2.0, 5.0), 0.5)

    with st.popover("RANSAC", use_container_width=True):
        ransac_iters = st.slider("Iterations (more = better fit, slower)", 10, 500, 50, 10)
        dist_thresh = st.slider("Distance threshold (larger = thicker ground layer)", 0.05, 1.0, 0.15, 0.05)

    with st.popover("Clustering", use_container_width=True):
        cluster_tol = st.slider("Distance tolerance (larger = merges nearby objects)", 0.1, 3.0, 0.5, 0.1)
        min_cluster = st.number_input("Min cluster size", 1, 1000, 5)
        max_cluster = st.number_input("Max cluster size, 0=off", 0, 50000, 1000)

    return PipelineParams(
        voxel_size=voxel_size,
        crop_min=(crop_x[0], crop_y[0], crop_z[0]),
        crop_max=(crop_x[1], crop_y[1], crop_z[1]),
        ransac_iters=ransac_iters,
        dist_thresh=dist_thresh,
        cluster_tol=cluster_tol,
        min_cluster=int(min_cluster),
        max_cluster=int(max_cluster),
    )


def get_lidar_from_sidebar() -> Lidar:
    """The sensor lives in session state, rebuilt only when its settings change."""
    with st.popover("Lidar", use_container_width=True):
        noise_std = st.slider("Noise std (m)", 0.0, 0.5, 0.2, 0.01)
        num_layers = st.slider("Layers", 1, 32, 8)
        seed = st.number_input("Seed", 0, 10_000, 0)

    params = LidarParams(noise_std=noise_std, num_layers=num_layers, seed=int(seed))
    if st.session_state.get("lidar_params") != params:
        st.session_state["lidar_params"] = params
        st.session_state["lidar"] = Lidar.from_params(highway_scene(), params)
    return st.session_state["lidar"]


def render_result(r: FrameResult):
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Frame", r.frame_index)
    col2.metric("Filtered points", f"{r.filtered_count:,}")
    col3.metric("Road points", f"{len(r.road_cloud) if r.road_cloud is not None else 0:,}")
    col4.metric("Objects", r.num_clusters)

    tab_3d, tab_bev, tab_side = st.tabs(["3D View", "Bird's Eye", "Side View"])
    with tab_3d:
        st.plotly_chart(scatter_3d_frame(r), use_container_width=True)
    with tab_bev:
        st.plotly_chart(bev_with_boxes(r), use_container_width=True)
    with tab_side:
        fig = scatter_2d(
            [r.road_cloud.xyz, r.obstacle_cloud.xyz],
            ["Road", "Obstacles"],
            ["green", "red"],
            "Road vs Obstacles - Side View",
            "X (m)", "Z (m)",
            x_idx=0, y_idx=2,
        )
        st.plotly_chart(fig, use_container_width=True)

    if r.plane_model is not None:
        st.caption(f"Road plane: {r.plane_model.equation_string}")
    st.caption(" | ".join(f"{k}: {v * 1000:.1f} ms" for k, v in r.timings.items()))


def main():
    st.set_page_config(page_title="LiDAR Obstacle Detection", layout="wide")
    st.title("LiDAR Obstacle Detection")

    with st.sidebar:
        st.header("Source")
        source = st.radio("Frames", ["Simulated highway", "Recorded frames"])
        frames_dir = None
        if source == "Recorded frames":
            frames_dir = st.text_input("Directory path", value="data/pcd/data_1")

        st.header("Parameters")
        params = get_params_from_sidebar()
        lidar = get_lidar_from_sidebar() if source == "Simulated highway" else None

        fps = st.selectbox("FPS", [1, 3, 10], index=1)
        is_playing = st.session_state.get("auto_play", False)
        if st.button("Stop" if is_playing else "Play", type="primary", use_container_width=True):
            st.session_state["auto_play"] = not is_playing
            st.rerun()

    frame_idx = st.session_state.get("frame_idx", 0)

    if lidar is not None:
        cloud, frame_source = lidar.scan(), "simulated"
    else:
        if not Path(frames_dir).is_dir():
            st.error(f"Directory not found: {frames_dir}")
            return
        try:
            if st.session_state.get("stream_dir") != frames_dir:
                st.session_state["stream"] = FrameStream.from_directory(frames_dir)
                st.session_state["stream_dir"] = frames_dir
            frame = st.session_state["stream"][frame_idx]
        except PipelineError as e:
            st.warning(f"Skipping frame {frame_idx}: {e}")
            frame = None
        cloud, frame_source = (frame.cloud, frame.source) if frame else (None, None)

    if cloud is not None:
        try:
            render_result(run_frame_pipeline(cloud, params, frame_index=frame_idx, source=frame_source))
        except PipelineError as e:
            st.warning(f"No result for frame {frame_idx}: {e}")

    # Between-frame stop check; the stream index wraps modulo its length
    if st.session_state.get("auto_play"):
        time.sleep(1.0 / fps)
        st.session_state["frame_idx"] = frame_idx + 1
        st.rerun()


if __name__ == "__main__":
    main()
