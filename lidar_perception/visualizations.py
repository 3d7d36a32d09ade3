"""Plotly figures for pipeline results"""

import numpy as np
import plotly.graph_objects as go

from lidar_perception.boxes import BoundingBox
from lidar_perception.pipeline import FrameResult

# Bottom ring, top ring, then the four vertical edges; None breaks the line
_BOX_EDGE_ORDER = [0, 1, 2, 3, 0, None, 4, 5, 6, 7, 4, None, 0, 4, None, 1, 5, None, 2, 6, None, 3, 7]


def rgb_to_css(color, alpha: float = 1.0) -> str:
    r, g, b = (int(round(c * 255)) for c in color)
    return f"rgba({r},{g},{b},{alpha})"


def box_wireframe(box: BoundingBox):
    """x, y, z coordinate lists tracing the 12 edges of a box."""
    corners = box.corners()
    xs, ys, zs = [], [], []
    for i in _BOX_EDGE_ORDER:
        if i is None:
            xs.append(None)
            ys.append(None)
            zs.append(None)
        else:
            xs.append(corners[i, 0])
            ys.append(corners[i, 1])
            zs.append(corners[i, 2])
    return xs, ys, zs


def scatter_2d(points_list, names, colors, title, xlabel, ylabel, x_idx=0, y_idx=1):
    """Create a 2D scatter plot with multiple point sets."""
    fig = go.Figure()
    for pts, name, color in zip(points_list, names, colors):
        if len(pts) > 0:
            fig.add_trace(go.Scattergl(
                x=pts[:, x_idx], y=pts[:, y_idx],
                mode="markers",
                marker=dict(size=2, color=color, opacity=0.5),
                name=name,
            ))
    fig.update_layout(
        title=title,
        xaxis=dict(title=xlabel, scaleanchor="y"),
        yaxis=dict(title=ylabel),
        height=550,
        margin=dict(l=40, r=20, t=40, b=40),
    )
    return fig


def scatter_3d_frame(r: FrameResult, show_boxes: bool = True):
    """Road points in green, each object in its palette color with its box."""
    fig = go.Figure()

    if r.road_cloud is not None and len(r.road_cloud) > 0:
        road = r.road_cloud.xyz
        fig.add_trace(go.Scatter3d(
            x=road[:, 0], y=road[:, 1], z=road[:, 2],
            mode="markers",
            marker=dict(size=1, color="rgb(0,255,0)", opacity=0.4),
            name=f"Road ({len(road):,})",
        ))

    for obj in r.objects:
        pts = obj.cloud.xyz
        color = rgb_to_css(obj.color)
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=2, color=color, opacity=0.8),
            name=f"Object {obj.id} ({len(pts):,})",
        ))
        if show_boxes:
            xs, ys, zs = box_wireframe(obj.box)
            fig.add_trace(go.Scatter3d(
                x=xs, y=ys, z=zs,
                mode="lines",
                line=dict(color=color, width=3),
                name=f"Box {obj.id}",
                showlegend=False,
            ))

    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
        paper_bgcolor="black",
        font=dict(color="white"),
    )
    return fig


def bev_with_boxes(r: FrameResult, extent: float = 30.0):
    """
    Bird's eye view with the ego vehicle at the origin.

    X = forward, Y = left, Z = up. We plot horizontal = Y, vertical = X.
    """
    fig = go.Figure()

    obstacle = r.obstacle_cloud.xyz if r.obstacle_cloud is not None else np.zeros((0, 3))
    if len(obstacle) > 0:
        fig.add_trace(go.Scattergl(
            x=obstacle[:, 1],
            y=obstacle[:, 0],
            mode="markers",
            marker=dict(size=2, color="#666666", opacity=0.5),
            name="Points",
            hoverinfo="skip",
        ))

    # Ego vehicle marker (triangle pointing forward)
    fig.add_trace(go.Scatter(
        x=[0, -1.0, 1.0, 0],
        y=[0.5, -1.5, -1.5, 0.5],
        mode="lines",
        fill="toself",
        fillcolor="rgba(0, 150, 255, 0.8)",
        line=dict(color="rgb(0, 150, 255)", width=2),
        name="Ego Vehicle",
        showlegend=False,
        hoverinfo="skip",
    ))

    for obj in r.objects:
        bbox = obj.box
        fig.add_trace(go.Scatter(
            x=[bbox.min_y, bbox.max_y, bbox.max_y, bbox.min_y, bbox.min_y],
            y=[bbox.min_x, bbox.min_x, bbox.max_x, bbox.max_x, bbox.min_x],
            mode="lines",
            line=dict(color=rgb_to_css(obj.color), width=2),
            fill="toself",
            fillcolor=rgb_to_css(obj.color, 0.15),
            name=f"Object {obj.id}",
            showlegend=False,
            hovertemplate=f"Object {obj.id} ({len(obj.cloud)} pts)<extra></extra>",
        ))

    fig.update_layout(
        title=None,
        xaxis=dict(
            title="← Left (m)    Right (m) →",
            range=[extent, -extent],
            showgrid=True,
            gridcolor="rgba(100,100,100,0.3)",
            zeroline=True,
            zerolinecolor="rgba(150,150,150,0.5)",
        ),
        yaxis=dict(
            title="Forward (m) →",
            range=[-extent, extent],
            showgrid=True,
            gridcolor="rgba(100,100,100,0.3)",
            scaleanchor="x",
            zeroline=True,
            zerolinecolor="rgba(150,150,150,0.5)",
        ),
        height=650,
        margin=dict(l=50, r=20, t=20, b=50),
        showlegend=False,
        plot_bgcolor="rgb(20, 20, 25)",
        paper_bgcolor="rgb(20, 20, 25)",
        font=dict(color="white"),
        hoverlabel=dict(bgcolor="rgba(0,0,0,0.8)", font_size=14),
    )

    return fig
