import os
import yaml
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from lidar_perception.pipeline import PipelineParams


def _read(path: str):
    with open(path, "r") as f:
        return yaml.safe_load(f)


@dataclass(frozen=True)
class LidarParams:
    origin: Sequence[float] = (0.0, 0.0, 2.6)
    ground_height: float = 0.0
    ground_slope: float = 0.0
    num_layers: int = 8
    min_elevation_deg: float = -30.0
    elevation_range_deg: float = 26.0
    horizontal_resolution_deg: float = 360.0 / 128
    min_range: float = 5.0
    max_range: float = 50.0
    noise_std: float = 0.2
    seed: Optional[int] = None


@dataclass(frozen=True)
class StreamParams:
    frames_dir: str = ""
    on_error: str = "skip"
    max_frames: Optional[int] = None


@dataclass(frozen=True)
class Logging:
    level: str = "INFO"


@dataclass(frozen=True)
class Config:
    pipeline: PipelineParams = PipelineParams()
    lidar: LidarParams = LidarParams()
    stream: StreamParams = StreamParams()
    logging: Logging = Logging()


def _tupled(section: dict) -> dict:
    # YAML lists become tuples so bounds stay immutable like the defaults
    return {k: tuple(v) if isinstance(v, list) else v for k, v in section.items()}


def load_config(path: Optional[str]) -> Config:
    cfg = Config()
    if path and os.path.isfile(path):
        data = _read(path) or {}
        pipeline = replace(cfg.pipeline, **_tupled(data.get("pipeline", {}) or {}))
        lidar = replace(cfg.lidar, **_tupled(data.get("lidar", {}) or {}))
        stream = replace(cfg.stream, **(data.get("stream", {}) or {}))
        logging = replace(cfg.logging, **(data.get("logging", {}) or {}))
        cfg = replace(cfg, pipeline=pipeline, lidar=lidar, stream=stream, logging=logging)
    return cfg
