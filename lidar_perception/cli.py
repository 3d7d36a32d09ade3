import argparse
import logging
from dataclasses import replace
from typing import Optional

from lidar_perception.config import Config, load_config
from lidar_perception.errors import FrameLoadError, PipelineError
from lidar_perception.lidar import Lidar, highway_scene
from lidar_perception.log import setup_logging
from lidar_perception.pipeline import FrameResult, run_frame_pipeline, run_replay
from lidar_perception.stream import FrameStream

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lidar_perception", description="LiDAR obstacle detection pipeline")
    p.add_argument("--config", help="Path to YAML config file")
    p.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    sub = p.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Scan the synthetic highway scene and process it")
    sim.add_argument("--seed", type=int, default=None, help="Lidar noise seed")
    sim.add_argument("--noise", type=float, default=None, help="Lidar noise standard deviation (m)")
    sim.add_argument("--scans", type=int, default=1, help="Number of consecutive scans")

    rep = sub.add_parser("replay", help="Cycle through recorded frames in a directory")
    rep.add_argument("frames_dir", nargs="?", default=None, help="Directory of .pcd/.bin/.txt frames")
    rep.add_argument("--max-frames", type=int, default=None, help="Stop after this many frames")
    rep.add_argument("--on-error", choices=["skip", "raise"], default=None, help="Frame load error policy")
    return p


def _log_result(result: FrameResult) -> None:
    if not result.ok:
        return
    for obj in result.objects:
        dims = obj.box.dimensions
        logger.info(
            "  object %d: %d points, box %.2f x %.2f x %.2f at (%.2f, %.2f, %.2f)",
            obj.id, len(obj.cloud), dims[0], dims[1], dims[2], *obj.box.center,
        )


def run_simulate(args: argparse.Namespace, cfg: Config) -> int:
    lidar_params = cfg.lidar
    if args.seed is not None:
        lidar_params = replace(lidar_params, seed=args.seed)
    if args.noise is not None:
        lidar_params = replace(lidar_params, noise_std=args.noise)

    lidar = Lidar.from_params(highway_scene(), lidar_params)
    failed = 0
    for i in range(args.scans):
        cloud = lidar.scan()
        try:
            _log_result(run_frame_pipeline(cloud, cfg.pipeline, frame_index=i, source="simulated"))
        except PipelineError as e:
            logger.error("Scan %d failed (%s): %s", i, e.code, e)
            failed += 1
    return 1 if failed else 0


def run_replay_command(args: argparse.Namespace, cfg: Config) -> int:
    frames_dir = args.frames_dir or cfg.stream.frames_dir
    if not frames_dir:
        logger.error("No frames directory given")
        return 2

    try:
        stream = FrameStream.from_directory(frames_dir, on_error=args.on_error or cfg.stream.on_error)
    except FrameLoadError as e:
        logger.error("%s", e)
        return 2
    max_frames = args.max_frames if args.max_frames is not None else cfg.stream.max_frames

    try:
        summary = run_replay(stream, cfg.pipeline, sink=_log_result, max_frames=max_frames)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except FrameLoadError as e:
        logger.error("Replay aborted (%s): %s", e.code, e)
        return 1

    logger.info(
        "Processed %d frames (%d failed), %d warnings, %d errors",
        summary.frames, summary.failed, summary.warnings, summary.errors,
    )
    return 1 if summary.failed else 0


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(args.log_level or cfg.logging.level)

    if args.command == "simulate":
        return run_simulate(args, cfg)
    return run_replay_command(args, cfg)
