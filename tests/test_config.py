from pathlib import Path

import pytest

from lidar_perception.config import Config, load_config
from lidar_perception.lidar import Lidar, highway_scene


def test_defaults_without_file():
    cfg = load_config(None)
    assert cfg == Config()
    assert cfg.pipeline.voxel_size == 0.2
    assert cfg.pipeline.crop_min == (-10.0, -7.0, -2.0)
    assert cfg.stream.on_error == "skip"


def test_yaml_overrides_sections(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "pipeline:\n"
        "  voxel_size: 0.3\n"
        "  crop_max: [30, 8, 4]\n"
        "lidar:\n"
        "  noise_std: 0.0\n"
        "  seed: 3\n"
        "logging:\n"
        "  level: DEBUG\n"
    )

    cfg = load_config(str(path))

    assert cfg.pipeline.voxel_size == 0.3
    assert cfg.pipeline.crop_max == (30, 8, 4)
    assert cfg.pipeline.ransac_iters == 50
    assert cfg.lidar.seed == 3
    assert cfg.logging.level == "DEBUG"


def test_unknown_key_rejected(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("pipeline:\n  not_a_param: 1\n")
    with pytest.raises(TypeError):
        load_config(str(path))


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("")
    assert load_config(str(path)) == Config()


def test_lidar_from_params():
    params = load_config(None).lidar
    lidar = Lidar.from_params(highway_scene(), params)
    assert lidar.num_layers == 8
    assert len(lidar.ray_directions()) == 8 * 128


def test_example_config_loads():
    cfg = load_config(str(Path(__file__).resolve().parent.parent / "config.example.yaml"))
    assert cfg.pipeline.roof_min == (-1.5, -1.7, -1.0)
    assert cfg.lidar.seed == 0
    assert cfg.stream.on_error == "skip"
