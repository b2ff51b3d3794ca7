# tests/test_config.py

import pytest
import yaml

from config import SystemConfig
from core.exceptions import ConfigurationError


def test_missing_file_gives_defaults(tmp_path):
    config = SystemConfig.load(str(tmp_path / "absent.yaml"))

    assert config.analysis.analysis_width == 320
    assert config.classification.small_file_bytes == 150 * 1024
    assert config.duplicate_detection.hash_threshold == 5
    assert config.duplicate_detection.window_size == 50


def test_save_and_load(tmp_path):
    path = str(tmp_path / "config.yaml")
    config = SystemConfig()
    config.log_level = "DEBUG"
    config.analysis.decoder = "opencv"
    config.classification.screenshot_markers = ["screenshot", "captura"]
    config.duplicate_detection.window_size = 20
    config.save(path)

    loaded = SystemConfig.load(path)
    assert loaded == config


def test_partial_file_keeps_other_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        'duplicate_detection': {'hash_threshold': 8, 'unused_key': 1},
    }))

    config = SystemConfig.load(str(path))
    assert config.duplicate_detection.hash_threshold == 8
    assert config.duplicate_detection.window_size == 50
    assert config.analysis.batch_size == 5


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert SystemConfig.load(str(path)) == SystemConfig()


@pytest.mark.parametrize("document", [
    {'analysis': {'decoder': 'imagemagick'}},
    {'analysis': {'batch_size': 0}},
    {'duplicate_detection': {'hash_threshold': 65}},
    {'duplicate_detection': {'hash_resample': 'cubic-ish'}},
    {'classification': {'min_aspect_ratio': 3.0}},
    {'classification': ['not', 'a', 'mapping']},
])
def test_invalid_values_are_rejected(tmp_path, document):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(document))

    with pytest.raises(ConfigurationError):
        SystemConfig.load(str(path))


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigurationError):
        SystemConfig.load(str(path))
