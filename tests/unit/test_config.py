"""
Unit tests for configuration handling.

Tests cover:
- Packaged defaults
- YAML loading and merging
- Validation
"""

import pytest
import yaml

from card_detection.detection.config import DetectorConfig
from card_detection.utils.config_loader import (
    get_nested_value,
    load_config,
    load_config_with_defaults,
    merge_configs,
)


class TestConfigLoader:
    """Tests for YAML config utilities."""

    def test_defaults_file(self):
        config = load_config_with_defaults()

        assert config['model']['path'] == 'model.onnx'
        assert config['input']['size'] == [640, 640]
        assert config['output']['score_threshold'] == 0.3
        assert config['output']['class_name'] == 'pokemon_card'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / 'missing.yaml'))

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')

        assert load_config(str(path)) == {}

    def test_merge_configs(self):
        base = {'a': {'b': 1, 'c': 2}, 'd': 3}
        override = {'a': {'b': 10}, 'e': 5}

        merged = merge_configs(base, override)

        assert merged == {'a': {'b': 10, 'c': 2}, 'd': 3, 'e': 5}
        assert base['a']['b'] == 1

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text('- 1\n- 2\n')

        with pytest.raises(ValueError):
            load_config(str(path))

    def test_nested_values(self):
        config = {'nms': {'enabled': True}}

        assert get_nested_value(config, 'nms.enabled') is True
        assert get_nested_value(config, 'nms.missing', 'x') == 'x'


class TestDetectorConfig:
    """Tests for DetectorConfig."""

    def test_defaults(self):
        config = DetectorConfig()

        assert config.input_size == (640, 640)
        assert config.score_threshold == 0.3
        assert config.chunk_size == 6
        assert config.class_name == 'pokemon_card'
        assert config.nms_enabled is False
        assert config.inference_timeout is None

    def test_dataclass_defaults_match_yaml(self):
        assert DetectorConfig.from_dict({}) == DetectorConfig()

    def test_from_dict_overrides(self):
        config = DetectorConfig.from_dict({
            'model': {'path': 'cards.pt', 'backend': 'torchscript'},
            'output': {'score_threshold': 0.5},
            'runtime': {'inference_timeout': 2},
        })

        assert config.model_path == 'cards.pt'
        assert config.backend == 'torchscript'
        assert config.score_threshold == 0.5
        assert config.inference_timeout == 2.0
        assert config.class_name == 'pokemon_card'

    def test_from_yaml(self, tmp_path):
        path = tmp_path / 'detector.yaml'
        path.write_text(yaml.safe_dump({'nms': {'enabled': True, 'iou_threshold': 0.3}}))

        config = DetectorConfig.from_yaml(str(path))

        assert config.nms_enabled is True
        assert config.iou_threshold == 0.3
        assert config.model_path == str(tmp_path / 'model.onnx')

    def test_from_yaml_absolute_model_path(self, tmp_path):
        model_path = str(tmp_path / 'models' / 'cards.pt')
        path = tmp_path / 'detector.yaml'
        path.write_text(yaml.safe_dump({'model': {'path': model_path}}))

        assert DetectorConfig.from_yaml(str(path)).model_path == model_path

    def test_model_dir(self, tmp_path):
        path = tmp_path / 'detector.yaml'
        path.write_text(yaml.safe_dump({'model': {'path': 'cards.pt', 'dir': 'models'}}))

        config = DetectorConfig.from_yaml(str(path))

        assert config.model_path == str(tmp_path / 'models' / 'cards.pt')

    def test_model_dir_from_dict(self, tmp_path):
        config = DetectorConfig.from_dict({'model': {'path': 'cards.pt', 'dir': str(tmp_path)}})

        assert config.model_path == str(tmp_path / 'cards.pt')

    @pytest.mark.parametrize('kwargs', [
        {'score_threshold': 1.5},
        {'score_threshold': -0.1},
        {'iou_threshold': 2.0},
        {'backend': 'tensorrt'},
        {'layout': 'hwc'},
        {'resize': 'cubic'},
        {'chunk_size': 4},
        {'input_size': (0, 640)},
        {'inference_timeout': 0},
        {'num_workers': 0},
        {'max_detections': 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            DetectorConfig(**kwargs)

    def test_to_dict(self):
        result = DetectorConfig().to_dict()

        assert result['input_size'] == [640, 640]
        assert result['class_name'] == 'pokemon_card'
