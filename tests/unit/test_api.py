"""
Unit tests for the host-facing entry points.

Tests cover:
- detect_card payloads
- Crop extraction and visualization
- The card-detect command line
"""

import json

import numpy as np
import pytest

from card_detection import api
from card_detection.applications import detect_cli
from card_detection.detection.config import DetectorConfig
from card_detection.detection.crops import crop_box, extract_crops
from card_detection.detection.detector import Detector
from card_detection.detection.types import BoundingBox
from card_detection.utils.visualization import draw_boxes, visualize_detections

from conftest import encode_image


@pytest.fixture
def detector(make_model, model_cache):
    detector = Detector(
        DetectorConfig(model_path=make_model([[0.1, 0.2, 0.5, 0.6, 0.9, 0.0]])),
        cache=model_cache
    )
    yield detector
    detector.close()


class TestDetectCard:
    """Tests for api.detect_card."""

    def test_success_payload(self, detector, hd_image_bytes):
        payload = api.detect_card(hd_image_bytes, detector)

        assert set(payload) == {'detections'}
        record = payload['detections'][0]
        assert set(record) == {'points', 'confidence', 'class'}
        assert len(record['points']) == 4
        assert all(len(point) == 2 for point in record['points'])
        assert record['points'] == [[256.0, 72.0], [768.0, 72.0], [768.0, 360.0], [256.0, 360.0]]
        assert record['class'] == 'pokemon_card'
        json.dumps(payload)

    def test_error_payload(self, detector):
        payload = api.detect_card(b'', detector)

        assert set(payload) == {'error'}
        assert isinstance(payload['error'], str)

    def test_missing_model_payload(self, model_cache, image_bytes, tmp_path):
        missing = Detector(DetectorConfig(model_path=str(tmp_path / 'missing.onnx')), cache=model_cache)

        payload = api.detect_card(image_bytes, missing)

        assert 'error' in payload
        assert 'detections' not in payload

    def test_default_detector(self, detector, image_bytes):
        api.set_default_detector(detector)
        try:
            assert api.get_default_detector() is detector
            assert len(api.detect_card(image_bytes)['detections']) == 1
        finally:
            api._default_detector = None


class TestCropsAndVisualization:
    """Tests for crop extraction and drawing."""

    def test_crop_box(self, rgb_image):
        box = BoundingBox.from_corners(10.2, 5.7, 20.5, 15.0, 0.9, 'pokemon_card')

        crop = crop_box(rgb_image, box)

        assert crop.shape == (10, 11, 3)
        assert np.array_equal(crop, rgb_image[5:15, 10:21])

    def test_extract_crops_confidence_cutoff(self, rgb_image):
        boxes = [
            BoundingBox.from_corners(0, 0, 10, 10, 0.9, 'pokemon_card'),
            BoundingBox.from_corners(0, 0, 10, 10, 0.4, 'pokemon_card'),
            BoundingBox.from_corners(5, 5, 5, 5, 0.9, 'pokemon_card'),
        ]

        crops = extract_crops(rgb_image, boxes, min_confidence=0.5)

        assert len(crops) == 1

    def test_draw_boxes(self, rgb_image):
        image = np.zeros((100, 100, 3), dtype=np.uint8)
        boxes = [BoundingBox.from_corners(10, 30, 60, 80, 0.9, 'pokemon_card')]

        drawn = draw_boxes(image, boxes)

        assert drawn.shape == image.shape
        assert drawn.any()
        assert not image.any()

    def test_visualize_saves(self, rgb_image, tmp_path):
        path = tmp_path / 'vis.jpg'
        boxes = [BoundingBox.from_corners(1, 1, 30, 30, 0.9, 'pokemon_card')]

        vis = visualize_detections(rgb_image, boxes, output_path=str(path))

        assert vis.shape == rgb_image.shape
        assert path.exists()


class TestDetectCli:
    """Tests for the card-detect command line."""

    def test_single_image(self, make_model, tmp_path, capsys):
        image_path = tmp_path / 'photo.png'
        image_path.write_bytes(encode_image(1280, 720))
        model_path = make_model([[0.1, 0.2, 0.5, 0.6, 0.9, 0.0]])
        output_dir = tmp_path / 'out'

        code = detect_cli.main([
            '--model', model_path,
            '--input', str(image_path),
            '--output', str(output_dir),
            '--save-crops', '--save-vis',
        ])

        assert code == 0
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record['image'] == str(image_path)
        assert len(record['detections']) == 1
        assert (output_dir / 'photo_result.jpg').exists()
        assert (output_dir / 'photo_card_1.png').exists()

    def test_directory_with_bad_image(self, make_model, tmp_path, capsys):
        images = tmp_path / 'images'
        images.mkdir()
        (images / 'a.png').write_bytes(encode_image(64, 48))
        (images / 'b.jpg').write_bytes(b'broken')
        (images / 'notes.txt').write_text('ignored')
        model_path = make_model([[0.1, 0.2, 0.5, 0.6, 0.9, 0.0]])

        code = detect_cli.main(['--model', model_path, '--input', str(images)])

        assert code == 1
        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        assert len(lines) == 2
        assert 'detections' in lines[0]
        assert 'error' in lines[1]

    def test_invalid_threshold(self, tmp_path):
        code = detect_cli.main([
            '--model', str(tmp_path / 'model.pt'),
            '--input', str(tmp_path),
            '--threshold', '2.0',
        ])

        assert code == 2

    def test_malformed_config(self, tmp_path, capsys):
        config_path = tmp_path / 'broken.yaml'
        config_path.write_text('model: [unclosed\n')

        code = detect_cli.main(['--config', str(config_path), '--input', str(tmp_path)])

        assert code == 2
        assert 'Error' in capsys.readouterr().err

    def test_unwritable_output_dir(self, make_model, tmp_path, capsys):
        image_path = tmp_path / 'photo.png'
        image_path.write_bytes(encode_image(64, 48))
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')

        code = detect_cli.main([
            '--model', make_model([[0.1, 0.2, 0.5, 0.6, 0.9, 0.0]]),
            '--input', str(image_path),
            '--output', str(blocker / 'out'),
            '--save-vis',
        ])

        assert code == 1
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert len(record['detections']) == 1
