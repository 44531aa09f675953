import json
import tempfile
import unittest
from pathlib import Path

from yolo_scorer.errors import ConfigError
from yolo_scorer.metadata import load_class_names, load_labels
from yolo_scorer.models import YoloModelConfig, labels_from_names, load_model_config, yolo_coco_p5, yolo_coco_p6


class TestModelConfig(unittest.TestCase):
    def test_coco_p5(self) -> None:
        cfg = yolo_coco_p5()
        self.assertEqual(cfg.input_size, (640, 640))
        self.assertEqual(cfg.dimensions, 85)
        self.assertEqual(len(cfg.labels), 80)
        self.assertEqual(cfg.labels[0].name, "person")
        self.assertEqual(cfg.labels[79].name, "toothbrush")
        self.assertTrue(cfg.use_detect)
        self.assertEqual(cfg.anchors_per_scale, 3)

    def test_coco_p6_anchor_mode(self) -> None:
        cfg = yolo_coco_p6(use_detect=False, outputs=("p3", "p4", "p5", "p6"))
        self.assertEqual(cfg.input_size, (1280, 1280))
        self.assertEqual(cfg.strides, (8, 16, 32, 64))
        self.assertEqual(cfg.shapes, (160, 80, 40, 20))
        self.assertEqual(cfg.anchors[3][2], (925, 792))

    def test_dimensions_must_match_labels(self) -> None:
        with self.assertRaises(ConfigError):
            YoloModelConfig(width=64, height=64, labels=labels_from_names(["a", "b"]), dimensions=85)

    def test_threshold_range(self) -> None:
        with self.assertRaises(ConfigError):
            YoloModelConfig(width=64, height=64, labels=labels_from_names(["a"]), confidence=1.5)

    def test_anchor_mode_needs_consistent_tables(self) -> None:
        with self.assertRaises(ConfigError):
            yolo_coco_p5(use_detect=False)  # one output name for three scales
        with self.assertRaises(ConfigError):
            yolo_coco_p5(use_detect=False, outputs=("a", "b", "c"), shapes=(80, 40))

    def test_unknown_nms_mode(self) -> None:
        with self.assertRaises(ConfigError):
            yolo_coco_p5(nms_mode="soft")

    def test_unknown_channel_order(self) -> None:
        with self.assertRaises(ConfigError):
            yolo_coco_p5(channel_order="yuv")
        self.assertEqual(yolo_coco_p5(channel_order="bgra").channel_order, "bgra")

    def test_config_error_is_value_error(self) -> None:
        self.assertTrue(issubclass(ConfigError, ValueError))


class TestLoadModelConfig(unittest.TestCase):
    def _write(self, payload) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".json", delete=False, encoding="utf-8")
        with tmp:
            json.dump(payload, tmp)
        self.addCleanup(Path(tmp.name).unlink)
        return Path(tmp.name)

    def test_anchor_config_round_trip(self) -> None:
        path = self._write(
            {
                "width": 64,
                "height": 64,
                "labels": {"0": "cat", "1": "dog"},
                "strides": [8, 16],
                "shapes": [8, 4],
                "anchors": [[[10, 13], [16, 30]], [[30, 61], [62, 45]]],
                "outputs": ["p3", "p4"],
                "use_detect": False,
                "confidence": 0.3,
            }
        )
        cfg = load_model_config(path)
        self.assertFalse(cfg.use_detect)
        self.assertEqual(cfg.dimensions, 7)
        self.assertEqual([label.name for label in cfg.labels], ["cat", "dog"])
        self.assertEqual(cfg.anchors[1][1], (62.0, 45.0))
        self.assertEqual(cfg.confidence, 0.3)
        self.assertEqual(cfg.mul_confidence, 0.25)

    def test_unknown_key(self) -> None:
        path = self._write({"width": 64, "height": 64, "labels": ["a"], "colour": "red"})
        with self.assertRaises(ConfigError):
            load_model_config(path)

    def test_missing_width(self) -> None:
        path = self._write({"height": 64, "labels": ["a"]})
        with self.assertRaises(ConfigError):
            load_model_config(path)

    def test_gap_in_label_ids(self) -> None:
        path = self._write({"width": 64, "height": 64, "labels": {"0": "a", "2": "b"}})
        with self.assertRaises(ConfigError):
            load_model_config(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_model_config("does/not/exist.json")


class TestMetadata(unittest.TestCase):
    def test_names_block(self) -> None:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8")
        with tmp:
            tmp.write("task: detect\nnames:\n  0: person\n  1: 'traffic light'\n  # comment\n  2: \"dog\"\nimgsz: 640\n")
        self.addCleanup(Path(tmp.name).unlink)

        self.assertEqual(load_class_names(tmp.name), {0: "person", 1: "traffic light", 2: "dog"})
        labels = load_labels(tmp.name)
        self.assertEqual([label.id for label in labels], [0, 1, 2])
        self.assertEqual(labels[1].name, "traffic light")


if __name__ == "__main__":
    unittest.main()
