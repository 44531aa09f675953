import unittest

import numpy as np

from yolo_scorer.decode import SigmoidDecoder, make_decoder
from yolo_scorer.errors import OutputShapeError
from yolo_scorer.models import YoloModelConfig, labels_from_names

# Large enough that sigmoid saturates to ~1 (or ~0 when negated).
HIGH = 12.0


def _config(**overrides) -> YoloModelConfig:
    params = dict(
        width=64,
        height=64,
        labels=labels_from_names(["cat", "dog"]),
        strides=(8, 16),
        shapes=(8, 4),
        anchors=(((10, 13), (16, 30)), ((30, 61), (62, 45))),
        outputs=("p3", "p4"),
        confidence=0.5,
        mul_confidence=0.25,
        use_detect=False,
    )
    params.update(overrides)
    return YoloModelConfig(**params)


def _empty_heads(cfg: YoloModelConfig):
    """All-zero logits: every sigmoid is exactly 0.5, i.e. on the objectness threshold."""
    return [np.zeros(cfg.anchors_per_scale * g * g * cfg.dimensions, dtype=np.float32) for g in cfg.shapes]


def _set_cell(flat: np.ndarray, cfg: YoloModelConfig, scale: int, a: int, y: int, x: int, values) -> None:
    g = cfg.shapes[scale]
    offset = (g * g * a + g * y + x) * cfg.dimensions
    flat[offset : offset + cfg.dimensions] = values


class TestSigmoidDecode(unittest.TestCase):
    def test_make_decoder_picks_anchor_decode(self) -> None:
        self.assertIsInstance(make_decoder(_config()), SigmoidDecoder)

    def test_objectness_on_threshold_yields_nothing(self) -> None:
        cfg = _config()
        self.assertEqual(SigmoidDecoder(cfg).decode(_empty_heads(cfg), orig_size=(64, 64)), [])

    def test_cell_decode_uses_stride_and_anchor(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        # scale 0, anchor 0, row 2, col 3; box logits 0 -> sigmoid 0.5
        _set_cell(heads[0], cfg, 0, 0, 2, 3, [0, 0, 0, 0, HIGH, HIGH, -HIGH])

        (det,) = SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64))

        # cx = (0.5*2 - 0.5 + 3) * 8 = 28, cy = (0.5*2 - 0.5 + 2) * 8 = 20
        # w = (0.5*2)^2 * 10 = 10, h = (0.5*2)^2 * 13 = 13
        np.testing.assert_allclose(det.as_xyxy(), (23.0, 13.5, 33.0, 26.5), atol=1e-4)
        self.assertEqual(det.label.name, "cat")
        expected = (1 / (1 + np.exp(-HIGH))) ** 2
        self.assertAlmostEqual(det.score, expected, places=5)

    def test_second_scale_and_anchor_with_clamp(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        # scale 1, anchor 1 (62x45), row 0, col 1, best class "dog"
        _set_cell(heads[1], cfg, 1, 1, 0, 1, [0, 0, 0, 0, HIGH, -1.0, 2.0])

        (det,) = SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64))

        # cx = 1.5 * 16 = 24, cy = 0.5 * 16 = 8
        np.testing.assert_allclose(det.as_xyxy(), (0.0, 0.0, 55.0, 30.5), atol=1e-4)
        self.assertEqual(det.label.name, "dog")
        sig = lambda v: 1 / (1 + np.exp(-v))  # noqa: E731
        self.assertAlmostEqual(det.score, sig(HIGH) * sig(2.0), places=5)

    def test_box_logits_go_through_sigmoid(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        # Box logits of +HIGH saturate: cx = (2 - 0.5 + 0) * 8 = 12, w = 4 * 10 = 40
        _set_cell(heads[0], cfg, 0, 0, 0, 0, [HIGH, HIGH, HIGH, HIGH, HIGH, HIGH, -HIGH])
        (det,) = SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64))
        np.testing.assert_allclose(det.as_xyxy(), (0.0, 0.0, 32.0, 38.0), atol=1e-2)

    def test_merged_confidence_gate(self) -> None:
        cfg = _config(mul_confidence=0.6)
        heads = _empty_heads(cfg)
        # obj ~1, best class sigmoid(0) = 0.5 -> merged 0.5 <= 0.6
        _set_cell(heads[0], cfg, 0, 1, 4, 4, [0, 0, 0, 0, HIGH, 0.0, -HIGH])
        self.assertEqual(SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64)), [])

    def test_one_detection_per_cell_in_discovery_order(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        cell = [0, 0, 0, 0, HIGH, HIGH, HIGH]  # both classes pass, only the first wins
        _set_cell(heads[1], cfg, 1, 0, 1, 1, cell)
        _set_cell(heads[0], cfg, 0, 1, 0, 0, cell)
        _set_cell(heads[0], cfg, 0, 0, 5, 2, cell)
        _set_cell(heads[0], cfg, 0, 0, 1, 6, cell)

        dets = SigmoidDecoder(cfg, max_workers=3).decode(heads, orig_size=(64, 64))

        self.assertEqual(len(dets), 4)
        self.assertTrue(all(d.label.name == "cat" for d in dets))
        centers = [((d.x1 + d.x2) / 2, (d.y1 + d.y2) / 2) for d in dets]
        # (scale 0, anchor 0, row 1, col 6), (0, 0, 5, 2), (0, 1, 0, 0), (1, 0, 1, 1)
        self.assertAlmostEqual(centers[0][1], 12.0, places=3)
        self.assertAlmostEqual(centers[1][1], 44.0, places=3)
        self.assertAlmostEqual(dets[2].x2, 4.0 + 8.0, places=3)
        self.assertAlmostEqual(centers[3][0], 24.0, places=3)

    def test_letterbox_geometry_is_undone(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        _set_cell(heads[0], cfg, 0, 0, 2, 3, [0, 0, 0, 0, HIGH, HIGH, -HIGH])
        # Source image 128x64 shown at ratio 0.5 with 16 px of vertical padding.
        (det,) = SigmoidDecoder(cfg).decode(heads, orig_size=(128, 64), pad=(0.0, 16.0), ratio=0.5)
        np.testing.assert_allclose(det.as_xyxy(), (46.0, 0.0, 66.0, 21.0), atol=1e-4)

    def test_wrong_number_of_outputs(self) -> None:
        cfg = _config()
        with self.assertRaises(OutputShapeError):
            SigmoidDecoder(cfg).decode(_empty_heads(cfg)[:1], orig_size=(64, 64))

    def test_wrong_scale_size(self) -> None:
        cfg = _config()
        heads = _empty_heads(cfg)
        heads[1] = heads[1][:-1]
        with self.assertRaises(OutputShapeError):
            SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64))

    def test_shaped_heads_are_accepted(self) -> None:
        cfg = _config()
        heads = [h.reshape(1, cfg.anchors_per_scale, g, g, cfg.dimensions) for h, g in zip(_empty_heads(cfg), cfg.shapes)]
        _set_cell(heads[0].reshape(-1), cfg, 0, 0, 2, 3, [0, 0, 0, 0, HIGH, HIGH, -HIGH])
        self.assertEqual(len(SigmoidDecoder(cfg).decode(heads, orig_size=(64, 64))), 1)


if __name__ == "__main__":
    unittest.main()
