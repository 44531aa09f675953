import unittest

import numpy as np

from yolo_scorer.types import Detection, YoloLabel
from yolo_scorer.visualize import PALETTE, detection_caption, draw_detections, label_color


class TestDrawDetections(unittest.TestCase):
    def test_draws_on_a_copy(self) -> None:
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        det = Detection(label=YoloLabel(id=2, name="car"), score=0.9, x1=10, y1=30, x2=60, y2=80)
        out = draw_detections(img, [det])
        self.assertEqual(out.shape, img.shape)
        self.assertFalse(np.any(img))
        self.assertTrue(np.any(out))

    def test_label_color_is_used(self) -> None:
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        det = Detection(label=YoloLabel(id=0, name="x", color=(1, 2, 3)), score=0.5, x1=20, y1=40, x2=80, y2=90)
        out = draw_detections(img, [det], show_score=False)
        self.assertEqual(out[90, 50].tolist(), [1, 2, 3])

    def test_box_is_clipped_to_the_image(self) -> None:
        img = np.zeros((50, 50, 3), dtype=np.uint8)
        det = Detection(label=YoloLabel(id=0, name="x", color=(9, 9, 9)), score=0.5, x1=30, y1=30, x2=80, y2=80)
        out = draw_detections(img, [det], show_score=False)
        self.assertEqual(out[49, 40].tolist(), [9, 9, 9])

    def test_bgra_image(self) -> None:
        img = np.zeros((50, 50, 4), dtype=np.uint8)
        det = Detection(label=YoloLabel(id=1, name="dog"), score=0.7, x1=5, y1=25, x2=40, y2=45)
        out = draw_detections(img, [det])
        self.assertEqual(out.shape, (50, 50, 4))
        self.assertEqual(int(out[45, 20, 3]), 255)

    def test_rejects_grayscale(self) -> None:
        with self.assertRaises(ValueError):
            draw_detections(np.zeros((10, 10), dtype=np.uint8), [])


class TestCaptionsAndColors(unittest.TestCase):
    def test_caption_formats(self) -> None:
        det = Detection(label=YoloLabel(id=0, name="person", kind="human"), score=0.874, x1=0, y1=0, x2=1, y2=1)
        self.assertEqual(detection_caption(det), "person 87%")
        self.assertEqual(detection_caption(det, show_score=False), "person")
        self.assertEqual(detection_caption(det, show_kind=True), "person/human 87%")

    def test_palette_wraps_by_label_id(self) -> None:
        self.assertEqual(label_color(YoloLabel(id=3, name="a")), PALETTE[3])
        self.assertEqual(label_color(YoloLabel(id=len(PALETTE) + 3, name="b")), PALETTE[3])

    def test_bgra_color_is_opaque(self) -> None:
        self.assertEqual(label_color(YoloLabel(id=0, name="a", color=(1, 2, 3)), channels=4), (1, 2, 3, 255))


if __name__ == "__main__":
    unittest.main()
