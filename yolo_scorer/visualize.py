from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from .types import Detection, YoloLabel

# Ultralytics plot colours, BGR.
PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (56, 56, 255),
    (151, 157, 255),
    (31, 112, 255),
    (29, 178, 255),
    (49, 210, 207),
    (10, 249, 72),
    (23, 204, 146),
    (134, 219, 61),
    (52, 147, 26),
    (187, 212, 0),
    (168, 153, 44),
    (255, 194, 0),
    (147, 69, 52),
    (255, 115, 100),
    (236, 24, 0),
    (255, 56, 132),
    (133, 0, 82),
    (255, 56, 203),
    (200, 149, 255),
    (199, 55, 255),
)


def label_color(label: YoloLabel, channels: int = 3) -> Tuple[int, ...]:
    """
    Drawing colour for `label`: its own BGR colour when set, otherwise the
    palette entry for its id. BGRA targets get an opaque alpha.
    """

    bgr = tuple(label.color) if label.color is not None else PALETTE[label.id % len(PALETTE)]
    return bgr + (255,) if channels == 4 else bgr


def detection_caption(det: Detection, *, show_score: bool = True, show_kind: bool = False) -> str:
    """E.g. `person 87%`, or `person/vehicle 87%` with `show_kind`."""
    text = det.label.name or str(det.label.id)
    if show_kind and det.label.kind:
        text = f"{text}/{det.label.kind}"
    if show_score:
        text = f"{text} {det.score:.0%}"
    return text


def _pixel_box(det: Detection, w: int, h: int) -> Tuple[int, int, int, int]:
    xyxy = np.rint(np.asarray(det.as_xyxy(), dtype=np.float64))
    xs = np.clip(xyxy[0::2], 0, w - 1).astype(int)
    ys = np.clip(xyxy[1::2], 0, h - 1).astype(int)
    return int(xs[0]), int(ys[0]), int(xs[1]), int(ys[1])


def draw_detections(
    image: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    show_kind: bool = False,
    box_thickness: int = 1,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Return a copy of a BGR (H, W, 3) or BGRA (H, W, 4) image with every
    detection outlined and captioned in its label colour.

    Captions sit on a filled strip above the box, or just inside its top edge
    when the box touches the top of the image.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array.")
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError(f"Expected image shape (H, W, 3|4), got {image.shape}")

    canvas = image.copy()
    h, w, channels = canvas.shape
    white = (255,) * channels
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        x1, y1, x2, y2 = _pixel_box(det, w, h)
        color = label_color(det.label, channels)
        cv2.rectangle(canvas, (x1, y1), (x2, y2), color, thickness=box_thickness)

        caption = detection_caption(det, show_score=show_score, show_kind=show_kind)
        (tw, th), baseline = cv2.getTextSize(caption, font, font_scale, font_thickness)
        strip_h = th + baseline
        top = y1 - strip_h if y1 >= strip_h else y1
        cv2.rectangle(canvas, (x1, top), (min(x1 + tw, w - 1), min(top + strip_h, h - 1)), color, thickness=-1)
        cv2.putText(canvas, caption, (x1, min(top + th, h - 1)), font, font_scale, white, font_thickness, cv2.LINE_AA)

    return canvas
