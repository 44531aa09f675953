from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np


ArrayLike = Union[float, np.ndarray]


def sigmoid(x: ArrayLike) -> ArrayLike:
    """Logistic function, elementwise for arrays."""
    # exp overflow saturates to inf, which still yields the correct limit of 0.
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def clamp(value: ArrayLike, lo: float, hi: float) -> ArrayLike:
    """Clamp into the inclusive range [lo, hi]."""
    if isinstance(value, np.ndarray):
        return np.minimum(np.maximum(value, lo), hi)
    return lo if value < lo else hi if value > hi else value


def xywh2xyxy(boxes: np.ndarray) -> np.ndarray:
    """
    Convert (..., 4) center/size boxes to corner boxes.
    """

    b = np.asarray(boxes)
    cx, cy, w, h = b[..., 0], b[..., 1], b[..., 2], b[..., 3]
    return np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=-1)


def box_area(box: Sequence[float]) -> float:
    x1, y1, x2, y2 = box
    # Inverted extents (possible after the asymmetric clamp) have no area.
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def box_iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Intersection over union of two xyxy boxes. Returns 0.0 when the union is empty.
    """

    ix1 = max(a[0], b[0])
    iy1 = max(a[1], b[1])
    ix2 = min(a[2], b[2])
    iy2 = min(a[3], b[3])
    inter = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
    union = box_area(a) + box_area(b) - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def unpad_boxes(
    boxes: np.ndarray,
    ratio: float,
    pad: Tuple[float, float],
    orig_size: Tuple[int, int],
) -> np.ndarray:
    """
    Map (N, 4) xyxy boxes from letterboxed model space back onto the original image.

    Min corners are clipped to [0, dim] and max corners to [0, dim - 1].
    """

    dw, dh = pad
    orig_w, orig_h = orig_size
    out = np.array(boxes, dtype=np.float32)
    out[..., [0, 2]] = (out[..., [0, 2]] - dw) / ratio
    out[..., [1, 3]] = (out[..., [1, 3]] - dh) / ratio

    out[..., 0] = clamp(out[..., 0], 0, orig_w)
    out[..., 1] = clamp(out[..., 1], 0, orig_h)
    out[..., 2] = clamp(out[..., 2], 0, orig_w - 1)
    out[..., 3] = clamp(out[..., 3], 0, orig_h - 1)
    return out
