from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .geometry import unpad_boxes


@dataclass(frozen=True)
class LetterboxResult:
    """
    image: padded canvas of exactly the requested size
    ratio: single resize ratio (resized / original) used on both axes
    pad: (left, top) pixel offset the resized region was placed at
    orig_size: (width, height) of the source image
    """

    image: np.ndarray
    ratio: float
    pad: Tuple[float, float]
    orig_size: Tuple[int, int]

    def unpad_boxes(self, boxes: np.ndarray) -> np.ndarray:
        """Map letterboxed xyxy boxes back onto the source image."""
        return unpad_boxes(boxes, self.ratio, self.pad, self.orig_size)


def letterbox(
    image: np.ndarray,
    new_shape: Tuple[int, int] = (640, 640),
    color: Tuple[int, ...] = (114, 114, 114),
) -> LetterboxResult:
    """
    Resize keeping aspect ratio and center the result on a fixed-size canvas.

    `new_shape` is (width, height). An image that already has that size is
    returned as-is with ratio 1 and no padding.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array.")
    if image.ndim not in (2, 3):
        raise ValueError(f"Expected image shape (H, W) or (H, W, C), got {image.shape}")

    if isinstance(new_shape, int):
        new_shape = (new_shape, new_shape)

    h, w = image.shape[:2]
    new_w, new_h = new_shape
    if w <= 0 or h <= 0:
        raise ValueError(f"Cannot letterbox an empty image (got shape {image.shape}).")

    if (w, h) == (new_w, new_h):
        return LetterboxResult(image=image, ratio=1.0, pad=(0.0, 0.0), orig_size=(w, h))

    # Scale ratio (new / old)
    r = min(new_w / w, new_h / h)

    resized_w, resized_h = max(1, int(round(w * r))), max(1, int(round(h * r)))
    dw = (new_w - resized_w) / 2
    dh = (new_h - resized_h) / 2

    resized = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top = int(round(dh - 0.1))
    left = int(round(dw - 0.1))

    if image.ndim == 3:
        channels = image.shape[2]
        fill = tuple(color[:channels]) + (0,) * max(0, channels - len(color))
        canvas = np.empty((new_h, new_w, channels), dtype=image.dtype)
        canvas[:, :] = np.asarray(fill, dtype=image.dtype)
    else:
        canvas = np.full((new_h, new_w), color[0], dtype=image.dtype)
    canvas[top : top + resized_h, left : left + resized_w] = resized

    # pad is where the content starts on the canvas.
    return LetterboxResult(image=canvas, ratio=r, pad=(float(left), float(top)), orig_size=(w, h))
