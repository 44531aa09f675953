from __future__ import annotations

from typing import Optional

import numpy as np

from .parallel import map_ordered, partition

# Source index of R, G, B for each supported layout.
_RGB_INDEX = {
    "bgr": (2, 1, 0),
    "bgra": (2, 1, 0),
    "rgb": (0, 1, 2),
    "rgba": (0, 1, 2),
}


def extract_pixels(
    image: np.ndarray,
    channel_order: str = "bgr",
    max_workers: Optional[int] = None,
) -> np.ndarray:
    """
    Convert an (H, W, 3|4) uint8 image into a float32 (1, 3, H, W) RGB tensor in [0, 1].

    Alpha is ignored. Rows are processed in bands on a thread pool; every band
    writes only its own rows of the output tensor.
    """

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array.")
    order = channel_order.lower()
    if order not in _RGB_INDEX:
        raise ValueError(f"Unsupported channel_order {channel_order!r}; expected one of {sorted(_RGB_INDEX)}")
    expected_channels = 4 if order.endswith("a") else 3
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError(f"Expected image shape (H, W, 3|4), got {image.shape}")
    if image.shape[2] != expected_channels and not (expected_channels == 3 and image.shape[2] == 4):
        raise ValueError(f"channel_order {channel_order!r} does not match image with {image.shape[2]} channels")

    h, w = image.shape[:2]
    tensor = np.empty((1, 3, h, w), dtype=np.float32)
    r_idx, g_idx, b_idx = _RGB_INDEX[order]

    def fill(rows: range) -> None:
        band = image[rows.start : rows.stop]
        tensor[0, 0, rows.start : rows.stop] = band[:, :, r_idx] / np.float32(255.0)
        tensor[0, 1, rows.start : rows.stop] = band[:, :, g_idx] / np.float32(255.0)
        tensor[0, 2, rows.start : rows.stop] = band[:, :, b_idx] / np.float32(255.0)

    map_ordered(fill, partition(h, max_workers or 8, min_size=16), max_workers=max_workers)
    return tensor
