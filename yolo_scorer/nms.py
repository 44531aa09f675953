from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .geometry import box_iou
from .types import Detection

logger = logging.getLogger(__name__)


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: int = 300


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Score-sorted NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, best first.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    # Stable sort keeps discovery order among equal scores.
    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(i)

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        iou = np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)

        inds = np.where(iou < cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int32)


def suppress_pairwise(detections: Sequence[Detection], overlap: float) -> List[Detection]:
    """
    Label-agnostic pairwise suppression over the given order.

    Each `item` still present removes every other present `current` it
    overlaps (IoU >= overlap) and scores at least as high as, so equal scores
    drop `current`. An item that loses a comparison is not removed on its own
    turn: it keeps suppressing weaker boxes until the stronger box removes it
    on that box's turn. Survivors keep their input order. Results depend on
    input order when three or more boxes overlap each other.
    """

    alive = [True] * len(detections)
    boxes = [d.as_xyxy() for d in detections]

    for i, item in enumerate(detections):
        if not alive[i]:
            continue
        for j, current in enumerate(detections):
            if j == i or not alive[j]:
                continue
            if item.score >= current.score and box_iou(boxes[i], boxes[j]) >= overlap:
                alive[j] = False

    return [d for d, keep in zip(detections, alive) if keep]


def suppress_greedy(detections: Sequence[Detection], overlap: float, max_detections: int = 300) -> List[Detection]:
    """Standard score-sorted NMS over Detection objects; best first."""
    if not detections:
        return []
    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float32)
    scores = np.array([d.score for d in detections], dtype=np.float32)
    keep = nms(boxes, scores, NMSConfig(iou_threshold=overlap, max_detections=max_detections))
    return [detections[int(i)] for i in keep]


def suppress(detections: Sequence[Detection], overlap: float, mode: str = "pairwise") -> List[Detection]:
    if mode == "pairwise":
        kept = suppress_pairwise(detections, overlap)
    elif mode == "greedy":
        kept = suppress_greedy(detections, overlap, max_detections=max(1, len(detections)))
    else:
        raise ValueError(f"Unknown suppression mode: {mode!r}")
    logger.debug("suppress(%s): %d -> %d", mode, len(detections), len(kept))
    return kept
