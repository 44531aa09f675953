"""
Turn raw YOLOv5 output tensors into candidate detections on the original image.

Two layouts are supported:

- Detect layer (`use_detect=True`): one tensor (1, N, 5 + C) of
  [cx, cy, w, h, obj, class_scores...] already in letterboxed pixels.
- Raw heads (`use_detect=False`): one tensor per scale, (A, G, G, 5 + C) of
  logits that need a sigmoid and the anchor/stride box decode.

Both decoders return candidates in order of discovery so suppression is
reproducible: candidate then class for the Detect layer; scale, anchor, row,
column for raw heads.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import OutputShapeError
from .geometry import sigmoid, unpad_boxes, xywh2xyxy
from .models import YoloModelConfig
from .parallel import default_workers, map_ordered, partition
from .types import Detection

logger = logging.getLogger(__name__)


def collect_outputs(named: Mapping[str, np.ndarray], names: Sequence[str]) -> List[np.ndarray]:
    """
    Pick engine outputs in the declared order.
    """

    missing = [n for n in names if n not in named]
    if missing:
        raise OutputShapeError(f"Engine did not return outputs {missing}; available: {sorted(named)}")
    return [np.asarray(named[n]) for n in names]


class Decoder(ABC):
    def __init__(self, cfg: YoloModelConfig, max_workers: Optional[int] = None):
        self.cfg = cfg
        self.max_workers = max_workers or default_workers()

    @abstractmethod
    def decode(
        self,
        outputs: Sequence[np.ndarray],
        orig_size: Tuple[int, int],
        pad: Tuple[float, float] = (0.0, 0.0),
        ratio: float = 1.0,
    ) -> List[Detection]:
        """
        Args:
            outputs: engine outputs in `cfg.outputs` order
            orig_size: (width, height) of the source image
            pad: (dw, dh) letterbox offset (left/top)
            ratio: letterbox resize ratio (resized / original)
        """

    def _emit(self, boxes: np.ndarray, scores: np.ndarray, class_ids: np.ndarray) -> List[Detection]:
        labels = self.cfg.labels
        return [
            Detection(
                label=labels[int(cls_id)],
                score=float(score),
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(boxes, scores, class_ids)
        ]


class DetectDecoder(Decoder):
    """
    Decoder for exports ending in the Detect layer.

    A candidate may yield one detection per class whose merged confidence
    passes, so the same box can appear under several labels.
    """

    def decode(
        self,
        outputs: Sequence[np.ndarray],
        orig_size: Tuple[int, int],
        pad: Tuple[float, float] = (0.0, 0.0),
        ratio: float = 1.0,
    ) -> List[Detection]:
        if len(outputs) < 1:
            raise OutputShapeError("Detect decode needs one output tensor, got none.")
        preds = self._as_candidates(outputs[0])

        def run(rows: range) -> List[Detection]:
            return self._decode_rows(preds[rows.start : rows.stop], orig_size, pad, ratio)

        parts = map_ordered(run, partition(len(preds), self.max_workers), max_workers=self.max_workers)
        detections = [d for part in parts for d in part]
        logger.debug("detect decode: %d candidates -> %d detections", len(preds), len(detections))
        return detections

    def _as_candidates(self, output: np.ndarray) -> np.ndarray:
        dims = self.cfg.dimensions
        p = np.asarray(output)
        if p.ndim == 3 and p.shape[0] != 1:
            raise OutputShapeError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        if p.ndim > 3:
            raise OutputShapeError(f"Unsupported Detect output rank {p.ndim} (shape {p.shape}).")
        if p.ndim >= 2 and p.shape[-1] != dims:
            raise OutputShapeError(f"Expected last dimension {dims}, got shape {p.shape}.")
        if p.size % dims != 0:
            raise OutputShapeError(f"Output of size {p.size} is not a multiple of dimensions={dims}.")
        return p.reshape(-1, dims)

    def _decode_rows(
        self,
        p: np.ndarray,
        orig_size: Tuple[int, int],
        pad: Tuple[float, float],
        ratio: float,
    ) -> List[Detection]:
        keep = p[:, 4] > self.cfg.confidence
        p = p[keep]
        if p.shape[0] == 0:
            return []

        mul_conf = p[:, 5:] * p[:, 4:5]  # obj_conf * cls_conf
        # nonzero walks row-major: candidate order first, then class order.
        rows, classes = np.nonzero(mul_conf > self.cfg.mul_confidence)
        if rows.size == 0:
            return []

        boxes = unpad_boxes(xywh2xyxy(p[rows, :4]), ratio, pad, orig_size)
        return self._emit(boxes, mul_conf[rows, classes], classes)


class SigmoidDecoder(Decoder):
    """
    Decoder for raw per-scale heads using the YOLOv5 anchor formula:

        cx = (sx * 2 - 0.5 + col) * stride
        cy = (sy * 2 - 0.5 + row) * stride
        w  = (sw * 2) ** 2 * anchor_w
        h  = (sh * 2) ** 2 * anchor_h

    where every raw value has been passed through a sigmoid. One detection
    (best class) per grid cell.
    """

    def decode(
        self,
        outputs: Sequence[np.ndarray],
        orig_size: Tuple[int, int],
        pad: Tuple[float, float] = (0.0, 0.0),
        ratio: float = 1.0,
    ) -> List[Detection]:
        cfg = self.cfg
        if len(outputs) != len(cfg.strides):
            raise OutputShapeError(f"Expected {len(cfg.strides)} scale outputs, got {len(outputs)}.")

        heads = [self._as_grid(i, out) for i, out in enumerate(outputs)]
        work = [(i, a) for i in range(len(heads)) for a in range(cfg.anchors_per_scale)]

        def run(item: Tuple[int, int]) -> List[Detection]:
            i, a = item
            return self._decode_anchor(heads[i][a], i, a, orig_size, pad, ratio)

        parts = map_ordered(run, work, max_workers=self.max_workers)
        detections = [d for part in parts for d in part]
        logger.debug("sigmoid decode: %d scales -> %d detections", len(heads), len(detections))
        return detections

    def _as_grid(self, i: int, output: np.ndarray) -> np.ndarray:
        cfg = self.cfg
        g = cfg.shapes[i]
        expected = cfg.anchors_per_scale * g * g * cfg.dimensions
        p = np.asarray(output)
        if p.size != expected:
            raise OutputShapeError(
                f"Output {cfg.outputs[i]!r} has {p.size} values (shape {p.shape}); "
                f"expected {cfg.anchors_per_scale}x{g}x{g}x{cfg.dimensions} = {expected}."
            )
        return p.reshape(cfg.anchors_per_scale, g, g, cfg.dimensions)

    def _decode_anchor(
        self,
        grid: np.ndarray,
        i: int,
        a: int,
        orig_size: Tuple[int, int],
        pad: Tuple[float, float],
        ratio: float,
    ) -> List[Detection]:
        cfg = self.cfg
        buf = sigmoid(grid)  # every value, not only objectness
        obj = buf[..., 4]
        scores = buf[..., 5:] * obj[..., None]  # mul_conf = obj_conf * cls_conf
        best = scores.argmax(axis=-1)
        mul_conf = np.take_along_axis(scores, best[..., None], axis=-1)[..., 0]

        ys, xs = np.nonzero((obj > cfg.confidence) & (mul_conf > cfg.mul_confidence))
        if ys.size == 0:
            return []

        cell = buf[ys, xs]
        stride = cfg.strides[i]
        anchor_w, anchor_h = cfg.anchors[i][a]
        xywh = np.stack(
            [
                (cell[:, 0] * 2 - 0.5 + xs) * stride,
                (cell[:, 1] * 2 - 0.5 + ys) * stride,
                (cell[:, 2] * 2) ** 2 * anchor_w,
                (cell[:, 3] * 2) ** 2 * anchor_h,
            ],
            axis=1,
        )
        boxes = unpad_boxes(xywh2xyxy(xywh), ratio, pad, orig_size)
        return self._emit(boxes, mul_conf[ys, xs], best[ys, xs])


def make_decoder(cfg: YoloModelConfig, max_workers: Optional[int] = None) -> Decoder:
    if cfg.use_detect:
        return DetectDecoder(cfg, max_workers=max_workers)
    return SigmoidDecoder(cfg, max_workers=max_workers)
