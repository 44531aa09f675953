from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple, Union

from .errors import ConfigError
from .types import YoloLabel


PathLike = Union[str, Path]

NMS_MODES = ("pairwise", "greedy")
CHANNEL_ORDERS = ("bgr", "bgra", "rgb", "rgba")

COCO_NAMES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog",
    "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella",
    "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket", "bottle",
    "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch", "potted plant",
    "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote", "keyboard", "cell phone",
    "microwave", "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase", "scissors",
    "teddy bear", "hair drier", "toothbrush",
)


def labels_from_names(names: Sequence[str]) -> Tuple[YoloLabel, ...]:
    return tuple(YoloLabel(id=i, name=name) for i, name in enumerate(names))


@dataclass(frozen=True)
class YoloModelConfig:
    """
    Static description of a YOLOv5 export.

    - width/height: model input size in pixels
    - dimensions: floats per candidate (4 box + objectness + one per label)
    - confidence: objectness must be strictly greater to keep a candidate
    - mul_confidence: objectness * class score must be strictly greater
    - overlap: IoU at or above which the weaker of two boxes is suppressed
    - use_detect: True when the export ends in the Detect layer (one decoded
      output); False for raw per-scale outputs that need the anchor decode
    - strides/shapes/anchors: per-scale tables used by the anchor decode;
      anchors[scale][anchor] is a (width, height) pair
    """

    width: int
    height: int
    labels: Tuple[YoloLabel, ...]
    depth: int = 3
    dimensions: int = 0
    strides: Tuple[int, ...] = ()
    shapes: Tuple[int, ...] = ()
    anchors: Tuple[Tuple[Tuple[float, float], ...], ...] = ()
    confidence: float = 0.20
    mul_confidence: float = 0.25
    overlap: float = 0.45
    outputs: Tuple[str, ...] = ("output",)
    input_name: str = "images"
    use_detect: bool = True
    nms_mode: str = "pairwise"
    channel_order: str = "bgr"

    def __post_init__(self) -> None:
        if self.dimensions == 0:
            object.__setattr__(self, "dimensions", len(self.labels) + 5)
        if self.width <= 0 or self.height <= 0:
            raise ConfigError("width and height must be > 0")
        if self.depth != 3:
            raise ConfigError("depth must be 3 (RGB input)")
        if not self.labels:
            raise ConfigError("labels must not be empty")
        if self.dimensions != len(self.labels) + 5:
            raise ConfigError(
                f"dimensions ({self.dimensions}) must equal number of labels + 5 ({len(self.labels) + 5})"
            )
        for name in ("confidence", "mul_confidence", "overlap"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be in [0, 1], got {value}")
        if not self.outputs:
            raise ConfigError("outputs must name at least one tensor")
        if self.nms_mode not in NMS_MODES:
            raise ConfigError(f"nms_mode must be one of {NMS_MODES}, got {self.nms_mode!r}")
        if self.channel_order.lower() not in CHANNEL_ORDERS:
            raise ConfigError(f"channel_order must be one of {CHANNEL_ORDERS}, got {self.channel_order!r}")
        if not self.use_detect:
            self._validate_anchor_tables()

    def _validate_anchor_tables(self) -> None:
        n = len(self.strides)
        if n == 0:
            raise ConfigError("strides are required when use_detect is False")
        if len(self.shapes) != n or len(self.anchors) != n:
            raise ConfigError(
                f"strides ({n}), shapes ({len(self.shapes)}) and anchors ({len(self.anchors)}) must have equal length"
            )
        if len(self.outputs) != n:
            raise ConfigError(f"expected one output name per scale ({n}), got {len(self.outputs)}")
        per_scale = {len(a) for a in self.anchors}
        if len(per_scale) != 1 or 0 in per_scale:
            raise ConfigError("every scale must declare the same, non-zero number of anchors")
        for scale in self.anchors:
            for pair in scale:
                if len(pair) != 2:
                    raise ConfigError(f"anchor {pair!r} is not a (width, height) pair")

    @property
    def input_size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def anchors_per_scale(self) -> int:
        return len(self.anchors[0]) if self.anchors else 0


_P5_ANCHORS = (
    ((10, 13), (16, 30), (33, 23)),
    ((30, 61), (62, 45), (59, 119)),
    ((116, 90), (156, 198), (373, 326)),
)

_P6_ANCHORS = (
    ((19, 27), (44, 40), (38, 94)),
    ((96, 68), (86, 152), (180, 137)),
    ((140, 301), (303, 264), (238, 542)),
    ((436, 615), (739, 380), (925, 792)),
)


def yolo_coco_p5(**overrides: Any) -> YoloModelConfig:
    """YOLOv5 P5 (640x640, three scales) trained on COCO."""
    params: Dict[str, Any] = dict(
        width=640,
        height=640,
        labels=labels_from_names(COCO_NAMES),
        strides=(8, 16, 32),
        shapes=(80, 40, 20),
        anchors=_P5_ANCHORS,
        confidence=0.20,
        mul_confidence=0.25,
        overlap=0.45,
        outputs=("output",),
        use_detect=True,
    )
    params.update(overrides)
    return YoloModelConfig(**params)


def yolo_coco_p6(**overrides: Any) -> YoloModelConfig:
    """YOLOv5 P6 (1280x1280, four scales) trained on COCO."""
    params: Dict[str, Any] = dict(
        width=1280,
        height=1280,
        labels=labels_from_names(COCO_NAMES),
        strides=(8, 16, 32, 64),
        shapes=(160, 80, 40, 20),
        anchors=_P6_ANCHORS,
        confidence=0.20,
        mul_confidence=0.25,
        overlap=0.45,
        outputs=("output",),
        use_detect=True,
    )
    params.update(overrides)
    return YoloModelConfig(**params)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ConfigError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer")
    return int(value)


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    return float(value)


def _int_list(payload: Dict[str, Any], key: str) -> Tuple[int, ...]:
    value = payload.get(key, [])
    if not isinstance(value, list) or any(isinstance(v, bool) or not isinstance(v, int) for v in value):
        raise ConfigError(f"{key} must be a list of integers")
    return tuple(value)


def _parse_labels(value: Any) -> Tuple[YoloLabel, ...]:
    if isinstance(value, dict):
        # {"0": "person", "1": "bicycle"} as written by most exporters
        try:
            items = sorted((int(k), str(v)) for k, v in value.items())
        except ValueError as exc:
            raise ConfigError("label ids must be integers") from exc
        if [i for i, _ in items] != list(range(len(items))):
            raise ConfigError("label ids must be contiguous from 0")
        return labels_from_names([name for _, name in items])
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return labels_from_names(value)
    raise ConfigError("labels must be a list of names or an {id: name} mapping")


def load_model_config(path: PathLike) -> YoloModelConfig:
    """
    Read a model configuration from JSON.

    Required keys: width, height, labels. Everything else falls back to the
    YoloModelConfig defaults.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid model config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Model config must be a JSON object")

    allowed = {
        "width",
        "height",
        "depth",
        "dimensions",
        "labels",
        "strides",
        "shapes",
        "anchors",
        "confidence",
        "mul_confidence",
        "overlap",
        "outputs",
        "input_name",
        "use_detect",
        "nms_mode",
        "channel_order",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ConfigError(f"Unknown model config keys: {unknown}")
    if "labels" not in payload:
        raise ConfigError("Missing required key: labels")

    anchors_raw = payload.get("anchors", [])
    try:
        anchors = tuple(tuple((float(a[0]), float(a[1])) for a in scale) for scale in anchors_raw)
    except (TypeError, IndexError, ValueError) as exc:
        raise ConfigError("anchors must be a list of [[w, h], ...] per scale") from exc

    outputs = payload.get("outputs", ["output"])
    if not isinstance(outputs, list) or not all(isinstance(o, str) for o in outputs):
        raise ConfigError("outputs must be a list of tensor names")

    use_detect = payload.get("use_detect", True)
    if not isinstance(use_detect, bool):
        raise ConfigError("use_detect must be a boolean")

    return YoloModelConfig(
        width=_require_int(payload, "width"),
        height=_require_int(payload, "height"),
        depth=int(payload.get("depth", 3)),
        dimensions=int(payload.get("dimensions", 0)),
        labels=_parse_labels(payload["labels"]),
        strides=_int_list(payload, "strides"),
        shapes=_int_list(payload, "shapes"),
        anchors=anchors,
        confidence=_optional_number(payload, "confidence", 0.20),
        mul_confidence=_optional_number(payload, "mul_confidence", 0.25),
        overlap=_optional_number(payload, "overlap", 0.45),
        outputs=tuple(outputs),
        input_name=str(payload.get("input_name", "images")),
        use_detect=use_detect,
        nms_mode=str(payload.get("nms_mode", "pairwise")),
        channel_order=str(payload.get("channel_order", "bgr")),
    )
