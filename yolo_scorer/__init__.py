"""
YOLOv5 scorer: letterbox preprocessing, Detect-layer and anchor decoding,
and non-max suppression around a pluggable inference engine.

Core pre/post-processing needs only NumPy and OpenCV; inference runtimes
(onnxruntime, torch) are imported when an engine is created.
"""

from .types import Detection, YoloLabel
from .errors import ConfigError, ModelLoadError, OutputShapeError, ScorerClosedError, ScorerError
from .letterbox import LetterboxResult, letterbox
from .extract import extract_pixels
from .decode import Decoder, DetectDecoder, SigmoidDecoder, make_decoder
from .nms import NMSConfig, nms, suppress
from .models import YoloModelConfig, load_model_config, yolo_coco_p5, yolo_coco_p6
from .runtime import YoloScorer, load_scorer, find_project_root, resolve_path
from .metadata import load_class_names, load_labels
from .visualize import detection_caption, draw_detections, label_color

__all__ = [
    "Detection",
    "YoloLabel",
    "ScorerError",
    "ConfigError",
    "ModelLoadError",
    "OutputShapeError",
    "ScorerClosedError",
    "LetterboxResult",
    "letterbox",
    "extract_pixels",
    "Decoder",
    "DetectDecoder",
    "SigmoidDecoder",
    "make_decoder",
    "NMSConfig",
    "nms",
    "suppress",
    "YoloModelConfig",
    "load_model_config",
    "yolo_coco_p5",
    "yolo_coco_p6",
    "YoloScorer",
    "load_scorer",
    "find_project_root",
    "resolve_path",
    "load_class_names",
    "load_labels",
    "draw_detections",
    "detection_caption",
    "label_color",
]
