from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from .backends.base import InferenceEngine, WeightsSource
from .decode import collect_outputs, make_decoder
from .errors import ScorerClosedError
from .extract import extract_pixels
from .letterbox import letterbox
from .models import YoloModelConfig, yolo_coco_p5
from .nms import suppress
from .types import Detection

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live next to the project (e.g. `<root>/models/yolov5s.onnx`).
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    ratio: float
    pad: Tuple[float, float]


def create_engine(
    backend: str,
    weights: WeightsSource,
    config: YoloModelConfig,
    *,
    options: Optional[Any] = None,
    providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
) -> InferenceEngine:
    chosen = backend.lower()
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackendConfig, OnnxRuntimeEngine

        return OnnxRuntimeEngine(weights, OnnxRuntimeBackendConfig(providers=providers, session_options=options))

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackendConfig, TorchScriptEngine

        return TorchScriptEngine(
            weights,
            config.outputs,
            TorchScriptBackendConfig(device=torch_device, half=torch_half),
        )

    raise ValueError(f"Unsupported backend: {backend!r}")


class YoloScorer:
    """
    YOLOv5 scorer: letterbox -> tensor -> inference -> decode -> suppress.

    Expects OpenCV-style images (`(H, W, 3)` BGR or `(H, W, 4)` BGRA uint8, see
    `YoloModelConfig.channel_order`) and returns detections in original image
    coordinates.

    One scorer owns one engine. Engine calls are serialized with a lock, so
    concurrent `predict` calls overlap only in pre/post-processing; create
    several scorers when inference itself must run in parallel.
    """

    def __init__(
        self,
        weights: WeightsSource,
        config: Optional[YoloModelConfig] = None,
        *,
        backend: str = "onnxruntime",
        options: Optional[Any] = None,
        providers: Optional[Sequence[str]] = None,
        torch_device: str = "cpu",
        torch_half: bool = False,
        max_workers: Optional[int] = None,
    ):
        config = config if config is not None else yolo_coco_p5()
        engine = create_engine(
            backend,
            weights,
            config,
            options=options,
            providers=providers,
            torch_device=torch_device,
            torch_half=torch_half,
        )
        self._setup(engine, config, backend.lower(), max_workers)

    @classmethod
    def from_engine(
        cls,
        engine: InferenceEngine,
        config: YoloModelConfig,
        *,
        backend_name: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> "YoloScorer":
        """Wrap an already constructed engine; the scorer takes ownership of it."""
        scorer = cls.__new__(cls)
        scorer._setup(engine, config, backend_name, max_workers)
        return scorer

    def _setup(
        self,
        engine: InferenceEngine,
        config: YoloModelConfig,
        backend_name: Optional[str],
        max_workers: Optional[int],
    ) -> None:
        self.config = config
        self.backend_name = backend_name
        self.max_workers = max_workers
        self.decoder = make_decoder(config, max_workers=max_workers)
        self._engine: Optional[InferenceEngine] = engine
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._engine is None

    def preprocess(self, image: np.ndarray) -> PreprocessResult:
        if image is None or not hasattr(image, "shape"):
            raise TypeError("image must be a NumPy array.")
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise ValueError(f"Expected image shape (H, W, 3|4), got {getattr(image, 'shape', None)}")

        lb = letterbox(image, new_shape=self.config.input_size)
        blob = extract_pixels(lb.image, channel_order=self.config.channel_order, max_workers=self.max_workers)
        return PreprocessResult(blob=blob, orig_size=lb.orig_size, ratio=lb.ratio, pad=lb.pad)

    def infer(self, blob: np.ndarray) -> List[np.ndarray]:
        """Run the engine and return outputs in `config.outputs` order."""
        with self._lock:
            if self._engine is None:
                raise ScorerClosedError("YoloScorer has been closed.")
            named = self._engine.run({self.config.input_name: blob})
        return collect_outputs(named, self.config.outputs)

    def predict(self, image: np.ndarray) -> List[Detection]:
        if self._engine is None:
            raise ScorerClosedError("YoloScorer has been closed.")

        t0 = time.perf_counter()
        prep = self.preprocess(image)
        t1 = time.perf_counter()
        outputs = self.infer(prep.blob)
        t2 = time.perf_counter()
        candidates = self.decoder.decode(outputs, orig_size=prep.orig_size, pad=prep.pad, ratio=prep.ratio)
        detections = suppress(candidates, self.config.overlap, mode=self.config.nms_mode)
        t3 = time.perf_counter()

        logger.debug(
            "predict: pre=%.1fms infer=%.1fms post=%.1fms candidates=%d detections=%d",
            (t1 - t0) * 1000.0,
            (t2 - t1) * 1000.0,
            (t3 - t2) * 1000.0,
            len(candidates),
            len(detections),
        )
        return detections

    __call__ = predict

    def close(self) -> None:
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.close()
            logger.info("scorer engine released (%s)", self.backend_name or type(engine).__name__)

    def __enter__(self) -> "YoloScorer":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def load_scorer(
    model_path: PathLike,
    config: Optional[YoloModelConfig] = None,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    options: Optional[Any] = None,
    providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_half: bool = False,
    max_workers: Optional[int] = None,
) -> YoloScorer:
    """
    Create a scorer for a model on disk.

    Typical usage:
        scorer = load_scorer("models/yolov5s.onnx")  # resolves from project root by default

    Args:
        model_path: path to weights/model file; relative paths resolve against project root by default
        backend: "onnxruntime" or "torchscript"; None infers it from the extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    return YoloScorer(
        resolved,
        config,
        backend=chosen,
        options=options,
        providers=providers,
        torch_device=torch_device,
        torch_half=torch_half,
        max_workers=max_workers,
    )
