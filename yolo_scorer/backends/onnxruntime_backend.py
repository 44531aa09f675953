from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..errors import ModelLoadError, ScorerClosedError
from .base import WeightsSource, read_weights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - session_options: an `onnxruntime.SessionOptions`, passed through untouched
    """

    providers: Optional[Sequence[str]] = None
    session_options: Optional[Any] = None


class OnnxRuntimeEngine:
    """
    ONNX Runtime engine loaded from a path, a byte buffer or a binary stream.

    `run` returns every graph output keyed by name.
    """

    def __init__(self, weights: WeightsSource, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        source = read_weights(weights)

        sess_opts = cfg.session_options if cfg.session_options is not None else ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        try:
            model = source if isinstance(source, bytes) else str(source)
            self.session = ort.InferenceSession(model, sess_options=sess_opts, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"ONNX Runtime could not load the model: {e}") from e

        self.input_names: List[str] = [i.name for i in self.session.get_inputs()]
        self.output_names: List[str] = [o.name for o in self.session.get_outputs()]
        logger.info(
            "onnxruntime session ready: inputs=%s outputs=%s providers=%s",
            self.input_names,
            self.output_names,
            self.providers_in_use,
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    def run(self, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        if self.session is None:
            raise ScorerClosedError("ONNX Runtime session has been closed.")
        outputs = self.session.run(self.output_names, dict(inputs))
        return dict(zip(self.output_names, outputs))

    def close(self) -> None:
        # ORT frees the native session when the last reference goes away.
        self.session = None
