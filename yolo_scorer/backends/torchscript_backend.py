from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

import numpy as np

from ..errors import ModelLoadError, OutputShapeError, ScorerClosedError
from .base import WeightsSource, read_weights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    """

    device: str = "cpu"
    half: bool = False


class TorchScriptEngine:
    """
    TorchScript engine using `torch.jit.load`.

    TorchScript modules have positional outputs, so they are named after
    `output_names` in order (a single tensor takes the first name).
    """

    def __init__(
        self,
        weights: WeightsSource,
        output_names: Sequence[str],
        cfg: TorchScriptBackendConfig = TorchScriptBackendConfig(),
    ):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.output_names = list(output_names)
        self.device = torch.device(cfg.device)
        self.half = cfg.half

        source = read_weights(weights)
        try:
            f = io.BytesIO(source) if isinstance(source, bytes) else str(source)
            model = torch.jit.load(f, map_location=self.device)
        except Exception as e:
            raise ModelLoadError(f"torch.jit.load failed: {e}") from e
        model.eval()
        self.model = model
        logger.info("torchscript model ready on %s", self.device)

    def run(self, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        if self.model is None:
            raise ScorerClosedError("TorchScript model has been released.")
        torch = self._torch
        if len(inputs) != 1:
            raise ValueError(f"TorchScript engine takes exactly one input, got {sorted(inputs)}")
        blob = next(iter(inputs.values()))

        x = torch.as_tensor(blob, device=self.device)
        x = x.half() if self.half else x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        ys = list(y) if isinstance(y, (tuple, list)) else [y]
        if len(ys) < len(self.output_names):
            raise OutputShapeError(f"Model returned {len(ys)} outputs, expected {len(self.output_names)}.")
        return {
            name: t.detach().to("cpu").float().numpy()
            for name, t in zip(self.output_names, ys)
        }

    def close(self) -> None:
        self.model = None
