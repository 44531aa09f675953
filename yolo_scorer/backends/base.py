from __future__ import annotations

from pathlib import Path
from typing import IO, Dict, Mapping, Protocol, Union

import numpy as np

from ..errors import ModelLoadError


PathLike = Union[str, Path]
WeightsSource = Union[str, Path, bytes, bytearray, IO[bytes]]


class InferenceEngine(Protocol):
    """
    What the scorer needs from a runtime: feed named inputs, get named outputs.

    Engines are not required to be thread-safe; the scorer serializes calls.
    """

    def run(self, inputs: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        ...

    def close(self) -> None:
        ...


def read_weights(weights: WeightsSource) -> Union[Path, bytes]:
    """
    Normalize a weights source into a file path or an in-memory buffer.

    Streams are read to the end; paths must exist.
    """

    if isinstance(weights, (bytes, bytearray)):
        if not weights:
            raise ModelLoadError("Weights buffer is empty.")
        return bytes(weights)

    if isinstance(weights, (str, Path)):
        path = Path(weights)
        if not path.is_file():
            raise ModelLoadError(f"Weights file not found: {path}")
        return path

    if hasattr(weights, "read"):
        try:
            data = weights.read()
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"Could not read weights stream: {e}") from e
        if not isinstance(data, (bytes, bytearray)):
            raise ModelLoadError("Weights stream must be opened in binary mode.")
        if not data:
            raise ModelLoadError("Weights stream is empty.")
        return bytes(data)

    raise TypeError(f"Unsupported weights source: {type(weights).__name__}")
