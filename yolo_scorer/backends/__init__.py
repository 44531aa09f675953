"""
Inference engines for yolo_scorer.

Backends are kept in a separate module so core functionality (pre/post-processing)
stays lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

from .base import InferenceEngine, WeightsSource, read_weights

__all__ = ["InferenceEngine", "WeightsSource", "read_weights"]
