from __future__ import annotations


class ScorerError(Exception):
    """Base class for errors raised by yolo_scorer."""


class ConfigError(ScorerError, ValueError):
    """Model configuration is inconsistent or cannot be parsed."""


class ModelLoadError(ScorerError):
    """Weights could not be read or the inference engine refused them."""


class OutputShapeError(ScorerError, ValueError):
    """An engine output is missing or does not match the model configuration."""


class ScorerClosedError(ScorerError, RuntimeError):
    """The scorer was used after `close()`."""
