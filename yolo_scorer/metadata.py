from __future__ import annotations

from typing import Dict, Tuple

from .errors import ConfigError
from .types import YoloLabel


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Read the `names:` block of an Ultralytics-style `metadata.yaml`:

        names:
          0: person
          1: bicycle
          ...

    Only this subset of YAML is understood, so no PyYAML dependency.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            if not raw.strip() or raw.lstrip().startswith("#"):
                continue
            line = raw.strip()
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # A new top-level key ends the block.
            if not raw[0].isspace():
                break

            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def load_labels(metadata_path: str) -> Tuple[YoloLabel, ...]:
    """Labels in id order; ids must run 0..N-1 without gaps."""
    names = load_class_names(metadata_path)
    if not names:
        raise ConfigError(f"No class names found in {metadata_path}")
    if sorted(names) != list(range(len(names))):
        raise ConfigError(f"Class ids in {metadata_path} must be contiguous from 0")
    return tuple(YoloLabel(id=i, name=names[i]) for i in range(len(names)))
