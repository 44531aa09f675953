from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class YoloLabel:
    """
    A class the model can predict. `color` is BGR (OpenCV order).
    """

    id: int
    name: str
    kind: str = "generic"
    color: Optional[Tuple[int, int, int]] = None


@dataclass(frozen=True, eq=False)
class Detection:
    """
    A labeled box in original image pixel coordinates.

    Compared by identity: two detections with equal fields are still distinct
    candidates during suppression.
    """

    label: YoloLabel
    score: float
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def class_id(self) -> int:
        return self.label.id

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2
