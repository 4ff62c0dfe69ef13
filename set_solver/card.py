from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class Number(Enum):
    ONE = 1
    TWO = 2
    THREE = 3

    @property
    def count(self) -> int:
        return self.value

    @classmethod
    def from_count(cls, count: int) -> "Number":
        """Map a raw symbol count to a Number, clamping it to 1-3."""
        return cls(min(max(int(count), 1), 3))


class Shape(Enum):
    DIAMOND = "diamond"
    OVAL = "oval"
    SQUIGGLE = "squiggle"


class CardColor(Enum):
    RED = "red"
    GREEN = "green"
    PURPLE = "purple"


class Shading(Enum):
    SOLID = "solid"
    STRIPED = "striped"
    OPEN = "open"


def normalize_angle(angle: float) -> float:
    """Wrap an angle in degrees into the half-open range (-180, 180]."""
    angle = float(angle) % 360.0
    if angle > 180.0:
        angle -= 360.0
    return angle


@dataclass(frozen=True)
class Card:
    """
    A detected Set card: its four attributes plus where it sits in the source image.

    Geometry is in source-image pixels with the origin at the top-left corner.
    `rotation` is in degrees and always lies in (-180, 180].
    """
    number: Number
    shape: Shape
    color: CardColor
    shading: Shading
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "rotation", normalize_angle(self.rotation))

    @property
    def attributes(self) -> Tuple[Number, Shape, CardColor, Shading]:
        return (self.number, self.shape, self.color, self.shading)

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """Bounding box as integer (x1, y1, x2, y2)."""
        x1, y1 = int(round(self.x)), int(round(self.y))
        return x1, y1, x1 + int(round(self.width)), y1 + int(round(self.height))

    def describe(self) -> str:
        return (f"{self.number.count} {self.color.value} {self.shading.value} "
                f"{self.shape.value}")


@dataclass(frozen=True)
class GridSpacing:
    """Uniform layout estimated for one capture. Rows are always 3."""
    card_width: int
    card_height: int
    grid_origin_x: int
    grid_origin_y: int
    num_cols: int
    num_rows: int = field(default=3, init=False)
