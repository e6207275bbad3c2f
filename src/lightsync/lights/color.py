"""
Color types and interpolation.

Interpolation modes:
- hsv: around the hue wheel by the shortest path
- hsv_long: straight through hue values (the long way for most pairs)
- rgb: per-channel linear blend
"""

from __future__ import annotations

import colorsys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple


class HSV(NamedTuple):
    """
    HSV color representation.

    All values are in the range 0.0-1.0.
    """
    hue: float
    saturation: float = 1.0
    value: float = 1.0


@dataclass(frozen=True)
class RGB:
    """RGB color value, 0-255 per channel."""
    r: int
    g: int
    b: int

    def __post_init__(self):
        for channel in (self.r, self.g, self.b):
            if not isinstance(channel, int) or not 0 <= channel <= 255:
                raise ValueError(f"Invalid RGB channel {channel!r}")

    @classmethod
    def from_hsv(cls, h: float, s: float, v: float) -> "RGB":
        """Create RGB from HSV (all values 0.0-1.0)."""
        r, g, b = colorsys.hsv_to_rgb(h % 1.0, s, v)
        return cls(round(r * 255), round(g * 255), round(b * 255))

    @classmethod
    def from_hex(cls, hex_color: str) -> "RGB":
        """
        Parse "#FF6B00", "#F60" or "FF6B00".

        Raises:
            ValueError: If hex format is invalid
        """
        hex_str = hex_color.lstrip("#")

        # Expand shorthand (#RGB -> #RRGGBB)
        if len(hex_str) == 3:
            hex_str = "".join(c * 2 for c in hex_str)

        if len(hex_str) != 6:
            raise ValueError(f"Invalid hex color: {hex_color}")

        try:
            return cls(int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))
        except ValueError:
            raise ValueError(f"Invalid hex color: {hex_color}")

    @classmethod
    def black(cls) -> "RGB":
        return cls(0, 0, 0)

    @classmethod
    def white(cls) -> "RGB":
        return cls(255, 255, 255)

    def to_hsv(self) -> HSV:
        return HSV(*colorsys.rgb_to_hsv(self.r / 255.0, self.g / 255.0, self.b / 255.0))

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def dim(self, factor: float) -> "RGB":
        """Dim the color by a factor (0.0-1.0)."""
        factor = max(0.0, min(1.0, factor))
        return RGB(round(self.r * factor), round(self.g * factor), round(self.b * factor))


class Interpolation(Enum):
    """How to walk from one color to another."""
    HSV = "hsv"
    HSV_LONG = "hsv_long"
    RGB = "rgb"


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _fix_achromatic(c1: HSV, c2: HSV) -> tuple[HSV, HSV]:
    # Grays have no meaningful hue; borrow the other end's so only
    # saturation/value move.
    if c1.saturation == 0 and c2.saturation > 0:
        c1 = HSV(c2.hue, c1.saturation, c1.value)
    elif c2.saturation == 0 and c1.saturation > 0:
        c2 = HSV(c1.hue, c2.saturation, c2.value)
    return c1, c2


def interpolate_hsv(c1: HSV, c2: HSV, t: float, long_path: bool = False) -> HSV:
    """
    Interpolate between two HSV colors.

    Args:
        c1: Start color
        c2: End color
        t: Interpolation factor (0.0 = c1, 1.0 = c2)
        long_path: Interpolate hue values directly instead of taking the
            shortest path around the color wheel

    Returns:
        Interpolated HSV color
    """
    t = max(0.0, min(1.0, t))
    c1, c2 = _fix_achromatic(c1, c2)

    h1, h2 = c1.hue, c2.hue
    if not long_path and abs(h2 - h1) > 0.5:
        if h1 < h2:
            h1 += 1.0
        else:
            h2 += 1.0

    hue = _lerp(h1, h2, t) % 1.0
    sat = _lerp(c1.saturation, c2.saturation, t)
    val = _lerp(c1.value, c2.value, t)

    return HSV(hue, sat, val)


def interpolate(
    start: RGB,
    end: RGB,
    t: float,
    mode: Interpolation | str = Interpolation.HSV,
) -> RGB:
    """Color at fraction t (clamped to 0..1) of the way from start to end."""
    mode = Interpolation(mode)
    t = max(0.0, min(1.0, t))

    if mode is Interpolation.RGB:
        return RGB(
            round(_lerp(start.r, end.r, t)),
            round(_lerp(start.g, end.g, t)),
            round(_lerp(start.b, end.b, t)),
        )

    hsv = interpolate_hsv(start.to_hsv(), end.to_hsv(), t, long_path=mode is Interpolation.HSV_LONG)
    return RGB.from_hsv(*hsv)


def make_interpolator(
    start: RGB | str,
    end: RGB | str,
    mode: Interpolation | str = Interpolation.HSV,
) -> Callable[[float], RGB]:
    """
    Bind a color range, returning t -> RGB.

    Args:
        start: Color at t=0 (RGB or hex string)
        end: Color at t=1 (RGB or hex string)
        mode: Interpolation mode
    """
    if isinstance(start, str):
        start = RGB.from_hex(start)
    if isinstance(end, str):
        end = RGB.from_hex(end)
    mode = Interpolation(mode)

    def interpolator(t: float) -> RGB:
        return interpolate(start, end, t, mode)

    return interpolator
