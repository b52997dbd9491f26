"""
Color Helpers
=============

Parsing and interpolation for the hex colors used in palettes.

Palettes are configured as CSS-style hex strings ("#4CAF50" or "#4af").
Drawing happens through OpenCV, which expects BGR tuples, so conversion
happens at the painting boundary only.
"""

import re
from typing import Sequence, Tuple


HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

RGB = Tuple[int, int, int]


def is_hex_color(value: str) -> bool:
    """Check whether a string is a #rgb or #rrggbb color."""
    return isinstance(value, str) and bool(HEX_COLOR_PATTERN.match(value))


def hex_to_rgb(value: str) -> RGB:
    """
    Parse a hex color string.

    Args:
        value: "#rrggbb" or shorthand "#rgb"

    Returns:
        (r, g, b) tuple with components in [0, 255]

    Raises:
        ValueError: If the string is not a hex color
    """
    if not is_hex_color(value):
        raise ValueError(f"Not a hex color: {value!r}")

    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)

    return (
        int(digits[0:2], 16),
        int(digits[2:4], 16),
        int(digits[4:6], 16),
    )


def hex_to_bgr(value: str) -> RGB:
    """Parse a hex color into OpenCV channel order."""
    r, g, b = hex_to_rgb(value)
    return (b, g, r)


def rgb_to_hex(rgb: Sequence[int]) -> str:
    """Format an (r, g, b) tuple as "#rrggbb"."""
    r, g, b = (max(0, min(255, int(round(c)))) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def interpolate_palette(palette: Sequence[str], t: float) -> str:
    """
    Linearly interpolate a position along a palette gradient.

    The palette stops are spaced evenly over [0, 1]. Values outside
    that range are clamped to the end stops.

    Args:
        palette: Non-empty sequence of hex colors
        t: Position along the gradient

    Returns:
        Interpolated color as "#rrggbb"
    """
    if not palette:
        raise ValueError("palette must not be empty")

    if len(palette) == 1 or t <= 0.0:
        return rgb_to_hex(hex_to_rgb(palette[0]))
    if t >= 1.0:
        return rgb_to_hex(hex_to_rgb(palette[-1]))

    scaled = t * (len(palette) - 1)
    index = int(scaled)
    frac = scaled - index

    low = hex_to_rgb(palette[index])
    high = hex_to_rgb(palette[index + 1])

    return rgb_to_hex(
        low[i] + (high[i] - low[i]) * frac for i in range(3)
    )
