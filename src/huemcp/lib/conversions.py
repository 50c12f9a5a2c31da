"""Value encodings between the socket protocol and the Hue bridge."""

from __future__ import annotations

MAX_BRI = 254
MIN_KELVIN = 2000
MAX_KELVIN = 6500
D65_WHITE_XY = (0.3127, 0.3290)


def brightness_to_bri(percent: float) -> int:
    """Scale a 0-100 brightness to the bridge's 0-254 ``bri`` range."""
    return round(percent / 100 * MAX_BRI)


def kelvin_to_mired(kelvin: float) -> int:
    return round(1_000_000 / kelvin)


def ms_to_transitiontime(milliseconds: float) -> int:
    """The bridge counts transitions in 100 ms steps."""
    return round(milliseconds / 100)


def _linearize(channel: int) -> float:
    u = channel / 255
    return ((u + 0.055) / 1.055) ** 2.4 if u > 0.04045 else u / 12.92


def rgb_to_xy(r: int, g: int, b: int) -> tuple[float, float]:
    """Convert an sRGB triple to CIE 1931 xy chromaticity."""
    red, green, blue = _linearize(r), _linearize(g), _linearize(b)
    x = red * 0.4124 + green * 0.3576 + blue * 0.1805
    y = red * 0.2126 + green * 0.7152 + blue * 0.0722
    z = red * 0.0193 + green * 0.1192 + blue * 0.9505
    total = x + y + z
    if total == 0:
        # Black has no chromaticity; the bridge shows it as white at the given bri.
        return D65_WHITE_XY
    return round(x / total, 4), round(y / total, 4)


def is_rgb(value: object) -> bool:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        return False
    return all(
        isinstance(channel, int) and not isinstance(channel, bool) and 0 <= channel <= 255
        for channel in value
    )


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
