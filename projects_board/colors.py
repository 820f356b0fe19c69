"""Label color helpers."""

import re

from .enums import TextColor
from .errors import BoardValidationError

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def normalize_color(color: str) -> str:
    """Return ``color`` as lower-case ``#rrggbb`` or raise a validation error."""
    value = (color or "").strip()
    if not _HEX_COLOR.match(value):
        raise BoardValidationError(
            f"Color must be in #rrggbb form, got {color!r}", field="color"
        )
    return value.lower()


def _linear(channel: int) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(color: str) -> float:
    """WCAG 2.1 relative luminance of a ``#rrggbb`` color."""
    value = normalize_color(color)
    r, g, b = (int(value[i : i + 2], 16) for i in (1, 3, 5))
    return 0.2126 * _linear(r) + 0.7152 * _linear(g) + 0.0722 * _linear(b)


def optimal_text_color(background: str) -> TextColor:
    """Pick black text on light backgrounds and white text on dark ones."""
    if relative_luminance(background) > 0.5:
        return TextColor.BLACK
    return TextColor.WHITE


def toggle_text_color(current: TextColor) -> TextColor:
    """Return the other text color, for manual override of the automatic pick."""
    return TextColor.BLACK if current == TextColor.WHITE else TextColor.WHITE
