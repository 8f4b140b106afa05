#
# fanalight - Copyright (C) 2026 Fanalight Developers
#
# This program is free software: you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published
# by the Free Software Foundation, version 3.
#
# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of MERCHANTABILITY
# or FITNESS FOR A PARTICULAR PURPOSE. See the GNU Lesser General Public
# License for more details.
#
"""
Color conversion for the wheel's 16-bit packed LED colors.

The hardware takes 5-6-5 packed values. Two channel orders show up in
the wild; BGR (blue in the high bits) is what the button and indicator
LEDs accept, RGB is kept for firmware revisions that disagree.
"""

from enum import Enum

from coloraide import Color

from .util import clamp


class ColorOrder(Enum):
    """
    Channel placement inside a packed 16-bit color.

    Each value is (high channel, low channel) as indices into (r, g, b).
    Green always occupies the middle six bits.
    """
    BGR = (2, 0)
    RGB = (0, 2)

    def __init__(self, high: int, low: int):
        self._high = high
        self._low = low

    @property
    def high(self) -> int:
        """Index of the channel stored in bits 11-15."""
        return self._high

    @property
    def low(self) -> int:
        """Index of the channel stored in bits 0-4."""
        return self._low

    @classmethod
    def from_name(cls, name: str) -> 'ColorOrder':
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError('Unknown color order: %s' % name) from None


DEFAULT_ORDER = ColorOrder.BGR


def pack_rgb565(r: int, g: int, b: int, order: ColorOrder = DEFAULT_ORDER) -> int:
    """
    Pack 8-bit channels into a 16-bit 5-6-5 value.

    :param r: red, 0-255
    :param g: green, 0-255
    :param b: blue, 0-255
    :param order: channel order of the packed value

    :return: the packed color
    """
    channels = (int(r) & 0xFF, int(g) & 0xFF, int(b) & 0xFF)
    high = channels[order.high] >> 3
    mid = channels[1] >> 2
    low = channels[order.low] >> 3
    return (high << 11) | (mid << 5) | low


def unpack_rgb565(value: int, order: ColorOrder = DEFAULT_ORDER) -> tuple:
    """
    Expand a packed 16-bit color back to 8-bit (r, g, b).

    The dropped low bits come back as zero, so packing the result
    again yields the same value.
    """
    value = int(value) & 0xFFFF
    channels = [0, 0, 0]
    channels[order.high] = ((value >> 11) & 0x1F) << 3
    channels[1] = ((value >> 5) & 0x3F) << 2
    channels[order.low] = (value & 0x1F) << 3
    return tuple(channels)


def pack_premultiplied(r: int, g: int, b: int, alpha: float,
                       order: ColorOrder = DEFAULT_ORDER) -> int:
    """
    Pack a color with its brightness folded into the channels.

    Indicator LEDs have no intensity channel, so fades are expressed
    by scaling each channel by alpha before packing.

    :param alpha: brightness in the range 0.0 - 1.0
    """
    alpha = clamp(float(alpha), 0.0, 1.0)
    return pack_rgb565(round(r * alpha), round(g * alpha), round(b * alpha), order)


def to_color(value) -> Color:
    """
    Convert a loosely specified value to a Color.

    Accepts CSS names and hex strings, (r, g, b[, a]) tuples of
    0-255 ints, 0xRRGGBB integers and Color instances.
    """
    if value is None:
        return None

    if isinstance(value, Color):
        return value

    if isinstance(value, str):
        return Color(value)

    if isinstance(value, int):
        return Color('srgb', [((value >> 16) & 0xFF) / 255.0,
                              ((value >> 8) & 0xFF) / 255.0,
                              (value & 0xFF) / 255.0])

    if isinstance(value, (tuple, list)) and len(value) in (3, 4):
        alpha = value[3] / 255.0 if len(value) == 4 else 1.0
        return Color('srgb', [value[0] / 255.0, value[1] / 255.0, value[2] / 255.0], alpha)

    raise TypeError('Unable to convert %r to a color' % (value,))


def color_to_rgb(color) -> tuple:
    """
    Get 8-bit (r, g, b, alpha) from any value accepted by to_color
    """
    srgb = to_color(color).convert('srgb')
    channels = tuple(int(round(clamp(srgb.get(name), 0.0, 1.0) * 255))
                     for name in ('red', 'green', 'blue'))
    alpha = srgb.get('alpha')
    if alpha != alpha:
        alpha = 1.0
    return channels + (clamp(alpha, 0.0, 1.0),)


def color_to_rgb565(color, order: ColorOrder = DEFAULT_ORDER,
                    premultiply: bool = False) -> int:
    """
    Pack any value accepted by to_color, optionally folding its
    alpha channel into the result.
    """
    r, g, b, alpha = color_to_rgb(color)
    if premultiply:
        return pack_premultiplied(r, g, b, alpha, order)
    return pack_rgb565(r, g, b, order)
