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
Frames pushed to the wheel.

A frame is one complete state of a single output: the button LED
colors and intensities, one indicator group, or the 7-segment display.
Frames are immutable and validated on construction.
"""

from __future__ import annotations

from enum import Enum

import numpy as np


LED_COUNT = 12
INTENSITY_COUNT = 16
GLOBAL_INTENSITY = 7
DISPLAY_DIGITS = 3


class IndicatorGroup(Enum):
    """
    Indicator LED groups on the wide interface.

    Each value is a tuple of (report selector, led count).
    """

    REV = (0x00, 9)
    FLAG = (0x01, 6)

    def __init__(self, selector: int, count: int):
        self._selector = selector
        self._count = count

    @property
    def selector(self) -> int:
        """Report selector byte for this group."""
        return self._selector

    @property
    def count(self) -> int:
        """Number of LEDs in this group."""
        return self._count

    @classmethod
    def from_selector(cls, selector: int) -> IndicatorGroup:
        for group in cls:
            if group.selector == selector:
                return group
        raise ValueError('Unknown indicator group selector: 0x%02x' % selector)


def _as_array(values, dtype, name: str) -> np.ndarray:
    raw = np.asarray(values).ravel()
    limit = np.iinfo(dtype).max
    if raw.shape[0] > 0 and (raw.min() < 0 or raw.max() > limit):
        raise ValueError('%s must be in the range 0-%d' % (name, limit))
    return raw.astype(dtype)


def _readonly(values, dtype, name: str, counts: tuple) -> np.ndarray:
    arr = _as_array(values, dtype, name)
    if arr.shape[0] not in counts:
        raise ValueError('%s requires %s values, got %d' % \
            (name, ' or '.join(str(c) for c in counts), arr.shape[0]))
    arr.setflags(write=False)
    return arr


class Frame(object):
    """
    Base class of all frames
    """
    __slots__ = ()

    def _key(self) -> tuple:
        raise NotImplementedError

    def __eq__(self, other):
        if other.__class__ is not self.__class__:
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((self.__class__.__name__,) + self._key())


class LedFrame(Frame):
    """
    Colors and intensities of the button and encoder LEDs.

    Colors are 16-bit packed values. Intensities hold one slot per
    LED followed by four global channels which the hardware expects
    to stay at 7. Twelve intensities may be given, the globals are
    appended; when sixteen are given the globals are overwritten.
    """
    __slots__ = ('_colors', '_intensities')

    def __init__(self, colors, intensities):
        self._colors = _readonly(colors, np.uint16, 'colors', (LED_COUNT,))

        levels = _as_array(intensities, np.uint8, 'intensities')
        if levels.shape[0] == LED_COUNT:
            levels = np.concatenate((levels, np.zeros(INTENSITY_COUNT - LED_COUNT, np.uint8)))
        if levels.shape[0] != INTENSITY_COUNT:
            raise ValueError('intensities requires %d or %d values, got %d' % \
                (LED_COUNT, INTENSITY_COUNT, levels.shape[0]))
        levels = levels.copy()
        levels[LED_COUNT:] = GLOBAL_INTENSITY
        levels.setflags(write=False)
        self._intensities = levels

    @classmethod
    def blank(cls) -> LedFrame:
        return cls([0] * LED_COUNT, [0] * LED_COUNT)

    @property
    def colors(self) -> np.ndarray:
        return self._colors

    @property
    def intensities(self) -> np.ndarray:
        return self._intensities

    def _key(self) -> tuple:
        return (self._colors.tobytes(), self._intensities.tobytes())

    def __repr__(self):
        return 'LedFrame(colors=[%s], intensities=[%s])' % \
            (', '.join('0x%04x' % c for c in self._colors),
             ', '.join(str(i) for i in self._intensities))


class IndicatorFrame(Frame):
    """
    Packed colors for one indicator group, 0 is off
    """
    __slots__ = ('_group', '_colors')

    def __init__(self, group: IndicatorGroup, colors):
        if not isinstance(group, IndicatorGroup):
            raise ValueError('Invalid indicator group: %r' % (group,))
        self._group = group
        self._colors = _readonly(colors, np.uint16, '%s colors' % group.name.lower(),
                                 (group.count,))

    @classmethod
    def blank(cls, group: IndicatorGroup) -> IndicatorFrame:
        return cls(group, [0] * group.count)

    @property
    def group(self) -> IndicatorGroup:
        return self._group

    @property
    def colors(self) -> np.ndarray:
        return self._colors

    def _key(self) -> tuple:
        return (self._group, self._colors.tobytes())

    def __repr__(self):
        return 'IndicatorFrame(%s, [%s])' % \
            (self._group.name, ', '.join('0x%04x' % c for c in self._colors))


class DisplayFrame(Frame):
    """
    The three raw segment bytes of the display
    """
    __slots__ = ('_segments',)

    def __init__(self, seg1: int, seg2: int, seg3: int):
        for seg in (seg1, seg2, seg3):
            if not 0 <= int(seg) <= 0xFF:
                raise ValueError('Segment value out of range: %r' % (seg,))
        self._segments = (int(seg1), int(seg2), int(seg3))

    @classmethod
    def from_segments(cls, segments) -> DisplayFrame:
        segments = tuple(segments)
        if len(segments) != DISPLAY_DIGITS:
            raise ValueError('Display requires %d segments, got %d' % \
                (DISPLAY_DIGITS, len(segments)))
        return cls(*segments)

    @classmethod
    def blank(cls) -> DisplayFrame:
        return cls(0, 0, 0)

    @property
    def segments(self) -> tuple:
        return self._segments

    def _key(self) -> tuple:
        return self._segments

    def __repr__(self):
        return 'DisplayFrame(%s)' % ' '.join('%02x' % s for s in self._segments)
