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
Suppression of redundant writes.

The hardware state is only known through what was last written to
it, so the tracker keeps a snapshot per output channel and compares
new frames against it. Snapshots are only stored once a write has
succeeded, a failed write is retried with the next frame.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

import numpy as np

from .frame import DisplayFrame, Frame, IndicatorFrame, IndicatorGroup, LedFrame


class Channel(Enum):
    """
    Independently tracked outputs
    """
    COLORS = 'colors'
    INTENSITIES = 'intensities'
    REV = 'rev'
    FLAG = 'flag'
    DISPLAY = 'display'


_INDICATOR_CHANNELS = {
    IndicatorGroup.REV: Channel.REV,
    IndicatorGroup.FLAG: Channel.FLAG,
}


class LedChange(NamedTuple):
    """
    Which halves of an LED frame differ from the hardware state
    """
    colors_changed: bool
    intensities_changed: bool

    @property
    def unchanged(self) -> bool:
        return not (self.colors_changed or self.intensities_changed)

    @property
    def both_changed(self) -> bool:
        return self.colors_changed and self.intensities_changed


def channels_of(frame: Frame) -> tuple:
    """
    Get the channels written by a frame
    """
    if isinstance(frame, LedFrame):
        return (Channel.COLORS, Channel.INTENSITIES)
    if isinstance(frame, IndicatorFrame):
        return (_INDICATOR_CHANNELS[frame.group],)
    if isinstance(frame, DisplayFrame):
        return (Channel.DISPLAY,)
    raise ValueError('Unknown frame type: %r' % (frame,))


def _snapshot(frame: Frame, channel: Channel) -> np.ndarray:
    if channel == Channel.COLORS:
        return frame.colors
    if channel == Channel.INTENSITIES:
        return frame.intensities
    if channel == Channel.DISPLAY:
        return np.array(frame.segments, dtype=np.uint8)
    return frame.colors


class DirtyStateTracker(object):
    """
    Tracks the last successfully written state of each channel.

    Every channel starts out force-dirty, so the first frame after
    creation, a reconnect or a wheel change is always written.
    """

    def __init__(self):
        self._last = {}
        self._forced = set(Channel)


    def _is_dirty(self, frame: Frame, channel: Channel) -> bool:
        if channel in self._forced:
            return True
        last = self._last.get(channel)
        if last is None:
            return True
        return not np.array_equal(last, _snapshot(frame, channel))


    def update(self, frame: Frame):
        """
        Compare a frame against the last written state.

        Nothing is stored, call commit() once the write succeeded.

        :param frame: The frame about to be written
        :return: A LedChange for LED frames, True if changed otherwise
        """
        if isinstance(frame, LedFrame):
            return LedChange(self._is_dirty(frame, Channel.COLORS),
                             self._is_dirty(frame, Channel.INTENSITIES))

        return any(self._is_dirty(frame, channel) for channel in channels_of(frame))


    def commit(self, frame: Frame):
        """
        Record a frame as written to the hardware
        """
        for channel in channels_of(frame):
            self._last[channel] = _snapshot(frame, channel).copy()
            self._forced.discard(channel)


    def force_dirty(self):
        """
        Mark every channel dirty so the next frame of each kind is
        written regardless of the stored snapshot
        """
        self._forced = set(Channel)


    def is_forced(self, channel: Channel) -> bool:
        return channel in self._forced


    def last(self, channel: Channel) -> np.ndarray | None:
        """
        Get the last committed snapshot of a channel
        """
        return self._last.get(channel)
