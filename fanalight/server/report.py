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

# pylint: disable=invalid-name

"""
Encoding and decoding of the wheel's HID output reports.

Two report sizes are used. The wide interface takes 64 byte reports
for the button LEDs and the indicator groups:

    Bytes       Contents
    ---------   ----------------------------------------
    0 - 1       FF 01
    2           Sub command (02 colors, 03 intensities,
                00 rev indicators, 01 flag indicators)
    3 - ...     Payload, colors as big-endian 16-bit
    ...         Apply flag (colors and intensities only)
    rest        Zero

The narrow interface takes 8 byte config reports:

    Bytes       Contents
    ---------   ----------------------------------------
    0 - 3       01 F8 09 01
    4           Sub command (02 display, 18 display mode,
                A0 host hello)
    5 - 7       Data

LED color and intensity reports carry an apply flag. A staged report
is latched by the hardware but not shown until a committed report
follows, so a color change and an intensity change can be presented
together.
"""

from __future__ import annotations

import struct
from enum import IntEnum

import numpy as np

from fanalight.log import LOG_PROTOCOL_TRACE, Log
from fanalight.util import hexdump

from .frame import (DisplayFrame, GLOBAL_INTENSITY, INTENSITY_COUNT, IndicatorFrame,
                    IndicatorGroup, LED_COUNT)


WIDE_REPORT_SIZE = 64
NARROW_REPORT_SIZE = 8

LED_HEADER = (0xFF, 0x01)
CONFIG_HEADER = (0x01, 0xF8, 0x09, 0x01)

PAYLOAD_OFFSET = 3

# Colors occupy bytes 3-26, the flag follows
COLOR_APPLY_OFFSET = PAYLOAD_OFFSET + LED_COUNT * 2

# Only intensities 0-14 fit before the flag byte. The last global
# channel is never transmitted.
INTENSITY_WIRE_COUNT = 15
INTENSITY_APPLY_OFFSET = PAYLOAD_OFFSET + INTENSITY_WIRE_COUNT


class Apply(IntEnum):
    """
    Apply flag of the LED color and intensity reports
    """
    STAGE = 0x00
    COMMIT = 0x01


class LedCommand(IntEnum):
    """
    Sub commands of the wide LED report
    """
    REV = 0x00
    FLAG = 0x01
    COLORS = 0x02
    INTENSITIES = 0x03


class ConfigCommand(IntEnum):
    """
    Sub commands of the narrow config report
    """
    DISPLAY = 0x02
    DISPLAY_MODE = 0x18
    HOST_HELLO = 0xA0


class DisplayMode(IntEnum):
    """
    Data byte of the DISPLAY_MODE config command
    """
    DISABLE = 0x01
    ENABLE = 0x02


def _hexdump(data, tag=''):
    logger = Log.get('fanalight.report')
    if logger.isEnabledFor(LOG_PROTOCOL_TRACE):
        logger.log(LOG_PROTOCOL_TRACE, '%s%s', tag, hexdump(data))


def _led_buffer(command: int) -> np.ndarray:
    buf = np.zeros(shape=(WIDE_REPORT_SIZE,), dtype=np.uint8)
    struct.pack_into('=BBB', buf, 0, LED_HEADER[0], LED_HEADER[1], command)
    return buf


def _pack_colors(buf: np.ndarray, colors):
    colors = [int(c) & 0xFFFF for c in colors]
    struct.pack_into('>%dH' % len(colors), buf, PAYLOAD_OFFSET, *colors)


def _commit_flag(commit) -> int:
    return Apply.COMMIT if commit else Apply.STAGE


def encode_color_report(colors, commit: bool = True) -> bytes:
    """
    Build the report carrying the twelve button LED colors.

    :param colors: Twelve 16-bit packed colors
    :param commit: Show the colors immediately instead of staging them

    :return: A 64 byte report
    """
    if len(colors) != LED_COUNT:
        raise ValueError('Color report requires %d colors, got %d' % (LED_COUNT, len(colors)))

    buf = _led_buffer(LedCommand.COLORS)
    _pack_colors(buf, colors)
    buf[COLOR_APPLY_OFFSET] = _commit_flag(commit)

    data = buf.tobytes()
    _hexdump(data, 'color --> ')
    return data


def encode_intensity_report(intensities, commit: bool = True) -> bytes:
    """
    Build the report carrying the LED intensities.

    Intensities 0-14 are sent as-is, they are not range checked.
    The apply flag takes the place of the sixteenth slot.

    :param intensities: Sixteen intensity values
    :param commit: Show the new state immediately instead of staging it

    :return: A 64 byte report
    """
    if len(intensities) != INTENSITY_COUNT:
        raise ValueError('Intensity report requires %d values, got %d' % \
            (INTENSITY_COUNT, len(intensities)))

    buf = _led_buffer(LedCommand.INTENSITIES)
    for idx in range(INTENSITY_WIRE_COUNT):
        buf[PAYLOAD_OFFSET + idx] = int(intensities[idx]) & 0xFF
    buf[INTENSITY_APPLY_OFFSET] = _commit_flag(commit)

    data = buf.tobytes()
    _hexdump(data, 'intensity --> ')
    return data


def encode_indicator_report(group: IndicatorGroup, colors) -> bytes:
    """
    Build the report for one indicator group.

    Indicator LEDs have no apply flag or intensity channel, the
    colors are shown as soon as the report arrives.

    :param group: The indicator group
    :param colors: One packed color per LED of the group

    :return: A 64 byte report
    """
    if not isinstance(group, IndicatorGroup):
        raise ValueError('Invalid indicator group: %r' % (group,))
    if len(colors) != group.count:
        raise ValueError('%s indicators require %d colors, got %d' % \
            (group.name, group.count, len(colors)))

    buf = _led_buffer(group.selector)
    _pack_colors(buf, colors)

    data = buf.tobytes()
    _hexdump(data, '%s --> ' % group.name.lower())
    return data


def encode_config_report(command: int, d0: int = 0, d1: int = 0, d2: int = 0) -> bytes:
    """
    Build an 8 byte config report for the narrow interface.

    :param command: Config sub command
    :param d0: First data byte
    :param d1: Second data byte
    :param d2: Third data byte

    :return: An 8 byte report
    """
    buf = np.zeros(shape=(NARROW_REPORT_SIZE,), dtype=np.uint8)
    struct.pack_into('=8B', buf, 0, *CONFIG_HEADER, int(command) & 0xFF,
                     int(d0) & 0xFF, int(d1) & 0xFF, int(d2) & 0xFF)

    data = buf.tobytes()
    _hexdump(data, 'config --> ')
    return data


def encode_display_report(seg1: int, seg2: int, seg3: int) -> bytes:
    """
    Build the report setting the three display digits.
    """
    return encode_config_report(ConfigCommand.DISPLAY, seg1, seg2, seg3)


def encode_display_frame(frame: DisplayFrame) -> bytes:
    return encode_display_report(*frame.segments)


def encode_display_mode_report(enable: bool = True) -> bytes:
    """
    Build the report switching the display to host-driven segments.
    """
    mode = DisplayMode.ENABLE if enable else DisplayMode.DISABLE
    return encode_config_report(ConfigCommand.DISPLAY_MODE, mode)


def encode_host_hello_report() -> bytes:
    return encode_config_report(ConfigCommand.HOST_HELLO)


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────


def _check_led_report(data, command: int) -> bytes:
    data = bytes(data)
    if len(data) != WIDE_REPORT_SIZE:
        raise ValueError('LED report must be %d bytes, got %d' % (WIDE_REPORT_SIZE, len(data)))
    if data[0] != LED_HEADER[0] or data[1] != LED_HEADER[1] or data[2] != command:
        raise ValueError('Bad LED report header: %s' % hexdump(data[:3]))
    return data


def _unpack_colors(data: bytes, count: int) -> list:
    return list(struct.unpack_from('>%dH' % count, data, PAYLOAD_OFFSET))


def decode_color_report(data) -> tuple:
    """
    Parse a color report.

    :return: Tuple of (colors, commit)
    """
    data = _check_led_report(data, LedCommand.COLORS)
    return _unpack_colors(data, LED_COUNT), data[COLOR_APPLY_OFFSET] == Apply.COMMIT


def decode_intensity_report(data) -> tuple:
    """
    Parse an intensity report.

    The untransmitted global slot comes back as 7.

    :return: Tuple of (intensities, commit)
    """
    data = _check_led_report(data, LedCommand.INTENSITIES)
    intensities = list(data[PAYLOAD_OFFSET:PAYLOAD_OFFSET + INTENSITY_WIRE_COUNT])
    intensities.append(GLOBAL_INTENSITY)
    return intensities, data[INTENSITY_APPLY_OFFSET] == Apply.COMMIT


def decode_indicator_report(data) -> IndicatorFrame:
    """
    Parse an indicator report back into a frame.
    """
    data = bytes(data)
    if len(data) != WIDE_REPORT_SIZE:
        raise ValueError('LED report must be %d bytes, got %d' % (WIDE_REPORT_SIZE, len(data)))
    group = IndicatorGroup.from_selector(data[2])
    _check_led_report(data, group.selector)
    return IndicatorFrame(group, _unpack_colors(data, group.count))


def decode_config_report(data) -> tuple:
    """
    Parse a config report.

    :return: Tuple of (command, d0, d1, d2)
    """
    data = bytes(data)
    if len(data) != NARROW_REPORT_SIZE:
        raise ValueError('Config report must be %d bytes, got %d' % \
            (NARROW_REPORT_SIZE, len(data)))
    if tuple(data[:4]) != CONFIG_HEADER:
        raise ValueError('Bad config report header: %s' % hexdump(data[:4]))
    return tuple(data[4:])


def decode_display_report(data) -> DisplayFrame:
    """
    Parse a display report back into a frame.
    """
    command, seg1, seg2, seg3 = decode_config_report(data)
    if command != ConfigCommand.DISPLAY:
        raise ValueError('Not a display report: sub command 0x%02x' % command)
    return DisplayFrame(seg1, seg2, seg3)
