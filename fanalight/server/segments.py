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
7-segment encoding for the wheel display.

Segment bits are laid out in the usual order, bit 0 is the top
segment "a" through bit 6 for the middle segment "g". Bit 7 is the
decimal point.
"""

from __future__ import annotations

from .frame import DISPLAY_DIGITS, DisplayFrame


DIGITS = (0x3F, 0x06, 0x5B, 0x4F, 0x66, 0x6D, 0x7D, 0x07, 0x7F, 0x6F)

DOT = 0x80
BLANK = 0x00
DASH = 0x40
UNDER = 0x08

# Approximations, several letters share a glyph with a digit
LETTERS = {
    'A': 0x77, 'B': 0x7C, 'C': 0x58, 'D': 0x5E, 'E': 0x79, 'F': 0x71,
    'G': 0x3D, 'H': 0x76, 'I': 0x06, 'J': 0x0E, 'K': 0x75, 'L': 0x38,
    'M': 0x37, 'N': 0x54, 'O': 0x5C, 'P': 0x73, 'Q': 0x67, 'R': 0x50,
    'S': 0x6D, 'T': 0x78, 'U': 0x3E, 'V': 0x18, 'W': 0x7E, 'X': 0x76,
    'Y': 0x6E, 'Z': 0x5B,
}

SYMBOLS = {'-': DASH, '_': UNDER, '.': DOT, ',': DOT, ' ': BLANK}

_DOTS = ('.', ',')

REVERSE_GEAR = -1
NEUTRAL_GEAR = 0
MAX_NUMBER = 999


def digit_segment(digit: int) -> int:
    """
    Get the segments for a single decimal digit, blank if out of range
    """
    if 0 <= digit <= 9:
        return DIGITS[digit]
    return BLANK


def char_segment(char: str) -> int:
    """
    Get the segments for a character.

    Letters are case-insensitive. Anything without a glyph is blank.
    """
    if not char:
        return BLANK
    upper = char.upper()
    if len(upper) == 1 and upper in '0123456789':
        return DIGITS[int(upper)]
    if upper in LETTERS:
        return LETTERS[upper]
    return SYMBOLS.get(upper, BLANK)


def encode_text(text: str | None, right_justify: bool = False) -> DisplayFrame:
    """
    Encode up to three characters of text.

    A dot or comma lights the decimal point of the character before it
    instead of taking a digit of its own. Text that doesn't fill the
    display is padded with blanks, on the right unless right_justify
    is set.

    :param text: The text to show
    :param right_justify: Pad on the left instead of the right

    :return: The display frame
    """
    segs = []
    for char in text or '':
        if char in _DOTS and segs:
            if segs[-1] & DOT:
                if len(segs) >= DISPLAY_DIGITS:
                    break
                segs.append(DOT)
            else:
                segs[-1] |= DOT
            continue

        if len(segs) >= DISPLAY_DIGITS:
            break
        segs.append(char_segment(char))

    padding = [BLANK] * (DISPLAY_DIGITS - len(segs))
    if right_justify:
        segs = padding + segs
    else:
        segs = segs + padding

    return DisplayFrame.from_segments(segs)


def encode_gear(gear: int) -> DisplayFrame:
    """
    Encode a gear in the middle digit: -1 is R, 0 is N, 1-9 as digits.

    Anything else shows N.
    """
    if gear == REVERSE_GEAR:
        seg = LETTERS['R']
    elif 1 <= gear <= 9:
        seg = DIGITS[gear]
    else:
        seg = LETTERS['N']
    return DisplayFrame(BLANK, seg, BLANK)


def parse_gear(gear) -> int:
    """
    Parse a gear string such as "R", "N", "Neutral" or "4".

    Unparseable input is neutral.
    """
    if gear is None:
        return NEUTRAL_GEAR
    if isinstance(gear, int):
        return gear

    gear = str(gear).strip().upper()
    if gear in ('R', 'REVERSE'):
        return REVERSE_GEAR
    if gear in ('', 'N', 'NEUTRAL'):
        return NEUTRAL_GEAR
    try:
        return int(gear)
    except ValueError:
        return NEUTRAL_GEAR


def encode_number(value: int) -> DisplayFrame:
    """
    Encode 0-999 as three digits with leading zeros.

    Values outside the range show 000.
    """
    value = int(value)
    if not 0 <= value <= MAX_NUMBER:
        value = 0
    return DisplayFrame(DIGITS[value // 100], DIGITS[(value // 10) % 10], DIGITS[value % 10])


encode_speed = encode_number
