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

"""Wheel and module identity enumerations."""

from __future__ import annotations

from enum import IntEnum

from fanalight.util import strip_prefix


FANATEC_VENDOR_ID = 0x0EB7


class _SdkIdentity(IntEnum):
    """
    Base for identities reported by the vendor SDK.

    The SDK names carry an FS_WHEEL_SWTYPE_ style prefix which is
    dropped here, so both "FS_WHEEL_SWTYPE_PSWBMW" and "pswbmw" resolve.
    Numeric values the SDK reports but we have no member for map to
    UNKNOWN.
    """

    @classmethod
    def _prefixes(cls) -> tuple:
        return ()

    @classmethod
    def from_name(cls, name: str):
        """
        Look up a member by name, case-insensitively.

        :param name: Member name, optionally carrying the SDK prefix
        :raises ValueError: if there is no such member
        """
        key = name.strip().upper()
        for prefix in cls._prefixes():
            key = strip_prefix(key, prefix)

        try:
            return cls[key]
        except KeyError:
            raise ValueError('Unknown %s: %s' % (cls.__name__, name)) from None

    @classmethod
    def coerce(cls, value):
        """
        Convert a member, name or raw SDK value to a member.

        Names and values without a member map to UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls.from_name(value)
            except ValueError:
                return cls['UNKNOWN']
        try:
            return cls(int(value))
        except ValueError:
            return cls['UNKNOWN']

    @property
    def is_initialized(self) -> bool:
        return self.value != 0


class WheelType(_SdkIdentity):
    """
    Steering wheel rims and hubs.
    """

    UNINITIALIZED = 0
    PSWBMW = 1
    PHUB = 2
    UNKNOWN = 0xFF

    @classmethod
    def _prefixes(cls) -> tuple:
        return ('FS_WHEEL_SWTYPE_', 'FS_WHEEL_')


class ModuleType(_SdkIdentity):
    """
    Button modules that can be attached to a hub.
    """

    UNINITIALIZED = 0
    PBMR = 1
    PBME = 2
    UNKNOWN = 0xFF

    @classmethod
    def _prefixes(cls) -> tuple:
        return ('FS_WHEEL_SW_MODULETYPE_', 'FS_MODULE_')
