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
HID adapter layer.

Thin wrapper around the cython-hidapi (hid) package, plus enough HID
report descriptor parsing to tell the wheel's interfaces apart by
their output report length where the platform path doesn't name
the collection.
"""

from __future__ import annotations

import os

import hid


# Item types of the short item prefix
_ITEM_MAIN = 0
_ITEM_GLOBAL = 1

# Main item tags
_TAG_OUTPUT = 0x9

# Global item tags
_TAG_REPORT_SIZE = 0x7
_TAG_REPORT_ID = 0x8
_TAG_REPORT_COUNT = 0x9
_TAG_PUSH = 0xA
_TAG_POP = 0xB

_LONG_ITEM = 0xFE

SYSFS_HIDRAW = '/sys/class/hidraw'


def parse_output_report_lengths(descriptor: bytes) -> dict:
    """
    Compute the length of each output report declared in a HID
    report descriptor.

    Lengths include the report id byte when the device uses
    numbered reports, matching what has to be written to the device.

    :param descriptor: The raw report descriptor
    :return: Dict of report id (0 if unnumbered) to length in bytes
    """
    descriptor = bytes(descriptor)
    bits = {}
    state = {'size': 0, 'count': 0, 'id': 0}
    stack = []

    pos = 0
    while pos < len(descriptor):
        prefix = descriptor[pos]
        pos += 1

        if prefix == _LONG_ITEM:
            if pos >= len(descriptor):
                break
            pos += 2 + descriptor[pos]
            continue

        size = (0, 1, 2, 4)[prefix & 0x3]
        item_type = (prefix >> 2) & 0x3
        tag = prefix >> 4
        value = int.from_bytes(descriptor[pos:pos + size], 'little')
        pos += size

        if item_type == _ITEM_GLOBAL:
            if tag == _TAG_REPORT_SIZE:
                state['size'] = value
            elif tag == _TAG_REPORT_COUNT:
                state['count'] = value
            elif tag == _TAG_REPORT_ID:
                state['id'] = value
            elif tag == _TAG_PUSH:
                stack.append(dict(state))
            elif tag == _TAG_POP and stack:
                state = stack.pop()

        elif item_type == _ITEM_MAIN and tag == _TAG_OUTPUT:
            report_id = state['id']
            bits[report_id] = bits.get(report_id, 0) + state['size'] * state['count']

    return {report_id: (total + 7) // 8 + (1 if report_id else 0)
            for report_id, total in bits.items()}


def read_report_descriptor(path) -> bytes | None:
    """
    Read the report descriptor of a hidraw node from sysfs.

    :param path: Device path as reported by enumeration, /dev/hidrawN
    :return: The descriptor, or None if it isn't available
    """
    if isinstance(path, bytes):
        path = path.decode('utf-8', 'replace')

    sysname = os.path.basename(path)
    if not sysname.startswith('hidraw'):
        return None

    desc_path = os.path.join(SYSFS_HIDRAW, sysname, 'device', 'report_descriptor')
    try:
        with open(desc_path, 'rb') as desc:
            return desc.read()
    except OSError:
        return None


class DeviceInfo:
    """
    Device info wrapper around the dicts returned by hid.enumerate
    """
    def __init__(self, info_dict: dict):
        self._info = info_dict
        self._max_output = None

    @property
    def path(self) -> bytes:
        return self._info['path']

    @property
    def path_str(self) -> str:
        path = self.path
        if isinstance(path, bytes):
            return path.decode('utf-8', 'replace')
        return str(path)

    @property
    def vendor_id(self) -> int:
        return self._info['vendor_id']

    @property
    def product_id(self) -> int:
        return self._info['product_id']

    @property
    def serial_number(self) -> str:
        return self._info.get('serial_number') or ''

    @property
    def manufacturer_string(self) -> str:
        return self._info.get('manufacturer_string') or ''

    @property
    def product_string(self) -> str:
        return self._info.get('product_string') or ''

    @property
    def usage_page(self) -> int:
        return self._info.get('usage_page', 0)

    @property
    def usage(self) -> int:
        return self._info.get('usage', 0)

    @property
    def interface_number(self) -> int:
        return self._info.get('interface_number', -1)

    @property
    def max_output_report_length(self) -> int:
        """
        Longest output report of this interface, 0 if unknown
        """
        if self._max_output is None:
            descriptor = read_report_descriptor(self.path)
            if descriptor:
                lengths = parse_output_report_lengths(descriptor)
                self._max_output = max(lengths.values(), default=0)
            else:
                self._max_output = 0
        return self._max_output

    def __repr__(self):
        return (f"DeviceInfo(vendor_id=0x{self.vendor_id:04x}, "
                f"product_id=0x{self.product_id:04x}, "
                f"interface={self.interface_number}, path={self.path_str})")


class Device:
    """
    An open HID device
    """
    def __init__(self, devinfo: DeviceInfo, blocking: bool = False):
        self._devinfo = devinfo
        self._device = hid.device()
        self._device.open_path(devinfo.path)
        self._device.set_nonblocking(0 if blocking else 1)

    @property
    def info(self) -> DeviceInfo:
        return self._devinfo

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def close(self):
        """Close the device."""
        if self._device:
            self._device.close()
            self._device = None

    def write(self, data: bytes) -> int:
        """
        Write an output report, the first byte is the report id.

        :raises OSError: if the device is closed or the write fails
        """
        if self._device is None:
            raise OSError('Device is closed')
        result = self._device.write(bytes(data))
        if result < 0:
            raise OSError('HID write failed: %s' % self._device.error())
        return result

    def get_product_string(self) -> str:
        if self._device is None:
            return ''
        return self._device.get_product_string() or ''


def enumerate(vendor_id: int = 0, product_id: int = 0) -> list:
    """
    Enumerate HID devices.

    Returns a list of DeviceInfo objects.
    """
    devices = hid.enumerate(vendor_id, product_id)
    return [DeviceInfo(d) for d in devices]
