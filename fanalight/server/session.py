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
Ownership of the two HID interfaces of a connected wheel base.

The base exposes several HID collections. Two of them are used here:

    wide    col03, 64 byte reports: button LEDs and indicators
    narrow  col01, 8 byte reports: display and config

Where the platform doesn't put the collection into the device path
the interfaces are told apart by their output report length.
"""

from __future__ import annotations

from contextlib import suppress

from fanalight.log import Log

from . import hidadapter
from .hardware import FANATEC_VENDOR_ID
from .report import NARROW_REPORT_SIZE, WIDE_REPORT_SIZE


DEFAULT_PRODUCT_NAME = 'Fanatec Device'

WIDE_PATH_TAG = 'col03'
NARROW_PATH_TAG = 'col01'

# Output report lengths with and without the report id byte
WIDE_REPORT_LENGTHS = (WIDE_REPORT_SIZE, WIDE_REPORT_SIZE + 1)
NARROW_REPORT_LENGTHS = (NARROW_REPORT_SIZE, NARROW_REPORT_SIZE + 1)


def enumerate_product_ids(vendor_id: int = FANATEC_VENDOR_ID) -> list:
    """
    List the distinct product ids present under a vendor id,
    in enumeration order
    """
    pids = []
    for info in hidadapter.enumerate(vendor_id, 0):
        if info.product_id not in pids:
            pids.append(info.product_id)
    return pids


def select_interfaces(infos: list) -> tuple:
    """
    Pick the wide and narrow interfaces from the enumerated
    collections of one device.

    :param infos: DeviceInfo of every collection
    :return: Tuple of (wide, narrow), either may be None
    """
    wide = narrow = None

    for info in infos:
        path = info.path_str.lower()
        if wide is None and WIDE_PATH_TAG in path:
            wide = info
        elif narrow is None and NARROW_PATH_TAG in path:
            narrow = info

    if wide is None or narrow is None:
        for info in infos:
            if info is wide or info is narrow:
                continue
            length = info.max_output_report_length
            if wide is None and length in WIDE_REPORT_LENGTHS:
                wide = info
            elif narrow is None and length in NARROW_REPORT_LENGTHS:
                narrow = info

    return wide, narrow


class DeviceSession(object):
    """
    The open HID handles of one wheel base.

    Sending never raises. Transport errors are logged and reported
    through the return value so the caller can retry later.
    """

    def __init__(self, vendor_id: int = FANATEC_VENDOR_ID):
        self._logger = Log.get('fanalight.session')
        self._vendor_id = vendor_id
        self._product_id = None
        self._wide = None
        self._narrow = None
        self._product_name = DEFAULT_PRODUCT_NAME


    @property
    def vendor_id(self) -> int:
        return self._vendor_id


    @property
    def product_id(self) -> int | None:
        return self._product_id


    @property
    def product_name(self) -> str:
        return self._product_name


    @property
    def wide_path(self) -> str | None:
        if self._wide is None:
            return None
        return self._wide.info.path_str


    @property
    def narrow_path(self) -> str | None:
        if self._narrow is None:
            return None
        return self._narrow.info.path_str


    @property
    def has_narrow(self) -> bool:
        return self._narrow is not None


    @property
    def is_stream_open(self) -> bool:
        """
        True if the wide interface handle is held
        """
        return self._wide is not None and self._wide.is_open


    def open(self, product_id: int) -> bool:
        """
        Open the interfaces of the given product.

        The narrow interface is optional, a wheel base without one
        can still drive its LEDs.

        :param product_id: USB product id
        :return: True if at least the wide interface was opened
        """
        self.close()

        try:
            infos = hidadapter.enumerate(self._vendor_id, product_id)
        except OSError as err:
            self._logger.info('Enumeration of %04x:%04x failed: %s',
                              self._vendor_id, product_id, err)
            return False

        if not infos:
            self._logger.debug('No interfaces found for %04x:%04x', self._vendor_id, product_id)
            return False

        wide_info, narrow_info = select_interfaces(infos)
        if wide_info is None:
            self._logger.info('No LED interface found for %04x:%04x (%d collections)',
                              self._vendor_id, product_id, len(infos))
            return False

        try:
            self._wide = hidadapter.Device(wide_info)
        except (OSError, ValueError) as err:
            self._logger.warning('Unable to open LED interface %s: %s', wide_info.path_str, err)
            self._wide = None
            return False

        if narrow_info is not None:
            try:
                self._narrow = hidadapter.Device(narrow_info)
            except (OSError, ValueError) as err:
                self._logger.info('Unable to open display interface %s: %s',
                                  narrow_info.path_str, err)
                self._narrow = None
        else:
            self._logger.debug('No display interface found for %04x:%04x',
                               self._vendor_id, product_id)

        self._product_id = product_id
        self._product_name = wide_info.product_string or DEFAULT_PRODUCT_NAME

        self._logger.info('Opened %s (%04x:%04x) wide=%s narrow=%s',
                          self._product_name, self._vendor_id, product_id,
                          self.wide_path, self.narrow_path)
        return True


    def send(self, data) -> bool:
        """
        Write a report to the interface matching its size.

        :param data: A 64 byte LED report or an 8 byte config report
        :return: True if the report was written
        """
        if len(data) == WIDE_REPORT_SIZE:
            device, name = self._wide, 'LED'
        elif len(data) == NARROW_REPORT_SIZE:
            device, name = self._narrow, 'display'
        else:
            self._logger.error('No interface takes %d byte reports', len(data))
            return False

        if device is None:
            self._logger.debug('Dropping %s report, interface not open', name)
            return False

        try:
            device.write(data)
        except (OSError, ValueError) as err:
            self._logger.warning('Write to %s interface failed: %s', name, err)
            return False

        return True


    def is_device_present(self) -> bool:
        """
        Check that the product is still enumerated
        """
        if self._product_id is None:
            return False
        try:
            return len(hidadapter.enumerate(self._vendor_id, self._product_id)) > 0
        except OSError as err:
            self._logger.debug('Presence check failed: %s', err)
            return False


    def close(self):
        """
        Release both handles. Safe to call repeatedly.
        """
        for device in (self._wide, self._narrow):
            if device is not None:
                with suppress(Exception):
                    device.close()

        self._wide = None
        self._narrow = None
        self._product_id = None
        self._product_name = DEFAULT_PRODUCT_NAME
