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
Various helper functions that are used across the library.
"""


def clamp(value, min_, max_):
    """
    Constrain a value to the specified range

    :param value: Input value
    :param min_: Range minimum
    :param max_: Range maximum

    :return: The constrained value
    """
    return max(min_, min(value, max_))


def hexdump(data) -> str:
    """
    Format a buffer as space separated hex octets
    """
    return ' '.join('%02x' % b for b in bytes(data))


def strip_prefix(name: str, prefix: str) -> str:
    """
    Remove prefix from name if it is present
    """
    if name.startswith(prefix):
        return name[len(prefix):]
    return name


class Signal(object):
    """
    A simple signalling construct.

    Listeners may connect() to this signal, and their handlers will
    be invoked when fire() is called. Handlers run in the order
    they were connected.
    """
    def __init__(self):
        self._handlers = []


    def connect(self, handler):
        """
        Connect a handler to this signal

        :param handler: Function to invoke when the signal fires
        """
        if handler not in self._handlers:
            self._handlers.append(handler)


    def disconnect(self, handler):
        """
        Remove a previously connected handler
        """
        if handler in self._handlers:
            self._handlers.remove(handler)


    def fire(self, *args, **kwargs):
        """
        Fire the signal, invoking all connected handlers

        :params args: Arguments to call handlers with
        """
        for handler in list(self._handlers):
            handler(*args, **kwargs)
