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
Wheel identification.

The wheel base knows which rim and button module are attached, but
only the vendor SDK can ask it. WheelInterface is the boundary to
that SDK, IdentityPoller turns its answers into capabilities.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, NamedTuple

from fanalight.log import Log
from fanalight.util import Signal

from .capabilities import CapabilityRegistry, WheelCapabilities
from .dirty import DirtyStateTracker
from .hardware import ModuleType, WheelType


NO_WHEEL_NAME = 'No wheel attached'
DETECTING_NAME = 'Detecting...'


class WheelInfo(NamedTuple):
    """
    A single answer from the vendor SDK
    """
    detected: bool
    wheel_type: WheelType
    module_type: ModuleType


@dataclass(frozen=True)
class WheelIdentity:
    """
    The attached wheel and module
    """
    wheel_type: WheelType = WheelType.UNINITIALIZED
    module_type: ModuleType = ModuleType.UNINITIALIZED
    detected: bool = False

    NONE: ClassVar[WheelIdentity]

    @classmethod
    def from_info(cls, info: WheelInfo) -> WheelIdentity:
        return cls(WheelType.coerce(info.wheel_type), ModuleType.coerce(info.module_type),
                   bool(info.detected))

    @property
    def identified(self) -> bool:
        """
        True once a wheel is detected and its type is known. The SDK
        reports a wheel before it can tell which one it is.
        """
        return self.detected and self.wheel_type.is_initialized

    def display_name(self, capabilities: WheelCapabilities) -> str:
        if not self.detected:
            return NO_WHEEL_NAME
        if not self.identified:
            return DETECTING_NAME
        if capabilities.name is not None:
            return capabilities.name
        return 'Unknown wheel (%s)' % self.wheel_type.name


WheelIdentity.NONE = WheelIdentity()


class WheelInterface(ABC):
    """
    Vendor SDK boundary
    """

    @abstractmethod
    def connect(self, product_id: int) -> bool:
        """
        Attach to the wheel base with the given product id.

        :return: True if the SDK accepted the device
        """

    @abstractmethod
    def get_device_info(self) -> WheelInfo:
        """
        Ask the wheel base what is attached.

        May raise if the SDK lost the device.
        """

    @abstractmethod
    def release(self):
        """
        Detach from the wheel base. Safe to call when not connected.
        """

    @property
    def is_connected(self) -> bool:
        return True


class StaticWheelInterface(WheelInterface):
    """
    Reports a fixed, configured identity.

    Used where no vendor SDK is available: the user tells us which
    wheel is attached.
    """

    def __init__(self, wheel_type: WheelType = WheelType.UNINITIALIZED,
                 module_type: ModuleType = ModuleType.UNINITIALIZED,
                 detected: bool | None = None):
        self._wheel_type = wheel_type
        self._module_type = module_type
        if detected is None:
            detected = wheel_type.is_initialized
        self._detected = detected
        self._connected = False


    def connect(self, product_id: int) -> bool:
        self._connected = True
        return True


    def get_device_info(self) -> WheelInfo:
        if not self._connected:
            raise OSError('Wheel interface is not connected')
        return WheelInfo(self._detected, self._wheel_type, self._module_type)


    def release(self):
        self._connected = False


    @property
    def is_connected(self) -> bool:
        return self._connected


    def set_identity(self, wheel_type: WheelType, module_type: ModuleType,
                     detected: bool = True):
        """
        Change the reported identity, as if the rim was swapped
        """
        self._wheel_type = wheel_type
        self._module_type = module_type
        self._detected = detected


class IdentityPoller(object):
    """
    Tracks the attached wheel through repeated polls.

    When the answer changes, capabilities are recomputed, the dirty
    state is reset so the new wheel receives full frames, and then
    wheel_changed fires with the new identity and capabilities.
    """

    def __init__(self, interface: WheelInterface, registry: CapabilityRegistry,
                 tracker: DirtyStateTracker):
        self._logger = Log.get('fanalight.identity')
        self._interface = interface
        self._registry = registry
        self._tracker = tracker

        self._identity = WheelIdentity.NONE
        self._capabilities = WheelCapabilities.NONE

        self.wheel_changed = Signal()


    @property
    def interface(self) -> WheelInterface:
        return self._interface


    @property
    def identity(self) -> WheelIdentity:
        return self._identity


    @property
    def capabilities(self) -> WheelCapabilities:
        return self._capabilities


    @property
    def display_name(self) -> str:
        return self._identity.display_name(self._capabilities)


    def poll(self) -> bool:
        """
        Query the interface and apply any change.

        Errors from the interface are not handled here.

        :return: True if the identity changed
        """
        identity = WheelIdentity.from_info(self._interface.get_device_info())
        if identity == self._identity:
            return False

        self._identity = identity
        if identity.detected:
            self._capabilities = self._registry.resolve(identity.wheel_type,
                                                        identity.module_type)
        else:
            self._capabilities = WheelCapabilities.NONE

        self._logger.info('Wheel changed: detected=%s type=%s module=%s caps=%s '
                          '(button LEDs=%d, encoder LEDs=%d, rev=%d, flag=%d, display=%s)',
                          identity.detected, identity.wheel_type.name,
                          identity.module_type.name,
                          self._capabilities.name or '(none)',
                          self._capabilities.button_led_count,
                          self._capabilities.encoder_led_count,
                          self._capabilities.rev_led_count,
                          self._capabilities.flag_led_count,
                          self._capabilities.display.name)

        self._tracker.force_dirty()
        self.wheel_changed.fire(self._identity, self._capabilities)
        return True


    def reset(self):
        """
        Forget the wheel, without notifying
        """
        self._identity = WheelIdentity.NONE
        self._capabilities = WheelCapabilities.NONE
