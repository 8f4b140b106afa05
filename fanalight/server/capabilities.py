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

"""Wheel capability profiles and their lookup."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterator

from fanalight.log import Log

from .hardware import ModuleType, WheelType


class DisplayType(Enum):
    """
    Display fitted to a wheel or module
    """
    NONE = 'none'

    # 3 character 7-segment style display
    BASIC = 'basic'

    # Larger display with ITM pages
    ITM = 'itm'


@dataclass(frozen=True)
class WheelCapabilities:
    """
    What a wheel/module combination can show.

    The NONE instance stands in when nothing, or nothing known, is
    attached. It has no name and no outputs.
    """

    name: str | None = None
    short_name: str | None = None
    button_led_count: int = 0
    encoder_led_count: int = 0
    rev_led_count: int = 0
    flag_led_count: int = 0
    display: DisplayType = DisplayType.NONE

    NONE: ClassVar[WheelCapabilities]

    @property
    def total_led_count(self) -> int:
        """Number of button and encoder LEDs driven by LED frames."""
        return self.button_led_count + self.encoder_led_count

    @property
    def has_rev_leds(self) -> bool:
        return self.rev_led_count > 0

    @property
    def has_flag_leds(self) -> bool:
        return self.flag_led_count > 0

    @property
    def has_display(self) -> bool:
        return self.display != DisplayType.NONE


WheelCapabilities.NONE = WheelCapabilities()


def _type_name(value) -> str:
    return value.name


@dataclass(frozen=True)
class DeviceConfig:
    """
    A selectable wheel configuration and its capabilities.
    """

    wheel_type: WheelType
    module_type: ModuleType
    capabilities: WheelCapabilities

    @property
    def device_type_id(self) -> str:
        """
        Stable identifier, "Fanatec_PSWBMW" or "Fanatec_PHUB_PBMR"
        """
        if self.module_type.is_initialized:
            return 'Fanatec_%s_%s' % (_type_name(self.wheel_type), _type_name(self.module_type))
        return 'Fanatec_%s' % _type_name(self.wheel_type)

    @property
    def parent_device_type_id(self) -> str | None:
        """
        Identifier shared by every hub carrying the same module
        """
        if not self.module_type.is_initialized:
            return None
        return 'Fanatec_Module_%s' % _type_name(self.module_type)


class CapabilityRegistry(object):
    """
    Maps detected wheel and module types to capabilities.

    Wheels are looked up directly. A hub on its own has nothing to
    drive, so for hubs the attached module decides the capabilities.
    """

    def __init__(self, defaults: bool = True):
        self._logger = Log.get('fanalight.capabilities')
        self._wheels = OrderedDict()
        self._modules = OrderedDict()
        self._hubs = set()

        if defaults:
            self._register_defaults()


    def _register_defaults(self):
        self.register(WheelType.PSWBMW, WheelCapabilities(
            name='Fanatec Podium Steering Wheel BMW M4 GT3',
            short_name='Fanatec BMW M4 GT3',
            button_led_count=12,
            display=DisplayType.BASIC))

        self.register(WheelType.PHUB, WheelCapabilities(
            name='Fanatec Podium Hub',
            short_name='Fanatec Podium Hub'), hub=True)

        self.register_module(ModuleType.PBMR, WheelCapabilities(
            name='Fanatec Podium Hub + Button Module Rally',
            short_name='Fanatec Podium Hub + BMR',
            button_led_count=9,
            encoder_led_count=3,
            display=DisplayType.BASIC))

        self.register_module(ModuleType.PBME, WheelCapabilities(
            name='Fanatec Podium Hub + Button Module Endurance',
            short_name='Fanatec Podium Hub + BME',
            rev_led_count=9,
            flag_led_count=6,
            display=DisplayType.ITM))


    def register(self, wheel_type: WheelType, capabilities: WheelCapabilities,
                 hub: bool = False):
        """
        Add or replace the profile of a wheel.

        :param wheel_type: The wheel type
        :param capabilities: Its capabilities, for hubs the bare hub
        :param hub: Resolve through the module table
        """
        self._wheels[wheel_type] = capabilities
        if hub:
            self._hubs.add(wheel_type)
        else:
            self._hubs.discard(wheel_type)


    def register_module(self, module_type: ModuleType, capabilities: WheelCapabilities):
        """
        Add or replace the profile of a hub carrying the given module
        """
        self._modules[module_type] = capabilities


    def is_known_wheel(self, wheel_type: WheelType) -> bool:
        return wheel_type in self._wheels


    def is_hub(self, wheel_type: WheelType) -> bool:
        return wheel_type in self._hubs


    def resolve(self, wheel_type: WheelType,
                module_type: ModuleType = ModuleType.UNINITIALIZED) -> WheelCapabilities:
        """
        Get the capabilities of a wheel/module combination.

        :param wheel_type: The detected wheel
        :param module_type: The detected module, if any
        :return: The capabilities, WheelCapabilities.NONE for unknown wheels
        """
        base = self._wheels.get(wheel_type)
        if base is None:
            self._logger.info('No profile for wheel type %s, using defaults',
                              getattr(wheel_type, 'name', wheel_type))
            return WheelCapabilities.NONE

        if wheel_type in self._hubs:
            return self._modules.get(module_type, base)

        return base


    def enumerate_selectable_configurations(self) -> Iterator[DeviceConfig]:
        """
        Yield every configuration a user can pick.

        Standalone wheels appear once. Hubs appear once per known
        module and never on their own.
        """
        for wheel_type, base in self._wheels.items():
            if wheel_type in self._hubs:
                for module_type, caps in self._modules.items():
                    yield DeviceConfig(wheel_type, module_type, caps)
            else:
                yield DeviceConfig(wheel_type, ModuleType.UNINITIALIZED, base)
