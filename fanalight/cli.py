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
Command line access to a connected wheel.

Useful for checking the wiring of a new wheel or module by hand:

    fanalight list
    fanalight configs
    fanalight --wheel pswbmw leds red green blue --intensity 7
    fanalight --wheel phub --module pbme indicators rev lime lime yellow red
    fanalight display P1.
    fanalight clear
"""

import sys
from argparse import ArgumentParser, ArgumentTypeError

from argcomplete import autocomplete

from fanalight.color import ColorOrder, to_color
from fanalight.log import Log
from fanalight.server import hidadapter
from fanalight.server.capabilities import CapabilityRegistry
from fanalight.server.frame import IndicatorGroup, LED_COUNT
from fanalight.server.hardware import FANATEC_VENDOR_ID, ModuleType, WheelType
from fanalight.server.identity import StaticWheelInterface
from fanalight.server.prefs import PreferenceManager
from fanalight.server.session import select_interfaces
from fanalight.server.supervisor import Cadence, ConnectionSupervisor
from fanalight.version import __version__


MAX_INTENSITY = 7


def color_arg(value: str):
    try:
        return to_color(value)
    except (ValueError, TypeError) as err:
        raise ArgumentTypeError('Invalid color: %s (%s)' % (value, err)) from None


def product_id_arg(value: str) -> int:
    try:
        return int(value, 16)
    except ValueError:
        raise ArgumentTypeError('Invalid product id: %s' % value) from None


def intensity_arg(value: str) -> int:
    level = int(value)
    if not 0 <= level <= MAX_INTENSITY:
        raise ArgumentTypeError('Intensity must be between 0 and %d' % MAX_INTENSITY)
    return level


def _fill(values: list, count: int) -> list:
    """
    Repeat a pattern until it covers count LEDs
    """
    return (values * count)[:count]


class FanalightCLI(object):
    """
    The fanalight console utility
    """

    def __init__(self, prefs: PreferenceManager = None):
        self._prefs = prefs
        self._logger = None
        self.parser = self._create_parser()


    @property
    def description(self) -> str:
        return 'LED and display control for Fanatec steering wheels'


    @property
    def version(self) -> str:
        return 'fanalight-%s' % __version__


    def _create_parser(self) -> ArgumentParser:
        parser = ArgumentParser(prog='fanalight', description=self.description)

        parser.add_argument('-v', '--version', action='version', version=self.version)
        parser.add_argument('-g', '--debug', action='count', default=0,
                            help='Enable debug output, repeat for protocol traces')
        parser.add_argument('--colorlog', action='store_true',
                            help='Use colored log output')
        parser.add_argument('-p', '--product-id', type=product_id_arg, metavar='PID',
                            help='Connect to this product id (hex) only')
        parser.add_argument('-w', '--wheel', type=str,
                            choices=[w.name.lower() for w in WheelType if w.is_initialized
                                     and w != WheelType.UNKNOWN],
                            help='Attached wheel, enables capability checks')
        parser.add_argument('-m', '--module', type=str,
                            choices=[m.name.lower() for m in ModuleType if m.is_initialized
                                     and m != ModuleType.UNKNOWN],
                            help='Button module attached to a hub')

        sub = parser.add_subparsers(title='Subcommands', dest='command', metavar='COMMAND')

        list_devs = sub.add_parser('list', help='List Fanatec HID interfaces')
        list_devs.set_defaults(func=self._list_devices)

        configs = sub.add_parser('configs', help='List supported wheel configurations')
        configs.set_defaults(func=self._list_configs)

        display = sub.add_parser('display', help='Show up to three characters')
        display.add_argument('text', type=str, help='Text, dots fold onto the previous digit')
        display.add_argument('-r', '--right', action='store_true', help='Right justify')
        display.set_defaults(func=self._display)

        leds = sub.add_parser('leds', help='Set the button LEDs')
        leds.add_argument('colors', type=color_arg, nargs='+', metavar='COLOR',
                          help='Colors, repeated to cover every LED')
        leds.add_argument('-i', '--intensity', type=intensity_arg, default=MAX_INTENSITY,
                          help='Intensity 0-%d (default: %d)' % (MAX_INTENSITY, MAX_INTENSITY))
        leds.set_defaults(func=self._leds)

        indicators = sub.add_parser('indicators', help='Set the rev or flag LEDs')
        indicators.add_argument('group', choices=[g.name.lower() for g in IndicatorGroup])
        indicators.add_argument('colors', type=color_arg, nargs='+', metavar='COLOR',
                                help='Colors, repeated to cover the group')
        indicators.set_defaults(func=self._indicators)

        clear = sub.add_parser('clear', help='Turn every output off')
        clear.set_defaults(func=self._clear)

        return parser


    def _preferences(self):
        if self._prefs is None:
            self._prefs = PreferenceManager(autosave=False)
        return self._prefs.preferences


    # ─────────────────────────────────────────────────────────────────────────
    # Inspection commands
    # ─────────────────────────────────────────────────────────────────────────

    def _list_devices(self, args) -> int:
        infos = hidadapter.enumerate(FANATEC_VENDOR_ID, 0)
        if not infos:
            print('No Fanatec devices found')
            return 1

        by_product = {}
        for info in infos:
            by_product.setdefault(info.product_id, []).append(info)

        for pid, collections in by_product.items():
            wide, narrow = select_interfaces(collections)
            name = collections[0].product_string or 'Fanatec Device'
            print('[%04x:%04x]: %s' % (FANATEC_VENDOR_ID, pid, name))
            for info in collections:
                role = ''
                if info is wide:
                    role = ' (LED)'
                elif info is narrow:
                    role = ' (display)'
                print('    %s%s' % (info.path_str, role))
        return 0


    def _list_configs(self, args) -> int:
        for config in CapabilityRegistry().enumerate_selectable_configurations():
            caps = config.capabilities
            print('%-24s %s' % (config.device_type_id, caps.name))
            print('%24s buttons=%d encoders=%d rev=%d flag=%d display=%s' % \
                ('', caps.button_led_count, caps.encoder_led_count,
                 caps.rev_led_count, caps.flag_led_count, caps.display.name.lower()))
        return 0


    # ─────────────────────────────────────────────────────────────────────────
    # Output commands
    # ─────────────────────────────────────────────────────────────────────────

    def _supervisor(self, args) -> ConnectionSupervisor:
        prefs = self._preferences()

        wheel = WheelType.from_name(args.wheel) if args.wheel else WheelType.UNINITIALIZED
        module = ModuleType.from_name(args.module) if args.module else ModuleType.UNINITIALIZED

        return ConnectionSupervisor(
            interface=StaticWheelInterface(wheel, module),
            cadence=Cadence.from_preferences(prefs),
            product_id=args.product_id or prefs.product_id_override or None,
            color_order=ColorOrder.from_name(prefs.color_order))


    def _with_wheel(self, args, action) -> int:
        supervisor = self._supervisor(args)
        if not supervisor.connect():
            self._logger.error('No usable Fanatec device found')
            return 1

        try:
            self._logger.info('%s: %s', supervisor.device_name, supervisor.wheel_name)
            if not action(supervisor):
                self._logger.error('Unable to update the wheel')
                return 1
            return 0
        finally:
            supervisor.close()


    def _display(self, args) -> int:
        return self._with_wheel(args, lambda sup: sup.send_text(args.text, args.right))


    def _leds(self, args) -> int:
        colors = _fill(args.colors, LED_COUNT)
        levels = [args.intensity] * LED_COUNT
        return self._with_wheel(args, lambda sup: sup.send_led_frame(colors, levels))


    def _indicators(self, args) -> int:
        group = IndicatorGroup[args.group.upper()]
        colors = _fill(args.colors, group.count)
        return self._with_wheel(args, lambda sup: sup.send_indicator_frame(group, colors))


    def _clear(self, args) -> int:
        return self._with_wheel(args, lambda sup: sup.clear())


    def run(self, argv=None) -> int:
        autocomplete(self.parser)
        args = self.parser.parse_args(argv)

        Log.enable_color(args.colorlog)
        Log.set_verbosity(args.debug)
        self._logger = Log.get('fanalight.cli')

        if getattr(args, 'func', None) is None:
            self.parser.print_help()
            return 1

        return args.func(args)


def main(argv=None) -> int:
    return FanalightCLI().run(argv)


def run_cli():
    """
    Console script entry point
    """
    sys.exit(main())


if __name__ == '__main__':
    run_cli()
