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
User preferences, stored as YAML.

The file is loaded and written in round-trip mode, so comments and
keys this version doesn't know about survive a save.
"""

from __future__ import annotations

import os
import tempfile
from collections import OrderedDict
from datetime import datetime

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from fanalight.log import Log
from fanalight.util import Signal


CONFDIR = os.path.join(os.path.expanduser('~'), '.config', 'fanalight')
CONFFILE = os.path.join(CONFDIR, 'preferences.yaml')

DEVICES_KEY = 'devices'

DEFAULTS = OrderedDict([
    ('product_id_override', 0),
    ('max_update_rate_hz', 60),
    ('color_order', 'bgr'),
    ('presence_interval', 120),
    ('liveness_interval', 60),
    ('identity_poll_interval', 30),
    ('connect_failure_cooldown', 300),
    ('presence_lost_cooldown', 300),
    ('liveness_lost_cooldown', 120),
    ('poll_error_cooldown', 60)])

DEVICE_DEFAULTS = OrderedDict([
    ('wheel_type', None),
    ('module_type', None),
    ('display_mode', 'Gear')])

DISPLAY_MODES = ('Gear', 'Speed', 'GearAndSpeed')


def _yaml() -> YAML:
    yaml = YAML()
    yaml.default_flow_style = False
    return yaml


class _Section(object):
    """
    Attribute access to a YAML mapping with defaults.

    Only known keys are exposed as attributes, everything else in the
    mapping is carried along untouched.
    """

    _defaults = {}

    def __init__(self, data: CommentedMap, changed: Signal):
        object.__setattr__(self, '_data', data)
        object.__setattr__(self, '_changed', changed)


    def __getattr__(self, name):
        defaults = type(self)._defaults
        if name not in defaults:
            raise AttributeError(name)
        value = self._data.get(name)
        if value is None:
            return defaults[name]
        return value


    def __setattr__(self, name, value):
        if name not in type(self)._defaults:
            raise AttributeError('Unknown preference: %s' % name)
        if self._data.get(name) == value:
            return
        if value is None:
            self._data.pop(name, None)
        else:
            self._data[name] = value
        self._changed.fire(self, name, value)


    def as_dict(self) -> OrderedDict:
        return OrderedDict((name, getattr(self, name)) for name in type(self)._defaults)


class DeviceSettings(_Section):
    """
    Settings of one wheel configuration, keyed by its device type id
    """
    _defaults = DEVICE_DEFAULTS


class Preferences(_Section):
    """
    Top level preferences
    """
    _defaults = DEFAULTS

    def __init__(self, data: CommentedMap = None, changed: Signal = None):
        if data is None:
            data = CommentedMap()
        if changed is None:
            changed = Signal()
        super().__init__(data, changed)


    @property
    def changed(self) -> Signal:
        """
        Fires with (section, name, value) when a preference is set
        """
        return self._changed


    @property
    def data(self) -> CommentedMap:
        return self._data


    def device(self, device_type_id: str) -> DeviceSettings:
        """
        Get the settings of a device, creating the entry on demand
        """
        devices = self._data.get(DEVICES_KEY)
        if devices is None:
            devices = CommentedMap()
            self._data[DEVICES_KEY] = devices
        entry = devices.get(device_type_id)
        if entry is None:
            entry = CommentedMap()
            devices[device_type_id] = entry
        return DeviceSettings(entry, self._changed)


    @property
    def device_ids(self) -> list:
        return list((self._data.get(DEVICES_KEY) or {}).keys())


class PreferenceManager(object):
    """
    Loads preferences and writes them back when they change.
    """

    def __init__(self, filename: str = CONFFILE, autosave: bool = True):
        self._logger = Log.get('fanalight.prefs')
        self._filename = filename
        self._root = self._load_prefs()
        if autosave:
            self._root.changed.connect(self._preferences_changed)


    @property
    def filename(self) -> str:
        return self._filename


    @property
    def preferences(self) -> Preferences:
        return self._root


    def _preferences_changed(self, section, name, value):
        self.save()


    def _load_prefs(self) -> Preferences:
        if not os.path.isfile(self._filename):
            return Preferences()

        try:
            with open(self._filename) as prefs_file:
                data = _yaml().load(prefs_file)
        except (OSError, YAMLError) as err:
            self._logger.error('Unable to load preferences from %s: %s', self._filename, err)
            return Preferences()

        if not isinstance(data, CommentedMap):
            if data is not None:
                self._logger.warning('Ignoring malformed preferences in %s', self._filename)
            data = CommentedMap()

        return Preferences(data)


    def save(self):
        """
        Write the preferences, replacing the file atomically
        """
        dirname = os.path.dirname(self._filename) or '.'
        os.makedirs(dirname, exist_ok=True)

        with tempfile.NamedTemporaryFile('w', dir=dirname, delete=False) as temp:
            self._root.data.yaml_set_start_comment(
                'Fanalight preferences\nUpdated on: %s' % datetime.now().isoformat(' '))
            _yaml().dump(self._root.data, temp)
            tempname = temp.name
        os.replace(tempname, self._filename)

        self._logger.debug('Saved preferences to %s', self._filename)
