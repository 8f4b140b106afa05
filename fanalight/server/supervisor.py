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
Connection supervision.

ConnectionSupervisor is the single entry point for hosts. It is
driven by tick(), called once per host frame, and owns the HID session,
the identity poller and the dirty state of every output.

While disconnected each tick counts down a cooldown and then tries to
connect. While connected the device presence, the liveness of the
handles and the wheel identity are checked on fixed tick cadences.
Every failure ends in a full teardown and a cooldown, never in an
exception reaching the host.
"""

from __future__ import annotations

import numbers
from collections import deque
from contextlib import suppress
from dataclasses import dataclass, fields
from enum import Enum
from typing import NamedTuple

from wrapt import synchronized

from fanalight.color import ColorOrder, DEFAULT_ORDER, color_to_rgb565
from fanalight.log import Log
from fanalight.util import Signal

from . import report, segments
from .capabilities import CapabilityRegistry, WheelCapabilities
from .dirty import DirtyStateTracker
from .frame import DisplayFrame, Frame, IndicatorFrame, IndicatorGroup, LedFrame
from .hardware import FANATEC_VENDOR_ID
from .identity import IdentityPoller, StaticWheelInterface, WheelIdentity, WheelInterface
from .session import DeviceSession, enumerate_product_ids


MAX_EVENTS = 64


class ConnectionState(Enum):
    """
    States of the supervisor
    """
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class EventKind(Enum):
    """
    Kinds of notification delivered to the host
    """
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    WHEEL_CHANGED = 'wheel_changed'


class SupervisorEvent(NamedTuple):
    """
    A single change, as seen by the host
    """
    kind: EventKind
    state: ConnectionState
    identity: WheelIdentity
    capabilities: WheelCapabilities
    reason: str | None = None


@dataclass(frozen=True)
class Cadence:
    """
    Tick counts of the periodic checks and cooldowns
    """
    presence_interval: int = 120
    liveness_interval: int = 60
    identity_poll_interval: int = 30
    connect_failure_cooldown: int = 300
    presence_lost_cooldown: int = 300
    liveness_lost_cooldown: int = 120
    poll_error_cooldown: int = 60

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if field.name.endswith('_interval') and value < 1:
                raise ValueError('%s must be at least 1, got %d' % (field.name, value))
            if value < 0:
                raise ValueError('%s must not be negative, got %d' % (field.name, value))

    @classmethod
    def from_preferences(cls, prefs) -> Cadence:
        """
        Read the cadence from a Preferences instance
        """
        return cls(**{field.name: int(getattr(prefs, field.name)) for field in fields(cls)})


class ConnectionSupervisor(object):
    """
    Connects to the wheel base and keeps the connection healthy.

    All public methods are serialized, a host may call them from
    several threads. Nothing here starts a thread of its own.

    :param interface: Vendor SDK boundary, a StaticWheelInterface
                      reporting no wheel if omitted
    :param registry: Capability lookup
    :param cadence: Check intervals and cooldowns
    :param product_id: Connect to this product only instead of
                       trying every product of the vendor
    :param color_order: Channel order used when packing colors
    """

    def __init__(self, interface: WheelInterface = None, registry: CapabilityRegistry = None,
                 cadence: Cadence = None, product_id: int = None,
                 color_order: ColorOrder = DEFAULT_ORDER, session: DeviceSession = None,
                 tracker: DirtyStateTracker = None, vendor_id: int = FANATEC_VENDOR_ID):

        self._logger = Log.get('fanalight.supervisor')

        if interface is None:
            interface = StaticWheelInterface()
        if registry is None:
            registry = CapabilityRegistry()
        if cadence is None:
            cadence = Cadence()
        if session is None:
            session = DeviceSession(vendor_id)
        if tracker is None:
            tracker = DirtyStateTracker()

        self._interface = interface
        self._registry = registry
        self._cadence = cadence
        self._product_id_override = product_id or None
        self._color_order = color_order
        self._session = session
        self._tracker = tracker
        self._vendor_id = vendor_id

        self._poller = IdentityPoller(interface, registry, tracker)
        self._poller.wheel_changed.connect(self._wheel_changed)

        self._state = ConnectionState.DISCONNECTED
        self._reconnect_cooldown = 0
        self._poll_cooldown = 0
        self._tick_count = 0
        self._closed = False

        self._events = deque(maxlen=MAX_EVENTS)
        self.changed = Signal()


    @classmethod
    def from_preferences(cls, prefs, interface: WheelInterface = None,
                         registry: CapabilityRegistry = None) -> ConnectionSupervisor:
        """
        Create a supervisor configured from Preferences
        """
        return cls(interface=interface, registry=registry,
                   cadence=Cadence.from_preferences(prefs),
                   product_id=prefs.product_id_override or None,
                   color_order=ColorOrder.from_name(prefs.color_order))


    # ─────────────────────────────────────────────────────────────────────────
    # Notifications
    # ─────────────────────────────────────────────────────────────────────────

    def _emit(self, kind: EventKind, reason: str = None):
        event = SupervisorEvent(kind, self._state, self._poller.identity,
                                self._poller.capabilities, reason)
        self._events.append(event)
        self.changed.fire(event)


    def _wheel_changed(self, identity, capabilities):
        self._emit(EventKind.WHEEL_CHANGED)


    @synchronized
    def drain_events(self) -> list:
        """
        Take all pending notifications, oldest first
        """
        events = list(self._events)
        self._events.clear()
        return events


    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state


    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED


    @property
    def cadence(self) -> Cadence:
        return self._cadence


    @property
    def reconnect_cooldown(self) -> int:
        """
        Ticks left before the next connect attempt
        """
        return self._reconnect_cooldown


    @property
    def poll_cooldown(self) -> int:
        """
        Ticks left before the next identity poll
        """
        return self._poll_cooldown


    @property
    def current_capabilities(self) -> WheelCapabilities:
        return self._poller.capabilities


    @property
    def wheel_identity(self) -> WheelIdentity:
        return self._poller.identity


    @property
    def wheel_name(self) -> str:
        return self._poller.display_name


    @property
    def device_name(self) -> str | None:
        if not self.is_connected:
            return None
        return self._session.product_name


    @property
    def product_id(self) -> int | None:
        return self._session.product_id


    @property
    def session(self) -> DeviceSession:
        return self._session


    @synchronized
    def is_device_present(self) -> bool:
        """
        True if the connected product, or while disconnected any
        product of the vendor, is enumerated
        """
        if self.is_connected:
            return self._session.is_device_present()

        try:
            return len(enumerate_product_ids(self._vendor_id)) > 0
        except OSError as err:
            self._logger.debug('Enumeration failed: %s', err)
            return False


    # ─────────────────────────────────────────────────────────────────────────
    # Connection management
    # ─────────────────────────────────────────────────────────────────────────

    def _candidates(self, product_id: int = None) -> list:
        if product_id:
            return [product_id]

        try:
            pids = enumerate_product_ids(self._vendor_id)
        except OSError as err:
            self._logger.info('Enumeration failed: %s', err)
            return []

        if not pids:
            self._logger.info('No Fanatec devices found on the HID bus')
        else:
            self._logger.info('Found %d Fanatec product(s): %s', len(pids),
                              ', '.join('0x%04x' % pid for pid in pids))
        return pids


    def _try_product(self, pid: int) -> bool:
        try:
            if not self._interface.connect(pid):
                self._logger.info('Vendor handshake refused product 0x%04x', pid)
                return False
        except Exception as err: # pylint: disable=broad-except
            self._logger.warning('Vendor handshake with product 0x%04x failed: %s', pid, err)
            with suppress(Exception):
                self._interface.release()
            return False

        if not self._session.open(pid):
            self._logger.info('Unable to open HID interfaces of product 0x%04x', pid)
            with suppress(Exception):
                self._interface.release()
            return False

        return True


    def _connect(self, product_id: int = None) -> bool:
        if self._state == ConnectionState.CONNECTED:
            self._teardown('reconnect')

        self._state = ConnectionState.CONNECTING

        for pid in self._candidates(product_id or self._product_id_override):
            if self._try_product(pid):
                break
        else:
            self._state = ConnectionState.DISCONNECTED
            self._reconnect_cooldown = self._cadence.connect_failure_cooldown
            self._logger.debug('Connect failed, retrying in %d ticks',
                               self._reconnect_cooldown)
            return False

        self._poller.reset()
        self._tracker.force_dirty()
        self._state = ConnectionState.CONNECTED
        self._reconnect_cooldown = 0
        self._tick_count = 0
        self._poll_cooldown = self._cadence.identity_poll_interval

        self._logger.info('Connected to %s (0x%04x)', self._session.product_name,
                          self._session.product_id)
        self._emit(EventKind.CONNECTED)

        # Best effort, the wheel may not be identified yet
        try:
            self._poller.poll()
        except Exception as err: # pylint: disable=broad-except
            self._logger.warning('Initial wheel poll failed: %s', err)

        return True


    def _teardown(self, reason: str, cooldown: int = 0):
        was_connected = self._state == ConnectionState.CONNECTED

        self._session.close()
        with suppress(Exception):
            self._interface.release()

        self._poller.reset()
        self._tracker.force_dirty()
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_cooldown = cooldown
        self._tick_count = 0
        self._poll_cooldown = 0

        if was_connected:
            self._logger.info('Disconnected (%s)', reason)
            self._emit(EventKind.DISCONNECTED, reason)


    @synchronized
    def connect(self, product_id: int = None) -> bool:
        """
        Connect now, ignoring any cooldown.

        :param product_id: Product to connect to, by default the
                           configured product or every product found
        :return: True if connected
        """
        if self._closed:
            return False
        return self._connect(product_id)


    def auto_connect(self) -> bool:
        return self.connect()


    @synchronized
    def disconnect(self):
        """
        Release the device. The next tick connects again.
        """
        self._teardown('disconnect requested')


    @synchronized
    def force_reconnect(self) -> bool:
        """
        Tear down and connect again straight away
        """
        if self._closed:
            return False
        self._teardown('reconnect requested')
        return self._connect()


    @synchronized
    def close(self):
        """
        Release the device and stop supervising
        """
        self._teardown('closed')
        self._closed = True


    @synchronized
    def tick(self):
        """
        Advance the state machine by one host frame.

        At most one state transition happens per tick.
        """
        if self._closed:
            return

        if self._state != ConnectionState.CONNECTED:
            if self._reconnect_cooldown > 0:
                self._reconnect_cooldown -= 1
                return
            self._connect()
            return

        self._tick_count += 1

        if self._tick_count % self._cadence.presence_interval == 0:
            if not self._session.is_device_present():
                self._logger.warning('Device 0x%04x is gone', self._session.product_id)
                self._teardown('device removed', self._cadence.presence_lost_cooldown)
                return

        elif self._tick_count % self._cadence.liveness_interval == 0:
            if not self._session.is_stream_open or not self._interface.is_connected:
                self._logger.warning('Device handles are no longer usable')
                self._teardown('connection lost', self._cadence.liveness_lost_cooldown)
                return

        self._poll_cooldown -= 1
        if self._poll_cooldown <= 0:
            self._poll_cooldown = self._cadence.identity_poll_interval
            try:
                self._poller.poll()
            except Exception as err: # pylint: disable=broad-except
                self._logger.warning('Wheel poll failed: %s', err)
                self._teardown('wheel poll failed', self._cadence.poll_error_cooldown)


    # ─────────────────────────────────────────────────────────────────────────
    # Frames
    # ─────────────────────────────────────────────────────────────────────────

    def _pack(self, color, premultiply: bool = False) -> int:
        if isinstance(color, numbers.Integral):
            return int(color)
        return color_to_rgb565(color, self._color_order, premultiply)


    def _supports(self, frame: Frame) -> bool:
        # Only gate once the wheel is known, an unidentified wheel gets everything
        if not self._poller.identity.identified:
            return True

        caps = self._poller.capabilities
        if isinstance(frame, LedFrame):
            return caps.total_led_count > 0
        if isinstance(frame, IndicatorFrame):
            if frame.group == IndicatorGroup.REV:
                return caps.has_rev_leds
            return caps.has_flag_leds
        if isinstance(frame, DisplayFrame):
            return caps.has_display
        return False


    def _send_led(self, frame: LedFrame) -> bool:
        change = self._tracker.update(frame)
        if change.unchanged:
            return True

        if change.both_changed:
            # Stage the colors so both halves appear at once
            colors_ok = self._session.send(report.encode_color_report(frame.colors, False))
            levels_ok = self._session.send(report.encode_intensity_report(frame.intensities, True))
            ok = colors_ok and levels_ok
        elif change.colors_changed:
            ok = self._session.send(report.encode_color_report(frame.colors, True))
        else:
            ok = self._session.send(report.encode_intensity_report(frame.intensities, True))

        if ok:
            self._tracker.commit(frame)
        return ok


    def _send_simple(self, frame: Frame, data: bytes) -> bool:
        if not self._tracker.update(frame):
            return True
        if self._session.send(data):
            self._tracker.commit(frame)
            return True
        return False


    @synchronized
    def send(self, frame: Frame) -> bool:
        """
        Write a frame if it differs from what the hardware shows.

        :param frame: An LedFrame, IndicatorFrame or DisplayFrame
        :return: False if not connected, unsupported by the attached
                 wheel, or the write failed
        """
        if not isinstance(frame, (LedFrame, IndicatorFrame, DisplayFrame)):
            raise ValueError('Unknown frame type: %r' % (frame,))

        if not self.is_connected:
            return False

        if not self._supports(frame):
            self._logger.debug('%s not supported by %s', frame, self.wheel_name)
            return False

        if isinstance(frame, LedFrame):
            return self._send_led(frame)
        if isinstance(frame, IndicatorFrame):
            return self._send_simple(frame, report.encode_indicator_report(
                frame.group, frame.colors))
        return self._send_simple(frame, report.encode_display_frame(frame))


    def send_led_frame(self, colors, intensities) -> bool:
        """
        Send button LED colors and intensities.

        Colors may be packed ints or anything to_color accepts.
        """
        return self.send(LedFrame([self._pack(c) for c in colors], intensities))


    def send_indicator_frame(self, group: IndicatorGroup, colors) -> bool:
        """
        Send one indicator group. Color alpha dims the LED.
        """
        return self.send(IndicatorFrame(group, [self._pack(c, True) for c in colors]))


    def send_display_frame(self, seg1: int, seg2: int, seg3: int) -> bool:
        return self.send(DisplayFrame(seg1, seg2, seg3))


    def send_text(self, text: str, right_justify: bool = False) -> bool:
        return self.send(segments.encode_text(text, right_justify))


    def send_gear(self, gear) -> bool:
        return self.send(segments.encode_gear(segments.parse_gear(gear)))


    def send_number(self, value: int) -> bool:
        return self.send(segments.encode_number(value))


    @synchronized
    def set_display_mode(self, enable: bool = True) -> bool:
        """
        Hand the display over to the host, or back to the wheel base
        """
        if not self.is_connected:
            return False
        self._tracker.force_dirty()
        return self._session.send(report.encode_display_mode_report(enable))


    @synchronized
    def clear(self) -> bool:
        """
        Turn off every output the attached wheel has
        """
        if not self.is_connected:
            return False

        frames = [LedFrame.blank(), DisplayFrame.blank()]
        frames.extend(IndicatorFrame.blank(group) for group in IndicatorGroup)

        result = True
        for frame in frames:
            if self._supports(frame):
                result = self.send(frame) and result
        return result


    @synchronized
    def force_dirty(self):
        """
        Make the next frame of every kind go to the hardware
        """
        self._tracker.force_dirty()
