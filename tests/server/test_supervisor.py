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

"""Unit tests for fanalight.server.supervisor module."""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from fanalight.color import ColorOrder
from fanalight.server import report, segments
from fanalight.server.frame import DisplayFrame, IndicatorFrame, IndicatorGroup, LedFrame
from fanalight.server.hardware import ModuleType, WheelType
from fanalight.server.identity import StaticWheelInterface, WheelInterface
from fanalight.server.prefs import Preferences
from fanalight.server.supervisor import (
    MAX_EVENTS,
    Cadence,
    ConnectionState,
    ConnectionSupervisor,
    EventKind,
)

from .mock_hid import MockHIDBus, MockHIDDevice

# Short intervals keep the tick counts in the tests readable:
# presence on ticks 4, 8, ..., liveness on 3, 6, 9, ... (unless
# presence ran on the same tick), identity every 2nd tick.
FAST = Cadence(
    presence_interval=4,
    liveness_interval=3,
    identity_poll_interval=2,
    connect_failure_cooldown=5,
    presence_lost_cooldown=10,
    liveness_lost_cooldown=7,
    poll_error_cooldown=6,
)


def kinds(events) -> list:
    return [event.kind for event in events]


@pytest.fixture
def interface():
    return StaticWheelInterface(WheelType.PSWBMW)


@pytest.fixture
def supervisor(hid_bus, interface, registry):
    """A supervisor for a BMW wheel, not yet connected."""
    return ConnectionSupervisor(interface=interface, registry=registry, cadence=FAST)


@pytest.fixture
def connected(supervisor, mock_device):
    """A connected supervisor with its startup events drained."""
    assert supervisor.connect()
    supervisor.drain_events()
    mock_device.reset()
    return supervisor


def hub_with(module: ModuleType, registry) -> ConnectionSupervisor:
    sup = ConnectionSupervisor(
        interface=StaticWheelInterface(WheelType.PHUB, module), registry=registry, cadence=FAST
    )
    assert sup.connect()
    return sup


# ─────────────────────────────────────────────────────────────────────────────
# Cadence Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestCadence:
    """Tests for cadence validation."""

    def test_defaults(self):
        cadence = Cadence()
        assert cadence.presence_interval == 120
        assert cadence.liveness_interval == 60
        assert cadence.identity_poll_interval == 30
        assert cadence.connect_failure_cooldown == 300
        assert cadence.presence_lost_cooldown == 300
        assert cadence.liveness_lost_cooldown == 120
        assert cadence.poll_error_cooldown == 60

    @pytest.mark.parametrize("name", ["presence_interval", "liveness_interval", "identity_poll_interval"])
    def test_interval_must_be_positive(self, name):
        with pytest.raises(ValueError):
            Cadence(**{name: 0})

    def test_cooldown_not_negative(self):
        with pytest.raises(ValueError):
            Cadence(poll_error_cooldown=-1)

    def test_zero_cooldown_allowed(self):
        assert Cadence(connect_failure_cooldown=0).connect_failure_cooldown == 0

    def test_from_preferences(self):
        prefs = Preferences()
        prefs.presence_interval = 10
        prefs.poll_error_cooldown = 3
        cadence = Cadence.from_preferences(prefs)
        assert cadence.presence_interval == 10
        assert cadence.poll_error_cooldown == 3
        assert cadence.liveness_interval == 60


# ─────────────────────────────────────────────────────────────────────────────
# Connection Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestConnect:
    """Tests for establishing the connection."""

    def test_initial_state(self, supervisor):
        assert supervisor.state == ConnectionState.DISCONNECTED
        assert not supervisor.is_connected
        assert supervisor.device_name is None
        assert supervisor.drain_events() == []

    def test_connect(self, supervisor, mock_device):
        assert supervisor.connect()
        assert supervisor.state == ConnectionState.CONNECTED
        assert supervisor.product_id == 0x0006
        assert supervisor.device_name == "FANATEC Podium Wheel Base DD1"
        assert supervisor.wheel_name == "Fanatec Podium Steering Wheel BMW M4 GT3"
        assert supervisor.current_capabilities.button_led_count == 12
        assert len(mock_device.open_handles) == 2

    def test_connect_events(self, supervisor):
        """CONNECTED is reported before the first wheel identification."""
        supervisor.connect()
        events = supervisor.drain_events()
        assert kinds(events) == [EventKind.CONNECTED, EventKind.WHEEL_CHANGED]
        assert events[0].state == ConnectionState.CONNECTED
        assert not events[0].identity.detected
        assert events[1].identity.wheel_type == WheelType.PSWBMW
        assert events[1].capabilities.button_led_count == 12
        assert supervisor.drain_events() == []

    def test_first_tick_connects(self, supervisor):
        supervisor.tick()
        assert supervisor.is_connected

    def test_no_wheel(self, hid_bus):
        sup = ConnectionSupervisor(cadence=FAST)
        assert sup.connect()
        assert kinds(sup.drain_events()) == [EventKind.CONNECTED]
        assert sup.wheel_name == "No wheel attached"

    def test_no_device_sets_cooldown(self, supervisor, hid_bus, mock_device):
        mock_device.present = False
        supervisor.tick()

        assert supervisor.state == ConnectionState.DISCONNECTED
        assert supervisor.reconnect_cooldown == FAST.connect_failure_cooldown
        assert supervisor.drain_events() == []

    def test_cooldown_counts_down(self, supervisor, hid_bus, mock_device):
        mock_device.present = False
        supervisor.tick()
        calls = hid_bus.enumerate_calls

        for _ in range(FAST.connect_failure_cooldown):
            supervisor.tick()
        assert hid_bus.enumerate_calls == calls
        assert supervisor.reconnect_cooldown == 0

        mock_device.present = True
        supervisor.tick()
        assert supervisor.is_connected

    def test_explicit_connect_ignores_cooldown(self, supervisor, mock_device):
        mock_device.present = False
        supervisor.tick()
        mock_device.present = True
        assert supervisor.connect()

    def test_enumeration_error(self, supervisor, hid_bus):
        hid_bus.fail_enumerate = True
        assert not supervisor.connect()
        assert supervisor.reconnect_cooldown == FAST.connect_failure_cooldown

    def test_handshake_refused(self, hid_bus, mock_device):
        interface = MagicMock(spec=WheelInterface)
        interface.connect.return_value = False
        sup = ConnectionSupervisor(interface=interface, cadence=FAST)

        assert not sup.connect()
        interface.connect.assert_called_once_with(0x0006)
        assert mock_device.open_handles == []

    def test_handshake_error(self, hid_bus, mock_device):
        interface = MagicMock(spec=WheelInterface)
        interface.connect.side_effect = RuntimeError("sdk failure")
        sup = ConnectionSupervisor(interface=interface, cadence=FAST)

        assert not sup.connect()
        interface.release.assert_called()
        assert mock_device.open_handles == []

    def test_open_failure_releases_interface(self, hid_bus, mock_device):
        mock_device.fail_open.add(mock_device.wide_path)
        interface = MagicMock(spec=WheelInterface)
        interface.connect.return_value = True
        sup = ConnectionSupervisor(interface=interface, cadence=FAST)

        assert not sup.connect()
        interface.release.assert_called()

    def test_second_product_tried(self, mock_device):
        broken = MockHIDDevice(product_id=0x0001)
        broken.fail_open.add(broken.wide_path)
        with MockHIDBus(broken, mock_device).installed():
            sup = ConnectionSupervisor(cadence=FAST)
            assert sup.connect()
            assert sup.product_id == 0x0006

    def test_product_override(self, hid_bus):
        sup = ConnectionSupervisor(cadence=FAST, product_id=0x0020)
        assert not sup.connect()
        assert sup.connect(product_id=0x0006)

    def test_from_preferences(self, hid_bus):
        prefs = Preferences()
        prefs.product_id_override = 0x0006
        prefs.color_order = "rgb"
        sup = ConnectionSupervisor.from_preferences(prefs)
        assert sup.cadence == Cadence()
        assert sup.connect()

    def test_is_device_present(self, supervisor, mock_device):
        assert supervisor.is_device_present()
        supervisor.connect()
        assert supervisor.is_device_present()
        mock_device.present = False
        assert not supervisor.is_device_present()


# ─────────────────────────────────────────────────────────────────────────────
# Supervision Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSupervision:
    """Tests for the periodic checks."""

    def test_steady_state(self, connected, mock_device):
        for _ in range(20):
            connected.tick()
        assert connected.is_connected
        assert connected.drain_events() == []
        assert mock_device.written == []

    def test_presence_lost(self, connected, hid_bus, mock_device):
        mock_device.present = False
        for _ in range(FAST.presence_interval):
            connected.tick()

        assert connected.state == ConnectionState.DISCONNECTED
        assert connected.reconnect_cooldown == FAST.presence_lost_cooldown
        assert mock_device.open_handles == []

        events = connected.drain_events()
        assert kinds(events) == [EventKind.DISCONNECTED]
        assert events[0].reason == "device removed"
        assert events[0].state == ConnectionState.DISCONNECTED

    def test_presence_lost_waits_before_reconnect(self, connected, hid_bus, mock_device):
        mock_device.present = False
        for _ in range(FAST.presence_interval):
            connected.tick()
        mock_device.present = True
        calls = hid_bus.enumerate_calls

        connected.tick()
        assert hid_bus.enumerate_calls == calls
        assert not connected.is_connected

    def test_liveness_lost(self, hid_bus, interface, registry):
        cadence = Cadence(
            presence_interval=4, liveness_interval=3, identity_poll_interval=100,
            liveness_lost_cooldown=7,
        )
        sup = ConnectionSupervisor(interface=interface, registry=registry, cadence=cadence)
        sup.connect()
        sup.drain_events()

        interface.release()
        for _ in range(3):
            sup.tick()

        assert sup.state == ConnectionState.DISCONNECTED
        assert sup.reconnect_cooldown == 7
        events = sup.drain_events()
        assert kinds(events) == [EventKind.DISCONNECTED]
        assert events[0].reason == "connection lost"

    def test_poll_error(self, connected, interface, mock_device):
        interface.release()
        connected.tick()
        assert connected.is_connected

        connected.tick()
        assert connected.state == ConnectionState.DISCONNECTED
        assert connected.reconnect_cooldown == FAST.poll_error_cooldown
        assert mock_device.open_handles == []
        assert kinds(connected.drain_events()) == [EventKind.DISCONNECTED]

    def test_wheel_changed(self, connected, interface):
        interface.set_identity(WheelType.PHUB, ModuleType.PBME)
        connected.tick()
        connected.tick()

        events = connected.drain_events()
        assert kinds(events) == [EventKind.WHEEL_CHANGED]
        assert events[0].capabilities.rev_led_count == 9
        assert connected.current_capabilities.display.name == "ITM"

    def test_unrecognised_wheel_stays_connected(self, connected, interface):
        interface.set_identity("FS_WHEEL_SWTYPE_CSLELITE", ModuleType.UNINITIALIZED)
        for _ in range(10):
            connected.tick()

        assert connected.is_connected
        events = connected.drain_events()
        assert kinds(events) == [EventKind.WHEEL_CHANGED]
        assert events[0].capabilities.rev_led_count == 0

    def test_disconnected_resets_identity(self, connected, mock_device):
        mock_device.present = False
        for _ in range(FAST.presence_interval):
            connected.tick()
        assert not connected.wheel_identity.detected
        assert connected.current_capabilities.total_led_count == 0

    def test_disconnect(self, connected, mock_device):
        connected.disconnect()
        assert not connected.is_connected
        assert mock_device.open_handles == []
        assert kinds(connected.drain_events()) == [EventKind.DISCONNECTED]

        connected.tick()
        assert connected.is_connected

    def test_disconnect_when_disconnected(self, supervisor):
        supervisor.disconnect()
        assert supervisor.drain_events() == []

    def test_force_reconnect(self, connected):
        assert connected.force_reconnect()
        assert kinds(connected.drain_events()) == [
            EventKind.DISCONNECTED,
            EventKind.CONNECTED,
            EventKind.WHEEL_CHANGED,
        ]

    def test_close(self, connected, mock_device):
        connected.close()
        assert mock_device.open_handles == []
        assert kinds(connected.drain_events()) == [EventKind.DISCONNECTED]

        connected.tick()
        assert not connected.is_connected
        assert not connected.connect()
        assert not connected.force_reconnect()

    def test_changed_signal(self, supervisor):
        handler = MagicMock()
        supervisor.changed.connect(handler)
        supervisor.connect()

        fired = [call.args[0].kind for call in handler.call_args_list]
        assert fired == [EventKind.CONNECTED, EventKind.WHEEL_CHANGED]

    def test_event_queue_bounded(self, supervisor):
        for _ in range(MAX_EVENTS):
            supervisor.connect()
            supervisor.disconnect()
        assert len(supervisor.drain_events()) == MAX_EVENTS


# ─────────────────────────────────────────────────────────────────────────────
# Frame Output Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestLedFrames:
    """Tests for LED frame delivery."""

    def test_first_frame_staged_then_committed(self, connected, mock_device, green_frame):
        assert connected.send(green_frame)

        reports = mock_device.wide_reports
        assert len(reports) == 2
        assert report.decode_color_report(reports[0]) == ([0x07E0] * 12, False)
        intensities, commit = report.decode_intensity_report(reports[1])
        assert intensities == [7] * 16
        assert commit

    def test_identical_frame_skipped(self, connected, mock_device, green_frame):
        connected.send(green_frame)
        mock_device.reset()

        assert connected.send(LedFrame([0x07E0] * 12, [7] * 12))
        assert mock_device.written == []

    def test_colors_only(self, connected, mock_device, green_frame, red_frame):
        connected.send(green_frame)
        mock_device.reset()

        assert connected.send(red_frame)
        reports = mock_device.wide_reports
        assert len(reports) == 1
        assert report.decode_color_report(reports[0]) == ([0x001F] * 12, True)

    def test_intensities_only(self, connected, mock_device, green_frame):
        connected.send(green_frame)
        mock_device.reset()

        assert connected.send(LedFrame([0x07E0] * 12, [3] * 12))
        reports = mock_device.wide_reports
        assert len(reports) == 1
        assert report.decode_intensity_report(reports[0]) == ([3] * 12 + [7] * 4, True)

    def test_force_dirty(self, connected, mock_device, green_frame):
        connected.send(green_frame)
        mock_device.reset()

        connected.force_dirty()
        connected.send(green_frame)
        assert len(mock_device.wide_reports) == 2

    def test_write_failure_retried(self, connected, mock_device, green_frame):
        mock_device.fail_writes = True
        assert not connected.send(green_frame)

        mock_device.fail_writes = False
        assert connected.send(green_frame)
        assert len(mock_device.wide_reports) == 2

    def test_reconnect_resends(self, connected, mock_device, green_frame):
        connected.send(green_frame)
        connected.force_reconnect()
        mock_device.reset()

        connected.send(green_frame)
        assert len(mock_device.wide_reports) == 2

    def test_send_led_frame_colors(self, connected, mock_device):
        assert connected.send_led_frame(["lime"] * 12, [7] * 12)
        colors, _ = report.decode_color_report(mock_device.wide_reports[0])
        assert colors == [0x07E0] * 12

    def test_send_led_frame_rgb_order(self, hid_bus, mock_device):
        sup = ConnectionSupervisor(color_order=ColorOrder.RGB, cadence=FAST)
        sup.connect()
        sup.send_led_frame([(255, 0, 0)] * 12, [7] * 12)
        colors, _ = report.decode_color_report(mock_device.wide_reports[0])
        assert colors == [0xF800] * 12

    def test_send_led_frame_numpy_colors(self, connected, mock_device):
        """Packed colors from a frame array pass through untouched."""
        packed = LedFrame([0x07E0] * 12, [7] * 12).colors
        assert connected.send_led_frame(packed, [7] * 12)
        colors, _ = report.decode_color_report(mock_device.wide_reports[0])
        assert colors == [0x07E0] * 12

    def test_send_led_frame_numpy_scalar(self, connected, mock_device):
        assert connected.send_led_frame([np.uint16(0xF800)] * 12, [7] * 12)
        colors, _ = report.decode_color_report(mock_device.wide_reports[0])
        assert colors == [0xF800] * 12


class TestOtherFrames:
    """Tests for indicator and display delivery."""

    def test_display_text(self, connected, mock_device):
        assert connected.send_text("P1.")
        frame = report.decode_display_report(mock_device.narrow_reports[0])
        assert frame == segments.encode_text("P1.")

    def test_display_skips_duplicate(self, connected, mock_device):
        connected.send_number(123)
        connected.send_number(123)
        assert len(mock_device.narrow_reports) == 1

    def test_gear(self, connected, mock_device):
        assert connected.send_gear("R")
        assert mock_device.narrow_reports[0][4:] == bytes([0x02, 0x00, 0x50, 0x00])

    def test_display_frame(self, connected, mock_device):
        assert connected.send_display_frame(0x3F, 0x06, 0x5B)
        assert mock_device.narrow_reports == [report.encode_display_report(0x3F, 0x06, 0x5B)]

    def test_indicators(self, hid_bus, registry, mock_device):
        sup = hub_with(ModuleType.PBME, registry)
        mock_device.reset()

        assert sup.send_indicator_frame(IndicatorGroup.REV, ["red"] * 9)
        frame = report.decode_indicator_report(mock_device.wide_reports[0])
        assert frame == IndicatorFrame(IndicatorGroup.REV, [0x001F] * 9)

    def test_indicator_alpha_dims(self, hid_bus, registry, mock_device):
        sup = hub_with(ModuleType.PBME, registry)
        mock_device.reset()

        sup.send_indicator_frame(IndicatorGroup.FLAG, [(0, 0, 255, 0)] * 6)
        frame = report.decode_indicator_report(mock_device.wide_reports[0])
        assert list(frame.colors) == [0] * 6

    def test_indicator_numpy_colors(self, hid_bus, registry, mock_device):
        sup = hub_with(ModuleType.PBME, registry)
        mock_device.reset()

        assert sup.send_indicator_frame(IndicatorGroup.REV, np.full(9, 0x001F, dtype=np.uint16))
        frame = report.decode_indicator_report(mock_device.wide_reports[0])
        assert frame == IndicatorFrame(IndicatorGroup.REV, [0x001F] * 9)

    def test_set_display_mode(self, connected, mock_device):
        assert connected.set_display_mode(True)
        assert mock_device.narrow_reports == [report.encode_display_mode_report(True)]

    def test_display_without_narrow(self, mock_device, registry):
        mock_device.has_narrow = False
        with MockHIDBus(mock_device).installed():
            sup = ConnectionSupervisor(
                interface=StaticWheelInterface(WheelType.PSWBMW), registry=registry, cadence=FAST
            )
            sup.connect()
            assert not sup.send_text("1")


class TestCapabilityGating:
    """Frames the attached wheel can't show are refused."""

    def test_bmw_has_no_indicators(self, connected, mock_device):
        assert not connected.send(IndicatorFrame.blank(IndicatorGroup.REV))
        assert mock_device.written == []

    def test_endurance_module_has_no_button_leds(self, hid_bus, registry, mock_device, green_frame):
        sup = hub_with(ModuleType.PBME, registry)
        mock_device.reset()

        assert not sup.send(green_frame)
        assert mock_device.written == []
        assert sup.send(DisplayFrame(1, 2, 3))

    def test_bare_hub_refuses_everything(self, hid_bus, registry, mock_device, green_frame):
        sup = hub_with(ModuleType.UNINITIALIZED, registry)
        assert not sup.send(green_frame)
        assert not sup.send(DisplayFrame.blank())

    def test_unidentified_wheel_allowed(self, hid_bus, mock_device):
        sup = ConnectionSupervisor(cadence=FAST)
        sup.connect()
        assert sup.send(IndicatorFrame.blank(IndicatorGroup.FLAG))
        assert len(mock_device.wide_reports) == 1


class TestSendErrors:
    """Tests for sends that can't happen."""

    def test_disconnected(self, supervisor, mock_device, green_frame):
        assert not supervisor.send(green_frame)
        assert not supervisor.send_text("123")
        assert not supervisor.send_gear(3)
        assert not supervisor.send_number(7)
        assert not supervisor.send_indicator_frame(IndicatorGroup.REV, [0] * 9)
        assert not supervisor.set_display_mode()
        assert not supervisor.clear()
        assert mock_device.written == []

    def test_unknown_frame_type(self, connected):
        with pytest.raises(ValueError):
            connected.send("not a frame")

    def test_unknown_frame_type_while_disconnected(self, supervisor):
        with pytest.raises(ValueError):
            supervisor.send(object())


class TestClear:
    """Tests for turning everything off."""

    def test_clear_bmw(self, connected, mock_device):
        assert connected.clear()

        wide = mock_device.wide_reports
        assert len(wide) == 2
        assert report.decode_color_report(wide[0]) == ([0] * 12, False)
        assert mock_device.narrow_reports == [report.encode_display_report(0, 0, 0)]

    def test_clear_endurance(self, hid_bus, registry, mock_device):
        sup = hub_with(ModuleType.PBME, registry)
        mock_device.reset()

        assert sup.clear()
        groups = [report.decode_indicator_report(data).group for data in mock_device.wide_reports]
        assert groups == [IndicatorGroup.REV, IndicatorGroup.FLAG]
        assert len(mock_device.narrow_reports) == 1
