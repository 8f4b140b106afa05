# fanalight test configuration and shared fixtures
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from fanalight.server.capabilities import CapabilityRegistry
from fanalight.server.dirty import DirtyStateTracker
from fanalight.server.frame import LedFrame

from .server.mock_hid import MockHIDBus, MockHIDDevice

if TYPE_CHECKING:
    from collections.abc import Generator


# ─────────────────────────────────────────────────────────────────────────────
# HID fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_device() -> MockHIDDevice:
    """A wheel base with Windows style collection paths."""
    return MockHIDDevice(product_id=0x0006)


@pytest.fixture
def hid_bus(mock_device) -> Generator[MockHIDBus, None, None]:
    """The mock bus, patched into the hidadapter module."""
    bus = MockHIDBus(mock_device)
    with bus.installed():
        yield bus


# ─────────────────────────────────────────────────────────────────────────────
# Core object fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def registry() -> CapabilityRegistry:
    return CapabilityRegistry()


@pytest.fixture
def tracker() -> DirtyStateTracker:
    return DirtyStateTracker()


@pytest.fixture
def green_frame() -> LedFrame:
    """All twelve LEDs green at full intensity."""
    return LedFrame([0x07E0] * 12, [7] * 12)


@pytest.fixture
def red_frame() -> LedFrame:
    """All twelve LEDs red (BGR order puts red in the low bits)."""
    return LedFrame([0x001F] * 12, [7] * 12)


# ─────────────────────────────────────────────────────────────────────────────
# Preferences fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def prefs_file(tmp_path) -> str:
    """Path of a preferences file in a temporary directory."""
    return str(tmp_path / "fanalight" / "preferences.yaml")
