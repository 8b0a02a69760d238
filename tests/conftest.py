"""Shared fixtures: a manually advanced clock and a scriptable integration."""

import pytest

from helpers import FakeIntegration, ManualClock
from statusboard.registry import CapabilityRegistry, ConfigField
from statusboard.status import StatusAggregate


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fake():
    return FakeIntegration()


@pytest.fixture
def registry(fake):
    return CapabilityRegistry([fake.descriptor])


@pytest.fixture
def aggregate():
    return StatusAggregate()


@pytest.fixture
def sample_fields():
    return (
        ConfigField(key="server_url", label="URL", type="url", required=True),
        ConfigField(key="api_key", label="Key", type="password", required=True, credential=True),
        ConfigField(key="refresh_rate", label="Refresh", type="number", default=30),
    )
