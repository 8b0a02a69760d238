from __future__ import annotations

from .dashboard import Dashboard, DashboardData
from .instances import InstanceSource, MemoryWidgetStore, WidgetStore, YamlWidgetStore
from .models import StatusRecord, WidgetInstance
from .registry import CapabilityDescriptor, CapabilityRegistry, ConfigField, Metadata
from .scheduler import PollScheduler
from .status import StatusAggregate

__version__ = "0.1.0"
