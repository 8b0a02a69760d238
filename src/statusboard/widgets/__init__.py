from __future__ import annotations

from ..registry import CapabilityDescriptor, CapabilityRegistry
from . import calendar, clock, service, system, weather

BUILTIN: tuple[CapabilityDescriptor, ...] = (
    clock.descriptor,
    system.descriptor,
    weather.descriptor,
    calendar.descriptor,
    service.descriptor,
)

def register_builtin(registry: CapabilityRegistry) -> CapabilityRegistry:
    for descriptor in BUILTIN:
        registry.register(descriptor)
    return registry
