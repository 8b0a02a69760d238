import pytest

from statusboard.registry import CapabilityDescriptor, CapabilityRegistry, ConfigField, Metadata


def descriptor(type_id, category="custom", name=None):
    return CapabilityDescriptor(Metadata(id=type_id, name=name or type_id.title(), category=category))


def test_register_get_and_replace():
    registry = CapabilityRegistry()
    registry.register(descriptor("sonarr", "media", "Sonarr"))
    registry.register(descriptor("sonarr", "media", "Sonarr v4"))
    assert len(registry) == 1
    assert registry.get("sonarr").metadata.name == "Sonarr v4"
    assert registry.get("radarr") is None


def test_unregister_is_quiet_for_unknown_ids():
    registry = CapabilityRegistry([descriptor("a")])
    registry.unregister("a")
    registry.unregister("a")
    assert "a" not in registry


def test_list_by_category():
    registry = CapabilityRegistry([
        descriptor("sonarr", "media"),
        descriptor("adguard", "network"),
        descriptor("radarr", "media"),
    ])
    assert [d.id for d in registry.list_by_category("media")] == ["sonarr", "radarr"]
    assert registry.list_by_category("storage") == []


def test_subscribe_sees_available_integrations():
    registry = CapabilityRegistry([descriptor("a")])
    seen = []
    unsubscribe = registry.subscribe(lambda ds: seen.append([d.id for d in ds]))
    registry.register(descriptor("b"))
    unsubscribe()
    registry.unregister("a")
    assert seen == [["a"], ["a", "b"]]


def test_unknown_category_and_field_type_rejected():
    with pytest.raises(ValueError):
        Metadata(id="x", name="X", category="games")
    with pytest.raises(ValueError):
        ConfigField(key="x", label="X", type="color")


def test_descriptor_schema_helpers(sample_fields):
    d = CapabilityDescriptor(Metadata(id="svc", name="Svc"), sample_fields)
    assert d.defaults() == {"refresh_rate": 30}
    assert d.missing_required({"server_url": "  ", "api_key": "k"}) == ["server_url"]
    assert d.redact({"server_url": "http://x", "api_key": "secret"}) == {
        "server_url": "http://x",
        "api_key": "********",
    }
