import asyncio

from helpers import FakeIntegration, widget
from statusboard.dashboard import Dashboard
from statusboard.config import load_config
from statusboard.instances import MemoryWidgetStore, YamlWidgetStore
from statusboard.registry import CapabilityRegistry


def test_collect_all_reports_results_in_display_order():
    good = FakeIntegration("good")
    bad = FakeIntegration("bad", results=[RuntimeError("unreachable")])
    registry = CapabilityRegistry([good.descriptor, bad.descriptor])
    store = MemoryWidgetStore([widget(1, "good", order=2), widget(2, "bad", order=1), widget(3, "good", order=0)])
    dash = Dashboard(store, registry, reload_seconds=None)

    data = asyncio.run(dash.collect_all())
    assert [r.id for r in data.results] == [3, 1]
    assert data.missing == [2]
    assert dash.scheduler.owned_ids == frozenset()


def test_dashboard_picks_up_store_changes():
    fake = FakeIntegration()
    registry = CapabilityRegistry([fake.descriptor])
    store = MemoryWidgetStore([widget(1)])
    dash = Dashboard(store, registry, reload_seconds=None)
    seen = []

    async def scenario():
        unsubscribe = dash.subscribe_status(lambda m: seen.append(sorted(m)))
        async with dash:
            await dash.scheduler.drain()
            store.add(widget(2))
            assert await dash.refresh_instances() is True
            await dash.scheduler.drain()
            assert dash.trigger_refresh(2) is True
            await dash.scheduler.drain()
            store.remove(1)
            await dash.refresh_instances()
            await dash.scheduler.drain()
        unsubscribe()

    asyncio.run(scenario())
    assert seen[0] == []
    assert [1, 2] in seen
    assert seen[-1] == [2]
    assert len(fake.calls) == 3


def test_broken_store_keeps_last_snapshot(tmp_path):
    path = tmp_path / "widgets.yaml"
    path.write_text("widgets:\n  - {id: 1, type: fake}\n", encoding="utf-8")
    fake = FakeIntegration()
    dash = Dashboard(YamlWidgetStore(path), CapabilityRegistry([fake.descriptor]), reload_seconds=None)

    async def scenario():
        async with dash:
            await dash.scheduler.drain()
            path.write_text("widgets: [[[\n", encoding="utf-8")
            assert await dash.refresh_instances() is False
            await dash.scheduler.drain()
            assert dash.scheduler.owned_ids == {1}
            assert 1 in dash.status

    asyncio.run(scenario())


def test_reload_loop_notices_file_edits(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "scheduler: {reload_seconds: 0.05}\n"
        "widgets:\n  - {id: 1, type: fake}\n",
        encoding="utf-8",
    )
    fake = FakeIntegration()
    dash = Dashboard.from_config(load_config(path), CapabilityRegistry([fake.descriptor]))

    async def scenario():
        async with dash:
            await dash.scheduler.drain()
            path.write_text(
                "scheduler: {reload_seconds: 0.05}\n"
                "widgets:\n  - {id: 1, type: fake}\n  - {id: 2, type: fake}\n",
                encoding="utf-8",
            )
            for _ in range(100):
                await asyncio.sleep(0.02)
                if 2 in dash.status:
                    break
            assert 2 in dash.status

    asyncio.run(scenario())


def test_probe_goes_through_registry():
    fake = FakeIntegration()
    dash = Dashboard(MemoryWidgetStore(), CapabilityRegistry([fake.descriptor]), reload_seconds=None)
    outcome = asyncio.run(dash.probe("fake", {"title": "x"}))
    assert not outcome.fatal
    assert fake.calls == [(None, {"title": "x"}, True)]


def test_default_registry_has_builtins():
    dash = Dashboard(MemoryWidgetStore(), reload_seconds=None)
    assert "http" in dash.registry
    assert "weather" in dash.registry
