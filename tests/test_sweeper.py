from __future__ import annotations

import asyncio

import pytest
from conftest import FakeFetcher, FakeProtocol, RecordingObserver, description_xml, make_description, property_set

from pycctv.dispatcher import EventDispatcher
from pycctv.events import DiscoveryEvent, VariableChangeEvent
from pycctv.registry import DeviceRegistry
from pycctv.sweeper import SweepReport, TimeoutSweeper


@pytest.mark.asyncio
async def test_node_expires_after_exactly_one_tick(
    registry: DeviceRegistry, protocol: FakeProtocol, observer: RecordingObserver
) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)
    await registry.add_or_refresh(make_description("uuid:cam-1"), "http://cam.local/a.xml", 30)

    report = await sweeper.sweep_once()

    assert report == SweepReport(expired=("uuid:cam-1",), renewing=())
    assert list(await registry.listing()) == []
    assert observer.removed == ["uuid:cam-1"]
    assert protocol.unsubscribe_calls == ["uuid:sid-1"]


@pytest.mark.asyncio
async def test_renewal_search_when_below_two_intervals(
    registry: DeviceRegistry, protocol: FakeProtocol, observer: RecordingObserver
) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)
    await registry.add_or_refresh(make_description("uuid:cam-1"), "http://cam.local/a.xml", 80)

    report = await sweeper.sweep_once()

    assert report.renewing == ("uuid:cam-1",)
    assert protocol.search_calls == [(30, "uuid:cam-1")]
    assert "uuid:cam-1" in registry
    assert observer.removed == []


@pytest.mark.asyncio
async def test_fresh_node_is_only_aged(registry: DeviceRegistry, protocol: FakeProtocol) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)
    await registry.add_or_refresh(make_description("uuid:cam-1"), "http://cam.local/a.xml", 1801)

    report = await sweeper.sweep_once()

    assert report == SweepReport()
    assert protocol.search_calls == []
    assert (await registry.get("uuid:cam-1")).advertisement_timeout == 1771


@pytest.mark.asyncio
async def test_renewal_search_failure_is_swallowed(registry: DeviceRegistry, protocol: FakeProtocol) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)
    await registry.add_or_refresh(make_description("uuid:cam-1"), "http://cam.local/a.xml", 50)
    protocol.fail_search = True

    report = await sweeper.sweep_once()

    assert report.renewing == ("uuid:cam-1",)
    assert "uuid:cam-1" in registry


@pytest.mark.asyncio
async def test_non_positive_expiry_is_removed_on_next_sweep(
    registry: DeviceRegistry, protocol: FakeProtocol
) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)
    await registry.add_or_refresh(make_description("uuid:cam-1"), "http://cam.local/a.xml", 0)
    assert "uuid:cam-1" in registry

    report = await sweeper.sweep_once()

    assert report.expired == ("uuid:cam-1",)


@pytest.mark.asyncio
async def test_start_and_stop(registry: DeviceRegistry, protocol: FakeProtocol) -> None:
    sweeper = TimeoutSweeper(registry, protocol, interval=30)

    sweeper.start()
    await asyncio.sleep(0)
    assert sweeper.running

    await sweeper.stop()
    assert not sweeper.running
    await sweeper.stop()


def test_interval_must_be_positive(registry: DeviceRegistry, protocol: FakeProtocol) -> None:
    with pytest.raises(ValueError):
        TimeoutSweeper(registry, protocol, interval=0)


@pytest.mark.asyncio
async def test_discovered_device_lifecycle(
    registry: DeviceRegistry, protocol: FakeProtocol, observer: RecordingObserver
) -> None:
    location = "http://192.168.1.20:49152/description.xml"
    fetcher = FakeFetcher(documents={location: description_xml("uuid:D1")})
    dispatcher = EventDispatcher(registry, fetcher)
    sweeper = TimeoutSweeper(registry, protocol, interval=30)

    await dispatcher.dispatch(DiscoveryEvent(kind="advertisement_alive", location=location, expires=1801))

    assert len(registry) == 1
    assert observer.added == ["uuid:D1"]
    assert len(protocol.subscribe_calls) == 1

    await dispatcher.dispatch(
        VariableChangeEvent(subscription_id="uuid:sid-1", event_key=0, changed_variables=property_set(Power="1"))
    )
    assert observer.updated == [("uuid:D1", 0, "Power", "1")]

    for _ in range(58):
        await sweeper.sweep_once()
    assert "uuid:D1" in registry
    assert protocol.search_calls == []

    # 1801 - 59 * 30 = 31, below two intervals.
    await sweeper.sweep_once()
    assert "uuid:D1" in registry
    assert protocol.search_calls == [(30, "uuid:D1")]

    await sweeper.sweep_once()
    assert "uuid:D1" in registry
    assert observer.removed == []

    report = await sweeper.sweep_once()
    assert report.expired == ("uuid:D1",)
    assert "uuid:D1" not in registry
    assert observer.removed == ["uuid:D1"]

    await sweeper.sweep_once()
    assert observer.removed == ["uuid:D1"]


class _GatedUnsubscribe(FakeProtocol):
    """Blocks every unsubscribe until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.unsubscribing = asyncio.Event()

    async def unsubscribe(self, subscription_id: str) -> None:
        self.unsubscribe_calls.append(subscription_id)
        self.unsubscribing.set()
        await self.gate.wait()


async def _two_expiring(protocol: FakeProtocol, observer: RecordingObserver) -> DeviceRegistry:
    registry = DeviceRegistry(protocol, observer=observer)
    await registry.add_or_refresh(make_description("uuid:a"), "http://cam.local/a.xml", 1)
    await registry.add_or_refresh(make_description("uuid:b"), "http://cam.local/b.xml", 1)
    return registry


@pytest.mark.asyncio
async def test_stop_waits_for_teardown_of_expired_devices(observer: RecordingObserver) -> None:
    protocol = _GatedUnsubscribe()
    registry = await _two_expiring(protocol, observer)
    sweeper = TimeoutSweeper(registry, protocol, interval=1)

    sweeper.start()
    await asyncio.wait_for(protocol.unsubscribing.wait(), timeout=5)
    stopping = asyncio.create_task(sweeper.stop())
    await asyncio.sleep(0.05)
    assert not stopping.done()

    protocol.gate.set()
    await asyncio.wait_for(stopping, timeout=5)
    await registry.remove_all()

    assert not sweeper.running
    assert observer.removed == ["uuid:a", "uuid:b"]
    assert protocol.unsubscribe_calls == ["uuid:sid-1", "uuid:sid-2"]


@pytest.mark.asyncio
async def test_cancelled_sweep_still_tears_down_detached_devices(observer: RecordingObserver) -> None:
    protocol = _GatedUnsubscribe()
    registry = await _two_expiring(protocol, observer)
    sweeper = TimeoutSweeper(registry, protocol, interval=1)

    sweep = asyncio.create_task(sweeper.sweep_once())
    await asyncio.wait_for(protocol.unsubscribing.wait(), timeout=5)
    sweep.cancel()
    with pytest.raises(asyncio.CancelledError):
        await sweep

    protocol.gate.set()
    await asyncio.wait_for(sweeper.stop(), timeout=5)

    assert len(registry) == 0
    assert observer.removed == ["uuid:a", "uuid:b"]
    assert protocol.unsubscribe_calls == ["uuid:sid-1", "uuid:sid-2"]
