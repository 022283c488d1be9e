import asyncio
import uuid

from liveserver.registry import ConnectionRegistry


async def _send(channel):
    await channel.send_str("")


async def test_broadcast_reaches_registered_sessions(make_channel):
    registry = ConnectionRegistry()
    channels = {uuid.uuid4(): make_channel() for _ in range(3)}
    for session_id, channel in channels.items():
        await registry.register(session_id, channel)

    assert await registry.for_each_active(_send) == 3
    assert all(channel.sent == [""] for channel in channels.values())


async def test_unregistered_session_is_skipped(make_channel):
    registry = ConnectionRegistry()
    kept, dropped = make_channel(), make_channel()
    kept_id, dropped_id = uuid.uuid4(), uuid.uuid4()
    await registry.register(kept_id, kept)
    await registry.register(dropped_id, dropped)
    await registry.unregister(dropped_id)

    await registry.for_each_active(_send)
    await registry.for_each_active(_send)

    assert kept.sent == ["", ""]
    assert dropped.sent == []
    assert kept_id in registry
    assert dropped_id not in registry


async def test_unregister_is_idempotent(make_channel):
    registry = ConnectionRegistry()
    session_id = uuid.uuid4()
    await registry.register(session_id, make_channel())

    await registry.unregister(session_id)
    await registry.unregister(session_id)
    await registry.unregister(uuid.uuid4())

    assert len(registry) == 0


async def test_failed_channel_does_not_stop_pass(make_channel, caplog):
    registry = ConnectionRegistry()
    healthy, broken = make_channel(), make_channel(fail=True)
    await registry.register(uuid.uuid4(), broken)
    await registry.register(uuid.uuid4(), healthy)

    assert await registry.for_each_active(_send) == 1
    assert healthy.sent == [""]
    # Still registered; removal belongs to the connection handler
    assert len(registry) == 2
    assert "Failed to reach session" in caplog.text


async def test_close_all(make_channel):
    registry = ConnectionRegistry()
    channels = [make_channel(), make_channel()]
    for channel in channels:
        await registry.register(uuid.uuid4(), channel)

    await registry.close_all()

    assert all(channel.closed for channel in channels)


async def test_empty_registry():
    assert await ConnectionRegistry().for_each_active(_send) == 0


async def test_register_waits_for_pass_in_progress(make_channel):
    registry = ConnectionRegistry()
    stalled, late = make_channel(stall=True), make_channel()
    await registry.register(uuid.uuid4(), stalled)

    async def bounded_send(channel):
        await asyncio.wait_for(channel.send_str(""), 0.2)

    first_pass = asyncio.create_task(registry.for_each_active(bounded_send))
    await asyncio.sleep(0.05)
    joining = asyncio.create_task(registry.register(uuid.uuid4(), late))
    await asyncio.sleep(0.05)

    assert not joining.done()
    assert await first_pass == 0
    await joining
    assert late.sent == []

    stalled.stall = False
    assert await registry.for_each_active(bounded_send) == 2
    assert late.sent == [""]
