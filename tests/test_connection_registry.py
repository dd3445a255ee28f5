# tests/test_connection_registry.py
"""Tests for kiosk_dispatch/core/connection_registry.py — registration and fan-out."""
from __future__ import annotations

import asyncio

import pytest

from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from tests.fakes import FailingConnection, FakeConnection


class TestRegistration:
    def test_register_adds_connection(self, registry):
        conn = FakeConnection()
        registry.register(conn)
        assert registry.count() == 1

    def test_register_is_idempotent(self, registry):
        conn = FakeConnection()
        registry.register(conn)
        registry.register(conn)
        assert registry.count() == 1

    def test_distinct_connections_counted_separately(self, registry):
        registry.register(FakeConnection())
        registry.register(FakeConnection())
        assert registry.count() == 2

    def test_unregister_removes_connection(self, registry):
        conn = FakeConnection()
        registry.register(conn)
        registry.unregister(conn)
        assert registry.count() == 0

    def test_unregister_absent_is_noop(self, registry):
        registry.unregister(FakeConnection())
        assert registry.count() == 0


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_no_connections_is_noop(self, registry):
        delivered = await registry.broadcast({"type": "incoming_call", "sid": "CA1"})
        assert delivered == 0

    @pytest.mark.asyncio
    async def test_delivers_to_every_connection(self, registry):
        a, b = FakeConnection(), FakeConnection()
        registry.register(a)
        registry.register(b)

        event = {"type": "call_resolved", "sid": "CA1", "accepted": True}
        delivered = await registry.broadcast(event)

        assert delivered == 2
        assert a.events == [event]
        assert b.events == [event]

    @pytest.mark.asyncio
    async def test_failed_send_does_not_block_others(self, registry):
        bad = FailingConnection()
        good = FakeConnection()
        registry.register(bad)
        registry.register(good)

        delivered = await registry.broadcast({"type": "incoming_call", "sid": "CA1"})

        assert delivered == 1
        assert len(good.events) == 1
        assert bad.attempts == 1

    @pytest.mark.asyncio
    async def test_failed_connection_is_unregistered(self, registry):
        bad = FailingConnection()
        registry.register(bad)
        registry.register(FakeConnection())

        await registry.broadcast({"type": "incoming_call", "sid": "CA1"})

        assert registry.count() == 1
        assert bad not in registry.snapshot()

    @pytest.mark.asyncio
    async def test_slow_connection_times_out_and_is_dropped(self):
        class SlowConnection:
            async def send(self, event):
                await asyncio.sleep(1)

        registry = ConnectionRegistry(send_timeout=0.01)
        slow = SlowConnection()
        fast = FakeConnection()
        registry.register(slow)
        registry.register(fast)

        delivered = await registry.broadcast({"type": "incoming_call", "sid": "CA1"})

        assert delivered == 1
        assert registry.snapshot() == [fast]

    @pytest.mark.asyncio
    async def test_concurrent_broadcasts_keep_issue_order(self, registry):
        conn = FakeConnection()
        registry.register(conn)

        events = [{"type": "incoming_call", "sid": f"CA{i}"} for i in range(20)]
        await asyncio.gather(*(registry.broadcast(e) for e in events))

        assert [e["sid"] for e in conn.events] == [e["sid"] for e in events]

    @pytest.mark.asyncio
    async def test_connection_registered_during_broadcast_is_not_required(self, registry):
        late = FakeConnection()

        class RegisteringConnection:
            def __init__(self):
                self.events = []

            async def send(self, event):
                registry.register(late)
                self.events.append(event)

        first = RegisteringConnection()
        registry.register(first)

        await registry.broadcast({"type": "incoming_call", "sid": "CA1"})

        assert len(first.events) == 1
        assert late.events == []
        assert registry.count() == 2

    @pytest.mark.asyncio
    async def test_stuck_connections_cost_one_timeout_in_total(self):
        class StuckConnection:
            async def send(self, event):
                await asyncio.sleep(10)

        registry = ConnectionRegistry(send_timeout=0.2)
        for _ in range(4):
            registry.register(StuckConnection())
        fast = FakeConnection()
        registry.register(fast)

        loop = asyncio.get_running_loop()
        started = loop.time()
        delivered = await registry.broadcast({"type": "incoming_call", "sid": "CA1"})
        elapsed = loop.time() - started

        assert delivered == 1
        assert elapsed < 0.6
        assert registry.snapshot() == [fast]
