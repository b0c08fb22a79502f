"""Unit tests for src/tactics_relay/server/registry.py"""

import asyncio

from tactics_relay.server.registry import ConnectionRegistry


def test_add_and_discard(registry: ConnectionRegistry, make_socket) -> None:
    conn_id = registry.add(make_socket())
    assert conn_id in registry
    assert len(registry) == 1

    registry.discard(conn_id)
    registry.discard(conn_id)

    assert conn_id not in registry
    assert len(registry) == 0


def test_broadcast_except_skips_sender(registry: ConnectionRegistry, make_socket) -> None:
    a, b, c = make_socket(), make_socket(), make_socket()
    a_id = registry.add(a)
    registry.add(b)
    registry.add(c)

    asyncio.run(registry.broadcast_except(a_id, {"type": "update", "state": {}}))

    assert a.sent == []
    assert b.sent == [{"type": "update", "state": {}}]
    assert c.sent == [{"type": "update", "state": {}}]


def test_broadcast_all_includes_everyone(registry: ConnectionRegistry, make_socket) -> None:
    sockets = [make_socket() for _ in range(3)]
    for ws in sockets:
        registry.add(ws)

    asyncio.run(registry.broadcast_all({"type": "play_animation"}))

    assert all(ws.sent == [{"type": "play_animation"}] for ws in sockets)


def test_not_ready_connections_are_skipped(registry: ConnectionRegistry, make_socket) -> None:
    """Skipped silently, not queued, and not dropped from the registry."""
    ready, closing = make_socket(), make_socket(ready=False)
    registry.add(ready)
    closing_id = registry.add(closing)

    asyncio.run(registry.broadcast_all({"type": "play_animation"}))
    asyncio.run(registry.send_to(closing_id, {"type": "play_animation"}))

    assert ready.sent == [{"type": "play_animation"}]
    assert closing.sent == []
    assert closing_id in registry


def test_failed_send_does_not_abort_broadcast(registry: ConnectionRegistry, make_socket) -> None:
    """The broken connection is dropped; the rest still get the message."""
    first, broken, last = make_socket(), make_socket(broken=True), make_socket()
    registry.add(first)
    broken_id = registry.add(broken)
    registry.add(last)

    asyncio.run(registry.broadcast_all({"type": "play_animation"}))

    assert first.sent == [{"type": "play_animation"}]
    assert last.sent == [{"type": "play_animation"}]
    assert broken_id not in registry


def test_send_to_unknown_connection_is_ignored(registry: ConnectionRegistry, make_socket) -> None:
    ws = make_socket()
    registry.add(ws)

    asyncio.run(registry.send_to("nope", {"type": "play_animation"}))

    assert ws.sent == []
