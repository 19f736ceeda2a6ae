import asyncio

from app.services.realtime import RealtimeBroadcaster, order_room, restaurant_room


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages = []

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(data)


def test_room_names():
    assert restaurant_room(4) == "restaurant_4"
    assert order_room(12) == "order-12"


def test_emit_reaches_only_members_of_the_room():
    broadcaster = RealtimeBroadcaster()
    pizza, sushi = FakeSocket(), FakeSocket()

    async def scenario():
        broadcaster.join(restaurant_room(1), pizza)
        broadcaster.join(restaurant_room(2), sushi)
        broadcaster.emit(restaurant_room(1), "new-order", {"order": {"id": 5}})
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert pizza.messages == [{"event": "new-order", "room": "restaurant_1", "data": {"order": {"id": 5}}}]
    assert sushi.messages == []


def test_failed_connection_is_dropped_and_others_still_receive():
    broadcaster = RealtimeBroadcaster()
    healthy, dead = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        broadcaster.join(order_room(9), healthy)
        broadcaster.join(order_room(9), dead)
        broadcaster.emit(order_room(9), "order-status-updated", {"status": "ready"})
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert len(healthy.messages) == 1
    assert broadcaster.room_size(order_room(9)) == 1


def test_leave_removes_connection_from_every_room():
    broadcaster = RealtimeBroadcaster()
    socket = FakeSocket()
    broadcaster.join(restaurant_room(1), socket)
    broadcaster.join(order_room(3), socket)

    broadcaster.leave(socket)

    assert broadcaster.room_size(restaurant_room(1)) == 0
    assert broadcaster.room_size(order_room(3)) == 0


def test_emit_without_listeners_or_loop_is_a_noop():
    broadcaster = RealtimeBroadcaster()
    socket = FakeSocket()

    broadcaster.emit(restaurant_room(1), "new-order", {})
    broadcaster.join(restaurant_room(1), socket)
    broadcaster.emit(restaurant_room(1), "new-order", {})

    assert socket.messages == []


def test_emit_keeps_delivery_task_until_it_finishes():
    broadcaster = RealtimeBroadcaster()
    socket = FakeSocket()

    async def scenario():
        broadcaster.join(restaurant_room(1), socket)
        broadcaster.emit(restaurant_room(1), "new-order", {"order": {"id": 1}})
        in_flight = len(broadcaster._pending)
        for _ in range(3):
            await asyncio.sleep(0)
        return in_flight

    assert asyncio.run(scenario()) == 1
    assert broadcaster._pending == set()
    assert len(socket.messages) == 1
