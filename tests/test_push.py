import asyncio
import json

import pytest

from app.ledger.models import PushEventKind
from app.ledger.push import PushListener


class FakeConnection:
    def __init__(self, messages):
        self.messages = messages

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        for message in self.messages:
            yield message


def test_handle_message_passes_valid_events():
    events = []
    listener = PushListener("ws://store/ws", on_event=events.append)

    handled = listener.handle_message(json.dumps({"type": "NEW_ORDER", "order": {"id": 1}}))

    assert handled
    assert events[0].kind == PushEventKind.NEW_ORDER
    assert events[0].order.id == "1"


def test_handle_message_drops_malformed_events():
    events = []
    listener = PushListener("ws://store/ws", on_event=events.append)

    assert not listener.handle_message("not json")
    assert not listener.handle_message(json.dumps({"type": "NEW_ORDER", "order": {"status": "pending"}}))
    assert events == []


@pytest.mark.asyncio
async def test_reconnects_after_failure():
    attempts = []
    events = []
    message = json.dumps({"type": "ORDER_UPDATED", "order": {"id": 2, "status": "completed"}})

    def connect(url):
        attempts.append(url)
        if len(attempts) == 1:
            raise OSError("connection refused")
        return FakeConnection([message])

    def on_event(event):
        events.append(event)
        listener.stop()

    listener = PushListener("ws://store/ws", on_event=on_event, reconnect_delay=0.01, connect=connect)

    await asyncio.wait_for(listener.run(), timeout=1)

    assert attempts == ["ws://store/ws", "ws://store/ws"]
    assert [e.order.id for e in events] == ["2"]
    assert not listener.connected


@pytest.mark.asyncio
async def test_reconnects_after_server_closes():
    attempts = []

    def connect(url):
        attempts.append(url)
        if len(attempts) == 3:
            listener.stop()
        return FakeConnection([])

    listener = PushListener("ws://store/ws", on_event=lambda event: None, reconnect_delay=0.01, connect=connect)

    await asyncio.wait_for(listener.run(), timeout=1)

    assert len(attempts) == 3
