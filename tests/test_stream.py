"""Live stream endpoint tests, driven through the ASGI app."""

import asyncio
from typing import Any

import httpx
import pytest

from todo_stream.app import create_app, lifespan
from todo_stream.config import Settings
from todo_stream.events import MutationBus
from todo_stream.rendering import render_todo
from todo_stream.store import Todo

Message = dict[str, Any]


class StreamClient:
    """Holds one open GET /todos/stream request against an ASGI app."""

    def __init__(self, app: Any) -> None:
        self._app = app
        self._messages: asyncio.Queue[Message] = asyncio.Queue()
        self._disconnected = asyncio.Event()
        self._request_sent = False
        self._buffer = ""
        self.task: asyncio.Task[None] | None = None

    def open(self) -> None:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/todos/stream",
            "raw_path": b"/todos/stream",
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"host", b"testserver"),
                (b"accept", b"text/event-stream"),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
        self.task = asyncio.create_task(self._app(scope, self._receive, self._send))

    def disconnect(self) -> None:
        self._disconnected.set()

    async def _receive(self) -> Message:
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message: Message) -> None:
        await self._messages.put(message)

    async def start(self) -> Message:
        message = await asyncio.wait_for(self._messages.get(), timeout=2.0)
        assert message["type"] == "http.response.start"
        return message

    async def next_event(self) -> dict[str, str]:
        """Read the next complete event, parsed into its fields."""
        while "\n\n" not in self._buffer:
            message = await asyncio.wait_for(self._messages.get(), timeout=2.0)
            assert message["type"] == "http.response.body"
            self._buffer += message["body"].decode().replace("\r\n", "\n")
        block, self._buffer = self._buffer.split("\n\n", 1)

        fields: dict[str, str] = {}
        data: list[str] = []
        for line in block.split("\n"):
            if line.startswith(":"):
                continue
            name, _, value = line.partition(": ")
            if name == "data":
                data.append(value)
            else:
                fields[name] = value
        fields["data"] = "\n".join(data)
        return fields

    async def next_mutation(self) -> dict[str, str]:
        while True:
            event = await self.next_event()
            if event.get("event") != "ping":
                return event


@pytest.mark.asyncio
async def test_stream_delivers_rendered_mutations(settings: Settings) -> None:
    """A write made after connecting arrives as the rendered todo fragment."""
    app = create_app(settings)

    async with lifespan(app):
        stream = StreamClient(app)
        stream.open()

        start = await stream.start()
        headers = dict(start["headers"])
        assert start["status"] == 200
        assert headers[b"content-type"].startswith(b"text/event-stream")
        assert headers[b"cache-control"] == b"no-cache"

        connected = await stream.next_event()
        assert connected["event"] == "ping"
        assert connected["data"] == '"ping"'

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://testserver"
        ) as http:
            response = await http.post("/todos", json={"description": "buy milk"})
            assert response.status_code == 200

            created = await stream.next_mutation()
            assert created["event"] == "create"
            assert created["id"] == "1"
            assert created["data"] == render_todo(
                Todo(id=1, description="buy milk")
            ).rstrip("\n")

            response = await http.put("/todos/1", json={"completed": True})
            assert response.status_code == 200

            updated = await stream.next_mutation()
            assert updated["event"] == "update-1"
            assert updated["id"] == "1"
            assert "checked" in updated["data"]

            response = await http.delete("/todos/1")
            assert response.status_code == 200

            deleted = await stream.next_mutation()
            assert (deleted["event"], deleted["id"], deleted["data"]) == (
                "delete",
                "1",
                "1",
            )

        bus: MutationBus = app.state.mutation_bus
        assert bus.subscriber_count == 1

        app.state.shutdown.trigger()
        assert stream.task is not None
        await asyncio.wait_for(stream.task, timeout=2.0)
        assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_client_disconnect_releases_subscription(settings: Settings) -> None:
    app = create_app(settings)

    async with lifespan(app):
        stream = StreamClient(app)
        stream.open()
        await stream.start()
        assert (await stream.next_event())["event"] == "ping"

        bus: MutationBus = app.state.mutation_bus
        assert bus.subscriber_count == 1

        stream.disconnect()
        assert stream.task is not None
        await asyncio.wait_for(stream.task, timeout=2.0)
        assert bus.subscriber_count == 0
