"""Todo endpoint tests, including the mutations they publish."""

import pytest
from fastapi.testclient import TestClient

from todo_stream.events import (
    CreateMutation,
    DeleteMutation,
    MutationBus,
    Subscription,
    UpdateMutation,
)
from todo_stream.store import Todo

HTML = {"Accept": "text/html"}


@pytest.fixture
def subscription(client: TestClient) -> Subscription:
    """Bus subscription opened before the test issues any writes."""
    bus: MutationBus = client.app.state.mutation_bus
    return bus.subscribe()


def test_json_scenario_publishes_each_mutation(
    client: TestClient, subscription: Subscription
) -> None:
    """Create, update and delete over JSON each publish one mutation."""
    response = client.post("/todos", json={"description": "buy milk"})
    assert response.status_code == 200
    created = response.json()
    assert created == {"id": 1, "description": "buy milk", "completed": False}
    assert subscription.try_recv() == CreateMutation(todo=Todo(**created))

    response = client.put("/todos/1", json={"completed": True})
    assert response.status_code == 200
    updated = response.json()
    assert updated["completed"] is True
    assert subscription.try_recv() == UpdateMutation(todo=Todo(**updated))
    assert client.get("/todos").json() == [updated]

    response = client.delete("/todos/1")
    assert response.status_code == 200
    assert response.content == b""
    assert subscription.try_recv() == DeleteMutation(todo_id=1)
    assert client.get("/todos").json() == []
    assert subscription.try_recv() is None


def test_form_create_returns_fragment(
    client: TestClient, subscription: Subscription
) -> None:
    response = client.post("/todos", data={"description": "walk <dog>"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'id="todo-1"' in response.text
    assert "walk &lt;dog&gt;" in response.text
    assert isinstance(subscription.try_recv(), CreateMutation)


def test_form_update_toggles_completion(client: TestClient) -> None:
    client.post("/todos", json={"description": "water plants"})

    response = client.put("/todos/1", data={"completed": "true"})
    assert response.status_code == 200
    assert "checked" in response.text

    # An unchecked checkbox sends no field at all.
    response = client.put(
        "/todos/1",
        content=b"",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200
    assert "checked" not in response.text
    assert client.get("/todos").json()[0]["completed"] is False


def test_list_html_fragment(client: TestClient) -> None:
    client.post("/todos", json={"description": "first"})
    client.post("/todos", json={"description": "second"})

    response = client.get("/todos", headers=HTML)
    assert response.headers["content-type"].startswith("text/html")
    assert response.text.index("first") < response.text.index("second")


def test_list_defaults_to_json(client: TestClient) -> None:
    response = client.get("/todos")
    assert response.headers["content-type"] == "application/json"
    assert response.json() == []


def test_blank_description_rejected_without_publish(
    client: TestClient, subscription: Subscription
) -> None:
    response = client.post("/todos", json={"description": "   "})
    assert response.status_code == 422
    assert subscription.try_recv() is None


def test_malformed_json_rejected(client: TestClient) -> None:
    response = client.post(
        "/todos",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 422


def test_unsupported_media_type(client: TestClient) -> None:
    response = client.post(
        "/todos", content=b"buy milk", headers={"Content-Type": "text/plain"}
    )
    assert response.status_code == 415


def test_update_missing_todo_is_server_error(
    client: TestClient, subscription: Subscription
) -> None:
    """Store failures surface as 500 and publish nothing."""
    response = client.put("/todos/99", json={"completed": True})
    assert response.status_code == 500
    assert "99" in response.json()["detail"]
    assert subscription.try_recv() is None


def test_delete_missing_todo_is_server_error(
    client: TestClient, subscription: Subscription
) -> None:
    response = client.delete("/todos/99")
    assert response.status_code == 500
    assert subscription.try_recv() is None


def test_write_succeeds_when_bus_closed(client: TestClient) -> None:
    """Live delivery failing never fails the committed write."""
    client.app.state.mutation_bus.close()

    response = client.post("/todos", json={"description": "still saved"})
    assert response.status_code == 200
    assert client.get("/todos").json()[0]["description"] == "still saved"


def test_index_page(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "/todos/stream" in client.get("/static/app.js").text
    assert '<ul id="todos">' in response.text


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/todos", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_stream_refused_while_shutting_down(client: TestClient) -> None:
    client.app.state.mutation_bus.close()

    response = client.get("/todos/stream")
    assert response.status_code == 503
    assert response.json() == {"detail": "Service is shutting down"}
