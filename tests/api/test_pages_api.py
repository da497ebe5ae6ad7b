import pytest
from fastapi.testclient import TestClient

from component_bus.component import Component
from component_bus.registry import COMPONENT_NAME_TO_CLASS, register_component
from tests.helpers.components import CreatePost, Looper, OrderTracker, PostList, PostView


class Grumpy(Component):
    listeners = {"post-created": "complain"}

    def complain(self):
        raise ValueError("not today")

    def explode(self):
        raise RuntimeError("kaboom")


@pytest.fixture(autouse=True)
def registered_components():
    original = dict(COMPONENT_NAME_TO_CLASS)
    for cls in (CreatePost, PostList, PostView, OrderTracker, Looper, Grumpy):
        register_component(cls)
    yield
    COMPONENT_NAME_TO_CLASS.clear()
    COMPONENT_NAME_TO_CLASS.update(original)


def _create_page(client: TestClient, *components: dict) -> dict:
    response = client.post("/pages", json={"components": list(components)})
    assert response.status_code == 201, response.text
    return response.json()


class TestCreatePage:
    def test_mounts_components_in_order(self, client):
        """Components are mounted in request order and report their resolved listener keys."""
        body = _create_page(
            client,
            {"component": "create-post", "attributes": {"title": "Hello"}},
            {"component": "post-list"},
            {"component": "order-tracker", "attributes": {"order_id": 7}},
        )

        assert [i["component"] for i in body["instances"]] == ["create-post", "post-list", "order-tracker"]
        assert body["instances"][0]["listener_keys"] == []
        assert body["instances"][1]["listener_keys"] == ["post-created"]
        assert "echo-private:orders.7,OrderShipped" in body["instances"][2]["listener_keys"]

    def test_unknown_component(self, client):
        """An unregistered component name is a 400."""
        response = client.post("/pages", json={"components": [{"component": "nope"}]})
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown component: nope"

    def test_invalid_attributes(self, client):
        """Attributes that fail validation are a 400."""
        response = client.post("/pages", json={"components": [{"component": "order-tracker"}]})
        assert response.status_code == 400
        assert "Invalid component attributes" in response.json()["detail"]

    def test_get_and_delete_page(self, client):
        """A page can be fetched and deleted once; afterwards it is a 404."""
        page = _create_page(client, {"component": "post-list"})
        page_id = page["page_id"]

        assert client.get(f"/pages/{page_id}").json() == page
        assert client.delete(f"/pages/{page_id}").status_code == 204
        assert client.get(f"/pages/{page_id}").status_code == 404
        assert client.delete(f"/pages/{page_id}").status_code == 404


class TestActions:
    def test_action_cycle(self, client):
        """Calling an action returns the cycle: routed events, recipients and browser events."""
        page = _create_page(
            client,
            {"component": "create-post", "attributes": {"title": "Hello"}},
            {"component": "post-list"},
        )
        creator, post_list = page["instances"]

        response = client.post(f"/pages/{page['page_id']}/components/{creator['instance_id']}/actions/save")

        assert response.status_code == 200
        body = response.json()
        assert body["trigger"] == "create-post.save"
        assert body["events"] == [
            {
                "name": "post-created",
                "scope": "broadcast",
                "origin_id": creator["instance_id"],
                "recipients": [post_list["instance_id"]],
            }
        ]
        assert body["browser_events"] == [{"name": "post-created", "detail": {"title": "Hello"}}]
        assert body["errors"] == []

    def test_action_arguments_update_listener_keys(self, client):
        """Action arguments that change state re-resolve dynamic listener keys."""
        page = _create_page(client, {"component": "post-view", "attributes": {"post": {"id": 3}}})
        view = page["instances"][0]
        assert view["listener_keys"] == ["post-updated.3"]

        url = f"/pages/{page['page_id']}/components/{view['instance_id']}/actions/show"
        assert client.post(url, json={"args": [4]}).status_code == 200

        state = client.get(f"/pages/{page['page_id']}").json()
        assert state["instances"][0]["listener_keys"] == ["post-updated.4"]

    def test_handler_errors_are_reported(self, client):
        """Handler failures are listed in the response instead of failing the request."""
        page = _create_page(
            client,
            {"component": "create-post", "attributes": {"title": "Hello"}},
            {"component": "grumpy"},
        )
        creator, grumpy = page["instances"]

        body = client.post(f"/pages/{page['page_id']}/components/{creator['instance_id']}/actions/save").json()

        assert len(body["errors"]) == 1
        assert body["errors"][0]["instance_id"] == grumpy["instance_id"]
        assert body["errors"][0]["handler"] == "complain"
        assert "not today" in body["errors"][0]["detail"]

    @pytest.mark.parametrize("action", ["missing", "_mark_dirty", "dispatch"])
    def test_unknown_action_is_404(self, client, action):
        """Missing, private and framework methods are not callable actions."""
        page = _create_page(client, {"component": "post-list"})
        instance_id = page["instances"][0]["instance_id"]

        response = client.post(f"/pages/{page['page_id']}/components/{instance_id}/actions/{action}")
        assert response.status_code == 404

    def test_unknown_instance_or_page(self, client):
        """Unknown pages and instances are 404s."""
        page = _create_page(client, {"component": "post-list"})
        assert client.post(f"/pages/{page['page_id']}/components/ghost/actions/save").status_code == 404
        assert client.post("/pages/ghost/components/ghost/actions/save").status_code == 404

    def test_failing_action_is_500(self, client):
        """An action that raises is a 500."""
        page = _create_page(client, {"component": "grumpy"})
        instance_id = page["instances"][0]["instance_id"]

        response = client.post(f"/pages/{page['page_id']}/components/{instance_id}/actions/explode")

        assert response.status_code == 500
        assert response.json()["detail"] == "Action 'explode' failed"


class TestScriptEvents:
    def test_script_event_is_routed(self, client):
        """A script event is routed as a Broadcast with no origin and is not echoed back."""
        page = _create_page(client, {"component": "post-list"})
        post_list = page["instances"][0]

        response = client.post(
            f"/pages/{page['page_id']}/events", json={"name": "post-created", "detail": {"title": "From script"}}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["trigger"] == "script:post-created"
        assert body["events"][0]["recipients"] == [post_list["instance_id"]]
        assert body["events"][0]["origin_id"] is None
        assert body["browser_events"] == []

    def test_blank_name_rejected(self, client):
        """Script events need a name."""
        page = _create_page(client, {"component": "post-list"})
        assert client.post(f"/pages/{page['page_id']}/events", json={"name": ""}).status_code == 422

    def test_flush_limit_is_500(self, client, monkeypatch):
        """Tripping the flush limit is a 500 naming the limit."""
        monkeypatch.setenv("COMPONENT_BUS_MAX_FLUSH_EVENTS", "5")
        page = _create_page(client, {"component": "looper"})

        response = client.post(f"/pages/{page['page_id']}/events", json={"name": "loop"})

        assert response.status_code == 500
        assert "more than 5 events" in response.json()["detail"]


class TestTransportMessages:
    def test_message_is_routed(self, client):
        """A transport message reaches the instance listening on its channel key."""
        page = _create_page(client, {"component": "order-tracker", "attributes": {"order_id": 7}})
        tracker = page["instances"][0]

        response = client.post(
            f"/pages/{page['page_id']}/transport",
            json={"channel": "orders.7", "visibility": "private", "event": "OrderShipped", "payload": {"id": 7}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["trigger"] == "transport:echo-private:orders.7,OrderShipped"
        assert body["events"][0]["recipients"] == [tracker["instance_id"]]
        assert body["browser_events"] == [{"name": "echo-private:orders.7,OrderShipped", "detail": [{"id": 7}]}]

    def test_message_without_listeners(self, client):
        """A message nobody listens to still runs a cycle with no recipients."""
        page = _create_page(client, {"component": "post-list"})

        response = client.post(
            f"/pages/{page['page_id']}/transport", json={"channel": "news", "event": "Published"}
        )

        assert response.status_code == 200
        assert response.json()["events"][0]["recipients"] == []

    def test_invalid_visibility(self, client):
        """Unknown visibilities are rejected by validation."""
        page = _create_page(client, {"component": "post-list"})
        response = client.post(
            f"/pages/{page['page_id']}/transport", json={"channel": "news", "visibility": "secret", "event": "x"}
        )
        assert response.status_code == 422
