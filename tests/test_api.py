import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from subwatch.api import settings as settings_api
from subwatch.api import status, subscriptions
from subwatch.clients.base import BackendError
from subwatch.config import NotificationsConfig
from subwatch.services.notification_service import NotificationService

from conftest import GB, sub


def build_app(manager=None, notification_service=None, persistence_service=None) -> FastAPI:
    app = FastAPI()
    app.include_router(subscriptions.router)
    app.include_router(status.router)
    app.include_router(settings_api.router)
    if manager is not None:
        app.state.subscription_manager = manager
    if notification_service is not None:
        app.state.notification_service = notification_service
    if persistence_service is not None:
        app.state.persistence_service = persistence_service
    return app


@pytest.fixture
def manager(make_manager):
    manager = make_manager()
    manager.initialize([sub(f"s{i}") for i in range(8)])
    return manager


@pytest.fixture
def client(manager):
    with TestClient(build_app(manager)) as client:
        yield client


def test_missing_manager_returns_503():
    with TestClient(build_app()) as client:
        response = client.get("/api/subscriptions")
    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "SERVICE_UNAVAILABLE"


def test_list_returns_current_page_and_totals(client):
    body = client.get("/api/subscriptions").json()
    assert [s["id"] for s in body["subscriptions"]] == [f"s{i}" for i in range(6)]
    assert body["total"] == 8
    assert body["total_pages"] == 2
    assert body["current_page"] == 1

    page_two = client.get("/api/subscriptions", params={"page": 2}).json()
    assert [s["id"] for s in page_two["subscriptions"]] == ["s6", "s7"]


def test_change_page_out_of_range_is_ignored(client, manager):
    assert client.post("/api/subscriptions/page", json={"page": 2}).json()["changed"] is True
    response = client.post("/api/subscriptions/page", json={"page": 9}).json()
    assert response["changed"] is False
    assert manager.current_page == 2


def test_replace_collection(client, manager):
    response = client.put("/api/subscriptions", json={"subscriptions": [sub("x"), {"url": ""}]})
    assert response.status_code == 200
    assert response.json()["total"] == 2
    assert manager.subscriptions[0].id == "x"


def test_add_subscription(client, manager):
    response = client.post("/api/subscriptions", json={"name": "New", "url": "ss://abc"})
    assert response.status_code == 201
    created = response.json()
    assert created["name"] == "New"
    assert created["nodeCount"] == 0
    assert manager.subscriptions[0].id == created["id"]


def test_add_invalid_subscription_returns_validation_error(client):
    response = client.post("/api/subscriptions", json={"url": "https://x", "nodeCount": "many"})
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_bulk_import(client, manager, backend):
    response = client.post("/api/subscriptions/bulk", json={"subscriptions": [sub("a"), sub("b")]})
    assert response.status_code == 201
    body = response.json()
    assert body["added"] == 2
    assert body["succeeded"] == 2
    assert body["degraded"] is False
    assert [s.id for s in manager.subscriptions[:2]] == ["a", "b"]
    assert backend.batch_calls == [["a", "b"]]


def test_update_and_not_found(client, manager):
    response = client.put("/api/subscriptions/s1", json={"name": "Renamed", "url": "https://example.com/s1"})
    assert response.status_code == 200
    assert manager.get("s1").name == "Renamed"

    missing = client.put("/api/subscriptions/zzz", json={"url": ""})
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "SUBSCRIPTION_NOT_FOUND"


def test_delete_and_delete_all(client, manager):
    assert client.delete("/api/subscriptions/s0").status_code == 200
    assert client.delete("/api/subscriptions/s0").status_code == 404
    assert client.delete("/api/subscriptions").json() == {"deleted": 7}
    assert manager.subscriptions == []


def test_refresh_endpoint(client, backend):
    response = client.post("/api/subscriptions/s3/refresh")
    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "succeeded"
    assert body["subscription"]["nodeCount"] == 10
    assert backend.node_count_calls == ["https://example.com/s3"]

    assert client.post("/api/subscriptions/nope/refresh").status_code == 404


def test_set_subscription_interval(client, manager):
    response = client.put("/api/subscriptions/s2/interval", json={"minutes": 15})
    assert response.status_code == 200
    assert response.json()["update_interval"] == 15
    assert manager.get("s2").update_interval == 15

    assert client.put("/api/subscriptions/s2/interval", json={"minutes": -1}).status_code == 422


def test_global_update_interval(client, manager):
    assert client.get("/api/settings/update-interval").json() == {"minutes": 0, "active": False}

    body = client.put("/api/settings/update-interval", json={"minutes": 1000}).json()
    assert body == {"minutes": 1000, "active": False}

    client.portal.call(manager.start)
    try:
        body = client.put("/api/settings/update-interval", json={"minutes": 1000}).json()
        assert body == {"minutes": 1000, "active": True}

        body = client.put("/api/settings/update-interval", json={"minutes": 0}).json()
        assert body == {"minutes": 0, "active": False}
    finally:
        client.portal.call(manager.stop)


def test_reload_update_interval_reads_backend_settings(client, manager, backend):
    backend.settings_interval = 45

    body = client.post("/api/settings/update-interval/reload").json()

    assert body == {"minutes": 45, "active": False}


def test_reload_update_interval_backend_down(client, backend):
    backend.settings_error = BackendError("unreachable")

    response = client.post("/api/settings/update-interval/reload")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "SERVICE_UNAVAILABLE"


def test_status_current(make_manager):
    manager = make_manager()
    manager.initialize([
        sub("a", userInfo={"upload": 0, "download": GB, "total": 3 * GB}),
        sub("b", enabled=False),
    ])
    with TestClient(build_app(manager)) as client:
        body = client.get("/api/status/current").json()

    assert body["status"] == "stopped"
    assert body["subscriptions"]["total"] == 2
    assert body["subscriptions"]["enabled_count"] == 1
    assert body["remaining_quota"] == 2 * GB
    assert body["remaining_quota_display"] == "2.0 GB"
    assert body["persistence"]["dirty"] is None


def test_status_notifications(manager):
    notifications = NotificationService(NotificationsConfig())
    notifications.notify("first", "info")
    notifications.notify("second", "error")

    with TestClient(build_app(manager, notification_service=notifications)) as client:
        body = client.get("/api/status/notifications", params={"limit": 1}).json()

    assert [n["message"] for n in body["notifications"]] == ["second"]
    assert body["notifications"][0]["level"] == "error"


def test_correlation_id_is_echoed(manager):
    from subwatch.middleware.correlation import CorrelationIdMiddleware

    app = build_app(manager)
    app.add_middleware(CorrelationIdMiddleware)
    with TestClient(app) as client:
        echoed = client.get("/api/subscriptions", headers={"X-Correlation-ID": "abc123"})
        generated = client.get("/api/subscriptions")

    assert echoed.headers["X-Correlation-ID"] == "abc123"
    assert len(generated.headers["X-Correlation-ID"]) == 8
