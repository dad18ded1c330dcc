from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/webhook/whatsapp",
    "/api/categories",
    "/api/products",
    "/api/products/bulk",
    "/api/orders",
    "/api/orders/{order_id}",
    "/api/orders/{order_id}/status",
    "/api/partners",
    "/api/partners/{partner_id}/status",
    "/internal/metrics",
    "/api/health",
}


def test_api_startup_and_router_registration(monkeypatch):
    from kirana_store import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        api_health_response = client.get("/api/health")
        metrics_response = client.get("/internal/metrics")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert api_health_response.json()["status"] == "OK"
    assert "timestamp" in api_health_response.json()
    assert openapi_response.status_code == 200

    endpoints = metrics_response.json()["endpoints"]
    assert endpoints["GET /api/health"]["total_requests"] >= 1

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
