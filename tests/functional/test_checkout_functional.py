import pytest
from fastapi.testclient import TestClient

from clubify_checkout.app_setup.factory import create_app


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_health_clubify_reports_api_and_cache(client, fake_api):
    fake_api.add("GET", "/health", json={"status": "ok"})
    r = client.get("/health/clubify")
    assert r.status_code == 200
    assert r.json() == {"version": "1.0.0", "environment": "sandbox", "api": True, "cache": True}


def test_health_clubify_when_api_down(client, fake_api):
    fake_api.add("GET", "/health", status=503)
    r = client.get("/health/clubify")
    assert r.status_code == 200
    assert r.json()["api"] is False


def test_checkout_journey(client):
    flow = {
        "id": "flow_br",
        "name": "Checkout BR",
        "type": "express",
        "steps": [
            {
                "name": "customer_info",
                "title": "Dados",
                "type": "customer_info",
                "order": 1,
                "fields": [{"name": "email", "required": True}],
                "validation_rules": {"email": [{"type": "email"}]},
            },
            {"name": "payment_info", "title": "Pagamento", "type": "payment", "order": 2},
            {"name": "order_confirmation", "title": "Confirmação", "type": "confirmation", "order": 3},
        ],
    }

    # 1) l'étape client est remplie puis validée
    step = dict(flow["steps"][0], data={"email": "ana@example.com"})
    r = client.post("/api/v1/flows/steps/evaluate", json=step)
    assert r.status_code == 200
    assert r.json()["validation"]["valid"] is True
    assert r.json()["progress"] == 100.0

    # 2) passage à l'étape suivante
    flow["steps"][0] = dict(step, completed=True)
    r = client.post("/api/v1/flows/navigate", json={"flow": flow, "current_step": "customer_info"})
    assert r.json()["next_step"] == "payment_info"
    assert r.json()["flow_progress"] == 33.33

    # 3) devis du panier avant paiement
    cart = {
        "session_id": "sess-42",
        "items": [
            {"product_id": "p1", "name": "Ingresso", "price": "80", "quantity": 2, "is_digital": True, "fees": [{"type": "fixed", "amount": "5", "per_unit": True}]},
        ],
    }
    r = client.post("/api/v1/cart/quote", json=cart)
    assert r.status_code == 200
    assert r.json()["formatted"]["total"] == "R$ 170,00"
    assert r.json()["summary"]["requires_shipping"] is False


def test_app_without_preset_sdk_builds_one(monkeypatch):
    monkeypatch.setenv("USE_FAKE_REDIS_FOR_TESTS", "1")
    app = create_app()
    with TestClient(app) as c:
        assert app.state.sdk is not None
        assert c.get("/health").json() == {"ok": True}
    assert app.state.sdk is None


@pytest.mark.parametrize("path", ["/api/v1/cart/quote", "/api/v1/flows/analytics/report"])
def test_sdk_missing_is_503(path):
    app = create_app()
    # sans lifespan: aucun SDK construit
    c = TestClient(app)
    r = c.post(path, json={})
    assert r.status_code == 503
    assert r.json()["detail"] == "SDK non initialisé"
