FLOW = {
    "id": "flow_1",
    "name": "Checkout",
    "type": "standard",
    "skip_rules": {"allowed_skips": ["shipping"]},
    "steps": [
        {"name": "customer_info", "title": "Dados", "type": "customer_info", "order": 1, "completed": True},
        {"name": "shipping", "title": "Entrega", "type": "shipping", "order": 2, "required": False},
        {"name": "payment_info", "title": "Pagamento", "type": "payment", "order": 3},
    ],
}


def test_evaluate_step(client):
    step = {
        "name": "customer_info",
        "title": "Dados",
        "type": "customer_info",
        "order": 1,
        "fields": [{"name": "name", "required": True}, {"name": "email", "required": True}],
        "data": {"email": "not-an-email"},
        "validation_rules": {"email": [{"type": "email"}]},
    }
    r = client.post("/api/v1/flows/steps/evaluate", json=step)
    assert r.status_code == 200
    data = r.json()
    assert data["progress"] == 50.0
    assert data["validation"]["valid"] is False
    assert data["validation"]["errors"] == [
        "Champs obligatoires manquants: name",
        "Le champ 'email' doit être un email valide",
    ]
    assert data["missing_fields"] == ["name"]


def test_evaluate_step_unknown_operator_is_422(client):
    step = {"name": "s", "title": "S", "type": "form", "order": 1, "conditional_logic": [{"field": "x", "operator": "like"}]}
    r = client.post("/api/v1/flows/steps/evaluate", json=step)
    assert r.status_code == 422
    assert r.json()["detail"] == "FlowStepData invalide"


def test_navigate_skips_optional_step(client):
    r = client.post("/api/v1/flows/navigate", json={"flow": FLOW, "current_step": "customer_info"})
    assert r.status_code == 200
    data = r.json()
    assert data["next_step"] == "payment_info"
    assert data["finished"] is False
    assert data["flow_progress"] == 33.33


def test_navigate_end_of_flow(client):
    r = client.post("/api/v1/flows/navigate", json={"flow": FLOW, "current_step": "payment_info"})
    assert r.status_code == 200
    assert r.json()["next_step"] is None
    assert r.json()["finished"] is True


def test_navigate_unknown_step_is_422(client):
    r = client.post("/api/v1/flows/navigate", json={"flow": FLOW, "current_step": "ghost"})
    assert r.status_code == 422
    assert r.json()["detail"] == "Étape inconnue: ghost"


def test_navigate_missing_current_step_is_422(client):
    r = client.post("/api/v1/flows/navigate", json={"flow": FLOW})
    assert r.status_code == 422


def test_analytics_report(client):
    payload = {
        "flow_id": "flow_1",
        "period": "30d",
        "total_sessions": 800,
        "conversion_rate": 20,
        "abandoment_rate": 75,
        "average_completion_time": 200,
        "weekly_trends": [{"conversion_rate": 30}, {"conversion_rate": 20}],
    }
    r = client.post("/api/v1/flows/analytics/report", json=payload)
    assert r.status_code == 200
    data = r.json()
    assert data["performance"]["grade"] == "F"
    assert data["trends"]["overall"] == "declining"
    assert [i["type"] for i in data["issues"]] == ["low_conversion", "high_abandonment"]
    assert data["confidence"] == "medium"
