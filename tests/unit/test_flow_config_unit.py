import pytest

from clubify_checkout.errors import ValidationError
from clubify_checkout.flows.models import FlowConfigData


def _steps():
    # volontairement hors ordre
    return [
        {"name": "payment_info", "title": "Pagamento", "type": "payment", "order": 3},
        {"name": "customer_info", "title": "Dados", "type": "customer_info", "order": 1},
        {"name": "order_confirmation", "title": "Confirmação", "type": "confirmation", "order": 4},
        {"name": "shipping", "title": "Entrega", "type": "shipping", "order": 2, "required": False},
    ]


def _flow(**overrides):
    data = {"id": "flow_1", "name": "Checkout padrão", "type": "standard", "steps": _steps()}
    data.update(overrides)
    return FlowConfigData.from_dict(data)


def _with_step_data(steps, name, **fields):
    for step in steps:
        if step["name"] == name:
            step.update(fields)
    return steps


def test_steps_are_ordered_by_order_field():
    flow = _flow()
    assert [s.name for s in flow.ordered_steps] == ["customer_info", "shipping", "payment_info", "order_confirmation"]
    assert flow.get_step(0).name == "customer_info"
    assert flow.get_step(10) is None
    assert flow.step_count == 4


def test_next_step_follows_order():
    flow = _flow()
    assert flow.next_step("customer_info").name == "shipping"
    assert flow.next_step("payment_info").name == "order_confirmation"
    assert flow.next_step("order_confirmation") is None


def test_next_step_skips_allowed_optional_steps():
    flow = _flow(skip_rules={"allowed_skips": ["shipping"]})
    assert flow.can_skip_step("shipping")
    assert flow.next_step("customer_info").name == "payment_info"


def test_required_step_is_never_skipped():
    steps = _with_step_data(_steps(), "shipping", required=True)
    flow = _flow(steps=steps, skip_rules={"allowed_skips": ["shipping"]})
    assert flow.next_step("customer_info").name == "shipping"


def test_branching_rule_wins_over_order():
    steps = _with_step_data(_steps(), "customer_info", data={"express": True})
    flow = _flow(
        steps=steps,
        branching_logic=[{"from": "customer_info", "condition": {"field": "express", "operator": "equals", "value": True}, "to": "order_confirmation"}],
    )
    assert flow.has_branching
    assert flow.next_step("customer_info").name == "order_confirmation"
    assert flow.to_dict()["branching_logic"][0]["from"] == "customer_info"


def test_redirect_wins_over_branching():
    steps = _with_step_data(
        _steps(),
        "customer_info",
        data={"express": True},
        conditional_logic=[{"field": "express", "operator": "exists", "action": {"redirect_to": "payment_info"}}],
    )
    flow = _flow(
        steps=steps,
        branching_logic=[{"from": "customer_info", "condition": {"field": "express", "operator": "exists"}, "to": "order_confirmation"}],
    )
    assert flow.next_step("customer_info").name == "payment_info"


def test_declared_next_step_used_before_order():
    steps = _with_step_data(_steps(), "customer_info", next_step="payment_info")
    assert _flow(steps=steps).next_step("customer_info").name == "payment_info"


def test_unknown_steps_raise():
    flow = _flow()
    with pytest.raises(ValidationError):
        flow.next_step("nope")
    steps = _with_step_data(_steps(), "customer_info", next_step="ghost")
    with pytest.raises(ValidationError):
        _flow(steps=steps).next_step("customer_info")


def test_flow_shape_validation():
    with pytest.raises(ValidationError):
        _flow(steps=[])
    duplicated = _steps() + [{"name": "shipping", "title": "Outra", "type": "shipping", "order": 5}]
    with pytest.raises(ValidationError) as exc:
        _flow(steps=duplicated)
    assert any("shipping" in e for e in exc.value.errors)
    with pytest.raises(ValidationError):
        _flow(type="wizard")


def test_production_readiness():
    assert _flow().is_production_ready() is False
    ready = _flow(validation_rules={"customer_info": {"email": [{"type": "email"}]}})
    assert ready.is_production_ready() is True
    assert _flow(validation_rules={}, active=False).is_production_ready() is False
    missing_payment = [s for s in _steps() if s["name"] != "payment_info"]
    assert _flow(steps=missing_payment, validation_rules={}).is_production_ready() is False


def test_complexity_score_and_level():
    flow = _flow(
        validation_rules={"customer_info": {"email": [{"type": "email"}]}},
        branching_logic=[{"from": "customer_info", "condition": {"field": "x", "operator": "exists"}, "to": "payment_info"}],
    )
    # 4 étapes x2 + branchement 10 + 1 jeu de règles x2
    assert flow.complexity_score == 20
    assert flow.complexity_level == "simple"

    with_ab = flow.model_copy(update={"ab_test_config": {"enabled": True}})
    assert with_ab.complexity_score == 25
    assert with_ab.complexity_level == "moderate"


def test_type_compatibility_and_recommendations():
    express = _flow(type="express")
    assert express.validate_type_compatibility() == ["Un flow express doit avoir 3 étapes ou moins"]
    assert _flow(type="mobile", device_optimization={"mobile_first": False}).validate_type_compatibility() == []
    assert _flow(type="funnel").validate_type_compatibility() == ["Un flow funnel nécessite l'analytics"]

    recs = _flow().optimization_recommendations()
    assert "Activer l'optimisation mobile pour une meilleure expérience mobile" in recs
    assert "Activer l'analytics pour suivre les performances et conversions" in recs
    assert _flow(type="mobile", analytics={"enabled": True}).optimization_recommendations() == []


def test_progress_and_replace_step():
    flow = _flow()
    assert flow.progress() == 0.0
    done = flow.get_step_by_name("customer_info").mark_completed()
    updated = flow.replace_step(done)
    assert updated.progress() == 25.0
    assert flow.progress() == 0.0


def test_clone_and_export():
    flow = _flow(version="2.0.0")
    copy = flow.clone(name="Checkout B")
    assert copy.id.startswith("flow_1_copy_")
    assert copy.name == "Checkout B"
    assert [s.name for s in copy.steps] == [s.name for s in flow.steps]
    assert flow.clone(id="flow_2").id == "flow_2"

    exported = flow.export_config()
    assert exported["version"] == "2.0.0"
    assert exported["metadata"]["complexity_level"] == "simple"
    assert exported["features"]["ab_testing"]["enabled"] is False
    assert len(exported["flow"]["steps"]) == 4
