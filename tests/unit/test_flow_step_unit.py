from datetime import datetime, timedelta, timezone

import pytest

from clubify_checkout.errors import ValidationError
from clubify_checkout.flows.models import FlowStepData

T0 = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def _step(**overrides):
    data = {
        "name": "customer_info",
        "title": "Dados pessoais",
        "type": "customer_info",
        "order": 1,
        "fields": [
            {"name": "name", "required": True},
            {"name": "email", "required": True},
            {"name": "phone", "required": True},
            {"name": "document", "required": True},
        ],
        "data": {"name": "Ana", "email": "ana@example.com"},
    }
    data.update(overrides)
    return FlowStepData.from_dict(data)


def test_progress_counts_filled_fields():
    step = _step()
    assert step.progress == 50.0
    assert step.missing_fields() == ["phone", "document"]
    assert not step.has_all_required_fields()


def test_completed_step_is_full_progress_and_keeps_data():
    step = _step()
    done = step.model_copy(update={"completed": True})
    assert done.progress == 100.0
    assert done.data == step.data
    assert step.progress == 50.0


def test_progress_without_fields():
    assert _step(fields=[], data={}).progress == 0.0
    assert _step(fields=[], data={"x": 1}).progress == 0.0
    assert _step(fields=[], completed=True).progress == 100.0


def test_zero_counts_as_filled():
    step = _step(fields=[{"name": "quantity", "required": True}], data={"quantity": 0})
    assert step.progress == 100.0
    assert step.missing_fields() == []


def test_validate_data_reports_all_errors():
    step = _step(
        fields=[{"name": "email", "required": True}, {"name": "name", "required": True}],
        data={"email": "bad", "age": "abc"},
        validation_rules={
            "email": [{"type": "email"}, {"type": "min_length", "params": {"length": 10}}],
            "age": [{"type": "numeric"}],
        },
    )
    result = step.validate_data()

    assert result.valid is False
    assert result.errors[0] == "Champs obligatoires manquants: name"
    assert "Le champ 'email' doit être un email valide" in result.errors
    assert "Le champ 'email' doit contenir au moins 10 caractères" in result.errors
    assert "Le champ 'age' doit être numérique" in result.errors
    assert len(result.errors) == 4


def test_validate_data_ok():
    step = _step(data={"name": "Ana", "email": "ana@example.com", "phone": "11999999999", "document": "123"})
    result = step.validate_data()
    assert result.valid is True
    assert result.errors == []


def test_unknown_rule_or_operator_rejected():
    with pytest.raises(ValidationError):
        _step(validation_rules={"email": [{"type": "cpf"}]})
    with pytest.raises(ValidationError):
        _step(conditional_logic=[{"field": "country", "operator": "regex", "value": "B.*"}])
    with pytest.raises(ValidationError):
        _step(type="wizard")


def test_conditional_logic_redirect_hide_modify():
    step = _step(
        data={"country": "BR"},
        next_step="shipping",
        conditional_logic=[
            {"field": "country", "operator": "equals", "value": "BR", "action": {"hide": True, "redirect_to": "shipping_br", "modify": {"currency": "BRL"}}},
            {"field": "country", "operator": "equals", "value": "PT", "action": {"redirect_to": "shipping_pt"}},
        ],
    )
    outcome = step.evaluate_conditional_logic()
    assert outcome.show is False
    assert outcome.redirected is True
    assert outcome.next_step == "shipping_br"
    assert outcome.modifications == [{"currency": "BRL"}]


def test_conditional_logic_without_match_keeps_declared_next_step():
    step = _step(data={"country": "AR"}, next_step="shipping", conditional_logic=[
        {"field": "country", "operator": "equals", "value": "BR", "action": {"redirect_to": "shipping_br"}},
    ])
    outcome = step.evaluate_conditional_logic()
    assert outcome.show is True
    assert outcome.redirected is False
    assert outcome.next_step == "shipping"


def test_can_be_skipped():
    assert _step(required=True).can_be_skipped() is False
    assert _step(required=False).can_be_skipped() is True
    conditional = _step(required=False, skip_conditions=[{"field": "has_address", "operator": "equals", "value": True}])
    assert conditional.can_be_skipped() is False
    assert conditional.with_data({"has_address": True}).can_be_skipped() is True


def test_transitions_return_new_instances():
    step = _step()
    started = step.mark_started(now=T0)
    assert step.started_at is None
    assert started.attempt_count == 1
    assert started.is_in_progress

    done = started.mark_completed(now=T0 + timedelta(seconds=30))
    assert done.completed and done.completion_time == 30.0
    assert done.time_spent() == 30.0
    assert started.time_spent(now=T0 + timedelta(seconds=5)) == 5.0

    with pytest.raises(ValidationError):
        started.mark_completed(completion_time=-1)


def test_errors_and_warnings_accumulate():
    step = _step().with_errors(["a"]).with_errors(["b"]).with_warnings(["w"])
    assert step.errors == ["a", "b"]
    assert step.has_warnings
    assert step.clear_errors().errors == []


def test_ui_config_defaults_and_analytics():
    step = _step(analytics={"source": "ads"})
    assert step.resolved_ui_config()["validation_mode"] == "onBlur"
    data = step.analytics_data()
    assert data["progress_percentage"] == 50.0
    assert data["attempt_count"] == 1
    assert data["source"] == "ads"


def test_to_dict_round_trip():
    step = _step(next_step="shipping")
    assert FlowStepData.from_dict(step.to_dict()) == step
