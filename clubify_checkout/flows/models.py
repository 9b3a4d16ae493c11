"""
Modèles immuables des flows de checkout.
- FlowStepData: une étape (champs, données saisies, règles, logique conditionnelle)
- FlowConfigData: le flow complet (étapes ordonnées, règles de saut, branchements)
Les méthodes with_* / mark_* renvoient une nouvelle instance.
"""
import time
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clubify_checkout.errors import ValidationError
from clubify_checkout.utils.dates import now_like, seconds_between, utcnow
from clubify_checkout.utils.validators import is_filled, parse_model

from .conditions import (
    Condition,
    ConditionalRule,
    ValidationRule,
    all_conditions_met,
    validate_field,
)

STEP_TYPES = ("form", "review", "confirmation", "payment", "shipping", "customer_info", "product_selection")
FLOW_TYPES = ("standard", "express", "custom", "mobile", "funnel")
PRODUCTION_REQUIRED_STEPS = ("customer_info", "payment_info", "order_confirmation")

DEFAULT_STEP_UI_CONFIG = {
    "layout": "default",
    "show_progress": True,
    "show_navigation": True,
    "animation": "fade",
    "validation_mode": "onBlur",
}


class FieldDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(min_length=1)
    label: Optional[str] = None
    type: str = "text"
    required: bool = False


class StepValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ConditionalOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    show: bool = True
    next_step: Optional[str] = None
    redirected: bool = False
    modifications: List[Dict[str, Any]] = Field(default_factory=list)


class FlowStepData(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=255)
    type: Literal["form", "review", "confirmation", "payment", "shipping", "customer_info", "product_selection"]
    order: int = Field(ge=1)
    required: bool = True
    completed: bool = False
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    validation_rules: Dict[str, List[ValidationRule]] = Field(default_factory=dict)
    conditional_logic: List[ConditionalRule] = Field(default_factory=list)
    skip_conditions: Optional[List[Condition]] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    ui_config: Optional[Dict[str, Any]] = None
    analytics: Dict[str, Any] = Field(default_factory=dict)
    next_step: Optional[str] = None
    previous_step: Optional[str] = None
    alternative_steps: List[str] = Field(default_factory=list)
    completion_time: Optional[float] = Field(default=None, ge=0)
    attempt_count: int = Field(default=0, ge=0)
    session_id: Optional[str] = None
    flow_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_data(self) -> bool:
        return bool(self.data)

    @property
    def is_started(self) -> bool:
        return self.started_at is not None

    @property
    def is_in_progress(self) -> bool:
        return self.is_started and not self.completed

    def time_spent(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.started_at is None:
            return None
        end = self.completed_at or now_like(self.started_at, now)
        return seconds_between(self.started_at, end)

    @property
    def progress(self) -> float:
        """
        Pourcentage de champs remplis.
        - 100.0 si l'étape est terminée, quel que soit l'état des champs
        - 0.0 sans champs déclarés ou sans données
        """
        if self.completed:
            return 100.0
        if not self.fields or not self.data:
            return 0.0
        filled = sum(1 for f in self.fields if is_filled(self.data.get(f.name)))
        return round(filled / len(self.fields) * 100, 2)

    @property
    def required_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.required]

    @property
    def optional_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if not f.required]

    def missing_fields(self) -> List[str]:
        return [f.name for f in self.required_fields if not is_filled(self.data.get(f.name))]

    def has_all_required_fields(self) -> bool:
        return not self.missing_fields()

    def resolved_ui_config(self) -> Dict[str, Any]:
        return dict(self.ui_config) if self.ui_config is not None else dict(DEFAULT_STEP_UI_CONFIG)

    def validate_data(self) -> StepValidationResult:
        """
        Valide les données saisies.
        - Champs obligatoires manquants: une erreur groupée
        - Puis chaque règle de chaque champ (toutes évaluées)
        """
        errors: List[str] = []
        missing = self.missing_fields()
        if missing:
            errors.append("Champs obligatoires manquants: " + ", ".join(missing))
        for field_name, rules in self.validation_rules.items():
            errors.extend(validate_field(field_name, self.data.get(field_name), rules))
        return StepValidationResult(valid=not errors, errors=errors, warnings=[])

    def evaluate_condition(self, condition: Condition, data: Optional[Mapping[str, Any]] = None) -> bool:
        return condition.evaluate(self.data if data is None else data)

    def evaluate_conditional_logic(self) -> ConditionalOutcome:
        show = True
        next_step = self.next_step
        redirected = False
        modifications: List[Dict[str, Any]] = []
        for rule in self.conditional_logic:
            if not rule.evaluate(self.data):
                continue
            if rule.action.hide:
                show = False
            if rule.action.redirect_to:
                next_step = rule.action.redirect_to
                redirected = True
            if rule.action.modify is not None:
                modifications.append(rule.action.modify)
        return ConditionalOutcome(show=show, next_step=next_step, redirected=redirected, modifications=modifications)

    def can_be_skipped(self) -> bool:
        if self.required:
            return False
        if self.skip_conditions is None:
            return True
        return all_conditions_met(self.skip_conditions, self.data)

    def analytics_data(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        base = {
            "step_name": self.name,
            "step_type": self.type,
            "step_order": self.order,
            "is_completed": self.completed,
            "has_errors": self.has_errors,
            "completion_time": self.completion_time,
            "attempt_count": self.attempt_count or 1,
            "progress_percentage": self.progress,
            "time_spent": self.time_spent(now),
        }
        base.update(self.analytics)
        return base

    # --- Transitions (nouvelle instance) ---

    def mark_started(self, now: Optional[datetime] = None) -> "FlowStepData":
        return self.model_copy(update={"started_at": now or utcnow(), "attempt_count": self.attempt_count + 1})

    def mark_completed(self, completion_time: Optional[float] = None, now: Optional[datetime] = None) -> "FlowStepData":
        finished = now or utcnow()
        update: Dict[str, Any] = {"completed": True, "completed_at": finished}
        if completion_time is not None:
            if completion_time < 0:
                raise ValidationError("completion_time doit être positif")
            update["completion_time"] = float(completion_time)
        elif self.started_at is not None:
            update["completion_time"] = max(0.0, seconds_between(self.started_at, finished))
        return self.model_copy(update=update)

    def with_data(self, new_data: Mapping[str, Any]) -> "FlowStepData":
        merged = dict(self.data)
        merged.update(new_data or {})
        return self.model_copy(update={"data": merged})

    def with_errors(self, errors: List[str]) -> "FlowStepData":
        return self.model_copy(update={"errors": [*self.errors, *errors]})

    def with_warnings(self, warnings: List[str]) -> "FlowStepData":
        return self.model_copy(update={"warnings": [*self.warnings, *warnings]})

    def clear_errors(self) -> "FlowStepData":
        return self.model_copy(update={"errors": []})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowStepData":
        return parse_model(cls, data)


class BranchRule(BaseModel):
    """Branchement {"from": <étape>, "condition": {...}, "to": <étape>}."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_step: str = Field(alias="from", min_length=1)
    condition: Condition
    to: str = Field(min_length=1)


class FlowConfigData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    type: Literal["standard", "express", "custom", "mobile", "funnel"]
    steps: List[FlowStepData] = Field(min_length=1)
    active: bool = True
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    validation_rules: Optional[Dict[str, Dict[str, List[ValidationRule]]]] = None
    conditional_steps: List[Dict[str, Any]] = Field(default_factory=list)
    skip_rules: Dict[str, Any] = Field(default_factory=dict)
    branching_logic: List[BranchRule] = Field(default_factory=list)
    analytics: Optional[Dict[str, Any]] = None
    ui_config: Optional[Dict[str, Any]] = None
    device_optimization: Optional[Dict[str, Any]] = None
    ab_test_config: Optional[Dict[str, Any]] = None
    version: Optional[str] = Field(default=None, max_length=20)
    organization_id: Optional[str] = None
    offer_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("steps")
    @classmethod
    def _unique_step_names(cls, steps: List[FlowStepData]) -> List[FlowStepData]:
        names = [s.name for s in steps]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"noms d'étapes dupliqués: {', '.join(duplicates)}")
        return steps

    # --- Étapes ---

    @property
    def ordered_steps(self) -> List[FlowStepData]:
        return sorted(self.steps, key=lambda s: s.order)

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def get_step(self, index: int) -> Optional[FlowStepData]:
        ordered = self.ordered_steps
        return ordered[index] if 0 <= index < len(ordered) else None

    def get_step_by_name(self, name: str) -> Optional[FlowStepData]:
        return next((s for s in self.steps if s.name == name), None)

    def can_skip_step(self, name: str) -> bool:
        return name in (self.skip_rules.get("allowed_skips") or [])

    def step_validation_rules(self, name: str) -> Dict[str, List[ValidationRule]]:
        return dict((self.validation_rules or {}).get(name) or {})

    # --- Caractéristiques ---

    @property
    def is_mobile_optimized(self) -> bool:
        return self.type == "mobile" or bool((self.device_optimization or {}).get("mobile_first", False))

    @property
    def is_express(self) -> bool:
        return self.type == "express"

    @property
    def has_ab_testing(self) -> bool:
        return bool((self.ab_test_config or {}).get("enabled", False))

    @property
    def has_analytics(self) -> bool:
        return self.analytics is not None and bool(self.analytics.get("enabled", True))

    @property
    def has_branching(self) -> bool:
        return bool(self.branching_logic)

    @property
    def has_conditional_steps(self) -> bool:
        return bool(self.conditional_steps)

    def is_production_ready(self) -> bool:
        """
        Prêt pour la production si:
        - flow actif avec des étapes
        - étapes customer_info, payment_info et order_confirmation présentes
        - règles de validation configurées
        """
        if not self.active or not self.steps:
            return False
        names = {s.name for s in self.steps}
        if any(required not in names for required in PRODUCTION_REQUIRED_STEPS):
            return False
        return self.validation_rules is not None

    @property
    def complexity_score(self) -> int:
        score = self.step_count * 2
        if self.has_branching:
            score += 10
        if self.has_conditional_steps:
            score += 8
        if self.has_ab_testing:
            score += 5
        if self.validation_rules is not None:
            score += len(self.validation_rules) * 2
        return score

    @property
    def complexity_level(self) -> str:
        score = self.complexity_score
        if score <= 20:
            return "simple"
        if score <= 40:
            return "moderate"
        if score <= 60:
            return "complex"
        return "very_complex"

    def optimization_recommendations(self) -> List[str]:
        recommendations = []
        if self.step_count > 7:
            recommendations.append("Réduire le nombre d'étapes pour améliorer la conversion")
        if not self.is_mobile_optimized:
            recommendations.append("Activer l'optimisation mobile pour une meilleure expérience mobile")
        if not self.has_analytics:
            recommendations.append("Activer l'analytics pour suivre les performances et conversions")
        if self.complexity_level == "very_complex":
            recommendations.append("Flow très complexe: le simplifier pour améliorer l'UX")
        return recommendations

    def validate_type_compatibility(self) -> List[str]:
        errors = []
        if self.type == "express" and self.step_count > 3:
            errors.append("Un flow express doit avoir 3 étapes ou moins")
        elif self.type == "mobile" and not self.is_mobile_optimized:
            errors.append("Un flow mobile doit activer l'optimisation mobile")
        elif self.type == "funnel" and not self.has_analytics:
            errors.append("Un flow funnel nécessite l'analytics")
        return errors

    # --- Navigation ---

    def next_step(self, current_name: str) -> Optional[FlowStepData]:
        """
        Étape suivante après `current_name`.
        - redirect_to d'une règle conditionnelle satisfaite
        - sinon premier branchement {"from": current} dont la condition est vraie
        - sinon next_step déclaré sur l'étape
        - sinon étape suivante par ordre, en sautant celles autorisées (allowed_skips) et sautables
        None en fin de flow.
        """
        current = self.get_step_by_name(current_name)
        if current is None:
            raise ValidationError(f"Étape inconnue: {current_name}", context={"flow_id": self.id})

        outcome = current.evaluate_conditional_logic()
        target = outcome.next_step if outcome.redirected else None
        if target is None:
            for branch in self.branching_logic:
                if branch.from_step == current.name and branch.condition.evaluate(current.data):
                    target = branch.to
                    break
        if target is None:
            target = current.next_step
        if target is not None:
            step = self.get_step_by_name(target)
            if step is None:
                raise ValidationError(f"Étape cible inconnue: {target}", context={"flow_id": self.id, "from": current.name})
            return step

        ordered = self.ordered_steps
        idx = next(i for i, s in enumerate(ordered) if s.name == current.name)
        for candidate in ordered[idx + 1:]:
            if self.can_skip_step(candidate.name) and candidate.can_be_skipped():
                continue
            return candidate
        return None

    def progress(self) -> float:
        if not self.steps:
            return 0.0
        done = sum(1 for s in self.steps if s.completed)
        return round(done / self.step_count * 100, 2)

    def replace_step(self, step: FlowStepData) -> "FlowConfigData":
        if self.get_step_by_name(step.name) is None:
            raise ValidationError(f"Étape inconnue: {step.name}", context={"flow_id": self.id})
        return self.model_copy(update={"steps": [step if s.name == step.name else s for s in self.steps]})

    # --- Export / copie ---

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def export_config(self) -> Dict[str, Any]:
        data = self.to_dict()
        return {
            "version": self.version or "1.0.0",
            "metadata": {
                "name": self.name,
                "type": self.type,
                "description": self.description,
                "created_at": data["created_at"],
                "complexity_level": self.complexity_level,
            },
            "flow": {
                "steps": data["steps"],
                "config": self.config,
                "validation_rules": data["validation_rules"],
                "conditional_steps": self.conditional_steps,
                "skip_rules": self.skip_rules,
                "branching_logic": data["branching_logic"],
            },
            "features": {
                "analytics": self.analytics if self.analytics is not None else {
                    "enabled": True,
                    "track_steps": True,
                    "track_errors": True,
                    "track_timing": True,
                    "track_abandonment": True,
                },
                "ui_config": self.ui_config or {"theme": "default", "layout": "single-column", "animations": True, "progress_bar": True, "step_indicators": True},
                "device_optimization": self.device_optimization or {"mobile_first": True},
                "ab_testing": self.ab_test_config or {"enabled": False, "variants": [], "traffic_split": 50},
            },
        }

    def clone(self, **changes: Any) -> "FlowConfigData":
        """Copie modifiée; nouvel id <id>_copy_<timestamp> si aucun id n'est fourni."""
        data = self.to_dict()
        data.update(changes)
        if "id" not in changes:
            data["id"] = f"{self.id}_copy_{int(time.time())}"
        return parse_model(FlowConfigData, data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowConfigData":
        return parse_model(cls, data)
