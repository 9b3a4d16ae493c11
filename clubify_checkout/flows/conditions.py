"""
Mini-DSL des étapes de checkout.
- Condition: un champ, un opérateur, une valeur (un seul niveau, pas de and/or)
- ValidationRule: required, email, min_length, max_length, numeric
- ConditionalRule: condition + action (hide, redirect_to, modify)
Opérateur ou type de règle inconnu: rejeté à la construction.
"""
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from clubify_checkout.utils.validators import is_filled, is_numeric, is_valid_email

OPERATORS = ("equals", "not_equals", "contains", "greater_than", "less_than", "exists", "not_exists")
RULE_TYPES = ("required", "email", "min_length", "max_length", "numeric")

def _as_float(v: Any) -> Optional[float]:
    if not is_numeric(v):
        return None
    return float(v)

def _loose_equals(actual: Any, expected: Any) -> bool:
    # "10" et 10 sont égaux (données de formulaire)
    a, b = _as_float(actual), _as_float(expected)
    if a is not None and b is not None:
        return a == b
    return actual == expected


class Condition(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str = ""
    operator: Literal["equals", "not_equals", "contains", "greater_than", "less_than", "exists", "not_exists"] = "equals"
    value: Any = None

    def evaluate(self, data: Optional[Mapping[str, Any]]) -> bool:
        actual = (data or {}).get(self.field)
        op = self.operator
        if op == "equals":
            return _loose_equals(actual, self.value)
        if op == "not_equals":
            return not _loose_equals(actual, self.value)
        if op == "contains":
            if actual is None:
                return False
            if isinstance(actual, (list, tuple, set)):
                return self.value in actual
            return str(self.value) in str(actual)
        if op in ("greater_than", "less_than"):
            a, b = _as_float(actual), _as_float(self.value)
            if a is None or b is None:
                return False
            return a > b if op == "greater_than" else a < b
        if op == "exists":
            return actual is not None
        return actual is None


class ConditionalAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    hide: bool = False
    redirect_to: Optional[str] = None
    modify: Optional[Dict[str, Any]] = None


class ConditionalRule(Condition):
    action: ConditionalAction = Field(default_factory=ConditionalAction)


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["required", "email", "min_length", "max_length", "numeric"]
    params: Dict[str, Any] = Field(default_factory=dict)

    def check(self, field: str, value: Any) -> Optional[str]:
        """Message d'erreur, ou None si la valeur respecte la règle."""
        if self.type == "required":
            return None if is_filled(value) else f"Le champ '{field}' est obligatoire"
        if self.type == "email":
            if is_filled(value) and not is_valid_email(value):
                return f"Le champ '{field}' doit être un email valide"
            return None
        if self.type == "min_length":
            length = int(self.params.get("length", 0))
            if len("" if value is None else str(value)) < length:
                return f"Le champ '{field}' doit contenir au moins {length} caractères"
            return None
        if self.type == "max_length":
            length = int(self.params.get("length", 255))
            if len("" if value is None else str(value)) > length:
                return f"Le champ '{field}' ne doit pas dépasser {length} caractères"
            return None
        if is_filled(value) and not is_numeric(value):
            return f"Le champ '{field}' doit être numérique"
        return None


def validate_field(field: str, value: Any, rules: Iterable[ValidationRule]) -> List[str]:
    """Évalue toutes les règles (pas d'arrêt à la première erreur)."""
    errors = []
    for rule in rules:
        message = rule.check(field, value)
        if message:
            errors.append(message)
    return errors

def all_conditions_met(conditions: Iterable[Condition], data: Optional[Mapping[str, Any]]) -> bool:
    return all(c.evaluate(data) for c in conditions)
