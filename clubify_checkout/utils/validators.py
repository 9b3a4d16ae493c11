import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from clubify_checkout.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

def is_valid_email(v: Any) -> bool:
    return isinstance(v, str) and bool(EMAIL_RE.match(v.strip()))

def is_numeric(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    if isinstance(v, (int, float)):
        return True
    return isinstance(v, str) and bool(NUMERIC_RE.match(v.strip()))

def is_filled(v: Any) -> bool:
    """
    Un champ est rempli s'il porte une valeur exploitable:
    - None, False, chaîne vide/espaces, liste/dict vide => non rempli
    - 0 compte comme rempli (valeur numérique saisie)
    """
    if v is None or v is False:
        return False
    if isinstance(v, str):
        return bool(v.strip())
    if isinstance(v, (list, tuple, dict, set)):
        return len(v) > 0
    return True

def format_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalide")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages

def parse_model(model: Type[M], data: Any, context: Optional[Dict[str, Any]] = None) -> M:
    """
    Valide un dict (payload API, body HTTP) vers un modèle typé.
    - Convertit pydantic.ValidationError en ValidationError du SDK (liste de messages lisibles)
    - context: transmis aux validateurs (ex: {"permissive_rules": True})
    """
    if isinstance(data, model):
        return data
    if not isinstance(data, dict):
        raise ValidationError(f"{model.__name__}: objet attendu", errors=[f"{model.__name__}: objet attendu"])
    try:
        return model.model_validate(data, context=context)
    except PydanticValidationError as e:
        errors = format_pydantic_errors(e)
        raise ValidationError(f"{model.__name__} invalide", errors=errors) from e
