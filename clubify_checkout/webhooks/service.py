"""
Réception des webhooks Clubify.
Étapes de WebhookService.handle():
  1) signature HMAC (X-Clubify-Signature) sur le corps brut
  2) horodatage (X-Clubify-Timestamp) dans la fenêtre de tolérance (anti-rejeu)
  3) payload JSON {event, data, timestamp[, id]}
  4) invalidation du cache panier/session puis dispatch aux handlers (on(event) ou "*")
Tout rejet lève WebhookError.
"""
import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from clubify_checkout.errors import WebhookError
from clubify_checkout.utils.validators import format_pydantic_errors

from .signature import verify_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Clubify-Signature"
TIMESTAMP_HEADER = "X-Clubify-Timestamp"
EVENT_HEADER = "X-Clubify-Event"
DEFAULT_TOLERANCE = 300

Handler = Callable[["WebhookEvent"], Any]


class WebhookEvent(BaseModel):
    event: str = Field(min_length=1)
    data: Any
    timestamp: Union[int, float, str]
    id: Optional[str] = None


def _finite(ts: float, raw: Any) -> float:
    # nan et inf échappent aux comparaisons de la fenêtre de tolérance
    if not math.isfinite(ts):
        raise WebhookError(f"Horodatage invalide: {raw!r}")
    return ts

def _parse_timestamp(value: Any) -> float:
    if isinstance(value, bool):
        raise WebhookError(f"Horodatage invalide: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)
    text = str(value or "").strip()
    if not text:
        raise WebhookError("Horodatage du webhook absent")
    try:
        return _finite(float(text), text)
    except ValueError:
        pass
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise WebhookError(f"Horodatage invalide: {text}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()

def validate_timestamp(timestamp: Any, tolerance: int = DEFAULT_TOLERANCE, now: Optional[float] = None) -> float:
    """
    Refuse un horodatage trop ancien ou trop dans le futur.
    - timestamp: epoch (nombre ou chaîne numérique) ou date ISO 8601
    """
    ts = _parse_timestamp(timestamp)
    current = time.time() if now is None else now
    if current - ts > tolerance:
        raise WebhookError("Webhook expiré: horodatage trop ancien")
    if ts > current + tolerance:
        raise WebhookError("Webhook invalide: horodatage dans le futur")
    return ts

def parse_payload(body: Union[bytes, str]) -> WebhookEvent:
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError) as e:
        raise WebhookError(f"Payload JSON invalide: {e}") from e
    if not isinstance(decoded, dict):
        raise WebhookError("Payload JSON invalide: objet attendu")
    for name in ("event", "data", "timestamp"):
        if decoded.get(name) is None:
            raise WebhookError(f"Champ obligatoire absent: {name}")
    try:
        event = WebhookEvent.model_validate(decoded)
    except PydanticValidationError as e:
        raise WebhookError("Payload de webhook invalide: " + "; ".join(format_pydantic_errors(e))) from e
    _parse_timestamp(event.timestamp)
    return event

def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), None)
    return value


class WebhookService:
    def __init__(self, secret: str, tolerance: int = DEFAULT_TOLERANCE, invalidators: Optional[List[Callable[[WebhookEvent], None]]] = None):
        self.secret = secret
        self.tolerance = tolerance
        self._handlers: Dict[str, List[Handler]] = {}
        self._invalidators = list(invalidators or [])

    def on(self, event_name: str) -> Callable[[Handler], Handler]:
        """Décorateur: @webhooks.on("order.paid") ou @webhooks.on("*")."""
        def decorator(fn: Handler) -> Handler:
            self.register(event_name, fn)
            return fn
        return decorator

    def register(self, event_name: str, handler: Handler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    def handlers_for(self, event_name: str) -> List[Handler]:
        return [*self._handlers.get(event_name, []), *self._handlers.get("*", [])]

    def verify(self, body: Union[bytes, str], headers: Mapping[str, str], now: Optional[float] = None) -> WebhookEvent:
        signature = _header(headers, SIGNATURE_HEADER)
        if not signature:
            raise WebhookError("Signature du webhook absente")
        if not body:
            raise WebhookError("Payload du webhook vide")
        if not verify_signature(body, signature, self.secret):
            raise WebhookError("Signature du webhook invalide")
        timestamp = _header(headers, TIMESTAMP_HEADER)
        if not timestamp:
            raise WebhookError("Horodatage du webhook absent")
        validate_timestamp(timestamp, self.tolerance, now)
        return parse_payload(body)

    def handle(self, body: Union[bytes, str], headers: Mapping[str, str], now: Optional[float] = None) -> Dict[str, Any]:
        event = self.verify(body, headers, now)
        for invalidate in self._invalidators:
            invalidate(event)
        handlers = self.handlers_for(event.event)
        for handler in handlers:
            handler(event)
        logger.info("webhooks.handle event=%s id=%s handled=%s", event.event, event.id, len(handlers))
        return {"status": "ok", "event": event.event, "id": event.id, "handled": len(handlers)}
