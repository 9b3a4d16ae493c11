from .signature import sign_payload, verify_signature
from .service import WebhookEvent, WebhookService, parse_payload, validate_timestamp

__all__ = [
    "sign_payload",
    "verify_signature",
    "WebhookEvent",
    "WebhookService",
    "parse_payload",
    "validate_timestamp",
]
