"""
Clubify Checkout SDK (Python).
- ClubifyCheckoutSDK: façade (cart, flows, sessions, one_click, webhooks)
- Settings: configuration (variables d'environnement / .env)
- Erreurs typées: ValidationError, HttpError, TransportError, BusinessError, WebhookError
"""

from .config import SDK_VERSION, Settings
from .errors import (
    BusinessError,
    ConflictError,
    HttpError,
    NotFoundError,
    SDKError,
    TransportError,
    ValidationError,
    WebhookError,
)
from .sdk import ClubifyCheckoutSDK

__version__ = SDK_VERSION

__all__ = [
    "ClubifyCheckoutSDK",
    "Settings",
    "SDKError",
    "ValidationError",
    "HttpError",
    "TransportError",
    "BusinessError",
    "NotFoundError",
    "ConflictError",
    "WebhookError",
]
