"""
Hiérarchie d'erreurs du SDK.
- ValidationError: données d'entrée invalides (panier, étape, flow, analytics)
- HttpError: échec d'appel à l'API distante (TransportError réseau, BusinessError 4xx)
- WebhookError: signature, horodatage ou payload de webhook rejeté
Les appelants filtrent par type (except BusinessError, ...) plutôt que par message.
"""
from typing import Any, Dict, List, Optional

class SDKError(Exception):
    code = "SDK_ERROR"

    def __init__(self, message: str = "Erreur SDK", context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": self.context}


class ValidationError(SDKError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Données invalides", errors: Optional[List[str]] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.errors: List[str] = list(errors or [message])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class HttpError(SDKError):
    """
    Échec HTTP avec le contexte de la requête.
    - status_code None => erreur réseau (aucune réponse reçue)
    - is_retryable(): réseau, 5xx, 429 et 408
    """
    code = "HTTP_ERROR"

    def __init__(
        self,
        message: str = "Requête HTTP échouée",
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        response_body: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx.update({"request_method": method, "request_uri": url, "response_status": status_code})
        super().__init__(message, ctx)
        self.status_code = status_code
        self.method = method
        self.url = url
        self.response_body = response_body

    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    def is_retryable(self) -> bool:
        return (
            self.status_code is None
            or self.status_code >= 500
            or self.status_code in (408, 429)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["retryable"] = self.is_retryable()
        return data


class TransportError(HttpError):
    code = "TRANSPORT_ERROR"

    def is_retryable(self) -> bool:
        return True


class BusinessError(HttpError):
    """Réponse 4xx de l'API distante (stock insuffisant, coupon invalide...). Jamais rejouée."""
    code = "BUSINESS_ERROR"

    def __init__(self, message: str = "Requête refusée par l'API", errors: Optional[List[Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors: List[Any] = list(errors or [])

    def is_retryable(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NotFoundError(BusinessError):
    code = "NOT_FOUND"


class ConflictError(BusinessError):
    code = "CONFLICT"


class WebhookError(SDKError):
    code = "WEBHOOK_ERROR"
