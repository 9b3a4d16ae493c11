"""
Gestionnaires d'exceptions du SDK pour l'API HTTP.
- ValidationError -> 422 {"detail", "errors"}
- BusinessError -> statut renvoyé par l'API distante (message amont conservé)
- HttpError rejouable (réseau, 5xx, 408, 429) -> 503 {"detail", "retryable": true}
- WebhookError -> 400 {"error": "Invalid Webhook", "message"}
"""
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clubify_checkout.errors import BusinessError, HttpError, ValidationError, WebhookError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": exc.message, "errors": exc.errors})

    @app.exception_handler(BusinessError)
    async def on_business_error(request: Request, exc: BusinessError):
        status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 400
        return JSONResponse(status_code=status, content={"detail": exc.message, "errors": exc.errors})

    @app.exception_handler(HttpError)
    async def on_http_error(request: Request, exc: HttpError):
        logger.warning("upstream error %s %s status=%s: %s", exc.method, exc.url, exc.status_code, exc.message)
        if exc.is_retryable():
            return JSONResponse(status_code=503, content={"detail": exc.message, "retryable": True})
        return JSONResponse(status_code=502, content={"detail": exc.message, "retryable": False})

    @app.exception_handler(WebhookError)
    async def on_webhook_error(request: Request, exc: WebhookError):
        return JSONResponse(status_code=400, content={"error": "Invalid Webhook", "message": exc.message})
