import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from clubify_checkout.app_setup.dependencies import get_sdk
from clubify_checkout.errors import WebhookError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks API"])

# module clubify_checkout.webhooks.views
@router.post("/clubify", include_in_schema=False)
async def receive_clubify_webhook(request: Request, sdk=Depends(get_sdk)):
    """
    Webhook Clubify signé (HMAC du corps brut).
    - En-têtes: X-Clubify-Signature (sha256=<hex>), X-Clubify-Timestamp
    - Réponse: {"status": "ok", "event": ..., "id": ..., "handled": <int>}
    - Erreurs: 400 {"error": "Invalid Webhook", "message": ...} si signature, horodatage ou payload rejeté
    """
    body = await request.body()
    try:
        result = sdk.webhooks.handle(body, request.headers)
    except WebhookError as e:
        logger.warning("webhooks.receive rejected: %s", e.message)
        return JSONResponse(status_code=400, content={"error": "Invalid Webhook", "message": e.message})
    return JSONResponse(result)
