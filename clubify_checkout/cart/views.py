import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from clubify_checkout.app_setup.dependencies import get_sdk

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])

# module clubify_checkout.cart.views
@router.post("/quote")
def quote_cart(payload: Dict[str, Any] = Body(...), sdk=Depends(get_sdk)):
    """
    Calcule les totaux d'un panier sans appel à l'API distante.
    - Entrée JSON: { "session_id": "...", "currency": "BRL", "items": [ {...}, ... ], "shipping_data": {...} }
    - Sortie: lignes, totals (subtotal, discount, taxes, shipping, fees, total), montants formatés
    - Erreurs: 422 si panier, ligne ou règle de taxe/frais invalide
    """
    cart = sdk.cart.quote(payload)
    totals = cart.totals
    display = cart.to_display()
    display["formatted"] = {
        name: cart.format_currency(getattr(totals, name))
        for name in ("subtotal", "discount", "taxes", "shipping", "fees", "total")
    }
    logger.info("cart.quote session_id=%s items=%s total=%s", cart.session_id, cart.item_count, totals.total)
    return display
