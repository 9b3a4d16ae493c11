"""
Accès à l'API distante pour la feature 'cart' (endpoints /cart).
"""
import logging
from typing import Any, Dict, List, Optional

from clubify_checkout.errors import NotFoundError
from clubify_checkout.infra.http_client import HttpClient, unwrap_data

logger = logging.getLogger(__name__)

BASE_PATH = "/cart"

# module clubify_checkout.cart.repository
class CartRepository:
    def __init__(self, http: HttpClient):
        self.http = http

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(BASE_PATH, data))

    def find(self, cart_id: str) -> Optional[Dict[str, Any]]:
        """Retourne None si le panier n'existe pas (404)."""
        try:
            return unwrap_data(self.http.get(f"{BASE_PATH}/{cart_id}"))
        except NotFoundError:
            logger.info("cart.repository.find not found cart_id=%s", cart_id)
            return None

    def find_by_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            found = unwrap_data(self.http.get(BASE_PATH, params={"session_id": session_id}))
        except NotFoundError:
            return None
        if isinstance(found, list):
            return found[0] if found else None
        return found or None

    def update(self, cart_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{cart_id}", data))

    def delete(self, cart_id: str) -> bool:
        try:
            self.http.delete(f"{BASE_PATH}/{cart_id}")
            return True
        except NotFoundError:
            return False

    def get_items(self, cart_id: str) -> List[Dict[str, Any]]:
        items = unwrap_data(self.http.get(f"{BASE_PATH}/{cart_id}/items"))
        if isinstance(items, dict):
            items = items.get("items") or []
        return list(items or [])

    def add_item(self, cart_id: str, item: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{cart_id}/items", item))

    def update_item(self, cart_id: str, item_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{cart_id}/items/{item_id}", data))

    def remove_item(self, cart_id: str, item_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.delete(f"{BASE_PATH}/{cart_id}/items/{item_id}"))

    def clear_items(self, cart_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.delete(f"{BASE_PATH}/{cart_id}/items"))

    def apply_promotion(self, cart_id: str, coupon_code: str) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{cart_id}/promotions", {"code": coupon_code}))

    def remove_promotion(self, cart_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.delete(f"{BASE_PATH}/{cart_id}/promotions"))

    def calculate_totals(self, cart_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{cart_id}/calculate"))

    def update_shipping(self, cart_id: str, shipping: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{cart_id}/shipping", shipping))

    def update_billing(self, cart_id: str, billing: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{cart_id}/billing", billing))

    def mark_abandoned(self, cart_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.put(f"{BASE_PATH}/{cart_id}/abandon"))

    def convert_to_order(self, cart_id: str) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{cart_id}/convert"))
