"""
Cas d'usage 'cart': orchestre repository (API distante), cache et modèles.
- Lectures via CacheManager.remember (clés cart_<id>, cart_session_<session_id>)
- Chaque mutation invalide les entrées de cache du panier
- quote(): calcul local des totaux, sans appel réseau
"""
import logging
from typing import Any, Dict, List, Optional

from clubify_checkout.config import Settings
from clubify_checkout.errors import NotFoundError, ValidationError
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.utils.validators import parse_model

from .models import MAX_QUANTITY, CartData, ItemData, ShippingData
from .repository import CartRepository

logger = logging.getLogger(__name__)

CACHE_TTL = 1800


class CartService:
    def __init__(self, repository: CartRepository, cache: CacheManager, settings: Settings):
        self.repository = repository
        self.cache = cache
        self.settings = settings

    # --- Cache ---

    def _invalidate(self, cart_id: str, cart: Optional[Dict[str, Any]] = None) -> None:
        keys = [f"cart_{cart_id}", f"cart_items_{cart_id}"]
        session_id = (cart or {}).get("session_id")
        if session_id:
            keys.append(f"cart_session_{session_id}")
        self.cache.delete(*keys)

    def invalidate(self, cart_id: Optional[str] = None, session_id: Optional[str] = None) -> None:
        """Invalidation externe (ex: webhook cart.updated)."""
        keys = []
        if cart_id:
            keys += [f"cart_{cart_id}", f"cart_items_{cart_id}"]
        if session_id:
            keys.append(f"cart_session_{session_id}")
        self.cache.delete(*keys)

    # --- Lecture ---

    def find(self, cart_id: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(f"cart_{cart_id}", CACHE_TTL, lambda: self.repository.find(cart_id))

    def find_by_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(
            f"cart_session_{session_id}", CACHE_TTL, lambda: self.repository.find_by_session(session_id)
        )

    def get_items(self, cart_id: str) -> List[Dict[str, Any]]:
        return self.cache.remember(f"cart_items_{cart_id}", CACHE_TTL, lambda: self.repository.get_items(cart_id))

    # --- Mutations ---

    def create(self, session_id: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        cart = CartData.for_creation(session_id, **(data or {}))
        created = self.repository.create(cart.to_payload())
        logger.info("cart.create cart_id=%s session_id=%s", created.get("id"), session_id)
        return created

    def update(self, cart_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data:
            raise ValidationError("Aucune donnée à mettre à jour")
        cart = self.repository.update(cart_id, dict(data))
        self._invalidate(cart_id, cart)
        return cart

    def delete(self, cart_id: str) -> bool:
        cached = self.cache.get(f"cart_{cart_id}")
        deleted = self.repository.delete(cart_id)
        self._invalidate(cart_id, cached)
        logger.info("cart.delete cart_id=%s deleted=%s", cart_id, deleted)
        return deleted

    def add_item(self, cart_id: str, item_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Ajoute une ligne validée.
        - Même product_id déjà présent: la quantité est cumulée (update_item)
        """
        context = {"permissive_rules": True} if self.settings.permissive_rules else None
        item = parse_model(ItemData, item_data, context=context)
        for existing in self.repository.get_items(cart_id):
            if existing.get("product_id") == item.product_id:
                new_quantity = int(existing.get("quantity") or 0) + item.quantity
                return self.update_item(cart_id, str(existing.get("id")), new_quantity)
        cart = self.repository.add_item(cart_id, item.model_dump(mode="json", exclude_none=True))
        self._invalidate(cart_id, cart)
        logger.info("cart.add_item cart_id=%s product_id=%s quantity=%s", cart_id, item.product_id, item.quantity)
        return cart

    def update_item(self, cart_id: str, item_id: str, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("La quantité doit être supérieure à zéro")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"La quantité ne peut pas dépasser {MAX_QUANTITY}")
        cart = self.repository.update_item(cart_id, item_id, {"quantity": quantity})
        self._invalidate(cart_id, cart)
        return cart

    def remove_item(self, cart_id: str, item_id: str) -> Dict[str, Any]:
        cart = self.repository.remove_item(cart_id, item_id)
        self._invalidate(cart_id, cart)
        return cart

    def clear_items(self, cart_id: str) -> Dict[str, Any]:
        cart = self.repository.clear_items(cart_id)
        self._invalidate(cart_id, cart)
        return cart

    def apply_coupon(self, cart_id: str, coupon_code: str) -> Dict[str, Any]:
        code = (coupon_code or "").strip()
        if not code:
            raise ValidationError("Le code du coupon est obligatoire")
        cart = self.repository.apply_promotion(cart_id, code)
        self._invalidate(cart_id, cart)
        logger.info("cart.apply_coupon cart_id=%s code=%s", cart_id, code)
        return cart

    def remove_coupon(self, cart_id: str) -> Dict[str, Any]:
        cart = self.repository.remove_promotion(cart_id)
        self._invalidate(cart_id, cart)
        return cart

    def update_shipping(self, cart_id: str, shipping_data: Dict[str, Any]) -> Dict[str, Any]:
        shipping = parse_model(ShippingData, shipping_data)
        cart = self.repository.update_shipping(cart_id, shipping.model_dump(mode="json"))
        self._invalidate(cart_id, cart)
        return cart

    def update_billing(self, cart_id: str, billing_data: Dict[str, Any]) -> Dict[str, Any]:
        cart = self.repository.update_billing(cart_id, dict(billing_data or {}))
        self._invalidate(cart_id, cart)
        return cart

    def calculate_totals(self, cart_id: str) -> Dict[str, Any]:
        cart = self.repository.calculate_totals(cart_id)
        self._invalidate(cart_id, cart)
        return cart

    def mark_abandoned(self, cart_id: str) -> Dict[str, Any]:
        cart = self.repository.mark_abandoned(cart_id)
        self._invalidate(cart_id, cart)
        logger.info("cart.mark_abandoned cart_id=%s", cart_id)
        return cart

    def convert_to_order(self, cart_id: str) -> Dict[str, Any]:
        result = self.repository.convert_to_order(cart_id)
        self._invalidate(cart_id, result)
        logger.info("cart.convert_to_order cart_id=%s order_id=%s", cart_id, result.get("order_id"))
        return result

    def duplicate(self, cart_id: str, new_session_id: str) -> Dict[str, Any]:
        """
        Copie un panier (A/B testing) vers une nouvelle session.
        - Les identifiants et horodatages de l'original ne sont pas repris
        """
        original = self.find(cart_id)
        if not original:
            raise NotFoundError("Panier original introuvable", status_code=404, context={"cart_id": cart_id})
        data = {k: v for k, v in original.items() if k not in ("id", "created_at", "updated_at", "items", "totals")}
        data.update({"session_id": new_session_id, "status": "active"})
        new_cart = self.repository.create(data)
        new_id = str(new_cart.get("id"))
        for item in self.get_items(cart_id):
            copy = {k: v for k, v in item.items() if k not in ("id", "cart_id")}
            self.repository.add_item(new_id, copy)
        logger.info("cart.duplicate cart_id=%s new_cart_id=%s session_id=%s", cart_id, new_id, new_session_id)
        return self.calculate_totals(new_id)

    # --- Calcul local ---

    def quote(self, cart_payload: Dict[str, Any]) -> CartData:
        """
        Valide un panier brut et calcule ses totaux localement.
        - Lignes de même product_id fusionnées comme dans add_item (quantités cumulées)
        """
        cart = CartData.from_api(cart_payload, permissive=self.settings.permissive_rules)
        if len(cart.unique_products()) < len(cart.items):
            lines = list(cart.items)
            cart.clear_items()
            for line in lines:
                cart.add_item(line)
        return cart
