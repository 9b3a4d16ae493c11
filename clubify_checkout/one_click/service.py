"""
Cas d'usage 'one_click': achat express à partir des données client enregistrées.
Déroulé:
  1) initiate(): session one_click (expire après 15 min) + panier d'un seul produit, totaux calculés
  2) complete(): paiement via l'API distante, puis commande (succès) ou statut failed
- Données client en cache (customer_data_<email>), sessions one-click en cache (one_click_<id>)
- Les données de carte ne sont jamais conservées: seul le token et ses références le sont
"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from clubify_checkout.cart.repository import CartRepository
from clubify_checkout.errors import ConflictError, NotFoundError, SDKError, ValidationError
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.sessions.repository import SessionRepository
from clubify_checkout.sessions.service import is_expired
from clubify_checkout.utils.currency import to_decimal
from clubify_checkout.utils.dates import utcnow
from clubify_checkout.utils.validators import is_filled, is_numeric, is_valid_email

from .repository import OneClickRepository

logger = logging.getLogger(__name__)

CACHE_TTL = 300
ONE_CLICK_TTL = 900
MAX_ONE_CLICK_QUANTITY = 10
SENSITIVE_CUSTOMER_FIELDS = ("password", "ssn", "tax_id")
PAYMENT_REFERENCE_FIELDS = ("method", "token", "last_four", "brand", "exp_month", "exp_year")


def validate_product(product: Dict[str, Any]) -> None:
    if not is_filled(product.get("id")):
        raise ValidationError("L'identifiant du produit est obligatoire")
    if not is_filled(product.get("name")):
        raise ValidationError("Le nom du produit est obligatoire")
    price = product.get("price")
    if not is_numeric(price) or not to_decimal(price).is_finite() or to_decimal(price) < 0:
        raise ValidationError("Le prix du produit est obligatoire et doit être >= 0")
    quantity = product.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= MAX_ONE_CLICK_QUANTITY:
        raise ValidationError(f"La quantité doit être comprise entre 1 et {MAX_ONE_CLICK_QUANTITY}")

def validate_customer(customer: Dict[str, Any]) -> None:
    if not is_valid_email(customer.get("email")):
        raise ValidationError("Un email valide est obligatoire")
    if not is_filled(customer.get("name")):
        raise ValidationError("Le nom du client est obligatoire")

def validate_payment(payment: Dict[str, Any]) -> None:
    if not is_filled(payment.get("method")):
        raise ValidationError("Le moyen de paiement est obligatoire")
    if payment["method"] == "credit_card" and not is_filled(payment.get("token")):
        raise ValidationError("Le token de paiement est obligatoire pour une carte")

def sanitize_customer(customer: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in customer.items() if k not in SENSITIVE_CUSTOMER_FIELDS}

def sanitize_payment(payment: Dict[str, Any]) -> Dict[str, Any]:
    # numéro de carte et CVV écartés
    return {k: payment.get(k) for k in PAYMENT_REFERENCE_FIELDS}


class OneClickService:
    def __init__(self, repository: OneClickRepository, sessions: SessionRepository, carts: CartRepository, cache: CacheManager):
        self.repository = repository
        self.sessions = sessions
        self.carts = carts
        self.cache = cache

    def invalidate(self, one_click_id: str) -> None:
        self.cache.delete(f"one_click_{one_click_id}")

    # --- Données client enregistrées ---

    def get_saved_customer_data(self, email: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(f"customer_data_{email}", CACHE_TTL, lambda: self.repository.get_customer(email))

    def has_customer_data(self, email: str) -> bool:
        data = self.get_saved_customer_data(email)
        return bool(data) and bool(data.get("enabled", False))

    def save_customer_data(self, email: str, customer_data: Dict[str, Any], payment_data: Dict[str, Any]) -> Dict[str, Any]:
        validate_customer(customer_data)
        validate_payment(payment_data)
        payment = sanitize_payment(payment_data)
        saved = self.repository.save_customer(email, {
            "email": email,
            "customer_data": customer_data,
            "payment_data": payment,
            "saved_at": utcnow().isoformat(),
            "enabled": True,
        })
        self.cache.delete(f"customer_data_{email}")
        logger.info("one_click.save_customer_data email=%s has_token=%s", email, bool(payment.get("token")))
        return saved

    def remove_customer_data(self, email: str) -> bool:
        removed = self.repository.remove_customer(email)
        self.cache.delete(f"customer_data_{email}")
        logger.info("one_click.remove_customer_data email=%s removed=%s", email, removed)
        return removed

    # --- Parcours one-click ---

    def initiate(self, organization_id: str, product_data: Dict[str, Any], customer_data: Dict[str, Any]) -> Dict[str, Any]:
        validate_product(product_data)
        validate_customer(customer_data)
        saved = self.get_saved_customer_data(customer_data["email"])
        if not saved:
            raise ValidationError("Le client n'a pas de données enregistrées pour le one-click")

        session = self.sessions.create({
            "organization_id": organization_id,
            "type": "one_click",
            "customer_data": {**saved, **customer_data},
            "product_data": product_data,
            "status": "initiated",
            "expires_at": (utcnow() + timedelta(seconds=ONE_CLICK_TTL)).isoformat(),
        })
        session_id = str(session["id"])

        cart = self.carts.create({"session_id": session_id, "type": "one_click", "status": "active"})
        cart_id = str(cart["id"])
        self.carts.add_item(cart_id, {
            "product_id": product_data["id"],
            "name": product_data["name"],
            "price": product_data["price"],
            "quantity": product_data.get("quantity", 1),
            "metadata": product_data.get("metadata") or {},
        })
        cart = self.carts.calculate_totals(cart_id)

        session = self.sessions.update(session_id, {"cart_id": cart_id, "cart_data": cart})
        self.cache.set(f"one_click_{session_id}", session, CACHE_TTL)
        logger.info(
            "one_click.initiate session_id=%s organization_id=%s product_id=%s total=%s",
            session_id, organization_id, product_data["id"], (cart.get("totals") or {}).get("total"),
        )
        return {
            "one_click_id": session_id,
            "session": session,
            "cart": cart,
            "customer": sanitize_customer(saved),
            "expires_at": session.get("expires_at"),
        }

    def get_session(self, one_click_id: str) -> Optional[Dict[str, Any]]:
        return self.cache.remember(f"one_click_{one_click_id}", CACHE_TTL, lambda: self.sessions.find(one_click_id))

    def complete(self, one_click_id: str, payment_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Paie puis convertit le panier en commande.
        - session absente: NotFoundError; déjà traitée: ConflictError; expirée: ValidationError
        - échec de paiement: statut failed, résultat success=False
        - erreur pendant le paiement: statut error, l'erreur est propagée
        """
        session = self.get_session(one_click_id)
        if not session:
            raise NotFoundError("Session one-click introuvable", status_code=404, context={"one_click_id": one_click_id})
        if session.get("status") != "initiated":
            raise ConflictError("Session one-click déjà traitée", status_code=409, context={"one_click_id": one_click_id})
        if is_expired(session.get("expires_at")):
            raise ValidationError("Session one-click expirée")
        validate_payment(payment_data)

        payment = sanitize_payment(payment_data)
        self.sessions.update_payment_data(one_click_id, payment)
        self.sessions.update_status(one_click_id, "processing")
        self.invalidate(one_click_id)

        cart_data = session.get("cart_data") or {}
        amount = (cart_data.get("totals") or {}).get("total", 0)
        try:
            result = self.repository.process_payment(one_click_id, {
                **payment,
                "amount": amount,
                "currency": cart_data.get("currency", "BRL"),
            })
        except SDKError as e:
            self.sessions.update_status(one_click_id, "error")
            logger.error("one_click.complete payment error one_click_id=%s: %s", one_click_id, e.message)
            raise

        if not result.get("success"):
            session = self.sessions.update_status(one_click_id, "failed")
            logger.warning("one_click.complete payment failed one_click_id=%s error=%s", one_click_id, result.get("error"))
            return {
                "success": False,
                "one_click_id": one_click_id,
                "error": result.get("error") or "Échec du paiement",
                "session": session,
            }

        session = self.sessions.update_status(one_click_id, "completed")
        order = self.carts.convert_to_order(str(session.get("cart_id") or cart_data.get("id")))
        logger.info(
            "one_click.complete one_click_id=%s order_id=%s payment_id=%s",
            one_click_id, order.get("order_id"), result.get("payment_id"),
        )
        return {
            "success": True,
            "one_click_id": one_click_id,
            "order": order,
            "payment": result,
            "session": session,
        }

    # --- Statistiques ---

    def get_statistics(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {**(filters or {}), "type": "one_click"}
        key = "one_click_statistics_" + "_".join(f"{k}={query[k]}" for k in sorted(query))
        return self.cache.remember(key, CACHE_TTL, lambda: self.sessions.get_statistics(query))

    def get_conversion_rate(self, filters: Optional[Dict[str, Any]] = None) -> float:
        stats = self.get_statistics(filters)
        initiated = to_decimal(stats.get("initiated") or 0)
        completed = to_decimal(stats.get("completed") or 0)
        if initiated <= 0:
            return 0.0
        return float(round(completed / initiated * Decimal(100), 2))
