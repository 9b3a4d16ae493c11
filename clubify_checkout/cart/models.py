"""
Modèles panier (pas d'HTTP, pas de cache).
- PricingRule: règle de taxe/frais (pourcentage du sous-total ou montant fixe)
- ItemData: ligne de panier et ses montants dérivés
- CartData: panier complet, opérations d'ajout/retrait et calcul des totaux
Montants en Decimal; l'arrondi est appliqué par composant de total, à la précision de la devise.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationInfo, field_validator, model_validator

from clubify_checkout.errors import ValidationError
from clubify_checkout.utils.currency import (
    DEFAULT_CURRENCY,
    SUPPORTED_CURRENCIES,
    ZERO,
    format_currency,
    quantize_amount,
)
from clubify_checkout.utils.dates import now_like, utcnow
from clubify_checkout.utils.validators import parse_model

CART_TYPES = ("standard", "one_click", "subscription", "recurring")
CART_STATUSES = ("active", "processing", "completed", "abandoned", "expired")
MAX_QUANTITY = 999

HUNDRED = Decimal("100")
CENT = Decimal("0.01")

def _new_item_id() -> str:
    return f"item_{uuid4().hex[:13]}"


class PricingRule(BaseModel):
    """
    Règle de taxe ou de frais appliquée à une ligne.
    - percentage: sous-total × rate / 100
    - fixed: amount une fois par ligne, ou × quantité si per_unit
    Une règle incomplète est rejetée, sauf contexte {"permissive_rules": True} (contribue alors 0).
    """
    type: Literal["percentage", "fixed"]
    rate: Optional[Decimal] = Field(default=None, ge=0)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    per_unit: bool = False
    name: Optional[str] = None
    ignored: bool = False

    @model_validator(mode="before")
    @classmethod
    def _check_shape(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        problems = []
        rule_type = data.get("type")
        if rule_type not in ("percentage", "fixed"):
            problems.append(f"type de règle inconnu: {rule_type!r}")
        elif rule_type == "percentage" and data.get("rate") is None:
            problems.append("rate manquant pour une règle percentage")
        elif rule_type == "fixed" and data.get("amount") is None:
            problems.append("amount manquant pour une règle fixed")
        if not problems:
            return data
        if (info.context or {}).get("permissive_rules"):
            return {"type": "fixed", "amount": 0, "name": data.get("name"), "ignored": True}
        raise ValueError("; ".join(problems))

    def compute(self, subtotal: Decimal, quantity: int) -> Decimal:
        if self.type == "percentage":
            return subtotal * (self.rate or ZERO) / HUNDRED
        amount = self.amount or ZERO
        return amount * quantity if self.per_unit else amount


class ItemData(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_item_id)
    cart_id: Optional[str] = None
    product_id: str = Field(min_length=1)
    variant_id: Optional[str] = None
    offer_id: Optional[str] = None
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    sku: Optional[str] = Field(default=None, max_length=100)
    price: Decimal = Field(ge=0)
    original_price: Optional[Decimal] = Field(default=None, ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    weight: float = Field(default=0.0, ge=0)
    dimensions: Dict[str, float] = Field(default_factory=dict)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    variant_attributes: Dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None
    images: List[Dict[str, Any]] = Field(default_factory=list)
    category: Optional[str] = Field(default=None, max_length=100)
    tags: List[str] = Field(default_factory=list)
    requires_shipping: Optional[bool] = None
    is_digital: bool = False
    is_subscription: bool = False
    subscription_config: Dict[str, Any] = Field(default_factory=dict)
    discount: Dict[str, Any] = Field(default_factory=dict)
    taxes: List[PricingRule] = Field(default_factory=list)
    fees: List[PricingRule] = Field(default_factory=list)
    inventory: Dict[str, Any] = Field(default_factory=dict)
    customization: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    added_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # --- Montants dérivés ---

    @property
    def effective_original_price(self) -> Decimal:
        return self.original_price if self.original_price is not None else self.price

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    @property
    def original_subtotal(self) -> Decimal:
        return self.effective_original_price * self.quantity

    @property
    def discount_amount(self) -> Decimal:
        # Un prix supérieur au prix d'origine n'est pas une remise négative
        return max(ZERO, self.original_subtotal - self.subtotal)

    @property
    def discount_percentage(self) -> Decimal:
        original = self.original_subtotal
        if original <= 0:
            return Decimal("0.00")
        pct = (self.discount_amount / original * HUNDRED).quantize(CENT, rounding=ROUND_HALF_EVEN)
        return min(max(pct, ZERO), HUNDRED)

    @property
    def has_discount(self) -> bool:
        return self.discount_amount > 0

    def calculate_taxes(self) -> Decimal:
        subtotal = self.subtotal
        return sum((rule.compute(subtotal, self.quantity) for rule in self.taxes), ZERO)

    def calculate_fees(self) -> Decimal:
        subtotal = self.subtotal
        return sum((rule.compute(subtotal, self.quantity) for rule in self.fees), ZERO)

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.calculate_taxes() + self.calculate_fees()

    @property
    def total_weight(self) -> float:
        return self.weight * self.quantity

    @property
    def needs_shipping(self) -> bool:
        if self.requires_shipping is not None:
            return self.requires_shipping
        return not self.is_digital

    @property
    def available_quantity(self) -> int:
        return int(self.inventory.get("quantity") or 0)

    def is_in_stock(self) -> bool:
        if not self.inventory.get("track_quantity"):
            return True
        return self.available_quantity >= self.quantity

    @property
    def main_image(self) -> Optional[str]:
        if self.image_url:
            return self.image_url
        return self.images[0].get("url") if self.images else None

    def with_quantity(self, quantity: int) -> "ItemData":
        if quantity <= 0:
            raise ValidationError("La quantité doit être supérieure à zéro")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"La quantité ne peut pas dépasser {MAX_QUANTITY}")
        return self.model_copy(update={"quantity": quantity, "updated_at": utcnow()})

    def summary(self, currency: str = DEFAULT_CURRENCY) -> Dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "sku": self.sku,
            "price": self.price,
            "original_price": self.effective_original_price,
            "quantity": self.quantity,
            "subtotal": quantize_amount(self.subtotal, currency),
            "discount_amount": quantize_amount(self.discount_amount, currency),
            "discount_percentage": self.discount_percentage,
            "taxes": quantize_amount(self.calculate_taxes(), currency),
            "fees": quantize_amount(self.calculate_fees(), currency),
            "total": quantize_amount(self.total, currency),
            "total_weight": self.total_weight,
            "requires_shipping": self.needs_shipping,
            "is_digital": self.is_digital,
            "is_subscription": self.is_subscription,
            "is_in_stock": self.is_in_stock(),
            "main_image": self.main_image,
            "category": self.category,
            "added_at": self.added_at,
        }

    @classmethod
    def for_cart(cls, product_id: str, name: str, price: Any, quantity: int = 1, **extra: Any) -> "ItemData":
        data = {"product_id": product_id, "name": name, "price": price, "original_price": price, "quantity": quantity}
        data.update(extra)
        return parse_model(cls, data)


class Coupon(BaseModel):
    code: str = Field(min_length=1)
    discount_amount: Decimal = Field(default=ZERO, ge=0)
    type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ShippingData(BaseModel):
    method: Optional[str] = None
    amount: Decimal = Field(default=ZERO, ge=0)
    address: Dict[str, Any] = Field(default_factory=dict)


class CartTotals(BaseModel):
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    taxes: Decimal = ZERO
    shipping: Decimal = ZERO
    fees: Decimal = ZERO
    total: Decimal = ZERO


class CartData(BaseModel):
    """
    Panier d'une session de checkout.
    - add_item fusionne les quantités d'un même product_id
    - remove_item sur un id inconnu ne fait rien
    - totals est recalculé à chaque lecture: total == subtotal + taxes + shipping + fees
    """
    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    session_id: str = Field(min_length=1)
    customer_id: Optional[str] = None
    organization_id: Optional[str] = None
    type: Literal["standard", "one_click", "subscription", "recurring"] = "standard"
    status: Literal["active", "processing", "completed", "abandoned", "expired"] = "active"
    items: List[ItemData] = Field(default_factory=list)
    coupon: Optional[Coupon] = None
    shipping_data: ShippingData = Field(default_factory=ShippingData)
    billing_data: Dict[str, Any] = Field(default_factory=dict)
    currency: str = DEFAULT_CURRENCY
    metadata: Dict[str, Any] = Field(default_factory=dict)
    order_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    _context: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @field_validator("currency", mode="before")
    @classmethod
    def _check_currency(cls, v: Any) -> str:
        code = str(v or DEFAULT_CURRENCY).upper()
        if code not in SUPPORTED_CURRENCIES:
            raise ValueError(f"devise non supportée: {v}")
        return code

    # --- Items ---

    def _touch(self) -> None:
        self.updated_at = utcnow()

    def get_item(self, item_id: str) -> Optional[ItemData]:
        return next((it for it in self.items if it.id == item_id), None)

    def add_item(self, item: Union[ItemData, Dict[str, Any]]) -> ItemData:
        new_item = parse_model(ItemData, item, context=self._context)
        for idx, existing in enumerate(self.items):
            if existing.product_id == new_item.product_id:
                merged = existing.with_quantity(existing.quantity + new_item.quantity)
                self.items[idx] = merged
                self._touch()
                return merged
        if new_item.added_at is None:
            new_item = new_item.model_copy(update={"added_at": utcnow()})
        if self.id and not new_item.cart_id:
            new_item = new_item.model_copy(update={"cart_id": self.id})
        self.items.append(new_item)
        self._touch()
        return new_item

    def remove_item(self, item_id: str) -> bool:
        remaining = [it for it in self.items if it.id != item_id]
        if len(remaining) == len(self.items):
            return False
        self.items = remaining
        self._touch()
        return True

    def update_item(self, item_id: str, **updates: Any) -> Optional[ItemData]:
        for idx, existing in enumerate(self.items):
            if existing.id == item_id:
                data = existing.model_dump()
                data.update(updates)
                data["id"] = existing.id
                updated = parse_model(ItemData, data, context=self._context)
                self.items[idx] = updated.model_copy(update={"updated_at": utcnow()})
                self._touch()
                return self.items[idx]
        return None

    def clear_items(self) -> None:
        self.items = []
        self._touch()

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def unique_products(self) -> List[ItemData]:
        seen: Dict[str, ItemData] = {}
        for it in self.items:
            seen.setdefault(it.product_id, it)
        return list(seen.values())

    # --- Coupon / livraison / facturation ---

    def apply_coupon(self, coupon: Union[Coupon, Dict[str, Any]]) -> Coupon:
        self.coupon = parse_model(Coupon, coupon)
        self._touch()
        return self.coupon

    def remove_coupon(self) -> None:
        self.coupon = None
        self._touch()

    @property
    def has_coupon(self) -> bool:
        return self.coupon is not None

    @property
    def coupon_code(self) -> Optional[str]:
        return self.coupon.code if self.coupon else None

    def set_shipping(self, method: Optional[str] = None, amount: Any = ZERO, address: Optional[Dict[str, Any]] = None) -> ShippingData:
        self.shipping_data = parse_model(ShippingData, {"method": method, "amount": amount, "address": address or {}})
        self._touch()
        return self.shipping_data

    def set_billing(self, billing_data: Dict[str, Any]) -> None:
        self.billing_data = dict(billing_data or {})
        self._touch()

    # --- Totaux ---

    @property
    def totals(self) -> CartTotals:
        cur = self.currency
        subtotal = quantize_amount(sum((it.subtotal for it in self.items), ZERO), cur)
        discount = quantize_amount(sum((it.discount_amount for it in self.items), ZERO), cur)
        taxes = quantize_amount(sum((it.calculate_taxes() for it in self.items), ZERO), cur)
        fees = quantize_amount(sum((it.calculate_fees() for it in self.items), ZERO), cur)
        shipping = quantize_amount(self.shipping_data.amount, cur)
        return CartTotals(
            subtotal=subtotal,
            discount=discount,
            taxes=taxes,
            shipping=shipping,
            fees=fees,
            total=subtotal + taxes + shipping + fees,
        )

    @property
    def subtotal(self) -> Decimal:
        return self.totals.subtotal

    @property
    def discount(self) -> Decimal:
        return self.totals.discount

    @property
    def taxes(self) -> Decimal:
        return self.totals.taxes

    @property
    def shipping(self) -> Decimal:
        return self.totals.shipping

    @property
    def fees(self) -> Decimal:
        return self.totals.fees

    @property
    def total(self) -> Decimal:
        return self.totals.total

    def format_currency(self, amount: Any) -> str:
        return format_currency(amount, self.currency)

    @property
    def formatted_total(self) -> str:
        return self.format_currency(self.total)

    @property
    def formatted_subtotal(self) -> str:
        return self.format_currency(self.subtotal)

    # --- Statut ---

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_abandoned(self) -> bool:
        return self.status == "abandoned"

    @property
    def is_converted(self) -> bool:
        return self.status == "completed" and bool(self.order_id)

    @property
    def is_one_click(self) -> bool:
        return self.type == "one_click"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.status == "expired":
            return True
        if self.expires_at is None:
            return False
        return self.expires_at < now_like(self.expires_at, now)

    def requires_shipping(self) -> bool:
        return any(it.needs_shipping for it in self.items)

    @property
    def total_weight(self) -> float:
        return sum(it.total_weight for it in self.items)

    def mark_abandoned(self) -> None:
        self.status = "abandoned"
        self.abandoned_at = utcnow()

    def mark_completed(self, order_id: str) -> None:
        if not order_id:
            raise ValidationError("order_id requis pour finaliser le panier")
        self.status = "completed"
        self.order_id = order_id
        self.converted_at = utcnow()

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "status": self.status,
            "item_count": self.item_count,
            "total_quantity": self.total_quantity,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total": self.total,
            "formatted_total": self.formatted_total,
            "currency": self.currency,
            "has_coupon": self.has_coupon,
            "coupon_code": self.coupon_code,
            "requires_shipping": self.requires_shipping(),
            "is_empty": self.is_empty,
            "is_active": self.is_active,
            "is_converted": self.is_converted,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_display(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "items": [it.summary(self.currency) for it in self.items],
            "totals": self.totals.model_dump(),
            "coupon": self.coupon.model_dump() if self.coupon else None,
            "shipping_data": self.shipping_data.model_dump(),
            "billing_data": self.billing_data,
            "currency": self.currency,
            "summary": self.summary(),
        }

    def to_payload(self) -> Dict[str, Any]:
        """Corps JSON pour l'API distante (sans champs vides)."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def for_creation(cls, session_id: str, **data: Any) -> "CartData":
        payload = {"session_id": session_id, "type": "standard", "status": "active", "currency": DEFAULT_CURRENCY}
        payload.update(data)
        return cls.from_api(payload)

    @classmethod
    def from_api(cls, data: Dict[str, Any], permissive: bool = False) -> "CartData":
        context = {"permissive_rules": True} if permissive else {}
        cart = parse_model(cls, data, context=context)
        cart._context = context
        return cart
