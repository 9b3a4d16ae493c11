"""
Module 'cart' (feature-first): point d'entrée public.
Réunit modèles panier (totaux, remises, taxes/frais), repository API et service.
"""

from .models import CartData, CartTotals, Coupon, ItemData, PricingRule, ShippingData
from .repository import CartRepository
from .service import CartService

__all__ = [
    # models
    "CartData",
    "CartTotals",
    "Coupon",
    "ItemData",
    "PricingRule",
    "ShippingData",
    # repository / service
    "CartRepository",
    "CartService",
]
