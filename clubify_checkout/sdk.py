"""
Façade du SDK Clubify Checkout.
- Les modules (cart, flows, sessions, one_click, webhooks) sont construits au premier accès puis mémorisés par instance
- Ils partagent le même HttpClient et le même CacheManager, injectables pour les tests
"""
import logging
from functools import cached_property
from typing import Any, Dict, Optional

from clubify_checkout.cart.repository import CartRepository
from clubify_checkout.cart.service import CartService
from clubify_checkout.config import SDK_VERSION, Settings
from clubify_checkout.flows.repository import FlowRepository
from clubify_checkout.flows.service import FlowService
from clubify_checkout.infra.cache import CacheManager
from clubify_checkout.infra.http_client import HttpClient
from clubify_checkout.one_click.repository import OneClickRepository
from clubify_checkout.one_click.service import OneClickService
from clubify_checkout.sessions.repository import SessionRepository
from clubify_checkout.sessions.service import SessionService
from clubify_checkout.webhooks.service import WebhookEvent, WebhookService

logger = logging.getLogger(__name__)


class ClubifyCheckoutSDK:
    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[HttpClient] = None, cache: Optional[CacheManager] = None):
        self.settings = settings or Settings.from_env()
        self.http = http_client or HttpClient(self.settings)
        self.cache = cache or CacheManager.from_settings(self.settings)

    @property
    def version(self) -> str:
        return SDK_VERSION

    @cached_property
    def cart(self) -> CartService:
        return CartService(CartRepository(self.http), self.cache, self.settings)

    @cached_property
    def flows(self) -> FlowService:
        return FlowService(FlowRepository(self.http), self.cache)

    @cached_property
    def sessions(self) -> SessionService:
        return SessionService(SessionRepository(self.http), self.cache)

    @cached_property
    def one_click(self) -> OneClickService:
        return OneClickService(OneClickRepository(self.http), SessionRepository(self.http), CartRepository(self.http), self.cache)

    @cached_property
    def webhooks(self) -> WebhookService:
        return WebhookService(
            self.settings.webhook_secret,
            self.settings.webhook_tolerance,
            invalidators=[self._invalidate_from_event],
        )

    def _invalidate_from_event(self, event: WebhookEvent) -> None:
        data = event.data if isinstance(event.data, dict) else {}
        cart_id, session_id = data.get("cart_id"), data.get("session_id")
        if cart_id or session_id:
            self.cart.invalidate(cart_id=cart_id, session_id=session_id)
        if session_id:
            self.sessions.invalidate(session_id)
            self.one_click.invalidate(session_id)
        flow_id = data.get("flow_id")
        if flow_id:
            self.flows.invalidate(flow_id=flow_id, offer_id=data.get("offer_id"))

    def health_check(self) -> Dict[str, Any]:
        api_ok = self.http.health_check()
        return {
            "version": self.version,
            "environment": self.settings.environment,
            "api": api_ok,
            "cache": self.cache.ping() if self.cache.enabled else None,
        }

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "ClubifyCheckoutSDK":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
