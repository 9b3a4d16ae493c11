"""
Accès à l'API distante pour la feature 'one_click'.
- Données client enregistrées: /checkout/one-click/customers/{email}
- Paiement d'une session one-click: /checkout/one-click/{session_id}/pay
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from clubify_checkout.errors import NotFoundError
from clubify_checkout.infra.http_client import HttpClient, unwrap_data

logger = logging.getLogger(__name__)

BASE_PATH = "/checkout/one-click"


def _customer_path(email: str) -> str:
    return f"{BASE_PATH}/customers/{quote(email, safe='@')}"


class OneClickRepository:
    def __init__(self, http: HttpClient):
        self.http = http

    def get_customer(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            return unwrap_data(self.http.get(_customer_path(email))) or None
        except NotFoundError:
            logger.info("one_click.repository.get_customer not found email=%s", email)
            return None

    def save_customer(self, email: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.put(_customer_path(email), data))

    def remove_customer(self, email: str) -> bool:
        try:
            self.http.delete(_customer_path(email))
            return True
        except NotFoundError:
            return False

    def process_payment(self, session_id: str, payment: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap_data(self.http.post(f"{BASE_PATH}/{session_id}/pay", payment))
